"""Response targets: the sinks a decoded body is written into.

A target is one of three capabilities, fixed when the descriptor is built:

- ``StructuredTarget`` validates JSON or XML bodies into a type via pydantic.
- ``BytesTarget`` receives octet-stream bodies verbatim.
- ``TextTarget`` receives text/plain and text/html bodies as ``str``.

Callers usually pass a type and let ``resolve_target`` pick the capability::

    api = RestAPI("GET", "/widgets/1", response=Widget, error=ApiError)
    client.execute(api)
    api.response.value  # -> Widget(...)
"""

from __future__ import annotations

import types
import xml.etree.ElementTree as ET
from typing import Any, Generic, TypeVar

from pydantic import TypeAdapter, ValidationError
from pydantic.errors import PydanticSchemaGenerationError

from rest_api.errors import DecodeError
from rest_api.xml_body import xml_root_content

T = TypeVar("T")


class Target:
    """Base class for response sinks. ``value`` holds the decoded body."""

    value: Any = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(value={self.value!r})"


class StructuredTarget(Target, Generic[T]):
    """Sink for JSON and XML bodies, validated into ``tp``.

    ``tp`` is anything pydantic can validate into: a BaseModel subclass, a
    dataclass, ``dict[str, Any]``, ``list[Widget]`` and so on. The default
    ``Any`` keeps the parsed document as plain Python data.
    """

    def __init__(self, tp: Any = Any) -> None:
        self.tp = tp
        self._adapter: TypeAdapter[T] = TypeAdapter(tp)
        self.value: T | None = None

    def load_json(self, body: bytes) -> None:
        try:
            self.value = self._adapter.validate_json(body)
        except ValidationError as e:
            raise DecodeError(f"Error unmarshalling JSON into {self._type_name}: {e}") from e

    def load_xml(self, body: bytes) -> None:
        """Validate the root element's content into ``tp``.

        The root tag itself is not part of the value, the same way the root
        element of a document maps onto a whole object. The content is
        reshaped against ``tp`` first, so one-item lists and empty strings
        survive the trip through XML.
        """
        try:
            content = xml_root_content(body, self._adapter.core_schema)
        except ET.ParseError as e:
            raise DecodeError(f"Error unmarshalling XML: {e}") from e
        try:
            self.value = self._adapter.validate_python(content)
        except ValidationError as e:
            raise DecodeError(f"Error unmarshalling XML into {self._type_name}: {e}") from e

    @property
    def _type_name(self) -> str:
        return getattr(self.tp, "__name__", repr(self.tp))


class BytesTarget(Target):
    """Sink for octet-stream bodies."""

    def __init__(self) -> None:
        self.value: bytes = b""


class TextTarget(Target):
    """Sink for text/plain and text/html bodies."""

    def __init__(self) -> None:
        self.value: str = ""


def resolve_target(spec: Any) -> Target | None:
    """Turn a caller-supplied target spec into a Target.

    ``None`` and Target instances pass through. ``bytes`` and ``str`` select
    the raw sinks; any other type or annotation becomes a StructuredTarget.

    Raises:
        TypeError: If *spec* is neither a Target nor a type pydantic can
            validate into. Instances (``Widget()``, ``{}``) are rejected too:
            the target owns its value.
    """
    if spec is None or isinstance(spec, Target):
        return spec
    if spec is bytes:
        return BytesTarget()
    if spec is str:
        return TextTarget()
    if not _is_type_like(spec):
        raise TypeError(
            f"Target must be a Target, a type, or None; got {type(spec).__name__} instance"
        )
    try:
        return StructuredTarget(spec)
    except PydanticSchemaGenerationError as e:
        raise TypeError(f"Cannot decode into {spec!r}: {e}") from e


def _is_type_like(spec: Any) -> bool:
    # classes, plus typing constructs such as list[Widget] or Any
    if isinstance(spec, (type, types.UnionType)):
        return True
    return getattr(spec, "__module__", None) == "typing" or hasattr(spec, "__origin__")
