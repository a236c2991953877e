"""XML body conversion for the ``xml`` content-type strategy.

Requests: payload values are reduced to JSON-compatible data with
pydantic-core and written as an XML document whose root element is the single
top-level key.

Responses: XML documents are read into plain dicts so the same pydantic
validation used for JSON bodies can fill a structured target.

XML cannot tell a one-item list from a scalar, nor an empty string from a
missing value. ``conform_to_schema`` settles both using the target's pydantic
core schema. Leaf values still come back as strings; typed targets rely on
pydantic's lax mode to coerce them (``"42"`` -> ``42``).
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from typing import Any, Iterator

from pydantic_core import CoreSchema, to_jsonable_python

# XML 1.0 NCName: a Name without colons, since a prefixed tag needs a namespace
_NAME_START_CHARS = (
    "A-Z_a-z\u00C0-\u00D6\u00D8-\u00F6\u00F8-\u02FF\u0370-\u037D\u037F-\u1FFF"
    "\u200C-\u200D\u2070-\u218F\u2C00-\u2FEF\u3001-\uD7FF\uF900-\uFDCF\uFDF0-\uFFFD"
    "\U00010000-\U000EFFFF"
)
_XML_NAME = re.compile(
    "[" + _NAME_START_CHARS + "][" + _NAME_START_CHARS + "\\-.0-9\u00B7\u0300-\u036F\u203F-\u2040]*"
)
_INVALID_XML_CHAR = re.compile("[^\t\n\r\u0020-\uD7FF\uE000-\uFFFD\U00010000-\U0010FFFF]")


# ---------------------------------------------------------------------------
# XML bytes → dict  (response decoding)
# ---------------------------------------------------------------------------


def xml_to_dict(xml_bytes: bytes) -> dict[str, Any]:
    """Parse an XML document into ``{root_tag: content}``.

    Namespace URIs are dropped from tag names. A tag that occurs once is read
    as a scalar, a repeated one as a list.

    Args:
        xml_bytes: Raw response body.

    Returns:
        Dict with the root element tag as the single key.

    Raises:
        ET.ParseError: If *xml_bytes* is not well-formed XML.
    """
    root = ET.fromstring(xml_bytes)
    return {_local_name(root.tag): _read_element(root)}


def xml_root_content(xml_bytes: bytes, schema: CoreSchema | None = None) -> Any:
    """Return only the root element's content, the shape a target validates.

    When *schema* is given the content is first reshaped with
    ``conform_to_schema``.
    """
    document = xml_to_dict(xml_bytes)
    content = next(iter(document.values()))
    if schema is not None:
        content = conform_to_schema(content, schema)
    # <Empty/> still decodes into a model with all-default fields
    return {} if content is None else content


def _local_name(tag: str) -> str:
    if tag.startswith("{"):
        return tag.split("}", 1)[1]
    return tag


def _read_element(element: ET.Element) -> dict[str, Any] | str | None:
    """Convert one element.

    - attributes become ``@name`` keys (xmlns declarations skipped)
    - children are grouped by tag; repeats become lists
    - a text-only element becomes a string, an empty one ``None``
    - text next to attributes or children is kept under ``#text``
    """
    result: dict[str, Any] = {}

    for name, value in element.attrib.items():
        if name.startswith("xmlns") or name.startswith("{"):
            continue
        result[f"@{name}"] = value

    grouped: dict[str, list[Any]] = {}
    for child in element:
        grouped.setdefault(_local_name(child.tag), []).append(_read_element(child))

    for tag, values in grouped.items():
        result[tag] = values if len(values) > 1 else values[0]

    text = (element.text or "").strip()
    if text:
        if not result:
            return text
        result["#text"] = text

    return result or None


# ---------------------------------------------------------------------------
# Schema-guided reshaping
# ---------------------------------------------------------------------------

_ANY_SCHEMA: CoreSchema = {"type": "any"}

_LIST_TYPES = frozenset({"list", "set", "frozenset", "tuple", "generator"})
_WRAPPER_TYPES = frozenset({"default", "function-before", "function-after", "function-wrap"})
_FIELDS_TYPES = frozenset({"model-fields", "typed-dict", "dataclass-args"})


def conform_to_schema(content: Any, schema: CoreSchema) -> Any:
    """Reshape content read by ``xml_to_dict`` to the layout *schema* validates.

    The inverse of what ``dict_to_xml`` flattens:

    - a list-typed field is always a list, even with one element or none
      (no element at all means an empty list)
    - an empty element in a ``str`` slot is ``""``; ``None`` survives only
      where the schema is nullable
    - a list that is an element's whole content (a top-level list, or a list
      inside a list) is read from its ``item`` children

    Anything the schema does not constrain (``Any``, unions, scalars) is
    left as read.
    """
    return _conform(content, schema, {})


def _resolve(schema: CoreSchema, defs: dict[str, CoreSchema]) -> CoreSchema:
    """Strip wrappers and follow references down to a concrete schema."""
    while True:
        kind = schema["type"]
        if "ref" in schema and kind != "definition-ref":
            defs.setdefault(schema["ref"], schema)
        if kind == "definitions":
            for definition in schema["definitions"]:
                defs[definition["ref"]] = definition
            schema = schema["schema"]
        elif kind == "definition-ref":
            target = defs.get(schema["schema_ref"])
            if target is None:
                return _ANY_SCHEMA
            schema = target
        elif kind in _WRAPPER_TYPES:
            schema = schema["schema"]
        elif kind == "json-or-python":
            schema = schema["python_schema"]
        elif kind == "lax-or-strict":
            schema = schema["lax_schema"]
        else:
            return schema


def _conform(value: Any, schema: CoreSchema, defs: dict[str, CoreSchema]) -> Any:
    """Reshape the content of one element."""
    schema = _resolve(schema, defs)
    kind = schema["type"]

    if kind == "nullable":
        return None if value is None else _conform(value, schema["schema"], defs)
    if kind == "str":
        return "" if value is None else value
    if kind in _LIST_TYPES:
        if value is None:
            return []
        if isinstance(value, dict) and set(value) == {"item"}:
            return _conform_group(value["item"], schema, defs)
        return value
    if kind in ("model", "dataclass"):
        return _conform(value, schema["schema"], defs)
    if kind in _FIELDS_TYPES:
        if value is None:
            value = {}
        if not isinstance(value, dict):
            return value
        return _conform_fields(value, schema, defs)
    if kind == "dict":
        if value is None:
            return {}
        if not isinstance(value, dict):
            return value
        values_schema = schema.get("values_schema", _ANY_SCHEMA)
        return {key: _conform_group(item, values_schema, defs) for key, item in value.items()}
    return value


def _conform_group(value: Any, schema: CoreSchema, defs: dict[str, CoreSchema]) -> Any:
    """Reshape all same-named sibling elements read for one key."""
    schema = _resolve(schema, defs)
    kind = schema["type"]

    if kind == "nullable":
        return None if value is None else _conform_group(value, schema["schema"], defs)
    if kind in _LIST_TYPES:
        members = value if isinstance(value, list) else [value]
        return [_conform(member, _item_schema(schema, i), defs) for i, member in enumerate(members)]
    return _conform(value, schema, defs)


def _conform_fields(
    value: dict[str, Any],
    schema: CoreSchema,
    defs: dict[str, CoreSchema],
) -> dict[str, Any]:
    result = dict(value)
    for keys, field_schema in _fields(schema):
        present = [key for key in keys if key in result]
        for key in present:
            result[key] = _conform_group(result[key], field_schema, defs)
        if not present and _resolve(field_schema, defs)["type"] in _LIST_TYPES:
            # an empty list leaves no elements behind
            result[keys[0]] = []
    return result


def _fields(schema: CoreSchema) -> Iterator[tuple[list[str], CoreSchema]]:
    """Yield (accepted keys, field schema) for each field, alias first."""
    if schema["type"] == "dataclass-args":
        named = [(field["name"], field) for field in schema["fields"]]
    else:
        named = list(schema["fields"].items())
    for name, field in named:
        alias = field.get("validation_alias")
        keys = [alias, name] if isinstance(alias, str) and alias != name else [name]
        yield keys, field["schema"]


def _item_schema(schema: CoreSchema, index: int) -> CoreSchema:
    if schema["type"] == "tuple":
        items = schema.get("items_schema") or [_ANY_SCHEMA]
        return items[min(index, len(items) - 1)]
    return schema.get("items_schema", _ANY_SCHEMA)


# ---------------------------------------------------------------------------
# Python value → XML bytes  (request encoding)
# ---------------------------------------------------------------------------


def dict_to_xml(data: dict[str, Any]) -> bytes:
    """Serialize a single-key dict as an XML document.

    The key names the root element. Nested dicts become child elements,
    lists become repeated siblings, ``None`` becomes an empty element and
    scalars become text. ``@attr`` keys are not emitted; ``#text`` sets the
    element text.

    Raises:
        ValueError: If *data* is not a dict with exactly one key, a key is not
            a valid XML element name, or a value holds characters XML 1.0
            forbids.
    """
    if not isinstance(data, dict) or len(data) != 1:
        raise ValueError(
            f"XML body needs exactly one root element, got "
            f"{type(data).__name__} with "
            f"{len(data) if isinstance(data, dict) else 'no'} keys"
        )

    root_tag, root_value = next(iter(data.items()))
    root = _build_element(str(root_tag), root_value)
    ET.indent(root)
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def object_to_xml(payload: Any) -> bytes:
    """Serialize an arbitrary request payload as XML.

    A single-key dict is used as the document itself. Any other value is
    wrapped in a root element named by the class attribute ``xml_root``, or
    the class name when there is none.

    Raises:
        ValueError: If the payload cannot be expressed as an XML document.
        pydantic_core.PydanticSerializationError: If the payload holds values
            pydantic-core cannot serialize.
    """
    if isinstance(payload, dict):
        return dict_to_xml(to_jsonable_python(payload, by_alias=True))

    root_tag = getattr(type(payload), "xml_root", None) or type(payload).__name__
    return dict_to_xml({root_tag: to_jsonable_python(payload, by_alias=True)})


def _build_element(tag: str, value: Any) -> ET.Element:
    if not _XML_NAME.fullmatch(tag):
        raise ValueError(f"{tag!r} is not a valid XML element name")
    element = ET.Element(tag)

    if value is None:
        pass
    elif isinstance(value, dict):
        for key, child in value.items():
            key = str(key)
            if key == "#text":
                element.text = _text(child)
                continue
            if key.startswith("@"):
                continue
            if isinstance(child, list):
                for item in child:
                    element.append(_build_element(key, item))
            else:
                element.append(_build_element(key, child))
    elif isinstance(value, list):
        for item in value:
            element.append(_build_element("item", item))
    else:
        element.text = _text(value)

    return element


def _text(value: Any) -> str:
    # lower-case booleans so they read back the way JSON spells them
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value)
    invalid = _INVALID_XML_CHAR.search(text)
    if invalid:
        raise ValueError(f"Character {invalid.group()!r} cannot appear in an XML document")
    return text
