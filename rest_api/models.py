"""Data models for the REST client.

``ClientConfig`` is a Pydantic v2 model so it can be validated from YAML
(see config_loader). ``RestAPI`` is a plain dataclass: it carries arbitrary
caller objects (payloads, targets) and is mutated while a call runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rest_api.targets import resolve_target


# =============================================================================
# Connection Configuration
# =============================================================================


class ClientConfig(BaseModel):
    """Connection settings shared by every call made through one client.

    The client never writes to this object; per-call header defaults are
    applied to a copy.
    """

    model_config = ConfigDict(extra="forbid")

    base_url: str = Field(description="Prefix concatenated verbatim with each endpoint")
    user: str | None = Field(default=None, description="Basic auth username")
    password: str | None = Field(default=None, description="Basic auth password")
    ignore_ssl: bool = Field(default=False, description="Skip TLS certificate verification")
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="Headers sent on every request (case-insensitive keys)",
    )
    timeout: float | None = Field(
        default=30.0, description="Per-call timeout in seconds; None disables it"
    )
    debug: bool = Field(default=False, description="Log request/response traces")

    @field_validator("headers")
    @classmethod
    def fold_header_case(cls, headers: dict[str, str]) -> dict[str, str]:
        """Collapse keys differing only in case; the last one written wins."""
        folded: dict[str, tuple[str, str]] = {}
        for key, value in headers.items():
            folded.pop(key.lower(), None)
            folded[key.lower()] = (key, value)
        return dict(folded.values())

    @field_validator("timeout")
    @classmethod
    def check_timeout(cls, timeout: float | None) -> float | None:
        if timeout is not None and timeout <= 0:
            raise ValueError("timeout must be positive (use None to disable it)")
        return timeout


# =============================================================================
# Request Descriptor
# =============================================================================


class CallState(str, Enum):
    """Lifecycle of one descriptor. A descriptor only ever moves forward."""

    IDLE = "idle"
    REQUEST_BUILT = "request_built"
    SENT = "sent"
    RESPONSE_RECEIVED = "response_received"
    DECODED_SUCCESS = "decoded_success"
    DECODED_ERROR = "decoded_error"
    FAILED = "failed"


@dataclass
class RestAPI:
    """One API call: request intent plus the results of running it.

    ``response`` and ``error`` accept a Target or a type (see
    ``rest_api.targets.resolve_target``) and are resolved on construction,
    so a target the decoder can never fill fails here rather than mid-call.

    Usage:
        api = RestAPI("PUT", "/items/1", request=item, response=Item, error=ApiError)
        client.execute(api)
        api.response.value
    """

    method: str
    endpoint: str
    request: Any = None
    response: Any = None
    error: Any = None

    # results, filled by Client.execute
    status_code: int = field(default=0, init=False)
    raw_response: bytes = field(default=b"", init=False)
    decode_error: Exception | None = field(default=None, init=False)
    warnings: list[str] = field(default_factory=list, init=False)
    state: CallState = field(default=CallState.IDLE, init=False)

    def __post_init__(self) -> None:
        self.response = resolve_target(self.response)
        self.error = resolve_target(self.error)

    @property
    def succeeded(self) -> bool:
        return self.state is CallState.DECODED_SUCCESS

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)
