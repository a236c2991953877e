"""Errors raised by the REST client.

Every failure of a call surfaces to the caller as one of these. Non-fatal
conditions (wrong-shaped sink, unsupported content type, empty body) are
recorded on the descriptor instead and never raised.
"""

from __future__ import annotations


class RestAPIError(Exception):
    """Base class for client errors."""


class EncodeError(RestAPIError):
    """Raised when the request payload cannot be serialized for its content type.

    The call is aborted before any network I/O.
    """


class TransportError(RestAPIError):
    """Raised on DNS, connect, TLS, timeout or body-read failures."""


class DecodeError(RestAPIError):
    """Raised when a response body does not fit its declared content type.

    Status code and raw bytes remain available on the descriptor.
    """


class ResponseStatusError(RestAPIError):
    """Raised when the response status falls outside [200, 400).

    Raised whether or not an error target was supplied or filled. A failure
    to decode into the error target is chained as ``__cause__``.
    """

    def __init__(self, status_code: int, raw_response: bytes = b"") -> None:
        super().__init__(f"Response status code: {status_code}")
        self.status_code = status_code
        self.raw_response = raw_response


class DescriptorReusedError(RestAPIError):
    """Raised when a descriptor that already ran is passed to execute again."""
