"""Minimal generic REST client.

One RestAPI descriptor describes one call; Client.execute performs it and
fills the descriptor's results.
"""

from rest_api.client import Client, execute
from rest_api.errors import (
    DecodeError,
    DescriptorReusedError,
    EncodeError,
    ResponseStatusError,
    RestAPIError,
    TransportError,
)
from rest_api.models import CallState, ClientConfig, RestAPI
from rest_api.targets import BytesTarget, StructuredTarget, Target, TextTarget

__all__ = [
    "BytesTarget",
    "CallState",
    "Client",
    "ClientConfig",
    "DecodeError",
    "DescriptorReusedError",
    "EncodeError",
    "ResponseStatusError",
    "RestAPI",
    "RestAPIError",
    "StructuredTarget",
    "Target",
    "TextTarget",
    "TransportError",
    "execute",
]
