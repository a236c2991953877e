"""Client - performs one HTTP round-trip per RestAPI descriptor.

The request body is encoded according to the configured Content-Type and the
response body is decoded into the descriptor's success or error target
according to the response Content-Type and status code.

Each call opens its own connection and closes it afterwards (no keep-alive,
no retries). The client holds no per-call state, so one instance may be
shared between threads as long as its ClientConfig is not mutated meanwhile.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic_core import PydanticSerializationError, to_json

from rest_api import content_type
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
from rest_api.xml_body import object_to_xml

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "text/plain"

_RAW_PAYLOAD_TYPES = (bytes, bytearray, memoryview)


def is_success_status(status_code: int) -> bool:
    """Success range is [200, 400): redirects count as success."""
    return 200 <= status_code < 400


class Client:
    """Executes RestAPI descriptors against one configured server.

    Usage:
        client = Client(ClientConfig(base_url="http://localhost:8474"))
        api = RestAPI("GET", "/proxies", response=dict[str, Any])
        client.execute(api)
        api.response.value
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: Connection settings. Read on every call, never written.
            transport: Optional httpx transport replacing the network layer
                       (e.g. httpx.MockTransport in tests). When given, TLS
                       settings in *config* have no effect.
        """
        self._config = config
        self._transport = transport

    @property
    def config(self) -> ClientConfig:
        return self._config

    def execute(self, api: RestAPI) -> RestAPI:
        """Run one call and fill the descriptor's results.

        Args:
            api: A descriptor that has not been executed yet.

        Returns:
            The same descriptor, with status_code, raw_response and the
            success target populated.

        Raises:
            DescriptorReusedError: If *api* already ran.
            EncodeError: If the request payload cannot be serialized.
            TransportError: On connection, TLS, timeout or read failures.
            DecodeError: If a success-range body does not match its content type.
            ResponseStatusError: If the status is outside [200, 400).
        """
        if api.state is not CallState.IDLE:
            raise DescriptorReusedError(
                f"Descriptor for {api.method} {api.endpoint} already ran "
                f"(state: {api.state.value})"
            )

        url = f"{self._config.base_url}{api.endpoint}"
        self._trace("Going to perform request: [%s] %s", api.method, url)

        headers = self._effective_headers()

        try:
            content = self._encode_payload(api, headers)
            with httpx.Client(**self._build_client_kwargs()) as http:
                request = self._build_request(http, api, url, headers, content)
                api.state = CallState.REQUEST_BUILT

                response = self._send(http, request)
                api.state = CallState.SENT
                try:
                    api.status_code = response.status_code
                    body = self._read_body(response)
                finally:
                    response.close()
        except RestAPIError:
            api.state = CallState.FAILED
            raise

        api.state = CallState.RESPONSE_RECEIVED
        return self._handle_response(api, response, body)

    # -------------------------------------------------------------------------
    # Request path
    # -------------------------------------------------------------------------

    def _effective_headers(self) -> httpx.Headers:
        """Resolve this call's headers without touching the shared config."""
        headers = httpx.Headers()
        for key, value in self._config.headers.items():
            headers[key] = value
        if "content-type" not in headers:
            headers["Content-Type"] = DEFAULT_CONTENT_TYPE
        headers.setdefault("Connection", "close")
        return headers

    def _encode_payload(self, api: RestAPI, headers: httpx.Headers) -> bytes | None:
        """Serialize api.request for the request Content-Type.

        Returns:
            The body bytes, or None when there is nothing to send.

        Raises:
            EncodeError: If the payload cannot be serialized or has the wrong
                shape for its content type.
        """
        payload = api.request
        if payload is None:
            return None

        kind = content_type.get_type(headers["Content-Type"])
        try:
            if kind == content_type.JSON:
                if isinstance(payload, _RAW_PAYLOAD_TYPES):
                    # already a JSON document
                    body = bytes(payload)
                else:
                    body = to_json(payload, by_alias=True)
            elif kind == content_type.XML:
                if isinstance(payload, _RAW_PAYLOAD_TYPES):
                    body = bytes(payload)
                elif isinstance(payload, str):
                    body = payload.encode("utf-8")
                else:
                    body = object_to_xml(payload)
            elif kind == content_type.OCTET_STREAM or kind in content_type.TEXT_KINDS:
                if not isinstance(payload, _RAW_PAYLOAD_TYPES):
                    raise EncodeError(
                        f"Request payload for content type '{kind}' must be bytes, "
                        f"got {type(payload).__name__}"
                    )
                body = bytes(payload)
            else:
                self._warn(api, f"Content type {kind} has no encoder, request payload not sent")
                return None
        except (PydanticSerializationError, ValueError) as e:
            logger.error("Error marshalling request payload as %s: %s", kind, e)
            raise EncodeError(f"Cannot serialize request payload as {kind}: {e}") from e

        self._trace("Request payload: %s", body.decode("utf-8", errors="replace"))
        return body

    def _build_client_kwargs(self) -> dict[str, Any]:
        """Build kwargs for the per-call httpx.Client."""
        kwargs: dict[str, Any] = {
            "timeout": self._config.timeout,
            "verify": not self._config.ignore_ssl,
            "follow_redirects": True,
            "limits": httpx.Limits(max_keepalive_connections=0),
        }
        if self._config.user:
            kwargs["auth"] = httpx.BasicAuth(self._config.user, self._config.password or "")
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return kwargs

    def _build_request(
        self,
        http: httpx.Client,
        api: RestAPI,
        url: str,
        headers: httpx.Headers,
        content: bytes | None,
    ) -> httpx.Request:
        try:
            return http.build_request(api.method, url, headers=headers, content=content)
        except httpx.InvalidURL as e:
            logger.error("Error building the request: %s", e)
            raise TransportError(f"Invalid request URL {url!r}: {e}") from e
        except UnicodeEncodeError as e:
            # header names and URLs must be ASCII
            logger.error("Error building the request: %s", e)
            raise EncodeError(
                f"Non-ASCII character {e.object[e.start:e.end]!r} in request line or headers"
            ) from e

    def _send(self, http: httpx.Client, request: httpx.Request) -> httpx.Response:
        try:
            return http.send(request, stream=True)
        except httpx.TimeoutException as e:
            logger.error("Error executing request: %s", e)
            raise TransportError(f"Request timeout: {e}") from e
        except httpx.ConnectError as e:
            logger.error("Error executing request: %s", e)
            raise TransportError(f"Connection error: {e}") from e
        except httpx.RequestError as e:
            logger.error("Error executing request: %s", e)
            raise TransportError(f"Request error: {e}") from e

    def _read_body(self, response: httpx.Response) -> bytes:
        try:
            return response.read()
        except httpx.RequestError as e:
            logger.error("Error reading response: %s", e)
            raise TransportError(f"Error reading response body: {e}") from e

    # -------------------------------------------------------------------------
    # Response path
    # -------------------------------------------------------------------------

    def _handle_response(
        self,
        api: RestAPI,
        response: httpx.Response,
        body: bytes,
    ) -> RestAPI:
        """Decode the body into the target its status selects, then apply
        the status check.

        Raises:
            DecodeError: If a success-range body cannot be decoded.
            ResponseStatusError: If the status is outside [200, 400).
        """
        success = is_success_status(api.status_code)

        if not body:
            self._trace("Empty response body (status %d)", api.status_code)
        else:
            api.raw_response = body
            kind = content_type.get_type(response.headers.get("Content-Type"))
            self._trace("Response content type: %s", kind)
            self._trace("Response payload: %s", body.decode("utf-8", errors="replace"))

            if success:
                try:
                    self._decode_into(api, api.response, kind, response)
                except DecodeError as e:
                    logger.error("Error unmarshalling response: %s", e)
                    api.decode_error = e
                    api.state = CallState.FAILED
                    raise
            elif api.error is not None:
                try:
                    self._decode_into(api, api.error, kind, response)
                except DecodeError as e:
                    logger.error("Error unmarshalling error response: %s", e)
                    api.decode_error = e

        if not success:
            api.state = CallState.DECODED_ERROR
            raise ResponseStatusError(api.status_code, api.raw_response) from api.decode_error

        api.state = CallState.DECODED_SUCCESS
        return api

    def _decode_into(
        self,
        api: RestAPI,
        target: Target | None,
        kind: str,
        response: httpx.Response,
    ) -> None:
        """Write the body into *target* using the strategy for *kind*.

        A raw sink of the wrong kind only produces a warning; a structured
        body that cannot land in its target is a DecodeError.
        """
        if kind in (content_type.JSON, content_type.XML):
            if target is None:
                self._trace("No target for %s body, left undecoded", kind)
                return
            if not isinstance(target, StructuredTarget):
                raise DecodeError(
                    f"Cannot unmarshal {kind} body into {type(target).__name__}"
                )
            if kind == content_type.JSON:
                target.load_json(response.content)
            else:
                target.load_xml(response.content)

        elif kind == content_type.OCTET_STREAM:
            if target is None:
                return
            if isinstance(target, BytesTarget):
                target.value = response.content
            else:
                self._warn(api, f"Response target expected to be BytesTarget, got {type(target).__name__}")

        elif kind in content_type.TEXT_KINDS:
            if target is None:
                return
            if isinstance(target, TextTarget):
                target.value = response.text
            else:
                self._warn(api, f"Response target expected to be TextTarget, got {type(target).__name__}")

        else:
            self._warn(api, f"Content type {kind} not supported yet")

    # -------------------------------------------------------------------------
    # Diagnostics
    # -------------------------------------------------------------------------

    def _warn(self, api: RestAPI, message: str) -> None:
        api.add_warning(message)
        logger.warning(message)

    def _trace(self, message: str, *args: Any) -> None:
        if self._config.debug:
            logger.debug(message, *args)


def execute(
    config: ClientConfig,
    api: RestAPI,
    transport: httpx.BaseTransport | None = None,
) -> RestAPI:
    """Run *api* with a one-off Client. See Client.execute."""
    return Client(config, transport=transport).execute(api)
