"""Pytest configuration and fixtures for rest-api tests.

This file provides:
- make_client / make_transport: Clients wired to httpx.MockTransport
- PortReservation: Race-free port allocation for test servers
- MockServer: Subprocess management for the FastAPI mock server
"""

from __future__ import annotations

import socket
import subprocess
import sys
import time
from pathlib import Path
from typing import Any, Callable, Generator

import httpx
import pytest

from rest_api.client import Client
from rest_api.models import ClientConfig

PROJECT_ROOT = Path(__file__).parent.parent
MOCK_SERVER_MODULE = "tests.integration.mock_server"

TEST_BASE_URL = "http://api.test"

Handler = Callable[[httpx.Request], httpx.Response]


def make_transport(handler: Handler, seen: list[httpx.Request] | None = None) -> httpx.MockTransport:
    """Wrap *handler* in a MockTransport, optionally recording each request.

    Request bodies are read before the handler runs so tests can inspect
    ``request.content`` afterwards.
    """

    def recording_handler(request: httpx.Request) -> httpx.Response:
        request.read()
        if seen is not None:
            seen.append(request)
        return handler(request)

    return httpx.MockTransport(recording_handler)


def make_client(
    handler: Handler,
    seen: list[httpx.Request] | None = None,
    **config: Any,
) -> Client:
    """Create a Client whose network layer is *handler*.

    Prefer this over building Client directly - base_url defaults to
    TEST_BASE_URL and the transport records requests into *seen*.
    """
    config.setdefault("base_url", TEST_BASE_URL)
    return Client(ClientConfig(**config), transport=make_transport(handler, seen))


def respond(
    status_code: int = 200,
    content: bytes = b"",
    content_type: str | None = None,
) -> Handler:
    """Handler that always answers with the given status, body and type."""
    headers = {"Content-Type": content_type} if content_type else {}

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, headers=headers, content=content)

    return handler


class PortReservation:
    """Holds a reserved port with socket kept open to prevent races.

    The socket stays bound until release(), just before the server starts,
    so no other process can take the port in between.
    """

    def __init__(self) -> None:
        self._socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._socket.bind(("127.0.0.1", 0))
        self._port = self._socket.getsockname()[1]
        self._released = False

    @property
    def port(self) -> int:
        return self._port

    def release(self) -> int:
        """Release the socket and return the port. Safe to call twice."""
        if not self._released:
            self._socket.close()
            self._released = True
        return self._port


def wait_for_server_ready(host: str, port: int, timeout: float = 10.0) -> bool:
    """Block until server accepts TCP connections, or timeout expires."""
    start = time.time()
    while time.time() - start < timeout:
        try:
            with socket.create_connection((host, port), timeout=1.0):
                return True
        except (ConnectionRefusedError, socket.timeout, OSError):
            time.sleep(0.1)
    return False


class MockServer:
    """Runs tests/integration/mock_server.py as a subprocess."""

    def __init__(self, reservation: PortReservation) -> None:
        self._reservation = reservation
        self.port = reservation.port
        self.host = "127.0.0.1"
        self.base_url = f"http://{self.host}:{self.port}"
        self._process: subprocess.Popen | None = None

    def start(self) -> None:
        """Start the mock server subprocess.

        Raises:
            RuntimeError: If server fails to start within 10 seconds.
        """
        self._reservation.release()

        self._process = subprocess.Popen(
            [
                sys.executable, "-m", MOCK_SERVER_MODULE,
                "--host", self.host,
                "--port", str(self.port),
            ],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=PROJECT_ROOT,
        )

        if not wait_for_server_ready(self.host, self.port):
            stderr = ""
            if self._process and self._process.stderr:
                stderr = self._process.stderr.read().decode(errors="replace")
            self.stop()
            raise RuntimeError(
                f"MockServer failed to start on port {self.port}. "
                f"stderr: {stderr or '(empty)'}"
            )

    def stop(self) -> None:
        """Stop the subprocess: SIGTERM, then SIGKILL after 5s."""
        if self._process:
            self._process.terminate()
            try:
                self._process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self._process.kill()
                self._process.wait(timeout=5)
            self._process = None

    def __enter__(self) -> MockServer:
        self.start()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.stop()


# =============================================================================
# Pytest Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def mock_server() -> Generator[MockServer, None, None]:
    """Mock REST server shared by the whole session."""
    with MockServer(PortReservation()) as server:
        yield server


@pytest.fixture
def seen_requests() -> list[httpx.Request]:
    """Requests recorded by make_client/make_transport."""
    return []


# =============================================================================
# Pytest Hooks
# =============================================================================


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Mark tests under tests/integration as integration, the rest as unit."""
    for item in items:
        test_path = Path(item.fspath)
        if "integration" in test_path.parts:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
