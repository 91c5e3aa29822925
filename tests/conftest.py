"""
pytest configuration and fixtures.
"""

import re
import socket
import threading
from dataclasses import replace
from typing import Callable, Generator, List, Tuple

import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from routekit import App, Server, ServerConfig, template


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /api/users?page=1&limit=10 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"Cookie: session=abc; theme=dark\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_form_request() -> bytes:
    """Sample urlencoded POST with a repeated field."""
    body = b"test=testing1&test=testing2"
    return (
        b"POST /form HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/x-www-form-urlencoded\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
    ) + body


@pytest.fixture
def config() -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let the OS pick a free port
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        keep_alive_timeout=2.0,
        log_level="WARNING",
    )


def build_test_app(base_dir: Path) -> App:
    """An app with one route of each pattern kind."""
    app = App(base_dir=base_dir)

    @app.get("/")
    def index(request, response, extra):
        return "Hello, World!"

    @app.any(template("/object/:id"))
    def show_object(request, response, extra):
        return f"{request.method} object {extra.params['id']}"

    @app.get(re.compile(r"/archive/(\d{4})/(\d{2})"))
    def archive(request, response, extra):
        year, month = extra.params
        return f"{year}-{month}"

    @app.post("/echo")
    def echo(request, response, extra):
        response.set_header("Content-Type", "application/octet-stream")
        return request.body

    @app.post("/form")
    def form(request, response, extra):
        return ",".join(request.data.get_all("test"))

    @app.get("/cookie")
    def set_cookie(request, response, extra):
        response.set_cookie("visited", "yes", path="/")
        return "cookie set"

    @app.get("/close")
    def close(request, response, extra):
        response.set_header("Connection", "close")
        return "bye"

    @app.get("/boom")
    def boom(request, response, extra):
        raise RuntimeError("kaboom")

    @app.get("/moved")
    def moved(request, response, extra):
        return extra.redirect("/", 301)

    return app


class ServerThread:
    """Runs a Server in a background thread."""

    def __init__(self, server: Server):
        self.server = server
        self._thread = threading.Thread(target=self.server.run, daemon=True)

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self) -> "ServerThread":
        self._thread.start()
        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")
        return self

    def stop(self) -> None:
        self.server.shutdown()
        self._thread.join(timeout=10.0)

    def connect(self) -> socket.socket:
        sock = socket.create_connection(("127.0.0.1", self.port), timeout=5.0)
        return sock


def read_response(sock: socket.socket, buffer: bytearray) -> Tuple[int, dict, bytes]:
    """
    Read one Content-Length framed response from sock.

    buffer carries bytes already received past the previous response.
    Returns (status, lower-cased headers, body).
    """
    while b"\r\n\r\n" not in buffer:
        chunk = sock.recv(4096)
        if not chunk:
            raise ConnectionError("connection closed before response head")
        buffer += chunk
    head, _, rest = bytes(buffer).partition(b"\r\n\r\n")
    lines = head.decode("latin-1").split("\r\n")
    status = int(lines[0].split(" ")[1])
    headers: dict = {}
    for line in lines[1:]:
        name, _, value = line.partition(":")
        headers.setdefault(name.strip().lower(), []).append(value.strip())
    length = int(headers.get("content-length", ["0"])[0])
    while len(rest) < length:
        chunk = sock.recv(4096)
        if not chunk:
            raise ConnectionError("connection closed mid-body")
        rest += chunk
    del buffer[:]
    buffer += rest[length:]
    return status, headers, rest[:length]


def is_closed(sock: socket.socket) -> bool:
    """True once the peer has closed its side."""
    try:
        return sock.recv(1) == b""
    except ConnectionResetError:
        return True


@pytest.fixture
def live_server(tmp_path: Path, config: ServerConfig) -> Generator[Callable[..., ServerThread], None, None]:
    """
    Factory fixture: live_server(blocking=False, **config_overrides).

    Every server started through it is stopped at teardown.
    """
    started: List[ServerThread] = []

    def start(app: App = None, blocking: bool = False, **overrides) -> ServerThread:
        cfg = replace(config, blocking=blocking, **overrides)
        server = Server(app or build_test_app(tmp_path), cfg)
        thread = ServerThread(server).start()
        started.append(thread)
        return thread

    yield start

    for thread in started:
        thread.stop()


@pytest.fixture(name="read_response")
def read_response_fixture() -> Callable[[socket.socket, bytearray], Tuple[int, dict, bytes]]:
    return read_response


@pytest.fixture(name="is_closed")
def is_closed_fixture() -> Callable[[socket.socket], bool]:
    return is_closed
