"""
=============================================================================
CONNECTION
=============================================================================

Wraps one accepted client socket and turns its byte stream into complete
request messages.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL
=============================================================================

A single request may arrive in many recv() calls, and one recv() may hold
the end of one request and the start of the next (pipelining):

    recv() → b"GET /a HTTP/1.1\r\nHo"
    recv() → b"st: x\r\n\r\nGET /b HTTP/1.1\r\nHost: x\r\n\r\n"
                          ─────────────┬──────────────────────
                                       └── stays in the buffer for the
                                           next read_request()

So the connection buffers bytes and uses HTTP's own framing to find
where each message ends:

    ┌─────────────────────────────────────────────────────────────────────┐
    │ 1. recv until "\r\n\r\n"                     → end of the head       │
    │ 2. Transfer-Encoding: chunked?                                      │
    │       yes → recv until the zero-size chunk and trailers are in      │
    │       no  → recv until Content-Length body bytes are in (0 if none) │
    │ 3. cut the message off the front of the buffer, keep the rest       │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
TIMEOUTS
=============================================================================

    first request on a connection    timeout             → 408 if it expires
    waiting for a follow-up request  keep_alive_timeout  → quietly closed

=============================================================================
"""

import logging
import socket
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from ..errors import IncompleteMessage, RequestTooLarge
from ..http.chunked import decode_chunked
from ..http.request import is_chunked, parse_content_length, parse_headers


logger = logging.getLogger(__name__)

# Upper bounds on reading leftover client bytes during close()
DRAIN_TIMEOUT = 2.0
DRAIN_LIMIT = 64 * 1024


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        sock: The accepted client socket.
        address: Peer (ip, port).
        id: Short random id used in log lines.
        state: Where in the request cycle the connection is.
        requests_handled: Complete requests read so far.
        buffer_size: Bytes requested per recv().
        timeout: Socket timeout for a first request and for writes.
        keep_alive_timeout: Idle timeout between requests.
        max_request_size: Largest accepted message (head + body).
    """

    sock: socket.socket
    address: Tuple[str, int]
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 10 * 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.sock.setblocking(True)
        self.sock.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def age(self) -> float:
        return time.time() - self.created_at

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete request message.

        Returns:
            The raw message bytes, or None when the client closed the
            connection (or went idle past keep_alive_timeout) between
            requests.

        Raises:
            TimeoutError: The client went silent in the middle of a
                          request, or never sent a first one.
            RequestTooLarge: The message exceeds max_request_size.
            ParseError: The head or the chunked framing is malformed, or
                        the client closed mid-message.
            OSError: Socket failure.
        """
        self.state = ConnectionState.READING
        if self.requests_handled > 0:
            self.sock.settimeout(self.keep_alive_timeout)

        try:
            header_end = self._read_head()
            if header_end is None:
                return None

            body_start = header_end + 4
            head_lines = self._buffer[:header_end].decode("latin-1").split("\r\n")
            headers = parse_headers(head_lines[1:])

            if is_chunked(headers):
                end = self._read_chunked_body(body_start)
            else:
                end = body_start + parse_content_length(headers)
                if end > self.max_request_size:
                    raise RequestTooLarge(end, self.max_request_size)
                self._read_until(end)

            message = self._buffer[:end]
            self._buffer = self._buffer[end:]
            self.requests_handled += 1
            self.state = ConnectionState.PROCESSING
            return message

        except socket.timeout:
            if self.requests_handled > 0 and not self._buffer:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout") from None
        finally:
            self.sock.settimeout(self.timeout)

    def _read_head(self) -> Optional[int]:
        """Fill the buffer until it holds a full head. Returns its end offset."""
        while True:
            # RFC 7230 §3.5: ignore empty lines before a request line
            self._buffer = self._buffer.lstrip(b"\r\n")

            header_end = self._buffer.find(b"\r\n\r\n")
            if header_end != -1:
                return header_end
            if len(self._buffer) > self.max_request_size:
                raise RequestTooLarge(len(self._buffer), self.max_request_size)

            chunk = self._recv()
            if not chunk:
                if self._buffer:
                    raise IncompleteMessage("Connection closed before end of headers")
                return None
            self._buffer += chunk

    def _read_chunked_body(self, body_start: int) -> int:
        """Fill the buffer until the chunked body is complete. Returns its end offset."""
        while True:
            try:
                _, consumed = decode_chunked(self._buffer[body_start:])
                return body_start + consumed
            except IncompleteMessage:
                if len(self._buffer) > self.max_request_size:
                    raise RequestTooLarge(len(self._buffer), self.max_request_size) from None
                chunk = self._recv()
                if not chunk:
                    raise IncompleteMessage("Connection closed mid-body") from None
                self._buffer += chunk

    def _read_until(self, end: int) -> None:
        while len(self._buffer) < end:
            chunk = self._recv()
            if not chunk:
                raise IncompleteMessage("Connection closed mid-body")
            self._buffer += chunk

    def _recv(self) -> bytes:
        """recv() that reports a reset connection as a normal close."""
        try:
            return self.sock.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""

    # =========================================================================
    # WRITING AND CLOSING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send a serialized response with sendall().

        Returns:
            True if every byte was handed to the kernel, False if the
            connection is gone.
        """
        self.state = ConnectionState.WRITING
        try:
            self.sock.sendall(data)
            return True
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    def set_keep_alive(self) -> None:
        self.state = ConnectionState.KEEP_ALIVE

    def close(self) -> None:
        """
        Close gracefully: send FIN, drain what the client still sends,
        then release the descriptor.
        """
        if self.state == ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CLOSING

        try:
            self.sock.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # peer already gone

        deadline = time.monotonic() + DRAIN_TIMEOUT
        drained = 0
        try:
            self.sock.settimeout(0.5)
            while drained < DRAIN_LIMIT and time.monotonic() < deadline:
                chunk = self.sock.recv(1024)
                if not chunk:
                    break
                drained += len(chunk)
        except OSError:
            pass

        try:
            self.sock.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests ({self.age:.2f}s)")

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
