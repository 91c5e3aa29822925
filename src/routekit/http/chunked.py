"""
=============================================================================
CHUNKED TRANSFER CODING
=============================================================================

When a client doesn't know the body size up front, it sends
"Transfer-Encoding: chunked" instead of Content-Length and frames the
body as a sequence of size-prefixed chunks (RFC 7230 §4.1):

    POST /upload HTTP/1.1\r\n
    Transfer-Encoding: chunked\r\n
    \r\n
    5\r\n                     ← chunk size in HEX
    Hello\r\n                 ← exactly 5 bytes + CRLF
    7;ext=1\r\n               ← extensions after ";" are ignored
    , World\r\n
    0\r\n                     ← zero-size chunk ends the body
    Expires: never\r\n        ← optional trailer headers (discarded)
    \r\n                      ← blank line ends the message

Decoded body: b"Hello, World"

The decoder works on whatever bytes have arrived so far. If the framing
is valid but incomplete it raises IncompleteMessage, and the connection
reader goes back to recv() for more.

=============================================================================
"""

import re
from typing import Tuple

from ..errors import IncompleteMessage, ParseError


_CHUNK_SIZE = re.compile(rb"^[0-9A-Fa-f]+$")

# A size line is a handful of hex digits plus optional extensions.
MAX_CHUNK_LINE = 4096


def _read_line(data: bytes, pos: int) -> Tuple[bytes, int]:
    """Return the line starting at pos (without CRLF) and the next position."""
    end = data.find(b"\r\n", pos)
    if end == -1:
        if len(data) - pos > MAX_CHUNK_LINE:
            raise ParseError("Chunk size line too long")
        raise IncompleteMessage("Incomplete chunk size line")
    return data[pos:end], end + 2


def decode_chunked(data: bytes) -> Tuple[bytes, int]:
    """
    Decode a chunked body.

    Args:
        data: Bytes starting at the first chunk-size line. May contain
              more than one message (pipelining); only the first chunked
              body is consumed.

    Returns:
        (decoded body, number of bytes of data consumed).

    Raises:
        IncompleteMessage: The framing is valid so far but not finished.
        ParseError: The framing is malformed.

    Example:
        decode_chunked(b"3\\r\\nabc\\r\\n0\\r\\n\\r\\n")  # (b"abc", 15)
    """
    body = bytearray()
    pos = 0

    while True:
        line, pos = _read_line(data, pos)
        size_field = line.split(b";", 1)[0].strip()
        if not _CHUNK_SIZE.match(size_field):
            raise ParseError(f"Invalid chunk size: {size_field!r}")
        size = int(size_field, 16)

        if size == 0:
            break

        if len(data) < pos + size + 2:
            raise IncompleteMessage("Incomplete chunk data")
        body += data[pos:pos + size]
        if data[pos + size:pos + size + 2] != b"\r\n":
            raise ParseError("Chunk data not terminated by CRLF")
        pos += size + 2

    # Trailer section: header lines until an empty one
    while True:
        line, pos = _read_line(data, pos)
        if not line:
            return bytes(body), pos
