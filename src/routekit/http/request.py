"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Turns the raw bytes of one HTTP/1.x request into a Request object.
Implements the practical subset of RFC 7230 needed to serve simple apps.

=============================================================================
HTTP REQUEST ANATOMY
=============================================================================

    POST /search?tag=a&tag=b HTTP/1.1\r\n        ← request line
    Host: localhost\r\n                          ┐
    Cookie: session=abc; theme=dark\r\n          │ headers (repeatable,
    Content-Type: application/x-www-form-urlencoded\r\n  case-insensitive)
    Content-Length: 27\r\n                       ┘
    \r\n                                         ← blank line
    test=testing1&test=testing2                  ← body

becomes:

    Request(
        method="POST",
        path="/search",
        query=MultiDict({"tag": ["a", "b"]}),
        headers=Headers({"Host": ["localhost"], "Cookie": [...], ...}),
        cookies={"session": "abc", "theme": "dark"},
        body=b"test=testing1&test=testing2",
        data=MultiDict({"test": ["testing1", "testing2"]}),
    )

=============================================================================
WHAT GOES WRONG, AND WHAT WE SEND BACK
=============================================================================

    ┌─────────────────────────────────────────┬─────────────────────────┐
    │  Problem                                │  Raised                 │
    ├─────────────────────────────────────────┼─────────────────────────┤
    │  No blank line yet / body short         │  IncompleteMessage      │
    │  Garbled request line or method         │  ParseError(400)        │
    │  Header line without ":"                │  ParseError(400)        │
    │  Bad Content-Length / chunk framing     │  ParseError(400)        │
    │  ".." path segment                      │  ParseError(400)        │
    │  Bigger than max_request_size           │  RequestTooLarge(413)   │
    │  HTTP/2.0, HTTP/0.9, ...                │  ParseError(505)        │
    └─────────────────────────────────────────┴─────────────────────────┘

=============================================================================
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qsl, unquote, urlsplit

from ..errors import IncompleteMessage, ParseError, RequestTooLarge
from .chunked import decode_chunked
from .cookies import parse_cookies
from .multidict import Headers, MultiDict
from .multipart import parse_multipart


DEFAULT_MAX_REQUEST_SIZE = 10 * 1024 * 1024  # 10 MB

_UNSET = object()


@dataclass
class Request:
    """
    A parsed HTTP request.

    Attributes:
        method:         Upper-cased method ("GET", "POST", ...). Compare
                        with is_method() for case-insensitive checks.
        path:           Percent-decoded path, without the query string.
        version:        "HTTP/1.1" or "HTTP/1.0".
        headers:        Case-insensitive multi-value header map.
        query:          Query parameters, key → [values].
        body:           Body bytes (already de-chunked).
        data:           Decoded form fields, key → [str | Multipart].
        cookies:        Cookie name → value (last one wins).
        client_address: (ip, port) of the peer.
        raw:            The bytes the request was parsed from.
    """

    method: str
    path: str
    version: str = "HTTP/1.1"
    headers: Headers = field(default_factory=Headers)
    query: MultiDict = field(default_factory=MultiDict)
    body: bytes = b""
    data: MultiDict = field(default_factory=MultiDict)
    cookies: Dict[str, str] = field(default_factory=dict)
    client_address: Tuple[str, int] = ("", 0)
    raw: bytes = field(default=b"", repr=False)

    _json: Any = field(default=_UNSET, repr=False, compare=False)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def content_type(self) -> Optional[str]:
        """Media type without parameters, lowercased ("application/json")."""
        value = self.headers.get_first("content-type")
        if not value:
            return None
        return value.split(";", 1)[0].strip().lower() or None

    @property
    def content_length(self) -> int:
        """Declared Content-Length, or 0 if missing/invalid."""
        try:
            return int(self.headers.get_first("content-length", "0"))
        except ValueError:
            return 0

    @property
    def is_chunked(self) -> bool:
        return is_chunked(self.headers)

    @property
    def is_keep_alive(self) -> bool:
        """
        Whether the client wants the connection kept open.

            HTTP/1.1: persistent unless "Connection: close"
            HTTP/1.0: closed unless "Connection: keep-alive"
        """
        tokens = _connection_tokens(self.headers)
        if self.version == "HTTP/1.1":
            return "close" not in tokens
        return "keep-alive" in tokens

    @property
    def json(self) -> Any:
        """
        Body parsed as JSON (None for an empty body). Parsed once.

        Raises:
            ParseError: If the body is not valid JSON.
        """
        if self._json is _UNSET:
            if not self.body:
                self._json = None
            else:
                try:
                    self._json = json.loads(self.body.decode("utf-8"))
                except (json.JSONDecodeError, UnicodeDecodeError) as e:
                    raise ParseError(f"Invalid JSON body: {e}") from e
        return self._json

    # =========================================================================
    # ACCESSORS
    # =========================================================================

    def is_method(self, method: str) -> bool:
        return self.method == method.upper()

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a header (case-insensitive), or default."""
        return self.headers.get_first(name, default)

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """
        First value of a query parameter.

        Example:
            # URL: /users?page=1&page=2
            request.get_query("page")  # "1"
        """
        return self.query.first(name, default)

    def get_data(self, name: str, default: Any = None) -> Any:
        """
        First value of a form field, or default when the field is absent.

        Example:
            # Body: test=testing1&test=testing2
            request.get_data("test")     # "testing1"
            request.data["test"]         # ["testing1", "testing2"]
        """
        return self.data.first(name, default)


# =============================================================================
# HEADER HELPERS
# =============================================================================

def _connection_tokens(headers: Headers) -> List[str]:
    tokens = []
    for value in headers.get_all("connection"):
        tokens.extend(t.strip().lower() for t in value.split(","))
    return tokens


def _transfer_codings(headers: Headers) -> List[str]:
    codings = []
    for value in headers.get_all("transfer-encoding"):
        codings.extend(c.strip().lower() for c in value.split(",") if c.strip())
    return codings


def is_chunked(headers: Headers) -> bool:
    codings = _transfer_codings(headers)
    return bool(codings) and codings[-1] == "chunked"


def parse_headers(lines: List[str]) -> Headers:
    """
    Parse "Name: value" lines into Headers.

    Repeated names keep every value in order. Obsolete line folding
    (a line starting with whitespace) continues the previous value.

    Raises:
        ParseError: For a line without ":" or with whitespace before it.
    """
    headers = Headers()
    last_name = None

    for line in lines:
        if not line:
            continue

        if line[0] in (" ", "\t"):
            if last_name is None:
                raise ParseError("Header continuation without a header")
            values = headers[last_name]
            values[-1] = f"{values[-1]} {line.strip()}"
            headers[last_name] = values
            continue

        name, sep, value = line.partition(":")
        if not sep or not name or name != name.strip():
            raise ParseError(f"Malformed header line: {line!r}")

        headers.add(name, value.strip())
        last_name = name

    return headers


def parse_form(content_type: Optional[str], body: bytes) -> MultiDict:
    """
    Decode a request body into form fields based on its Content-Type.

        application/x-www-form-urlencoded  → key → [str, ...]
        multipart/form-data                → key → [str | Multipart, ...]
        anything else                      → empty

    Raises:
        ParseError: For a malformed multipart body.
    """
    if not content_type or not body:
        return MultiDict()
    mime = content_type.split(";", 1)[0].strip().lower()
    if mime == "application/x-www-form-urlencoded":
        text = body.decode("utf-8", errors="replace")
        return MultiDict(parse_qsl(text, keep_blank_values=True))
    if mime == "multipart/form-data":
        return parse_multipart(body, content_type)
    return MultiDict()


class RequestParser:
    """
    Parses raw HTTP request bytes into Request objects.

    One parser is created per server and shared by all connections; it
    holds no per-request state.
    """

    # RFC 7230 token characters. Methods are tokens; "GE T" or "" is not.
    METHOD_PATTERN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
    VERSION_PATTERN = re.compile(r"^HTTP/(\d)\.(\d)$")
    SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")

    def __init__(self, max_request_size: int = DEFAULT_MAX_REQUEST_SIZE):
        """
        Args:
            max_request_size: Largest accepted request in bytes. Bigger
                              requests are rejected with 413.
        """
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: Tuple[str, int] = ("", 0),
    ) -> Request:
        """
        Parse one complete request.

        =====================================================================
        PARSING ALGORITHM
        =====================================================================

        1. Size check
        2. Split at the first \\r\\n\\r\\n into head and rest
        3. Request line → method, path, query, version
        4. Header lines → Headers
        5. Body: chunked framing, else Content-Length, else empty
        6. Cookies and form data from the headers and body

        =====================================================================

        Args:
            data: Raw request bytes. Bytes after the end of this request
                  (a pipelined follow-up) are ignored.
            client_address: Peer (ip, port), kept on the Request.

        Returns:
            The parsed Request.

        Raises:
            IncompleteMessage: data is a valid but unfinished request.
            ParseError: The request is malformed.
        """
        if len(data) > self.max_request_size:
            raise RequestTooLarge(len(data), self.max_request_size)

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise IncompleteMessage("Incomplete request: no header terminator")

        # latin-1 maps every byte, so decoding the head never fails
        head = data[:header_end].decode("latin-1")
        rest = data[header_end + 4:]

        lines = head.split("\r\n")
        method, path, query, version = self._parse_request_line(lines[0])
        headers = parse_headers(lines[1:])
        body = self._read_body(headers, rest)

        return Request(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query=query,
            body=body,
            data=parse_form(headers.get_first("content-type"), body),
            cookies=parse_cookies(headers.get_all("cookie")),
            client_address=client_address,
            raw=data,
        )

    def _parse_request_line(self, line: str) -> Tuple[str, str, MultiDict, str]:
        """
        Parse "METHOD SP request-target SP HTTP-version".

            "GET /users?page=1 HTTP/1.1"
             ─┬─ ─────┬─────── ────┬───
              │       │            │
            Method  Target      Version
        """
        parts = line.split(" ")
        if len(parts) != 3:
            raise ParseError(f"Invalid request line: {line!r}")
        method, target, version = parts

        if not self.METHOD_PATTERN.match(method):
            raise ParseError(f"Invalid method: {method!r}")

        if not self.VERSION_PATTERN.match(version):
            raise ParseError(f"Invalid HTTP version: {version!r}")
        if version not in self.SUPPORTED_VERSIONS:
            raise ParseError(f"Unsupported HTTP version: {version}", status_code=505)

        if not target:
            raise ParseError("Empty request target")

        # Origin form (/path?q) is split on the first "?", so "//a/b" stays
        # a path. Only absolute form (http://host/path?q) goes through urlsplit.
        if target.startswith("/") or target == "*":
            raw_path, _, raw_query = target.partition("?")
        else:
            split = urlsplit(target)
            if not split.scheme or not split.netloc:
                raise ParseError(f"Invalid request target: {target!r}")
            raw_path, raw_query = split.path, split.query
        path = unquote(raw_path) or "/"
        if not path.startswith("/") and path != "*":
            raise ParseError(f"Invalid request target: {target!r}")

        # Path traversal: "GET /static/../../etc/passwd"
        if ".." in path.split("/"):
            raise ParseError("Invalid path: contains '..' segment")

        query = MultiDict(parse_qsl(raw_query, keep_blank_values=True))
        return method.upper(), path, query, version

    def _read_body(self, headers: Headers, rest: bytes) -> bytes:
        """
        Extract the body that follows the headers.

        Transfer-Encoding: chunked takes precedence over Content-Length
        (RFC 7230 §3.3.3).
        """
        codings = _transfer_codings(headers)
        if codings:
            if codings[-1] != "chunked":
                raise ParseError(f"Unsupported transfer coding: {codings[-1]}")
            body, _ = decode_chunked(rest)
            return body

        length = parse_content_length(headers)
        if len(rest) < length:
            raise IncompleteMessage(
                f"Incomplete body: expected {length} bytes, got {len(rest)}"
            )
        return rest[:length]


def parse_content_length(headers: Headers) -> int:
    """
    Validated Content-Length of a request (0 when absent).

    Repeated headers must agree, otherwise the message is ambiguous.

    Raises:
        ParseError: For non-numeric, negative or conflicting values.
    """
    values = set()
    for value in headers.get_all("content-length"):
        values.update(v.strip() for v in value.split(","))
    if not values:
        return 0
    if len(values) > 1:
        raise ParseError("Conflicting Content-Length headers")
    value = values.pop()
    if not (value.isascii() and value.isdigit()):
        raise ParseError(f"Invalid Content-Length: {value!r}")
    return int(value)


# =============================================================================
# CONVENIENCE FUNCTION
# =============================================================================

def parse_request(
    data: bytes,
    client_address: Tuple[str, int] = ("", 0),
    max_size: int = DEFAULT_MAX_REQUEST_SIZE,
) -> Request:
    """
    Parse a request in one call.

    Use RequestParser directly to parse many requests with the same
    settings.
    """
    return RequestParser(max_request_size=max_size).parse(data, client_address)
