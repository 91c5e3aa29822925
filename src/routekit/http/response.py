"""
=============================================================================
HTTP RESPONSE
=============================================================================

A Response is created for every request before any middleware runs, so
handlers and middleware all work on (and may replace) the same object.

=============================================================================
HTTP RESPONSE ANATOMY
=============================================================================

    HTTP/1.1 200 OK\r\n                           ← status line
    Content-Type: text/html; charset=utf-8\r\n    ┐
    Content-Length: 13\r\n                        │ headers (auto-added
    Date: Wed, 01 Jan 2026 12:00:00 GMT\r\n       │ when missing)
    Server: routekit/1.0\r\n                      ┘
    Set-Cookie: session=abc; Path=/; HttpOnly\r\n ← one per pending Cookie
    \r\n                                          ← blank line
    Hello, world!                                 ← body

=============================================================================
HEADERS THE SERIALIZER ADDS
=============================================================================

    ┌──────────────────┬────────────────────────────────────────────────┐
    │  Header          │  Added when                                    │
    ├──────────────────┼────────────────────────────────────────────────┤
    │  Content-Length  │  not set (not for 1xx / 204)                   │
    │  Content-Type    │  not set and the body is non-empty             │
    │  Date            │  not set                                       │
    │  Server          │  not set                                       │
    │  Set-Cookie      │  once per entry in response.cookies            │
    └──────────────────┴────────────────────────────────────────────────┘

=============================================================================
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional, Union

from .cookies import Cookie, format_http_date
from .multidict import Headers
from .status_codes import HTTPStatus, reason_phrase


DEFAULT_CONTENT_TYPE = "text/html; charset=utf-8"
DEFAULT_SERVER_NAME = "routekit/1.0"


@dataclass
class Response:
    """
    An HTTP response under construction.

    Attributes:
        status:  Integer status code (HTTPStatus members work too).
        headers: Case-insensitive multi-value header map.
        body:    Body bytes. A str is accepted and encoded as UTF-8.
        cookies: Cookies to send, one Set-Cookie header each, in order.
        version: Protocol version for the status line.
    """

    status: int = HTTPStatus.OK
    headers: Headers = field(default_factory=Headers)
    body: bytes = b""
    cookies: List[Cookie] = field(default_factory=list)
    version: str = "HTTP/1.1"

    def __post_init__(self):
        if not isinstance(self.headers, Headers):
            self.headers = Headers(self.headers)

    def __setattr__(self, name: str, value: Any) -> None:
        # body is always bytes, however it is assigned
        if name == "body":
            if isinstance(value, str):
                value = value.encode("utf-8")
            elif not isinstance(value, bytes):
                value = bytes(value)
        super().__setattr__(name, value)

    @property
    def status_line(self) -> str:
        """Status line, e.g. "HTTP/1.1 404 Not Found"."""
        return f"{self.version} {int(self.status)} {reason_phrase(int(self.status))}"

    # =========================================================================
    # MUTATORS (return self for chaining)
    # =========================================================================

    def set_header(self, name: str, value: str) -> "Response":
        """Replace every value of a header."""
        self.headers.set(name, value)
        return self

    def add_header(self, name: str, value: str) -> "Response":
        """Add a value, keeping any existing ones."""
        self.headers.add(name, value)
        return self

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get_first(name, default)

    def set_body(
        self,
        body: Union[str, bytes],
        content_type: Optional[str] = None,
    ) -> "Response":
        """
        Replace the body. Strings are encoded to UTF-8.

        Args:
            body: New body.
            content_type: Also set Content-Type when given.
        """
        self.body = body
        if content_type is not None:
            self.set_header("Content-Type", content_type)
        return self

    def set_json(self, data: Any) -> "Response":
        """Serialize data as the JSON body."""
        return self.set_body(
            json.dumps(data, ensure_ascii=False),
            "application/json; charset=utf-8",
        )

    def set_cookie(self, name: str, value: str, **attrs) -> Cookie:
        """
        Queue a cookie for this response.

        Args:
            name: Cookie name.
            value: Cookie value.
            **attrs: Cookie attributes (domain, path, expires, secure,
                     httponly).

        Returns:
            The Cookie appended to response.cookies.

        Example:
            response.set_cookie("session", "abc", path="/", httponly=True)
        """
        cookie = Cookie(name, value, **attrs)
        self.cookies.append(cookie)
        return cookie

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    def to_bytes(
        self,
        server_name: str = DEFAULT_SERVER_NAME,
        include_body: bool = True,
    ) -> bytes:
        """
        Serialize to wire bytes.

        Args:
            server_name: Value for the Server header if none is set.
            include_body: False for HEAD responses: headers (including
                          Content-Length) are sent as if the body were.

        Returns:
            Complete response bytes for socket.sendall().
        """
        headers = self.headers.copy()
        status = int(self.status)

        if "Content-Length" not in headers and status >= 200 and status != 204:
            headers.set("Content-Length", str(len(self.body)))
        if "Content-Type" not in headers and self.body:
            headers.set("Content-Type", DEFAULT_CONTENT_TYPE)
        if "Date" not in headers:
            headers.set("Date", format_http_date(datetime.now(timezone.utc)))
        if "Server" not in headers:
            headers.set("Server", server_name)

        lines = [self.status_line]
        for name, value in headers.multi_items():
            lines.append(f"{name}: {value}")
        for cookie in self.cookies:
            lines.append(f"Set-Cookie: {cookie.to_header_value()}")
        lines.append("")

        head = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        return head + self.body if include_body else head


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
# redirect() works on an existing Response so headers and cookies set by
# middleware survive. The others build fresh responses, mostly for errors
# raised before an App is involved.
#
# =============================================================================

def redirect(response: Response, location: str, status: int = HTTPStatus.FOUND) -> Response:
    """
    Turn a response into a redirect.

    Args:
        response: Response to modify.
        location: Target URL for the Location header.
        status: 302 by default; pass 301 for a permanent redirect.

    Returns:
        The same response, for returning from a handler.

    Example:
        redirect(res, "/login")        # 302, Location: /login
        redirect(res, "/new", 301)     # 301, Location: /new
    """
    response.status = status
    response.set_header("Location", location)
    return response


def text(body: str, status: int = HTTPStatus.OK,
         content_type: str = "text/plain; charset=utf-8") -> Response:
    """Plain-text response."""
    response = Response(status=status)
    return response.set_body(body, content_type)


def error_response(status: int, message: Optional[str] = None) -> Response:
    """Plain-text error response whose body defaults to the reason phrase."""
    return text(message if message is not None else reason_phrase(status), status)


def bad_request(message: str = "Bad Request") -> Response:
    return error_response(HTTPStatus.BAD_REQUEST, message)


def not_found(message: str = "Not Found") -> Response:
    return error_response(HTTPStatus.NOT_FOUND, message)


def internal_error(message: str = "Internal Server Error") -> Response:
    return error_response(HTTPStatus.INTERNAL_SERVER_ERROR, message)
