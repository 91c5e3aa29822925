"""
=============================================================================
ERROR TAXONOMY
=============================================================================

Every failure the server can run into falls into one of a handful of
classes, and each class has exactly one place where it is turned into
an HTTP response:

    ┌──────────────────┬──────────────────────────┬──────────────────────┐
    │  Error           │  Raised by               │  Becomes             │
    ├──────────────────┼──────────────────────────┼──────────────────────┤
    │  ParseError      │  RequestParser,          │  400-class response, │
    │                  │  Connection              │  connection closed   │
    │  RouteNotFound   │  Router.resolve          │  404 (middleware     │
    │                  │                          │  still sees it)      │
    │  HandlerFailure  │  App (wraps handler      │  500-class response  │
    │                  │  exceptions)             │                      │
    │  ResourceNotFound│  Extra.file/template     │  whatever the        │
    │                  │                          │  handler decides     │
    │  OSError         │  socket calls            │  connection dropped  │
    └──────────────────┴──────────────────────────┴──────────────────────┘

Socket failures are left as the OSError the socket module raises; the
connection handler is the only code that catches them.

=============================================================================
"""

from typing import Optional


class RoutekitError(Exception):
    """Base class for all errors raised by routekit."""


class ParseError(RoutekitError):
    """
    Raised when raw bytes cannot be turned into a Request.

    Carries the HTTP status code that should be sent back to the client:

        400 Bad Request                - malformed request line/headers/body
        413 Payload Too Large          - request exceeds max_request_size
        505 HTTP Version Not Supported - anything but HTTP/1.0 or HTTP/1.1
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


class IncompleteMessage(ParseError):
    """
    The bytes seen so far are a valid prefix of a request, but not all of it.

    The connection reader catches this to keep reading; anywhere else it is
    just a 400.
    """


class RequestTooLarge(ParseError):
    """Request exceeded the configured size limit."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"Request too large: {size} bytes (limit {limit})", status_code=413)
        self.size = size
        self.limit = limit


class RouteNotFound(RoutekitError):
    """No registered route matches the request method and path."""

    def __init__(self, method: str, path: str):
        super().__init__(f"No route matches {method} {path}")
        self.method = method
        self.path = path


class HandlerFailure(RoutekitError):
    """
    A route handler failed.

    Handlers may raise this directly to pick a different 5xx code; any
    other exception escaping a handler is wrapped in one by the App.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.cause = cause

    @classmethod
    def from_exception(cls, exc: BaseException) -> "HandlerFailure":
        """Wrap an arbitrary exception, keeping its message."""
        if isinstance(exc, HandlerFailure):
            return exc
        message = str(exc) or type(exc).__name__
        return cls(message, cause=exc)


class ResourceNotFound(RoutekitError, LookupError):
    """A file or template requested through Extra does not exist."""

    def __init__(self, path: str):
        super().__init__(f"Resource not found: {path}")
        self.path = path
