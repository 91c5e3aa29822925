"""
=============================================================================
HTTP MESSAGE MODEL AND ROUTING
=============================================================================

Everything that turns bytes into typed HTTP messages and back, plus the
router that picks a handler for a request.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ REQUEST (request.py)                                                │
    │   b"POST /form HTTP/1.1\r\n..."  ──►  Request(method, path, query,  │
    │                                         headers, cookies, data)     │
    │   uses: multidict.py, cookies.py, chunked.py, multipart.py          │
    ├─────────────────────────────────────────────────────────────────────┤
    │ RESPONSE (response.py)                                              │
    │   Response(status, headers, body, cookies)  ──►  b"HTTP/1.1 200..." │
    │   uses: status_codes.py, cookies.py                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │ ROUTER (router.py)                                                  │
    │   ("GET", "/object/42")  ──►  RouteMatch(route, {"id": "42"})       │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .chunked import decode_chunked
from .cookies import Cookie, format_http_date, parse_cookies
from .multidict import Headers, MultiDict
from .multipart import Multipart, parse_multipart
from .request import Request, RequestParser, parse_form, parse_request
from .response import (
    Response,
    bad_request,
    error_response,
    internal_error,
    not_found,
    redirect,
    text,
)
from .router import ANY, PathTemplate, PatternKind, Route, RouteMatch, Router, template
from .status_codes import HTTPStatus, reason_phrase


__all__ = [
    # Containers
    "MultiDict",
    "Headers",
    # Request
    "Request",
    "RequestParser",
    "parse_request",
    "parse_form",
    "Cookie",
    "parse_cookies",
    "format_http_date",
    "Multipart",
    "parse_multipart",
    "decode_chunked",
    # Response
    "Response",
    "redirect",
    "text",
    "error_response",
    "bad_request",
    "not_found",
    "internal_error",
    # Routing
    "ANY",
    "Router",
    "Route",
    "RouteMatch",
    "PathTemplate",
    "PatternKind",
    "template",
    # Status codes
    "HTTPStatus",
    "reason_phrase",
]
