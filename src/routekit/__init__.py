"""
=============================================================================
ROUTEKIT - A Small HTTP/1.x Routing Server
=============================================================================

Register handlers for literal paths, regular expressions or ":name"
templates, wrap them in middleware and serve the app from a raw-socket
HTTP/1.x server.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    routekit/
    ├── __init__.py          # Public API
    ├── __main__.py          # CLI (python -m routekit module:app)
    ├── app.py               # App dispatcher, Extra helpers
    ├── server.py            # Server and bind()
    ├── config.py            # ServerConfig dataclass
    ├── errors.py            # Error taxonomy
    ├── cache.py             # Thread-safe app cache
    ├── templates.py         # Template engine interface
    ├── core/                # Sockets, connections, worker pool
    ├── http/                # Messages, cookies, multipart, router
    └── middleware/          # Pipeline and access logging

=============================================================================
QUICK START
=============================================================================

    import re
    from routekit import App, bind, template

    app = App()

    @app.get("/")
    def index(request, response, extra):
        return "Hello, World!"

    @app.get(template("/object/:id"))
    def show(request, response, extra):
        return f"object {extra.params['id']}"

    @app.get(re.compile(r"^/archive/(\\d{4})/(\\d{2})$"))
    def archive(request, response, extra):
        year, month = extra.params
        return f"{year}-{month}"

    bind(8080, app)

=============================================================================
"""

__version__ = "1.0.0"

from .app import App, Extra, register_route
from .cache import Cache
from .config import ServerConfig
from .errors import (
    HandlerFailure,
    ParseError,
    ResourceNotFound,
    RouteNotFound,
    RoutekitError,
)
from .http import (
    ANY,
    Cookie,
    Headers,
    HTTPStatus,
    MultiDict,
    Multipart,
    Request,
    Response,
    redirect,
    template,
)
from .middleware import LoggingMiddleware, Middleware, function_middleware
from .server import Server, bind
from .templates import TemplateEngine


__all__ = [
    "__version__",
    # Application
    "App",
    "Extra",
    "register_route",
    "template",
    "ANY",
    "Cache",
    "TemplateEngine",
    # Server
    "Server",
    "ServerConfig",
    "bind",
    # Messages
    "Request",
    "Response",
    "Headers",
    "MultiDict",
    "Multipart",
    "Cookie",
    "HTTPStatus",
    "redirect",
    # Middleware
    "Middleware",
    "LoggingMiddleware",
    "function_middleware",
    # Errors
    "RoutekitError",
    "ParseError",
    "RouteNotFound",
    "HandlerFailure",
    "ResourceNotFound",
]
