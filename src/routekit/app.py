"""
=============================================================================
APP DISPATCHER
=============================================================================

App ties the Router, the middleware pipeline and the Cache together
behind a single entry point:

    response = app.handle(request)

=============================================================================
WHAT HAPPENS INSIDE handle()
=============================================================================

    handle(request)
        │
        │  working response = Response()          (200, no headers, no body)
        ▼
    ┌──────────────────────────────────────────────────────────────────┐
    │ middleware 1                                                     │
    │  ┌────────────────────────────────────────────────────────────┐  │
    │  │ middleware 2                                               │  │
    │  │  ┌──────────────────────────────────────────────────────┐  │  │
    │  │  │ dispatch                                             │  │  │
    │  │  │   router.resolve(method, path)                       │  │  │
    │  │  │     RouteNotFound  → working response becomes 404    │  │  │
    │  │  │   handler(request, response, Extra(params, ...))     │  │  │
    │  │  │     str / bytes    → working body, status 200        │  │  │
    │  │  │     Response       → replaces the working response   │  │  │
    │  │  │     None           → working response as left        │  │  │
    │  │  │     exception      → 500 with the error message      │  │  │
    │  │  └──────────────────────────────────────────────────────┘  │  │
    │  └────────────────────────────────────────────────────────────┘  │
    └──────────────────────────────────────────────────────────────────┘
        │
        ▼
    Response    (an exception escaping a middleware also becomes a 500)

Nothing raised while handling a request reaches the connection handler.

=============================================================================
HANDLERS
=============================================================================

    app = App()

    @app.get("/")
    def index(request, response, extra):
        return "Hello, world!"

    @app.any(template("/object/:id"))
    def show(request, response, extra):
        return f"object {extra.params['id']}"

    @app.post(re.compile(r"/archive/(\\d{4})/(\\d{2})"))
    def archive(request, response, extra):
        year, month = extra.params           # ["2026", "10"]
        return extra.redirect(f"/archive?y={year}&m={month}")

=============================================================================
"""

import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Union

from .cache import Cache, cache_key
from .errors import HandlerFailure, ResourceNotFound, RouteNotFound
from .http.request import Request
from .http.response import Response, internal_error, redirect
from .http.router import ANY, Handler, Params, Pattern, Route, Router
from .http.status_codes import HTTPStatus
from .middleware.base import MiddlewarePipeline, NextHandler
from .templates import TemplateEngine, builtin_engines


logger = logging.getLogger(__name__)

HandlerResult = Union[str, bytes, Response, None]


class Extra:
    """
    Per-request helpers handed to every route handler.

    Attributes:
        params: Route parameters. None for literal routes, a list of
                captured groups for regex routes, a dict for template()
                routes.
        app: The App handling the request.
        request: The current request.
        response: The working response.
    """

    def __init__(self, app: "App", request: Request, response: Response, params: Params):
        self.app = app
        self.request = request
        self.response = response
        self.params = params

    def file(self, path: str, use_cache: bool = True) -> str:
        """
        Read a text file, by default through the App cache.

        Args:
            path: Absolute path, or a path relative to the App's base_dir.
            use_cache: When False, always read from disk (and leave the
                       cache untouched).

        Returns:
            File contents decoded as UTF-8.

        Raises:
            ResourceNotFound: If the file does not exist.
        """
        resolved = self.app.resolve_path(path)
        if not use_cache:
            return _read_text(resolved, path)
        return self.app.cache.get_or_set(
            cache_key("file", path),
            lambda: _read_text(resolved, path),
        )

    def template(
        self,
        engine: str,
        path: str,
        locals: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """
        Render a template file with a registered engine.

        The compiled template is cached under "_<engine>:<path>", so each
        file is read and compiled once per App.

        Args:
            engine: Engine tag ("format", "template", or one added with
                    App.add_engine).
            path: Template file, resolved like file().
            locals: Variables available to the template.

        Raises:
            LookupError: Unknown engine tag.
            ResourceNotFound: Missing template file.
        """
        renderer = self.app.engine(engine)
        compiled = self.app.cache.get_or_set(
            cache_key(engine, path),
            lambda: renderer.compile(self.file(path, use_cache=False)),
        )
        return renderer.render(compiled, locals or {})

    def redirect(self, location: str, status: int = HTTPStatus.FOUND) -> Response:
        """Make the working response a redirect and return it."""
        return redirect(self.response, location, status)


def _read_text(resolved: Path, original: str) -> str:
    try:
        return resolved.read_text(encoding="utf-8")
    except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as e:
        raise ResourceNotFound(original) from e


def normalize_result(result: HandlerResult, response: Response) -> Response:
    """
    Turn whatever a handler returned into the Response to send.

    Raises:
        HandlerFailure: For return types other than str, bytes, Response
                        and None.
    """
    if result is None:
        return response
    if isinstance(result, Response):
        return result
    if isinstance(result, (str, bytes, bytearray)):
        # a body result is a success; headers and cookies carry over
        response.status = HTTPStatus.OK
        return response.set_body(result)
    raise HandlerFailure(
        f"Handler returned {type(result).__name__}; expected str, bytes, Response or None"
    )


def _failure_response(response: Response, failure: HandlerFailure) -> Response:
    """Rewrite the working response as an error, keeping headers and cookies."""
    response.status = failure.status_code
    response.set_body(str(failure), "text/plain; charset=utf-8")
    return response


class App:
    """
    A routing application.

    Routes and middleware are registered during setup. Once a server
    starts it calls freeze(), after which the route table and middleware
    list are read-only and shared by all worker threads.
    """

    def __init__(self, base_dir: Optional[Union[str, os.PathLike]] = None):
        """
        Args:
            base_dir: Directory relative file/template paths are resolved
                      against. Defaults to the current working directory.
        """
        self.base_dir = Path(base_dir).resolve() if base_dir is not None else Path.cwd()
        self.router = Router()
        self.middleware = MiddlewarePipeline()
        self.cache = Cache()
        self._engines: Dict[str, TemplateEngine] = builtin_engines()
        self._chain: Optional[NextHandler] = None

    # =========================================================================
    # SETUP
    # =========================================================================

    def add_route(
        self,
        method: str,
        pattern: Pattern,
        handler: Handler,
        name: Optional[str] = None,
    ) -> Route:
        return self.router.add_route(method, pattern, handler, name)

    def route(self, method: str, pattern: Pattern, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        """
        Decorator form of add_route().

            @app.route("GET", "/health")
            def health(request, response, extra):
                return "ok"
        """
        def decorator(handler: Handler) -> Handler:
            self.add_route(method, pattern, handler, name)
            return handler
        return decorator

    def get(self, pattern: Pattern, name: Optional[str] = None):
        return self.route("GET", pattern, name)

    def post(self, pattern: Pattern, name: Optional[str] = None):
        return self.route("POST", pattern, name)

    def put(self, pattern: Pattern, name: Optional[str] = None):
        return self.route("PUT", pattern, name)

    def patch(self, pattern: Pattern, name: Optional[str] = None):
        return self.route("PATCH", pattern, name)

    def delete(self, pattern: Pattern, name: Optional[str] = None):
        return self.route("DELETE", pattern, name)

    def any(self, pattern: Pattern, name: Optional[str] = None):
        """Register one route that matches every method."""
        return self.route(ANY, pattern, name)

    def use(self, middleware):
        """
        Append middleware (first registered = outermost).

        Returns the argument, so it also works as a decorator:

            @app.use
            def no_cache(request, response, next):
                response = next(request, response)
                response.set_header("Cache-Control", "no-store")
                return response
        """
        if self.router.frozen:
            raise RuntimeError("Cannot add middleware after the app is frozen")
        self.middleware.add(middleware)
        return middleware

    def add_engine(self, tag: str, engine: TemplateEngine) -> None:
        self._engines[tag] = engine

    def engine(self, tag: str) -> TemplateEngine:
        try:
            return self._engines[tag]
        except KeyError:
            raise LookupError(f"No template engine registered as {tag!r}") from None

    def resolve_path(self, path: str) -> Path:
        """Absolute paths are used as-is; others are relative to base_dir."""
        candidate = Path(path)
        if candidate.is_absolute():
            return candidate
        return self.base_dir / candidate

    def freeze(self) -> None:
        """
        End of setup: lock the route table and build the middleware chain once.
        """
        if self._chain is None:
            self.router.freeze()
            self._chain = self.middleware.wrap(self._dispatch)
            logger.debug(
                f"App frozen with {len(self.router)} routes and "
                f"{len(self.middleware)} middleware"
            )

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def handle(self, request: Request) -> Response:
        """
        Produce the response for a request. Never raises.
        """
        chain = self._chain or self.middleware.wrap(self._dispatch)
        try:
            return chain(request, Response())
        except Exception as e:
            failure = HandlerFailure.from_exception(e)
            logger.exception(f"Middleware failed: {request.method} {request.path}")
            return _failure_response(internal_error(), failure)

    def _dispatch(self, request: Request, response: Response) -> Response:
        """Innermost continuation: route, call the handler, normalize."""
        try:
            match = self.router.resolve(request.method, request.path)
        except RouteNotFound as e:
            logger.debug(str(e))
            response.status = HTTPStatus.NOT_FOUND
            response.set_body(f"Not Found: {request.path}", "text/plain; charset=utf-8")
            return response

        route = match.route
        extra = Extra(self, request, response, match.params)
        try:
            return normalize_result(route.handler(request, response, extra), response)
        except Exception as e:
            failure = HandlerFailure.from_exception(e)
            logger.exception(f"Handler {route.name} failed: {request.method} {request.path}")
            return _failure_response(response, failure)

    def __call__(self, request: Request) -> Response:
        return self.handle(request)


def register_route(app: App, method: str, pattern: Pattern, handler: Handler) -> Route:
    """
    Register a handler on an app.

    Args:
        app: Target App.
        method: HTTP method, or "ANY".
        pattern: Literal path, compiled regex, or template().
        handler: Called as handler(request, response, extra).

    Returns:
        The new Route.
    """
    return app.add_route(method, pattern, handler)
