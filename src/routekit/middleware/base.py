"""
=============================================================================
MIDDLEWARE BASE CLASSES
=============================================================================

A middleware wraps "the rest of the chain". It receives the request, the
working response and a continuation, and decides what happens:

    def session(request, response, next):
        if "session" not in request.cookies:          # before the handler
            response.set_cookie("session", new_id())
        response = next(request, response)             # the rest of the chain
        response.set_header("X-Session", "1")          # after the handler
        return response

    def require_login(request, response, next):
        if "user" not in request.cookies:
            return redirect(response, "/login")        # short-circuit:
        return next(request, response)                 # handler never runs

Middleware run in REGISTRATION order, outermost first:

    app.use(A); app.use(B)

        A (before) → B (before) → handler → B (after) → A (after)

If no route matched, the innermost continuation produces the 404, so
every middleware still gets to see (and rewrite) it.

=============================================================================
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Iterator, List, Optional

from ..http.request import Request
from ..http.response import Response


logger = logging.getLogger(__name__)


# The continuation a middleware calls to run the rest of the chain.
NextHandler = Callable[[Request, Response], Response]

MiddlewareFunc = Callable[[Request, Response, NextHandler], Optional[Response]]


class Middleware(ABC):
    """
    Abstract base class for middleware.

    =========================================================================
    THE MIDDLEWARE CONTRACT
    =========================================================================

        def __call__(self, request, response, next) -> Response

    Call next(request, response) to continue the chain, or return a
    Response without calling it to short-circuit. Returning None means
    "the working response, as I left it".

    =========================================================================
    """

    @abstractmethod
    def __call__(
        self,
        request: Request,
        response: Response,
        next: NextHandler,
    ) -> Optional[Response]:
        """
        Process the request.

        Args:
            request: The incoming request.
            response: The working response (status 200, empty body, plus
                      whatever outer middleware already set).
            next: The rest of the chain.

        Returns:
            The response to pass outward.
        """

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Ordered list of middleware, folded around a final handler.

        pipeline = MiddlewarePipeline()
        pipeline.add(LoggingMiddleware())    # first added = outermost
        pipeline.add(session)                # plain functions work too

        handler = pipeline.wrap(dispatch)
        response = handler(request, Response())
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware) -> "MiddlewarePipeline":
        """
        Append middleware (first added = outermost).

        Args:
            middleware: A Middleware instance, or any callable with the
                        (request, response, next) signature.
        """
        if not isinstance(middleware, Middleware):
            middleware = FunctionMiddleware(middleware)
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def use(self, *middleware) -> "MiddlewarePipeline":
        for mw in middleware:
            self.add(mw)
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Fold every middleware around handler.

        Given [MW1, MW2, MW3] the result is MW1 → MW2 → MW3 → handler.
        Wrapping happens in REVERSE so the first-added middleware ends up
        outermost.
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._create_wrapped_handler(middleware, current)
        return current

    def _create_wrapped_handler(
        self,
        middleware: Middleware,
        next_handler: NextHandler,
    ) -> NextHandler:
        def wrapped(request: Request, response: Response) -> Response:
            result = middleware(request, response, next_handler)
            if result is None:
                return response
            if not isinstance(result, Response):
                raise TypeError(
                    f"Middleware {middleware.name} returned "
                    f"{type(result).__name__}, expected Response"
                )
            return result

        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self) -> Iterator[Middleware]:
        return iter(self._middleware)


# =============================================================================
# FUNCTION MIDDLEWARE
# =============================================================================

class FunctionMiddleware(Middleware):
    """
    Wraps a plain function as middleware.

        def add_header(request, response, next):
            response = next(request, response)
            response.set_header("X-Custom", "value")
            return response

        app.use(add_header)    # wrapped automatically
    """

    def __init__(self, func: MiddlewareFunc, name: Optional[str] = None):
        self._func = func
        self._name = name or getattr(func, "__name__", type(func).__name__)

    def __call__(self, request: Request, response: Response, next: NextHandler) -> Optional[Response]:
        return self._func(request, response, next)

    @property
    def name(self) -> str:
        return self._name


def function_middleware(func: MiddlewareFunc) -> FunctionMiddleware:
    """
    Decorator form of FunctionMiddleware.

        @function_middleware
        def timing(request, response, next):
            start = time.perf_counter()
            response = next(request, response)
            response.set_header("X-Time", f"{time.perf_counter() - start:.3f}")
            return response
    """
    return FunctionMiddleware(func)
