r"""
=============================================================================
URL ROUTER
=============================================================================

Maps (method, path) to a handler. Three kinds of path pattern:

    ┌────────────┬──────────────────────────┬──────────────────────────────┐
    │  Kind      │  Registered as           │  params given to handler     │
    ├────────────┼──────────────────────────┼──────────────────────────────┤
    │  LITERAL   │  "/users"                │  None                        │
    │            │  exact string equality   │                              │
    │  REGEX     │  re.compile(r"/u/(\d+)") │  ["42"]  (groups, in order;  │
    │            │  full match              │           [] if no groups)   │
    │  TEMPLATE  │  template("/u/:id")      │  {"id": "42"}                │
    │            │  compiled to a regex     │                              │
    └────────────┴──────────────────────────┴──────────────────────────────┘

=============================================================================
TEMPLATE COMPILATION
=============================================================================

Templates are compiled ONCE, when template() is called:

    Template: /users/:id/files/*rest
                     ▼         ▼
    Regex:    ^/users/(?P<id>[^/]+)/files/(?P<rest>.*)$
                      ─────────────       ────────────
                      one segment         everything left
                      (no slashes)        (last segment only)

=============================================================================
MATCH ORDER
=============================================================================

Routes are tried in registration order and the FIRST match wins, even
when a later route would be more specific:

    app.get(re.compile(r"/users/.*"), list_all)    ← registered first
    app.get("/users/me", me)                       ← never reached

A route registered for ANY is one entry that matches every method. It is
not copied once per method.

=============================================================================
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from ..errors import RouteNotFound


logger = logging.getLogger(__name__)


# Method sentinel for routes that accept every method.
ANY = "ANY"

# (request, response, extra) -> str | bytes | Response | None
Handler = Callable[..., Any]

Params = Union[None, List[str], Dict[str, str]]

_PARAM_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class PatternKind(Enum):
    """How a route's pattern is matched against the request path."""

    LITERAL = "literal"
    REGEX = "regex"
    TEMPLATE = "template"


@dataclass(frozen=True)
class PathTemplate:
    """
    A compiled ":name" path template.

    Attributes:
        source: The template as written ("/object/:id").
        regex: Compiled, anchored regex with one named group per parameter.
        names: Parameter names in template order.
    """

    source: str
    regex: "re.Pattern[str]" = field(repr=False)
    names: Tuple[str, ...] = ()

    def match(self, path: str) -> Optional[Dict[str, str]]:
        m = self.regex.fullmatch(path)
        return m.groupdict() if m else None


def template(source: str) -> PathTemplate:
    """
    Compile a parameter template.

    Every path segment of the form ":name" matches one or more non-"/"
    characters; a final "*name" segment matches the rest of the path
    (possibly empty). Everything else matches literally.

    Args:
        source: Template string, e.g. "/object/:id".

    Returns:
        The compiled PathTemplate, ready to register.

    Raises:
        ValueError: Invalid or duplicate parameter name, or a "*name"
                    segment that is not last.

    Example:
        route = template("/object/:id")
        route.match("/object/42")    # {"id": "42"}
        route.match("/object/")      # None
    """
    segments = source.split("/")
    names: List[str] = []
    parts: List[str] = []

    for i, segment in enumerate(segments):
        if segment.startswith((":", "*")):
            name = segment[1:]
            if not _PARAM_NAME.match(name):
                raise ValueError(f"Invalid parameter name {segment!r} in {source!r}")
            if name in names:
                raise ValueError(f"Duplicate parameter {name!r} in {source!r}")
            names.append(name)
            if segment[0] == ":":
                parts.append(f"(?P<{name}>[^/]+)")
            else:
                if i != len(segments) - 1:
                    raise ValueError(f"Wildcard {segment!r} must be the last segment")
                parts.append(f"(?P<{name}>.*)")
        else:
            parts.append(re.escape(segment))

    regex = re.compile("^" + "/".join(parts) + "$")
    return PathTemplate(source=source, regex=regex, names=tuple(names))


Pattern = Union[str, "re.Pattern[str]", PathTemplate]


@dataclass
class RouteMatch:
    """
    Result of a successful match.

    Example:
        Pattern: template("/users/:id")
        Path:    /users/123
        Result:  RouteMatch(route=<Route>, params={"id": "123"})
    """

    route: "Route"
    params: Params


@dataclass
class Route:
    """
    A (method, compiled pattern, handler) triple.

    Attributes:
        method: Upper-cased method, or ANY.
        pattern: The pattern as registered (str, re.Pattern or PathTemplate).
        handler: Called as handler(request, response, extra).
        kind: Which matcher the pattern compiled to.
        name: Optional label, used in logs and print_routes().
    """

    method: str
    pattern: Pattern
    handler: Handler
    kind: PatternKind = field(init=False)
    name: Optional[str] = None

    def __post_init__(self):
        self.method = normalize_method(self.method)
        if isinstance(self.pattern, PathTemplate):
            self.kind = PatternKind.TEMPLATE
        elif isinstance(self.pattern, re.Pattern):
            self.kind = PatternKind.REGEX
        elif isinstance(self.pattern, str):
            self.kind = PatternKind.LITERAL
        else:
            raise TypeError(
                f"Route pattern must be str, re.Pattern or PathTemplate, "
                f"not {type(self.pattern).__name__}"
            )

    @property
    def source(self) -> str:
        """Pattern as text, for display."""
        if self.kind is PatternKind.REGEX:
            return self.pattern.pattern
        if self.kind is PatternKind.TEMPLATE:
            return self.pattern.source
        return self.pattern

    def accepts(self, method: str) -> bool:
        return self.method == ANY or self.method == method.upper()

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """Match this route alone against a request method and path."""
        if not self.accepts(method):
            return None

        if self.kind is PatternKind.LITERAL:
            return RouteMatch(self, None) if path == self.pattern else None

        if self.kind is PatternKind.REGEX:
            m = self.pattern.fullmatch(path)
            return RouteMatch(self, list(m.groups())) if m else None

        params = self.pattern.match(path)
        return RouteMatch(self, params) if params is not None else None


def normalize_method(method: str) -> str:
    """Upper-case a method; "any" in any case becomes the ANY sentinel."""
    method = method.upper()
    return ANY if method == ANY else method


class Router:
    """
    Ordered route table.

    Routes are only added during application setup. freeze() marks the
    end of setup: from then on the table is read-only and is safe to
    share between worker threads without locking.

        router = Router()
        router.add_route("GET", "/", index)
        router.add_route(ANY, template("/object/:id"), show_object)
        router.freeze()

        router.resolve("POST", "/object/7").params   # {"id": "7"}
        router.resolve("GET", "/missing")            # RouteNotFound
    """

    def __init__(self):
        self._routes: List[Route] = []
        self._frozen = False

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(
        self,
        method: str,
        pattern: Pattern,
        handler: Handler,
        name: Optional[str] = None,
    ) -> Route:
        """
        Append a route. Registration order is match priority.

        Args:
            method: HTTP method, or ANY for every method.
            pattern: Literal path, compiled regex, or template().
            handler: Route handler.
            name: Optional label (defaults to the handler's name).

        Returns:
            The registered Route.

        Raises:
            RuntimeError: If the router is frozen.
            TypeError: If pattern is of an unsupported type.
        """
        if self._frozen:
            raise RuntimeError("Cannot add routes after the router is frozen")

        route = Route(
            method=method,
            pattern=pattern,
            handler=handler,
            name=name or getattr(handler, "__name__", None),
        )
        self._routes.append(route)
        logger.debug(f"Route added: {route.method} {route.source} ({route.kind.value})")
        return route

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    # =========================================================================
    # ROUTE MATCHING
    # =========================================================================

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """
        First route matching method and path, or None.

        Order matters: first registered, first matched.
        """
        for route in self._routes:
            result = route.match(method, path)
            if result is not None:
                return result
        return None

    def resolve(self, method: str, path: str) -> RouteMatch:
        """
        Like match(), but a miss is an error.

        Raises:
            RouteNotFound: If no route matches.
        """
        result = self.match(method, path)
        if result is None:
            raise RouteNotFound(method, path)
        return result

    # =========================================================================
    # UTILITY METHODS
    # =========================================================================

    @property
    def routes(self) -> Tuple[Route, ...]:
        """Registered routes in match order."""
        return tuple(self._routes)

    def __len__(self) -> int:
        return len(self._routes)

    def print_routes(self) -> None:
        """
        Print the route table (useful for debugging).

        Example output:
            Registered Routes:
            ------------------------------------------------------------
              GET      /                          literal
              ANY      /object/:id                template
            ------------------------------------------------------------
        """
        print("\nRegistered Routes:")
        print("-" * 60)
        for route in self._routes:
            print(f"  {route.method:8} {route.source:26} {route.kind.value}")
        print("-" * 60)
