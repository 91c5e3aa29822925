"""
=============================================================================
MIDDLEWARE
=============================================================================

Cross-cutting request/response processing wrapped around route handlers.

    Incoming Request
         │
         ▼
    ┌──────────────────┐
    │ LoggingMiddleware│ ──► times the request, writes the access log
    └────────┬─────────┘
             ▼
    ┌──────────────────┐
    │ your middleware  │ ──► sessions, auth, caching, headers...
    └────────┬─────────┘
             ▼
    ┌──────────────────┐
    │ route handler    │ ──► (or the 404 if nothing matched)
    └────────┬─────────┘
             ▼
    Response flows back OUT through the same middleware

=============================================================================
"""

from .base import (
    FunctionMiddleware,
    Middleware,
    MiddlewarePipeline,
    NextHandler,
    function_middleware,
)
from .logging import LoggingMiddleware, RequestLog


__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "FunctionMiddleware",
    "function_middleware",
    "LoggingMiddleware",
    "RequestLog",
]
