"""
=============================================================================
ACCESS LOG MIDDLEWARE
=============================================================================

One log line per request, written to the "routekit.access" logger so it
can be routed separately from the server's own diagnostics:

    logging.getLogger("routekit.access").addHandler(file_handler)

Text format (Apache-like):

    127.0.0.1 - - [19/Oct/2026:10:15:32 +0000] "GET /object/42" 200 13 0.41ms

JSON format (one object per line):

    {"request_id": "3f2a9c1b", "method": "GET", "path": "/object/42", ...}

Register it FIRST so it times the whole chain and also sees responses
that later middleware short-circuit.

=============================================================================
"""

import json
import logging
import time
import uuid
from dataclasses import asdict, dataclass
from typing import Iterable, Optional
from urllib.parse import urlencode

from ..http.request import Request
from ..http.response import Response
from .base import Middleware, NextHandler


logger = logging.getLogger("routekit.access")

REQUEST_ID_HEADER = "X-Request-ID"


@dataclass
class RequestLog:
    """
    Structured access-log entry.

    request_id:     Correlation ID (echoed in X-Request-ID)
    method, path:   From the request line
    query:          Re-encoded query string ("" if none)
    client_ip:      Peer address
    user_agent:     User-Agent header or "-"
    status_code:    Final response status
    content_length: Response body size in bytes
    duration_ms:    Time spent in the chain below this middleware
    timestamp:      Local time, Apache log format
    """

    request_id: str
    method: str
    path: str
    query: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data["duration_ms"] = round(self.duration_ms, 2)
        return data

    def to_text(self) -> str:
        target = f"{self.path}?{self.query}" if self.query else self.path
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {target}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class LoggingMiddleware(Middleware):
    """
    Request logging middleware.

    Usage:
        app.use(LoggingMiddleware())                         # text
        app.use(LoggingMiddleware(log_format="json"))        # JSON
        app.use(LoggingMiddleware(skip_paths=["/health"]))   # quiet probes
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[Iterable[str]] = None,
    ):
        """
        Args:
            log_format: "text" or "json".
            include_request_id: Tag responses with X-Request-ID. A client
                                supplied X-Request-ID is reused.
            log_level: Level the access lines are logged at.
            skip_paths: Paths that are never logged.
        """
        if log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', not {log_format!r}")
        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or ())

    def __call__(self, request: Request, response: Response, next: NextHandler) -> Response:
        request_id = request.get_header(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        start = time.perf_counter()

        try:
            response = next(request, response)
        except Exception as e:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.error(
                f"Request failed: {request.method} {request.path} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms)"
            )
            raise

        duration_ms = (time.perf_counter() - start) * 1000

        if self.include_request_id:
            response.set_header(REQUEST_ID_HEADER, request_id)

        if request.path in self.skip_paths:
            return response

        entry = RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.path,
            query=urlencode(list(request.query.multi_items())),
            client_ip=request.client_address[0] or "-",
            user_agent=request.get_header("User-Agent") or "-",
            status_code=int(response.status),
            content_length=len(response.body),
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())

        return response
