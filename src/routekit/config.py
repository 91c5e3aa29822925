"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

All tunables of the connection handler live in one dataclass:

    config = ServerConfig(port=3000, blocking=True)
    config = ServerConfig.from_env()          # ROUTEKIT_* variables

    ┌───────────────┬─────────────────────────────────────────────────────┐
    │  Group        │  Fields                                             │
    ├───────────────┼─────────────────────────────────────────────────────┤
    │  network      │  host, port, backlog, buffer_size, timeout          │
    │  http         │  keep_alive, keep_alive_timeout, max_request_size   │
    │  scheduling   │  blocking, min_workers, max_workers, queue_size     │
    │  logging      │  log_level, log_format                              │
    │  identity     │  server_name                                        │
    └───────────────┴─────────────────────────────────────────────────────┘

=============================================================================
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional


_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


@dataclass
class ServerConfig:
    """
    Configuration for the routekit server.

    Development:
        ServerConfig(port=8080, log_level="DEBUG", blocking=True)

    Production:
        ServerConfig(host="0.0.0.0", port=80, max_workers=32)
    """

    # ─────────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """Address to bind. "0.0.0.0" listens on every interface."""

    port: int = 8080
    """Port to listen on. 0 lets the OS pick a free one."""

    backlog: int = 128
    """Length of the kernel's queue of not-yet-accepted connections."""

    buffer_size: int = 8192
    """Bytes requested per recv() call."""

    timeout: Optional[float] = 30.0
    """
    Socket timeout for reading a first request and for writes, in seconds.
    A client that stays silent this long gets a 408.
    """

    # ─────────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    """Allow persistent connections. False closes after every response."""

    keep_alive_timeout: float = 5.0
    """Idle time after which a kept-alive connection is closed, in seconds."""

    max_request_size: int = 10 * 1024 * 1024  # 10 MB
    """Largest accepted request (head + body) in bytes. Bigger gets a 413."""

    # ─────────────────────────────────────────────────────────────────────────
    # SCHEDULING
    # ─────────────────────────────────────────────────────────────────────────

    blocking: bool = False
    """
    Serve each connection inline in the accept loop, one at a time.
    Handy for scripts and tests. False uses the worker pool.
    """

    min_workers: int = 4
    """Worker threads started with the pool."""

    max_workers: int = 16
    """Upper bound the pool may grow to under load."""

    queue_size: int = 100
    """Connections that may wait for a worker. Beyond that: 503."""

    # ─────────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Level for the root logger (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    log_format: str = "text"
    """Access log format used by the CLI: "text" or "json"."""

    # ─────────────────────────────────────────────────────────────────────────
    # SERVER IDENTITY
    # ─────────────────────────────────────────────────────────────────────────

    server_name: str = "routekit/1.0"
    """Value of the Server response header."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Build a configuration from environment variables.

            ROUTEKIT_HOST       host          (default 127.0.0.1)
            ROUTEKIT_PORT       port          (default 8080)
            ROUTEKIT_WORKERS    max_workers   (default 16)
            ROUTEKIT_TIMEOUT    timeout       (default 30)
            ROUTEKIT_BLOCKING   blocking      (default false)
            ROUTEKIT_LOG_LEVEL  log_level     (default INFO)

        Usage:
            ROUTEKIT_PORT=3000 ROUTEKIT_LOG_LEVEL=DEBUG python -m routekit app:app
        """
        max_workers = int(os.getenv("ROUTEKIT_WORKERS", "16"))
        return cls(
            host=os.getenv("ROUTEKIT_HOST", "127.0.0.1"),
            port=int(os.getenv("ROUTEKIT_PORT", "8080")),
            max_workers=max_workers,
            min_workers=min(cls.min_workers, max_workers),
            timeout=float(os.getenv("ROUTEKIT_TIMEOUT", "30")),
            blocking=_env_bool("ROUTEKIT_BLOCKING", False),
            log_level=os.getenv("ROUTEKIT_LOG_LEVEL", "INFO").upper(),
        )

    def validate(self) -> None:
        """
        Fail fast on impossible settings.

        Raises:
            ValueError: Describing the first bad field.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")
        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")
        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")
        if self.keep_alive_timeout <= 0:
            raise ValueError("keep_alive_timeout must be > 0")
        if self.max_request_size < 1024:
            raise ValueError("max_request_size must be >= 1024")
        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")
        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")
        if self.queue_size < 1:
            raise ValueError("queue_size must be >= 1")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"Unknown log_level: {self.log_level}")
        if self.log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', not {self.log_format!r}")
