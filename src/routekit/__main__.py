"""
=============================================================================
ROUTEKIT CLI ENTRY POINT
=============================================================================

Serve an App found by import string:

    python -m routekit myapp:app
    python -m routekit myapp:create_app --port 3000      # factory function
    python -m routekit myapp --host 0.0.0.0              # attribute "app"
    python -m routekit myapp:app --blocking --log-level DEBUG

Defaults come from ServerConfig.from_env() (ROUTEKIT_* variables);
command-line flags override them.

=============================================================================
"""

import argparse
import importlib
import sys
from dataclasses import replace
from typing import List, Optional

from . import __version__
from .app import App
from .config import ServerConfig
from .middleware import LoggingMiddleware
from .server import Server


def resolve_app(import_string: str) -> App:
    """
    Resolve "module:attribute" to an App.

    The attribute defaults to "app". A callable that is not an App is
    treated as a factory and called without arguments.

    Raises:
        ModuleNotFoundError: If the module cannot be imported.
        AttributeError: If the module has no such attribute.
        TypeError: If the result is not an App.
    """
    module_path, _, attr_name = import_string.partition(":")
    module = importlib.import_module(module_path)
    obj = getattr(module, attr_name or "app")

    if callable(obj) and not isinstance(obj, App):
        try:
            obj = obj()
        except Exception as e:
            raise TypeError(f"Factory {import_string!r} raised an error: {e}") from e

    if not isinstance(obj, App):
        raise TypeError(f"{import_string!r} resolved to {type(obj).__name__}, not a routekit.App")
    return obj


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="routekit",
        description="Serve a routekit App over HTTP/1.x",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m routekit myapp:app                    # 127.0.0.1:8080
  python -m routekit myapp:app --port 3000        # custom port
  python -m routekit myapp:app --host 0.0.0.0     # all interfaces
  python -m routekit myapp:app --blocking         # one connection at a time
        """,
    )
    parser.add_argument("app", help='Import string, "module:attribute" (attribute defaults to "app")')

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument("--host", "-H", default=None, help="Host to bind to (default: 127.0.0.1)")
    parser.add_argument("--port", "-p", type=int, default=None, help="Port to listen on (default: 8080)")

    # ─────────────────────────────────────────────────────────────────────
    # SCHEDULING
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--blocking",
        action="store_true",
        default=None,
        help="Serve one connection at a time instead of using worker threads",
    )
    parser.add_argument("--workers", "-w", type=int, default=None, help="Maximum worker threads (default: 16)")

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
        default=None,
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default=None,
        help="Access log format (default: text)",
    )
    parser.add_argument("--no-access-log", action="store_true", help="Do not log each request")

    parser.add_argument("--version", "-v", action="version", version=f"routekit {__version__}")
    return parser


def config_from_args(args: argparse.Namespace, base: Optional[ServerConfig] = None) -> ServerConfig:
    """Apply command-line overrides on top of a base configuration."""
    config = base or ServerConfig.from_env()
    overrides = {}
    if args.host is not None:
        overrides["host"] = args.host
    if args.port is not None:
        overrides["port"] = args.port
    if args.blocking is not None:
        overrides["blocking"] = args.blocking
    if args.workers is not None:
        overrides["max_workers"] = args.workers
        overrides["min_workers"] = min(config.min_workers, args.workers)
    if args.log_level is not None:
        overrides["log_level"] = args.log_level
    if args.log_format is not None:
        overrides["log_format"] = args.log_format
    return replace(config, **overrides)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args)
        config.validate()
    except ValueError as e:
        print(f"routekit: configuration error: {e}", file=sys.stderr)
        return 2

    try:
        app = resolve_app(args.app)
    except (ImportError, AttributeError, TypeError) as e:
        print(f"routekit: cannot load {args.app!r}: {e}", file=sys.stderr)
        return 1

    if not args.no_access_log:
        app.use(LoggingMiddleware(log_format=config.log_format))

    Server(app, config).run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
