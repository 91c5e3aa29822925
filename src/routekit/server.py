"""
=============================================================================
ROUTEKIT SERVER
=============================================================================

The connection handler: it owns the listening socket, reads requests off
each connection, runs them through an App and writes the responses back.

=============================================================================
REQUEST FLOW
=============================================================================

    ┌──────────────┐    ┌─────────────┐    ┌─────────────┐    ┌───────────┐
    │ SocketServer │───►│ ThreadPool  │───►│ Connection  │───►│ App       │
    │ accept()     │    │ (or inline) │    │ read_request│    │ handle()  │
    └──────────────┘    └─────────────┘    └─────────────┘    └─────┬─────┘
                                                 ▲                  │
                                                 │    keep-alive    │
                                                 └──── send ◄───────┘

=============================================================================
SCHEDULING MODES
=============================================================================

    ┌────────────┬───────────────────────────────────────────────────────┐
    │ blocking   │ The accept loop serves each connection to the end     │
    │            │ before accepting the next. One request at a time.     │
    ├────────────┼───────────────────────────────────────────────────────┤
    │ concurrent │ Connections go to a bounded worker pool. A full       │
    │ (default)  │ queue is answered with 503 Service Unavailable.       │
    └────────────┴───────────────────────────────────────────────────────┘

=============================================================================
FAILURES BEFORE A REQUEST EXISTS
=============================================================================

    ┌───────────────────────────────────┬────────┐
    │ malformed request line / headers  │  400   │
    │ bad chunked or Content-Length     │  400   │
    │ request bigger than the limit     │  413   │
    │ HTTP version other than 1.0/1.1   │  505   │
    │ silent client on a first request  │  408   │
    └───────────────────────────────────┴────────┘

Each of these responses carries "Connection: close" and the connection is
closed afterwards. Socket errors drop the connection without a response.
Nothing a single connection does stops the accept loop.

=============================================================================
"""

import logging
from dataclasses import replace
from typing import Optional, Tuple

from .app import App
from .config import ServerConfig
from .core import Connection, SocketServer, ThreadPool
from .errors import ParseError
from .http import HTTPStatus, Request, RequestParser, Response, error_response, internal_error


logger = logging.getLogger(__name__)


class Server:
    """
    Serves one App over HTTP/1.x.

        app = App()

        @app.get("/")
        def index(request, response, extra):
            return "Hello World"

        Server(app, ServerConfig(port=3000)).run()
    """

    def __init__(self, app: App, config: Optional[ServerConfig] = None):
        """
        Args:
            app: Application that produces responses.
            config: Server configuration. Defaults to ServerConfig().

        Raises:
            ValueError: If the configuration is invalid.
        """
        self.app = app
        self.config = config or ServerConfig()
        self.config.validate()

        self._socket_server = SocketServer(self.config)
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._thread_pool: Optional[ThreadPool] = None
        if not self.config.blocking:
            self._thread_pool = ThreadPool(
                min_workers=self.config.min_workers,
                max_workers=self.config.max_workers,
                queue_size=self.config.queue_size,
            )
        self._running = False

    @property
    def address(self) -> Tuple[str, int]:
        """(host, port) the server listens on; the real port after startup."""
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._running

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self) -> None:
        """
        Start serving. Blocks until shutdown() (or SIGINT/SIGTERM).

        Raises:
            OSError: If the address cannot be bound.
        """
        self._setup_logging()
        self.app.freeze()
        self._running = True

        if self._thread_pool is not None:
            self._thread_pool.start()

        mode = "blocking" if self.config.blocking else (
            f"concurrent, {self.config.min_workers}-{self.config.max_workers} workers"
        )
        logger.info(f"Starting {self.config.server_name} ({mode})")
        if logger.isEnabledFor(logging.DEBUG):
            self.app.router.print_routes()

        try:
            self._socket_server.start(self._handle_connection)
        finally:
            self._shutdown()

    def _setup_logging(self) -> None:
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("routekit").setLevel(level)

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening. Returns False on timeout."""
        return self._socket_server.wait_until_ready(timeout)

    def shutdown(self) -> None:
        """Ask the server to stop. run() returns once in-flight work is done."""
        self._socket_server.shutdown()

    def _shutdown(self) -> None:
        """
        Graceful shutdown: the accept loop has already stopped; let the
        workers finish the connections they hold, then stop them.
        """
        logger.info("Shutting down server...")
        self._running = False
        if self._thread_pool is not None:
            self._thread_pool.shutdown(wait=True, timeout=self.config.timeout)
        logger.info("Server stopped")

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection) -> None:
        """Called by the accept loop for each new connection."""
        if self._thread_pool is None:
            self._process_connection(conn)
            return

        if not self._thread_pool.submit(self._process_connection, conn):
            logger.warning(f"[{conn.id}] Worker pool full, rejecting connection")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
            conn.close()

    def _process_connection(self, conn: Connection) -> None:
        """
        Serve one connection until it closes.

        =====================================================================
        KEEP-ALIVE LOOP
        =====================================================================

            read_request() ─► parse ─► app.handle() ─► send
                 ▲                                      │
                 └──────────── keep-alive? ◄────────────┘

        Pipelined requests already sitting in the connection buffer are
        picked up by the next read_request() without another recv().
        =====================================================================
        """
        with conn:
            while self._running:
                try:
                    raw = conn.read_request()
                    if raw is None:
                        break
                    request = self._parser.parse(raw, conn.address)
                except ParseError as e:
                    logger.info(f"[{conn.id}] Bad request from {conn.client_ip}: {e}")
                    self._send_error(conn, e.status_code, str(e))
                    break
                except TimeoutError:
                    logger.debug(f"[{conn.id}] Read timeout")
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                    break
                except OSError as e:
                    logger.debug(f"[{conn.id}] Socket error while reading: {e}")
                    break

                response = self.app.handle(request)
                keep_alive = self._should_keep_alive(request, response)
                self._set_connection_headers(response, keep_alive)

                try:
                    data = response.to_bytes(
                        self.config.server_name,
                        include_body=request.method != "HEAD",
                    )
                except Exception:
                    logger.exception(f"[{conn.id}] Failed to serialize response for {request.path}")
                    keep_alive = False
                    fallback = internal_error()
                    fallback.set_header("Connection", "close")
                    data = fallback.to_bytes(self.config.server_name)
                if not conn.send_response(data) or not keep_alive:
                    break
                conn.set_keep_alive()

    def _should_keep_alive(self, request: Request, response: Response) -> bool:
        if not self.config.keep_alive or not self._running:
            return False
        if not request.is_keep_alive:
            return False
        connection = response.get_header("Connection", "")
        return "close" not in connection.lower()

    def _set_connection_headers(self, response: Response, keep_alive: bool) -> None:
        if keep_alive:
            response.set_header("Connection", "keep-alive")
            response.set_header("Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}")
        else:
            response.set_header("Connection", "close")

    def _send_error(self, conn: Connection, status: int, message: str) -> None:
        """Answer a failure that happened before there was a Request."""
        response = error_response(status, message)
        response.set_header("Connection", "close")
        conn.send_response(response.to_bytes(self.config.server_name))


def bind(
    port: int,
    app: App,
    blocking: bool = False,
    host: str = "127.0.0.1",
    config: Optional[ServerConfig] = None,
) -> Server:
    """
    Serve an app on a port. Blocks until the server is shut down.

    Args:
        port: TCP port; 0 picks a free one.
        app: The application.
        blocking: Serve one connection at a time instead of using the pool.
        host: Interface to listen on.
        config: Base configuration; port, host and blocking override it.

    Returns:
        The Server, after it has stopped.

    Example:
        bind(8080, app)
        bind(8080, app, blocking=True)
    """
    config = replace(config or ServerConfig(), port=port, host=host, blocking=blocking)
    server = Server(app, config)
    server.run()
    return server
