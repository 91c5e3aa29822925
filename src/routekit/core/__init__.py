"""
=============================================================================
CORE: SOCKETS, CONNECTIONS, WORKERS
=============================================================================

The transport layer under the HTTP server:

    ┌──────────────────┬─────────────────────────────────────────────────┐
    │ socket_server.py │ listening socket and accept loop                │
    │ connection.py    │ one client socket, framing of request messages  │
    │ thread_pool.py   │ bounded worker pool for concurrent mode         │
    └──────────────────┴─────────────────────────────────────────────────┘

=============================================================================
"""

from .connection import Connection, ConnectionState
from .socket_server import SocketServer
from .thread_pool import ThreadPool


__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "ThreadPool",
]
