# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Admin HTTP server for a running scheduler.

Endpoints:
- POST /kill    trip the shutdown signal (optional body {"topology_name": ...})
- GET  /health  report whether the scheduler is running or shutting down

The server runs uvicorn in a background thread. It only ever touches the
ShutdownSignal; the scheduler, packer and state manager stay owned by the
main thread.
"""

import logging
import socket
import threading
import time

import uvicorn
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from .errors import ServerStartError
from .shutdown import ShutdownSignal

logger = logging.getLogger(__name__)


class KillRequest(BaseModel):
    topology_name: str | None = None


def create_admin_app(topology_name: str, shutdown_signal: ShutdownSignal) -> FastAPI:
    """Create the admin FastAPI application for one topology."""
    app = FastAPI(title=f"schedctl admin ({topology_name})", docs_url=None, redoc_url=None)

    @app.get("/health")
    def health() -> dict:
        status = "shutting_down" if shutdown_signal.is_set() else "running"
        return {"status": status, "topology_name": topology_name}

    @app.post("/kill")
    def kill(request: KillRequest | None = None) -> dict:
        if request is not None and request.topology_name not in (None, topology_name):
            raise HTTPException(
                status_code=400,
                detail=f"Scheduler serves topology {topology_name!r}, not {request.topology_name!r}",
            )

        logger.info("Received kill request for topology %s", topology_name)
        tripped = shutdown_signal.trip(f"kill request for {topology_name}")
        return {"status": "ok", "topology_name": topology_name, "already_requested": not tripped}

    return app


class AdminServer:
    """Serves an ASGI app on a background thread.

    The listening socket is bound in start() before the thread is spawned, so
    a requested port of 0 resolves to a concrete port that is readable as soon
    as start() returns.

    Usage:
        server = AdminServer(create_admin_app("wordcount", signal), port=0)
        server.start()
        print(server.host, server.port)
        server.stop()
    """

    def __init__(
        self,
        app: FastAPI,
        host: str = "0.0.0.0",
        port: int = 0,
        advertise_host: str | None = None,
        start_timeout: float = 10.0,
    ):
        self.app = app
        self.bind_host = host
        self.requested_port = port
        self.advertise_host = advertise_host
        self.start_timeout = start_timeout

        self._socket: socket.socket | None = None
        self._port: int | None = None
        self._server: uvicorn.Server | None = None
        self._thread: threading.Thread | None = None
        self._stopped = False

    @property
    def host(self) -> str:
        """Host other processes should use to reach this server."""
        if self._socket is None:
            raise RuntimeError("Admin server is not started")
        if self.advertise_host:
            return self.advertise_host
        if self.bind_host in ("", "0.0.0.0", "::"):
            return socket.gethostname()
        return self.bind_host

    @property
    def port(self) -> int:
        """Port the server is bound to."""
        if self._port is None:
            raise RuntimeError("Admin server is not started")
        return self._port

    @property
    def endpoint(self) -> str:
        host = self.host
        if ":" in host:
            host = f"[{host}]"
        return f"{host}:{self.port}"

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stopped

    def start(self) -> None:
        """Bind the port and start serving.

        Raises:
            ServerStartError: If the port cannot be bound or the server does not come up
        """
        if self._thread is not None:
            raise ServerStartError("Admin server already started")

        try:
            family, _, _, _, address = socket.getaddrinfo(
                self.bind_host or None,
                self.requested_port,
                type=socket.SOCK_STREAM,
                flags=socket.AI_PASSIVE,
            )[0]
        except socket.gaierror as e:
            raise ServerStartError(f"Cannot resolve admin server host {self.bind_host!r}: {e}") from e

        sock = socket.socket(family, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        if family == socket.AF_INET6 and self.bind_host in ("", "::"):
            # Wildcard "::" also accepts IPv4 clients
            sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 0)
        try:
            sock.bind(address)
        except OSError as e:
            sock.close()
            raise ServerStartError(f"Cannot bind admin server to {self.bind_host}:{self.requested_port}: {e}") from e

        self._socket = sock
        self._port = sock.getsockname()[1]
        config = uvicorn.Config(
            self.app,
            log_config=None,
            log_level="warning",
            access_log=False,
            lifespan="off",
        )
        self._server = uvicorn.Server(config)
        self._thread = threading.Thread(
            target=self._server.run,
            kwargs={"sockets": [sock]},
            name="admin-server",
            daemon=True,
        )
        self._thread.start()

        deadline = time.monotonic() + self.start_timeout
        while not self._server.started:
            if not self._thread.is_alive():
                self._abort_start()
                raise ServerStartError("Admin server exited during startup")
            if time.monotonic() >= deadline:
                self._abort_start()
                raise ServerStartError(f"Admin server did not start within {self.start_timeout:.0f}s")
            time.sleep(0.01)

        logger.info("Admin server listening on %s:%d (advertised as %s)", self.bind_host, self.port, self.endpoint)

    def _abort_start(self) -> None:
        assert self._server is not None and self._thread is not None and self._socket is not None
        self._server.should_exit = True
        self._thread.join(timeout=self.start_timeout)
        self._socket.close()
        self._stopped = True

    def stop(self, timeout: float = 10.0) -> None:
        """Stop serving and close the socket. Idempotent."""
        if self._server is None or self._stopped:
            return
        self._stopped = True

        assert self._thread is not None and self._socket is not None
        self._server.should_exit = True
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            logger.warning("Admin server did not stop within %.0fs, forcing exit", timeout)
            self._server.force_exit = True
            self._thread.join(timeout=timeout)

        self._socket.close()
        logger.info("Admin server stopped")
