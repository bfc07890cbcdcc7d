"""Process bootstrap: single server in production, supervised workers elsewhere.

The branch is taken once, at startup, from `Config.is_production`.
"""

from __future__ import annotations

import multiprocessing
import os
import socket

import uvicorn

from intern_portal.cluster import Supervisor, process_spawner
from intern_portal.config import Config, load_config


APP_IMPORT_STRING = "intern_portal.api.server:app"


def _debug(msg: str) -> None:
    print(f"[launch] {msg}")


def serve_worker(cfg: Config, sock: socket.socket) -> None:
    """Worker entry point: full server bootstrap on the supervisor's listening socket."""
    # Imported here so the app (and its DB work) is created inside the worker process.
    from intern_portal.api.server import create_app

    app = create_app(cfg)
    server = uvicorn.Server(uvicorn.Config(app, host=cfg.API_HOST, port=cfg.API_PORT, log_level="info"))
    _debug(f"Worker {os.getpid()} is running on port {cfg.API_PORT}")
    server.run(sockets=[sock])


def bind_listen_socket(cfg: Config) -> socket.socket:
    """Bind the shared socket once; every worker accepts on an inherited copy."""
    return uvicorn.Config(APP_IMPORT_STRING, host=cfg.API_HOST, port=cfg.API_PORT).bind_socket()


def build_supervisor(cfg: Config, sock: socket.socket) -> Supervisor:
    spawn = process_spawner(serve_worker, args=(cfg, sock), context=multiprocessing.get_context("spawn"))
    return Supervisor(
        spawn,
        worker_count=cfg.API_WORKERS or None,
        poll_seconds=cfg.SUPERVISOR_POLL_SECONDS,
    )


def main(cfg: Config | None = None) -> None:
    cfg = cfg or load_config()

    if cfg.is_production:
        from intern_portal.api.server import create_app

        _debug(f"Production mode: single process {os.getpid()} on port {cfg.API_PORT}")
        uvicorn.run(create_app(cfg), host=cfg.API_HOST, port=cfg.API_PORT, reload=False)
        return

    sock = bind_listen_socket(cfg)
    try:
        build_supervisor(cfg, sock).run_forever()
    finally:
        sock.close()
