"""Startup branch: production runs one server, everything else runs the supervisor.

The last test boots real supervised workers on an ephemeral port.
"""

import os
import signal
import time
from dataclasses import replace

import httpx

from intern_portal.api import launch
from intern_portal.cluster import Supervisor


def test_production_runs_single_server_without_supervisor(cfg, monkeypatch):
    calls = []

    def _no_supervisor(*args, **kwargs):
        raise AssertionError("supervisor must not run in production")

    monkeypatch.setattr(launch.uvicorn, "run", lambda app, **kw: calls.append((app, kw)))
    monkeypatch.setattr(launch, "build_supervisor", _no_supervisor)

    launch.main(replace(cfg, APP_ENV="production"))

    assert len(calls) == 1
    app, kw = calls[0]
    assert app.state.cfg.is_production
    assert kw["port"] == cfg.API_PORT


def test_non_production_runs_supervisor(cfg, monkeypatch):
    class FakeSocket:
        closed = False

        def close(self):
            self.closed = True

    sock = FakeSocket()
    ran = []

    monkeypatch.setattr(launch, "bind_listen_socket", lambda c: sock)
    monkeypatch.setattr(launch.uvicorn, "run", lambda *a, **kw: ran.append("uvicorn"))
    monkeypatch.setattr(Supervisor, "run_forever", lambda self: ran.append(self))

    launch.main(replace(cfg, APP_ENV="development", API_WORKERS=4))

    assert len(ran) == 1
    sup = ran[0]
    assert isinstance(sup, Supervisor)
    assert sup.worker_count == 4
    assert sock.closed


def test_worker_count_follows_cpus_when_unset(cfg, monkeypatch):
    monkeypatch.setattr(launch.os, "cpu_count", lambda: 4)
    sup = launch.build_supervisor(replace(cfg, API_WORKERS=0), sock=None)
    assert sup.worker_count == 4


def _wait_for_health(base_url, deadline):
    while time.monotonic() < deadline:
        try:
            r = httpx.get(f"{base_url}/health", timeout=1.0)
            if r.status_code == 200:
                return r
        except httpx.TransportError:
            pass
        time.sleep(0.2)
    raise AssertionError("workers never answered /health")


def test_supervised_workers_serve_and_replace_killed_worker(cfg):
    cfg = replace(cfg, APP_ENV="development", API_HOST="127.0.0.1", API_PORT=0, API_WORKERS=2)
    sock = launch.bind_listen_socket(cfg)
    base_url = f"http://127.0.0.1:{sock.getsockname()[1]}"
    sup = launch.build_supervisor(cfg, sock)
    sup.start()
    try:
        r = _wait_for_health(base_url, time.monotonic() + 30)
        assert r.json() == {"status": "ok"}

        victim_id, victim = next(iter(sup.workers.items()))
        os.kill(victim.pid, signal.SIGKILL)

        deadline = time.monotonic() + 30
        while victim_id in sup.workers and time.monotonic() < deadline:
            sup.poll_once(timeout=0.5)

        assert victim_id not in sup.workers
        assert len(sup.workers) == 2
        assert sup.restarts == 1

        _wait_for_health(base_url, time.monotonic() + 30)
        r = httpx.get(f"{base_url}/api/bookings", timeout=5.0)
        assert r.status_code == 401
        assert r.json() == {"message": "No token provided"}
    finally:
        sup.stop()
        sock.close()
