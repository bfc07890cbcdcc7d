"""Worker process supervisor (non-production only).

Keeps exactly `worker_count` worker processes alive. Every worker runs the full
server bootstrap on its own; the supervisor never talks to them beyond noticing
that they exited.

Restart policy is fail-open: any exit (crash, signal, clean exit) is answered
with exactly one replacement, immediately, with no backoff and no restart limit.
Exit codes and signals are logged but never inspected. A spawn that fails with
an OSError is retried on the next poll instead of tearing the pool down.

State machine:

    IDLE -> SPAWNING -> MONITORING -> RESPAWNING -> MONITORING -> ...

Only `stop()` (called on SIGINT/SIGTERM or when `run_forever` unwinds) leaves
the loop, moving to STOPPED.
"""

from __future__ import annotations

import multiprocessing
import os
import signal
import threading
import time
from dataclasses import dataclass
from enum import Enum
from multiprocessing.connection import wait
from typing import Any, Callable, Dict, List, Optional, Sequence


def _debug(msg: str) -> None:
    print(f"[supervisor] {msg}")


class SupervisorState(str, Enum):
    IDLE = "idle"
    SPAWNING = "spawning"
    MONITORING = "monitoring"
    RESPAWNING = "respawning"
    STOPPED = "stopped"


# A spawner starts one worker and returns its handle. The handle must expose the
# multiprocessing.Process surface we use: pid, exitcode, sentinel, is_alive(),
# terminate(), join(timeout).
Spawner = Callable[[], Any]


@dataclass(frozen=True)
class WorkerExit:
    worker_id: int
    pid: Optional[int]
    exitcode: Optional[int]
    signal: Optional[int]


def resolve_worker_count(requested: Optional[int] = None) -> int:
    """Explicit positive count wins; otherwise one worker per CPU core."""
    if requested is not None and int(requested) > 0:
        return int(requested)
    return max(1, os.cpu_count() or 1)


def process_spawner(
    target: Callable[..., Any],
    args: Sequence[Any] = (),
    *,
    context: Optional[Any] = None,
) -> Spawner:
    """Spawner that starts `target(*args)` in a new OS process."""
    ctx = context or multiprocessing.get_context()

    def _spawn() -> Any:
        proc = ctx.Process(target=target, args=tuple(args))
        proc.start()
        return proc

    return _spawn


class Supervisor:
    def __init__(
        self,
        spawn: Spawner,
        *,
        worker_count: Optional[int] = None,
        poll_seconds: float = 1.0,
        stop_timeout_seconds: float = 10.0,
    ):
        self._spawn = spawn
        self.worker_count = resolve_worker_count(worker_count)
        self.poll_seconds = max(0.05, float(poll_seconds))
        self.stop_timeout_seconds = float(stop_timeout_seconds)

        self.state = SupervisorState.IDLE
        # worker_id -> handle. Ids are never reused, so incarnations stay distinguishable
        # even when the OS recycles a PID.
        self.workers: Dict[int, Any] = {}
        self.restarts = 0
        # Spawns that failed (fork/exec OSError) and are retried on the next poll.
        self.pending_respawns = 0
        self._next_worker_id = 0
        self._stop_requested = False

    # -----------------------------
    # State transitions
    # -----------------------------

    def start(self) -> None:
        if self.state != SupervisorState.IDLE:
            raise RuntimeError(f"supervisor_not_idle: {self.state.value}")

        _debug(f"Supervisor process is running with PID: {os.getpid()}")
        _debug(f"Forking {self.worker_count} workers...")
        self.state = SupervisorState.SPAWNING
        for _ in range(self.worker_count):
            self._spawn_worker()
        self.state = SupervisorState.MONITORING

    def on_worker_exit(
        self,
        worker_id: int,
        exitcode: Optional[int] = None,
        sig: Optional[int] = None,
    ) -> Optional[int]:
        """Forget the dead worker and spawn exactly one replacement.

        Returns the replacement's worker id, or None when the id is unknown (already
        handled), the supervisor is shutting down, or the spawn failed (it is then
        left pending and retried by `respawn_pending`).
        """
        handle = self.workers.pop(worker_id, None)
        if handle is None or self._stop_requested:
            return None

        _debug(
            f"Worker {getattr(handle, 'pid', None)} died (exitcode={exitcode} signal={sig}). "
            "Forking a new worker..."
        )
        self.state = SupervisorState.RESPAWNING
        new_id = self._spawn_worker()
        if new_id is not None:
            self.restarts += 1
        self.state = SupervisorState.MONITORING
        return new_id

    def respawn_pending(self) -> int:
        """Retry spawns that failed earlier. Returns how many succeeded.

        Stops at the first new failure; the rest stay pending for the next poll.
        """
        spawned = 0
        while self.pending_respawns > 0 and not self._stop_requested:
            self.pending_respawns -= 1
            if self._spawn_worker() is None:
                break
            self.restarts += 1
            spawned += 1
        return spawned

    def _spawn_worker(self) -> Optional[int]:
        try:
            handle = self._spawn()
        except OSError as e:
            # e.g. EAGAIN/ENOMEM from fork. Keep supervising the survivors.
            self.pending_respawns += 1
            _debug(f"Failed to spawn worker ({e}); {self.pending_respawns} spawn(s) pending")
            return None
        self._next_worker_id += 1
        worker_id = self._next_worker_id
        self.workers[worker_id] = handle
        _debug(f"Spawned worker id={worker_id} pid={getattr(handle, 'pid', None)}")
        return worker_id

    # -----------------------------
    # Monitoring
    # -----------------------------

    def reap(self) -> List[WorkerExit]:
        """Replace every worker whose process has exited."""
        exits: List[WorkerExit] = []
        for worker_id, handle in list(self.workers.items()):
            code = handle.exitcode
            if code is None:
                continue
            # multiprocessing reports death-by-signal as a negative exit code.
            sig = -code if code < 0 else None
            exits.append(WorkerExit(worker_id=worker_id, pid=handle.pid, exitcode=code, signal=sig))
            self.on_worker_exit(worker_id, exitcode=code, sig=sig)
        return exits

    def poll_once(self, timeout: Optional[float] = None) -> List[WorkerExit]:
        """Block until a worker exits (or `timeout` passes), then reap.

        Spawns left pending by an earlier failure are retried first.
        """
        self.respawn_pending()
        timeout = self.poll_seconds if timeout is None else timeout
        sentinels = [h.sentinel for h in self.workers.values()]
        if sentinels:
            wait(sentinels, timeout=timeout)
        else:
            # Nothing to wait on (every spawn failed); don't spin.
            time.sleep(timeout)
        return self.reap()

    def live_count(self) -> int:
        return sum(1 for h in self.workers.values() if h.is_alive())

    def run_forever(self) -> None:
        """Start (if needed) and monitor until SIGINT/SIGTERM."""
        self._install_signal_handlers()
        if self.state == SupervisorState.IDLE:
            self.start()
        try:
            while not self._stop_requested:
                self.poll_once()
        finally:
            self.stop()

    # -----------------------------
    # Shutdown
    # -----------------------------

    def request_stop(self, signum: Optional[int] = None, frame: Any = None) -> None:
        if signum is not None:
            _debug(f"Received signal {signum}; stopping workers")
        self._stop_requested = True

    def stop(self) -> None:
        self._stop_requested = True
        handles = list(self.workers.values())
        self.workers.clear()
        for h in handles:
            if h.is_alive():
                h.terminate()
        for h in handles:
            h.join(self.stop_timeout_seconds)
        self.state = SupervisorState.STOPPED
        _debug(f"Stopped {len(handles)} workers")

    def _install_signal_handlers(self) -> None:
        # signal.signal only works from the main thread.
        if threading.current_thread() is not threading.main_thread():
            return
        signal.signal(signal.SIGINT, self.request_stop)
        signal.signal(signal.SIGTERM, self.request_stop)
