from .supervisor import Supervisor, SupervisorState, WorkerExit, process_spawner, resolve_worker_count

__all__ = [
    "Supervisor",
    "SupervisorState",
    "WorkerExit",
    "process_spawner",
    "resolve_worker_count",
]
