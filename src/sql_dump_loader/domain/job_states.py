"""Import job states and transition rules."""

from enum import StrEnum

from sql_dump_loader.domain.errors import InvalidJobTransitionError


class ImportJobState(StrEnum):
    """Lifecycle states of one import job."""

    RECEIVED = "RECEIVED"
    EXTRACTING = "EXTRACTING"
    LOCATING = "LOCATING"
    EXECUTING = "EXECUTING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ExecutionBackendKind(StrEnum):
    """Available statement execution backends."""

    QUERY = "query"
    PROCESS = "process"


class DatabaseEngine(StrEnum):
    """Target database server family."""

    POSTGRES = "postgres"
    MYSQL = "mysql"


class ProcessForwardMode(StrEnum):
    """What the process backend writes to the client's stdin."""

    RAW = "raw"
    STATEMENTS = "statements"


TERMINAL_JOB_STATES = frozenset({ImportJobState.COMPLETED, ImportJobState.FAILED})

_STATE_ORDER = {
    ImportJobState.RECEIVED: 0,
    ImportJobState.EXTRACTING: 1,
    ImportJobState.LOCATING: 2,
    ImportJobState.EXECUTING: 3,
    ImportJobState.COMPLETED: 4,
    ImportJobState.FAILED: 4,
}


def ensure_forward_transition(current: ImportJobState, target: ImportJobState) -> None:
    """Reject transitions that revisit a state or leave a terminal one."""

    if current in TERMINAL_JOB_STATES:
        raise InvalidJobTransitionError(
            f"Job already finished in state {current}; cannot move to {target}."
        )
    if target is ImportJobState.FAILED:
        return
    if _STATE_ORDER[target] <= _STATE_ORDER[current]:
        raise InvalidJobTransitionError(f"Cannot move job from {current} back to {target}.")


__all__ = [
    "DatabaseEngine",
    "ExecutionBackendKind",
    "ImportJobState",
    "ProcessForwardMode",
    "TERMINAL_JOB_STATES",
    "ensure_forward_transition",
]
