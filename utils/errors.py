# utils/errors.py
from dataclasses import dataclass
from typing import Optional


class LapjuError(Exception):
    """Base class for expected, reportable failures."""


class ValidationError(LapjuError):
    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


class NotFoundError(LapjuError):
    def __init__(self, kind: str, ident):
        super().__init__(f"{kind} {ident} not found")
        self.kind = kind
        self.ident = ident


class CycleDetected(LapjuError):
    def __init__(self, node_id):
        super().__init__(f"Cycle in parent chain at node {node_id}")
        self.node_id = node_id


class NormalizationError(LapjuError):
    pass


class NoLeafTasksError(NormalizationError):
    def __init__(self):
        super().__init__("No leaf tasks found.")


class ZeroSumError(NormalizationError):
    def __init__(self):
        super().__init__("Cannot normalize: current weight sum is 0")


class BackfillError(LapjuError):
    """Synthesized history could not be stored; the triggering entry is kept."""

    def __init__(self, entry, cause: Optional[Exception] = None):
        super().__init__(f"Backfill failed for task {entry.task_id} in project {entry.project_id}: {cause}")
        self.entry = entry
        self.cause = cause


@dataclass(frozen=True)
class InvariantViolation:
    node_id: Optional[int]
    message: str
