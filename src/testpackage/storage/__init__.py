"""Storage layer for test history and run results."""

from testpackage.storage.history import HistoryStore
from testpackage.storage.models import ExecutionPlan, Failure, RunOutcome, RunStatus, TestUnit

__all__ = ["HistoryStore", "ExecutionPlan", "Failure", "RunOutcome", "RunStatus", "TestUnit"]
