"""Run lifecycle listeners."""

from testpackage.listeners.base import RunListener
from testpackage.listeners.history import HistoryRecorder

__all__ = ["RunListener", "HistoryRecorder"]
