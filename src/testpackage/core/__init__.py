"""Core test sequencing and execution functionality."""

from testpackage.core.coordinator import RunCoordinator
from testpackage.core.discovery import TestDiscovery
from testpackage.core.engine import UnittestEngine
from testpackage.core.sequencer import TestSequencer

__all__ = ["RunCoordinator", "TestDiscovery", "UnittestEngine", "TestSequencer"]
