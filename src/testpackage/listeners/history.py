"""Listener that keeps the failure history up to date."""

import logging
from contextlib import contextmanager
from typing import Iterator

from testpackage.listeners.base import RunListener
from testpackage.storage.history import HistoryStore
from testpackage.storage.models import Failure, RunOutcome, TestUnit

logger = logging.getLogger(__name__)


class HistoryRecorder(RunListener):
    """Tracks which tests ran and failed, and commits the next history generation.

    For every key that was stored before the run or started during it:

    - a key that failed this run is reset to 0
    - a stored key that did not fail is incremented by one
    - a key seen for the first time that did not fail is stored with 0

    A failing method also marks its class as failed. A test that skips
    itself after starting is left out, as are decorator skips, which never
    start.
    """

    def __init__(self, store: HistoryStore):
        self.store = store
        self.started_keys: set[str] = set()
        self.failed_keys: set[str] = set()
        self._committed = False

    def on_test_started(self, unit: TestUnit) -> None:
        self.started_keys.update((unit.class_key, unit.key))

    def on_test_failure(self, unit: TestUnit, failure: Failure) -> None:
        self.mark_failure(unit.class_key, unit.key)

    def on_test_ignored(self, unit: TestUnit, reason: str) -> None:
        # skipped from inside the test body after it was started
        if unit.key in self.failed_keys:
            return
        self.started_keys.discard(unit.key)

        suffix = f"({unit.class_key})"
        siblings_started = any(key.endswith(suffix) for key in self.started_keys)
        if not siblings_started and unit.class_key not in self.failed_keys:
            self.started_keys.discard(unit.class_key)

    def on_run_finished(self, outcome: RunOutcome) -> None:
        self.commit()

    def mark_failure(self, *keys: str) -> None:
        """Record keys as failed during this run."""
        self.failed_keys.update(keys)
        self.started_keys.update(keys)

    def next_generation(self) -> dict[str, int]:
        """Compute the counters the store should hold after this run."""
        previous = self.store.runs_since_last_failure
        generation = {}
        for key in set(previous) | self.started_keys:
            if key in self.failed_keys:
                generation[key] = 0
            elif key in previous:
                generation[key] = previous[key] + 1
            else:
                generation[key] = 0
        return generation

    def commit(self) -> bool:
        """Apply the next generation to the store, once per run.

        Returns:
            False if the run was already committed
        """
        if self._committed:
            return False

        self.store.replace(self.next_generation())
        self._committed = True
        logger.debug(
            "Committed history: %d keys started, %d failed, %d stored",
            len(self.started_keys),
            len(self.failed_keys),
            len(self.store),
        )
        return True

    @contextmanager
    def recording(self) -> Iterator["HistoryRecorder"]:
        """Wrap a run so that history is committed and saved exactly once.

        The store is saved even when the run raises; a run that never
        reached ``on_run_finished`` is committed here first.
        """
        try:
            yield self
        finally:
            self.commit()
            self.store.save()
