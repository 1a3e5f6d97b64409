"""Run coordination: drives the engine and dispatches lifecycle events."""

import logging
import time
from typing import Optional

from testpackage.config import RunConfig
from testpackage.core.engine import TestEngine
from testpackage.errors import ConfigurationError
from testpackage.listeners.base import RunListener
from testpackage.storage.models import ExecutionPlan, Failure, RunOutcome, RunStatus, TestUnit

logger = logging.getLogger(__name__)


class Cancellation:
    """Cooperative abort signal, checked between test units."""

    def __init__(self):
        self.reason: Optional[str] = None

    @property
    def requested(self) -> bool:
        return self.reason is not None

    def request(self, reason: str) -> None:
        """Ask the run to stop after the current test unit.

        Only the first reason is kept.
        """
        if self.reason is None:
            logger.debug("Abort requested: %s", reason)
            self.reason = reason


class RunCoordinator:
    """Executes an ExecutionPlan and notifies listeners of its progress.

    The coordinator is also the sink the engine reports to: the engine calls
    ``test_started``/``test_failure``/``test_finished``/``test_ignored`` as it
    goes and checks ``should_stop`` before starting each unit.
    """

    def __init__(self, config: RunConfig, engine: TestEngine):
        self.config = config
        self.engine = engine
        self.cancellation = Cancellation()
        self._listeners: list[RunListener] = []
        self._outcome: Optional[RunOutcome] = None
        self._in_flight: Optional[TestUnit] = None

    def add_listener(self, listener: RunListener) -> None:
        """Register a listener. Listeners are notified in registration order."""
        self._listeners.append(listener)

    def run(self, plan: ExecutionPlan) -> RunOutcome:
        """Execute every unit of ``plan`` unless aborted.

        Raises:
            ConfigurationError: If the plan holds no test units
        """
        if plan.is_empty:
            raise ConfigurationError(
                f"No test units resolved for packages: {', '.join(self.config.package_names) or '(none)'}"
            )

        self._outcome = outcome = RunOutcome()
        start_time = time.time()

        for listener in self._listeners:
            listener.on_run_started(plan)

        try:
            self.engine.execute(plan, self)
        except Exception as e:
            logger.exception("Test engine failed during execution")
            outcome.engine_error = f"{type(e).__name__}: {e}"
            self.cancellation.request(f"engine error: {e}")

        outcome.duration_ms = int((time.time() - start_time) * 1000)
        if self.cancellation.requested:
            outcome.status = RunStatus.ABORTED
            outcome.abort_reason = self.cancellation.reason

        for listener in self._listeners:
            listener.on_run_finished(outcome)

        self._outcome = None
        return outcome

    # Engine sink

    def should_stop(self) -> bool:
        return self.cancellation.requested

    def test_started(self, unit: TestUnit) -> None:
        self._current_outcome().run_count += 1
        self._in_flight = unit
        for listener in self._listeners:
            listener.on_test_started(unit)

    def test_failure(self, unit: TestUnit, failure: Failure) -> None:
        self._current_outcome().failures.append(failure)
        for listener in self._listeners:
            listener.on_test_failure(unit, failure)

    def test_finished(self, unit: TestUnit) -> None:
        self._in_flight = None
        for listener in self._listeners:
            listener.on_test_finished(unit)

    def test_ignored(self, unit: TestUnit, reason: str) -> None:
        outcome = self._current_outcome()
        outcome.ignored_count += 1
        # skipped from inside the test body: already counted as run
        if unit == self._in_flight:
            outcome.run_count -= 1
        for listener in self._listeners:
            listener.on_test_ignored(unit, reason)

    def _current_outcome(self) -> RunOutcome:
        if self._outcome is None:
            raise RuntimeError("No run in progress")
        return self._outcome
