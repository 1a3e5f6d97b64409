"""Base listener interface for run lifecycle events."""

from testpackage.storage.models import ExecutionPlan, Failure, RunOutcome, TestUnit


class RunListener:
    """Receives run lifecycle events from the RunCoordinator.

    Events arrive synchronously, in this order for each unit::

        on_test_started -> on_test_failure* -> on_test_finished

    Skipped units get a single ``on_test_ignored`` instead. The run is
    bracketed by ``on_run_started`` and ``on_run_finished``. Every method is
    a no-op here; subclasses override the ones they need.
    """

    def on_run_started(self, plan: ExecutionPlan) -> None:
        pass

    def on_test_started(self, unit: TestUnit) -> None:
        pass

    def on_test_failure(self, unit: TestUnit, failure: Failure) -> None:
        pass

    def on_test_finished(self, unit: TestUnit) -> None:
        pass

    def on_test_ignored(self, unit: TestUnit, reason: str) -> None:
        pass

    def on_run_finished(self, outcome: RunOutcome) -> None:
        pass
