"""Test run orchestration with failure-history prioritization."""

import logging
from dataclasses import dataclass
from typing import Optional

from rich.console import Console

from testpackage.config import RunConfig
from testpackage.core.coordinator import RunCoordinator
from testpackage.core.engine import TestEngine, UnittestEngine
from testpackage.core.sequencer import TestSequencer
from testpackage.errors import ConfigurationError, HistoryStoreError
from testpackage.listeners.failfast import FailFastController
from testpackage.listeners.history import HistoryRecorder
from testpackage.report.console import ConsoleListener
from testpackage.report.junit_xml import JUnitXmlReportListener
from testpackage.storage.history import HistoryStore
from testpackage.storage.models import ExecutionPlan, RunOutcome

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_HISTORY_WRITE_FAILED = 2
EXIT_USAGE = -1


@dataclass
class RunReport:
    """What a run produced, and the exit code it maps to."""

    outcome: RunOutcome
    plan: ExecutionPlan
    exit_code: int
    history_error: Optional[HistoryStoreError] = None


def exit_code_for(outcome: RunOutcome) -> int:
    """0 when every test passed and at least one ran, 1 otherwise."""
    return EXIT_OK if outcome.was_successful else EXIT_FAILED


class TestPackageRunner:
    """Runs the tests of the configured packages, most recent failures first."""

    def __init__(
        self,
        config: RunConfig,
        engine: Optional[TestEngine] = None,
        console: Optional[Console] = None,
        sequencer: Optional[TestSequencer] = None,
    ):
        """Initialize the test runner."""
        self.config = config
        self.engine = engine or UnittestEngine()
        self.console = console or Console(highlight=False)
        self.sequencer = sequencer or TestSequencer()

    def plan(self, store: HistoryStore) -> ExecutionPlan:
        """Discover tests and order them by failure history.

        Raises:
            ConfigurationError: If no test units were found
        """
        discovered = self.engine.discover(self.config.package_names)
        plan = self.sequencer.order(discovered, store.runs_since_last_failure)
        if plan.is_empty:
            raise ConfigurationError(
                f"No test units resolved for packages: {', '.join(self.config.package_names)}"
            )
        logger.debug("Execution plan: %s", plan.to_dict())
        return plan

    def build_coordinator(self, recorder: HistoryRecorder) -> RunCoordinator:
        """Create the coordinator with its listeners registered."""
        coordinator = RunCoordinator(self.config, self.engine)

        if self.config.xml_report:
            coordinator.add_listener(JUnitXmlReportListener(self.config.report_dir))
        coordinator.add_listener(ConsoleListener(self.console, fail_fast=self.config.fail_fast))
        coordinator.add_listener(recorder)

        if self.config.fail_fast:
            coordinator.add_listener(FailFastController(coordinator.cancellation))

        return coordinator

    def run(self) -> RunReport:
        """Execute the run and persist the updated history.

        Configuration problems and unreadable history raise before any test
        runs and leave the history file untouched. A history write failure
        after the run is returned on the report rather than raised. If the run
        itself raises and the save fails too, the HistoryStoreError is raised
        with the original exception as its context.

        Raises:
            ConfigurationError: If the run cannot be set up
            HistoryStoreError: If the existing history file cannot be read
        """
        store = HistoryStore.load(self.config.history_file)
        plan = self.plan(store)

        recorder = HistoryRecorder(store)
        coordinator = self.build_coordinator(recorder)

        outcome = None
        history_error = None
        try:
            with recorder.recording():
                outcome = coordinator.run(plan)
        except HistoryStoreError as e:
            logger.error("%s", e)
            # the run itself raised; the save error is chained to it
            if outcome is None:
                raise
            history_error = e

        logger.debug("Run outcome: %s", outcome.to_dict())
        exit_code = exit_code_for(outcome)
        if history_error is not None and exit_code == EXIT_OK:
            exit_code = EXIT_HISTORY_WRITE_FAILED

        return RunReport(outcome=outcome, plan=plan, exit_code=exit_code, history_error=history_error)
