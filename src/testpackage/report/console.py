"""Colored console progress output."""

import time
from typing import Optional

from rich.console import Console
from rich.markup import escape

from testpackage.listeners.base import RunListener
from testpackage.storage.models import Failure, RunOutcome, TestUnit

TICK_MARK = "✔"
CROSS_MARK = "✘"


class ConsoleListener(RunListener):
    """Prints one line per test, then a summary and the list of failures."""

    def __init__(self, console: Optional[Console] = None, fail_fast: bool = False):
        """Initialize the console listener.

        Args:
            console: Rich console to print to (default: stdout)
            fail_fast: Print the aborting failure as soon as it happens
        """
        self.console = console or Console(highlight=False)
        self.fail_fast = fail_fast
        self._start_time = 0.0
        self._current_failed = False
        self._current_ignored = False
        self._fail_fast_reported = False

    def on_test_started(self, unit: TestUnit) -> None:
        self._start_time = time.time()
        self._current_failed = False
        self._current_ignored = False

    def on_test_failure(self, unit: TestUnit, failure: Failure) -> None:
        if not self._current_failed:
            self._current_failed = True
            self._print_result_line(unit, success=False)

        if self.fail_fast and not self._fail_fast_reported:
            self._fail_fast_reported = True
            self.console.print()
            self.console.print("*** TESTS ABORTED")
            self.console.print("*** [white on red]Fail-fast triggered by test failure:[/white on red]")
            self.report_failure(failure)

    def on_test_finished(self, unit: TestUnit) -> None:
        if not self._current_failed and not self._current_ignored:
            self._print_result_line(unit, success=True)

    def on_test_ignored(self, unit: TestUnit, reason: str) -> None:
        self._current_ignored = True
        self.console.print(
            f" [yellow]-  {escape(unit.simple_class_name)}.{escape(unit.method_name)}[/yellow]"
            f" [dim](skipped: {escape(reason)})[/dim]"
        )

    def on_run_finished(self, outcome: RunOutcome) -> None:
        passed = outcome.passed
        failed = outcome.failure_count
        ignored = outcome.ignored_count

        self.console.print()
        if outcome.aborted:
            self.console.print(f"*** TESTS ABORTED ({escape(outcome.abort_reason or 'unknown reason')})")
        else:
            self.console.print("*** TESTS COMPLETE")

        if passed > 0 and failed == 0:
            passed_statement = f"[white on green]{passed} passed[/white on green]"
        else:
            passed_statement = f"{passed} passed"

        if failed > 0:
            failed_statement = f"[white on red]{failed} failed[/white on red]"
        else:
            failed_statement = "0 failed"

        if ignored > 0 and ignored > passed:
            ignored_statement = f"[white on red]{ignored} ignored[/white on red]"
        elif ignored > 0:
            ignored_statement = f"[black on yellow]{ignored} ignored[/black on yellow]"
        else:
            ignored_statement = "0 ignored"

        self.console.print(f"*** {passed_statement}, {failed_statement}, {ignored_statement}")

        if outcome.engine_error:
            self.console.print(f"[red]Test engine error:[/red] {escape(outcome.engine_error)}")

        if outcome.failures:
            self.console.print()
            self.console.print("Failures:")
            for failure in outcome.failures:
                self.report_failure(failure)

    def report_failure(self, failure: Failure) -> None:
        """Print a failure with its location and root cause."""
        self.console.print(f"    [red]{escape(failure.key)}[/red]:")
        self.console.print(
            f"      [yellow]{escape(failure.exception_type)}: {escape(_indent_newlines(failure.message))}[/yellow]"
        )

        root_cause = failure.root_cause
        if len(failure.causes) <= 1:
            self.console.print(f"        At {escape(failure.location or 'unknown location')}\n")
        else:
            self.console.print(f"        At {escape(failure.location or 'unknown location')}")
            self.console.print(
                f"      Root cause: [yellow]{escape(root_cause.exception_type)}: "
                f"{escape(_indent_newlines(root_cause.message))}[/yellow]"
            )
            self.console.print(f"        At {escape(root_cause.location or 'unknown location')}\n")

    def _print_result_line(self, unit: TestUnit, success: bool) -> None:
        elapsed_ms = int((time.time() - self._start_time) * 1000)
        colour, symbol = ("green", TICK_MARK) if success else ("red", CROSS_MARK)
        self.console.print(
            f" [{colour}]{symbol}  {escape(unit.simple_class_name)}.{escape(unit.method_name)}[/{colour}]"
            f" [blue]({elapsed_ms} ms)[/blue]"
        )


def _indent_newlines(text: Optional[str]) -> str:
    if not text:
        return ""
    return text.replace("\n", "\n      ")
