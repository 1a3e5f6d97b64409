"""JUnit XML report generation using Jinja2 templates."""

import logging
import socket
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from testpackage.listeners.base import RunListener
from testpackage.storage.models import Failure, RunOutcome, TestUnit

logger = logging.getLogger(__name__)


@dataclass
class CaseFailure:
    """A failure or error element of a test case."""

    tag: str
    exception_type: str
    message: str
    traceback: str


@dataclass
class CaseRecord:
    """Result of one test method."""

    name: str
    duration_ms: int = 0
    failures: list[CaseFailure] = field(default_factory=list)
    skipped_reason: Optional[str] = None


@dataclass
class SuiteRecord:
    """Results of one test class."""

    name: str
    started_at: datetime = field(default_factory=datetime.now)
    cases: list[CaseRecord] = field(default_factory=list)

    @property
    def tests(self) -> int:
        return len(self.cases)

    @property
    def failures(self) -> int:
        return sum(1 for c in self.cases if any(f.tag == "failure" for f in c.failures))

    @property
    def errors(self) -> int:
        return sum(1 for c in self.cases if c.failures and all(f.tag == "error" for f in c.failures))

    @property
    def skipped(self) -> int:
        return sum(1 for c in self.cases if c.skipped_reason is not None)

    @property
    def duration_ms(self) -> int:
        return sum(c.duration_ms for c in self.cases)


class JUnitXmlReportListener(RunListener):
    """Writes one ``TEST-<class>.xml`` file per test class when the run ends.

    Assertion failures become ``<failure>`` elements, any other exception an
    ``<error>``.
    """

    def __init__(self, output_dir: Path | str):
        """Initialize the XML report listener.

        Args:
            output_dir: Directory the report files are written to
        """
        self.output_dir = Path(output_dir)
        self._suites: dict[str, SuiteRecord] = {}
        self._current: Optional[CaseRecord] = None
        self._start_time = 0.0
        self.written: list[Path] = []

        template_dir = Path(__file__).parent / "templates"
        self.env = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )
        self.env.filters["seconds"] = self._format_seconds
        self.env.filters["iso_timestamp"] = self._format_timestamp

    def on_test_started(self, unit: TestUnit) -> None:
        self._start_time = time.time()
        self._current = CaseRecord(name=unit.method_name)
        self._suite_for(unit).cases.append(self._current)

    def on_test_failure(self, unit: TestUnit, failure: Failure) -> None:
        case = self._case_for(unit)
        tag = "failure" if failure.exception_type == "AssertionError" else "error"
        case.failures.append(
            CaseFailure(
                tag=tag,
                exception_type=failure.exception_type,
                message=failure.message,
                traceback=failure.traceback,
            )
        )

    def on_test_finished(self, unit: TestUnit) -> None:
        if self._current is not None:
            self._current.duration_ms = int((time.time() - self._start_time) * 1000)
        self._current = None

    def on_test_ignored(self, unit: TestUnit, reason: str) -> None:
        self._case_for(unit).skipped_reason = reason

    def on_run_finished(self, outcome: RunOutcome) -> None:
        try:
            self.write()
        except OSError as e:
            logger.error("Could not write XML report to %s: %s", self.output_dir, e)

    def write(self) -> list[Path]:
        """Render every collected suite to the output directory."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        template = self.env.get_template("junit.xml")
        hostname = socket.gethostname()

        for suite in self._suites.values():
            path = self.output_dir / f"TEST-{suite.name}.xml"
            path.write_text(template.render(suite=suite, hostname=hostname), encoding="utf-8")
            self.written.append(path)

        logger.debug("Wrote %d XML reports to %s", len(self._suites), self.output_dir)
        return self.written

    def _suite_for(self, unit: TestUnit) -> SuiteRecord:
        if unit.class_name not in self._suites:
            self._suites[unit.class_name] = SuiteRecord(name=unit.class_name)
        return self._suites[unit.class_name]

    def _case_for(self, unit: TestUnit) -> CaseRecord:
        if self._current is not None and self._current.name == unit.method_name:
            return self._current

        suite = self._suite_for(unit)
        for case in suite.cases:
            if case.name == unit.method_name:
                return case

        case = CaseRecord(name=unit.method_name)
        suite.cases.append(case)
        return case

    @staticmethod
    def _format_seconds(ms: int) -> str:
        return f"{ms / 1000:.3f}"

    @staticmethod
    def _format_timestamp(dt: datetime) -> str:
        return dt.strftime("%Y-%m-%dT%H:%M:%S")
