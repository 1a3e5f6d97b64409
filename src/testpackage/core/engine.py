"""Test execution engine interface and its unittest implementation."""

import logging
import re
import traceback
import unittest
from abc import ABC, abstractmethod
from types import TracebackType
from typing import Iterable, Optional

from testpackage.core.discovery import TestDiscovery
from testpackage.errors import ConfigurationError
from testpackage.storage.models import CauseLink, DiscoveredClass, ExecutionPlan, Failure, TestUnit

logger = logging.getLogger(__name__)

# _ErrorHolder descriptions look like "setUpClass (package.module.Class)"
_FIXTURE_DESCRIPTION = re.compile(r"^(\w+) \((.+)\)$")


class EngineSink(ABC):
    """Receives lifecycle events from a TestEngine."""

    @abstractmethod
    def should_stop(self) -> bool:
        """Checked before each test unit starts."""

    @abstractmethod
    def test_started(self, unit: TestUnit) -> None:
        pass

    @abstractmethod
    def test_failure(self, unit: TestUnit, failure: Failure) -> None:
        pass

    @abstractmethod
    def test_finished(self, unit: TestUnit) -> None:
        pass

    @abstractmethod
    def test_ignored(self, unit: TestUnit, reason: str) -> None:
        pass


class TestEngine(ABC):
    """Abstract base class for test execution engines."""

    @abstractmethod
    def discover(self, package_names: Iterable[str]) -> list[DiscoveredClass]:
        """Find test classes and their methods in the given packages.

        Raises:
            ConfigurationError: If a package cannot be loaded
        """

    @abstractmethod
    def execute(self, plan: ExecutionPlan, sink: EngineSink) -> None:
        """Run every unit of the plan in order, reporting to ``sink``.

        Implementations must check ``sink.should_stop()`` before starting
        each unit and must not interrupt a unit that is already running.
        """


class UnittestEngine(TestEngine):
    """Runs unittest test cases in execution plan order."""

    def __init__(self, discovery: Optional[TestDiscovery] = None):
        self.discovery = discovery or TestDiscovery()
        self._test_classes: dict[str, type] = {}

    def discover(self, package_names: Iterable[str]) -> list[DiscoveredClass]:
        package_names = list(package_names)
        result = self.discovery.discover(package_names)
        if not result.success:
            raise ConfigurationError("; ".join(result.errors))

        self._test_classes.update(result.test_classes)
        return result.classes

    def execute(self, plan: ExecutionPlan, sink: EngineSink) -> None:
        suite = unittest.TestSuite()
        for unit in plan.units():
            test_class = self._test_classes.get(unit.class_name)
            if test_class is None:
                raise ConfigurationError(f"Test class {unit.class_name} was not discovered")
            suite.addTest(test_class(unit.method_name))

        # TestSuite checks result.shouldStop between tests and takes care of
        # class and module fixtures
        suite.run(SinkResult(sink))


class SinkResult(unittest.TestResult):
    """unittest result object that forwards outcomes to an EngineSink."""

    def __init__(self, sink: EngineSink):
        self._sink = sink
        self._stop_requested = False
        self._skipped_before_start: set[str] = set()
        super().__init__()

    @property
    def shouldStop(self) -> bool:
        return self._stop_requested or self._sink.should_stop()

    @shouldStop.setter
    def shouldStop(self, value: bool) -> None:
        self._stop_requested = value

    def startTest(self, test: unittest.TestCase) -> None:
        super().startTest(test)
        if _is_skipped_by_decorator(test):
            self._skipped_before_start.add(test.id())
            return
        self._sink.test_started(unit_for(test))

    def stopTest(self, test: unittest.TestCase) -> None:
        super().stopTest(test)
        if test.id() in self._skipped_before_start:
            self._skipped_before_start.discard(test.id())
            return
        self._sink.test_finished(unit_for(test))

    def addError(self, test, err) -> None:
        super().addError(test, err)
        self._report_failure(test, err)

    def addFailure(self, test, err) -> None:
        super().addFailure(test, err)
        self._report_failure(test, err)

    def addSubTest(self, test, subtest, err) -> None:
        super().addSubTest(test, subtest, err)
        if err is not None:
            self._sink.test_failure(unit_for(test), build_failure(unit_for(test), err, label=subtest._subDescription()))

    def addSkip(self, test, reason: str) -> None:
        super().addSkip(test, reason)
        unit = unit_for(test) if isinstance(test, unittest.TestCase) else unit_for_fixture(test)
        self._sink.test_ignored(unit, reason)

    def addUnexpectedSuccess(self, test) -> None:
        super().addUnexpectedSuccess(test)
        unit = unit_for(test)
        self._sink.test_failure(
            unit,
            Failure(unit=unit, exception_type="UnexpectedSuccess", message="Test marked as expected failure passed"),
        )

    def _report_failure(self, test, err) -> None:
        if isinstance(test, unittest.TestCase):
            unit = unit_for(test)
            self._sink.test_failure(unit, build_failure(unit, err))
            return

        # class or module fixture error: report it as a unit of its own
        unit = unit_for_fixture(test)
        self._sink.test_started(unit)
        self._sink.test_failure(unit, build_failure(unit, err))
        self._sink.test_finished(unit)


def unit_for(test: unittest.TestCase) -> TestUnit:
    test_class = type(test)
    return TestUnit(f"{test_class.__module__}.{test_class.__qualname__}", test._testMethodName)


def unit_for_fixture(holder) -> TestUnit:
    description = str(holder.id() if hasattr(holder, "id") else holder)
    match = _FIXTURE_DESCRIPTION.match(description)
    if match:
        return TestUnit(class_name=match.group(2), method_name=match.group(1))
    return TestUnit(class_name=description, method_name="fixture")


def _is_skipped_by_decorator(test: unittest.TestCase) -> bool:
    method = getattr(test, test._testMethodName, None)
    return bool(getattr(type(test), "__unittest_skip__", False) or getattr(method, "__unittest_skip__", False))


def build_failure(unit: TestUnit, err, label: Optional[str] = None) -> Failure:
    """Translate an ``exc_info`` tuple into a Failure record.

    The cause chain follows ``__cause__`` and unsuppressed ``__context__``
    links; its last element is the root cause.
    """
    exc_type, exc, tb = err
    causes = []
    seen = set()
    current = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        causes.append(CauseLink(type(current).__name__, str(current), _location(current.__traceback__)))
        if current.__cause__ is not None:
            current = current.__cause__
        elif not current.__suppress_context__:
            current = current.__context__
        else:
            current = None

    message = str(exc) if exc is not None else ""
    if label:
        message = f"{label} {message}".strip()

    return Failure(
        unit=unit,
        exception_type=exc_type.__name__,
        message=message,
        causes=causes,
        location=_location(tb),
        traceback="".join(traceback.format_exception(exc_type, exc, tb)),
    )


def _location(tb: Optional[TracebackType]) -> Optional[str]:
    """Describe the innermost frame of a traceback outside unittest itself."""
    location = None
    while tb is not None:
        # unittest marks its own modules with a __unittest global
        if "__unittest" not in tb.tb_frame.f_globals:
            code = tb.tb_frame.f_code
            location = f"{code.co_filename}:{tb.tb_lineno} in {code.co_name}"
        tb = tb.tb_next
    return location
