"""Tests for the run coordinator and fail-fast controller."""

import pytest

from testpackage.config import RunConfig
from testpackage.core.coordinator import Cancellation, RunCoordinator
from testpackage.core.engine import TestEngine
from testpackage.errors import ConfigurationError
from testpackage.listeners.base import RunListener
from testpackage.listeners.failfast import FailFastController
from testpackage.listeners.history import HistoryRecorder
from testpackage.storage.history import HistoryStore
from testpackage.storage.models import ClassPlan, ExecutionPlan, Failure, RunStatus, TestUnit


class ScriptedEngine(TestEngine):
    """Engine that plays back scripted outcomes instead of running tests."""

    def __init__(self, failing=(), skipped=(), crash_on=None):
        self.failing = set(failing)
        self.skipped = set(skipped)
        self.crash_on = crash_on

    def discover(self, package_names):
        return []

    def execute(self, plan, sink):
        for unit in plan.units():
            if sink.should_stop():
                break
            if unit.key in self.skipped:
                sink.test_ignored(unit, "disabled")
                continue
            sink.test_started(unit)
            if unit.key == self.crash_on:
                raise RuntimeError("engine crashed")
            if unit.key in self.failing:
                sink.test_failure(unit, Failure(unit=unit, exception_type="AssertionError", message="boom"))
            sink.test_finished(unit)


class RecordingListener(RunListener):
    """Listener that logs every event it receives."""

    def __init__(self, name="recorder", log=None):
        self.name = name
        self.log = [] if log is None else log
        self.outcome = None

    def on_run_started(self, plan):
        self.log.append((self.name, "run_started"))

    def on_test_started(self, unit):
        self.log.append((self.name, "started", unit.key))

    def on_test_failure(self, unit, failure):
        self.log.append((self.name, "failure", unit.key))

    def on_test_finished(self, unit):
        self.log.append((self.name, "finished", unit.key))

    def on_test_ignored(self, unit, reason):
        self.log.append((self.name, "ignored", unit.key))

    def on_run_finished(self, outcome):
        self.outcome = outcome
        self.log.append((self.name, "run_finished"))


@pytest.fixture
def plan():
    return ExecutionPlan(
        classes=(
            ClassPlan("pkg.ATest", ("test_one", "test_two")),
            ClassPlan("pkg.BTest", ("test_three",)),
        )
    )


def make_coordinator(engine, fail_fast=False):
    return RunCoordinator(RunConfig(package_names=["pkg"], fail_fast=fail_fast), engine)


class TestRunCoordinator:
    """Tests for RunCoordinator."""

    def test_events_in_order(self, plan):
        """Test that each unit is bracketed by started and finished."""
        coordinator = make_coordinator(ScriptedEngine(failing={"test_two(pkg.ATest)"}))
        listener = RecordingListener()
        coordinator.add_listener(listener)

        outcome = coordinator.run(plan)

        assert [event[1:] for event in listener.log] == [
            ("run_started",),
            ("started", "test_one(pkg.ATest)"),
            ("finished", "test_one(pkg.ATest)"),
            ("started", "test_two(pkg.ATest)"),
            ("failure", "test_two(pkg.ATest)"),
            ("finished", "test_two(pkg.ATest)"),
            ("started", "test_three(pkg.BTest)"),
            ("finished", "test_three(pkg.BTest)"),
            ("run_finished",),
        ]
        assert outcome.status == RunStatus.COMPLETED
        assert outcome.run_count == 3
        assert outcome.failure_count == 1
        assert outcome.passed == 2
        assert not outcome.was_successful
        assert listener.outcome is outcome

    def test_listeners_notified_in_registration_order(self, plan):
        """Test that every event reaches listeners in the order they were added."""
        log = []
        coordinator = make_coordinator(ScriptedEngine())
        coordinator.add_listener(RecordingListener("first", log))
        coordinator.add_listener(RecordingListener("second", log))

        coordinator.run(plan)

        names = [event[0] for event in log]
        assert names == ["first", "second"] * (len(log) // 2)

    def test_successful_run(self, plan):
        """Test a run where everything passes."""
        outcome = make_coordinator(ScriptedEngine()).run(plan)

        assert outcome.was_successful
        assert outcome.passed == 3
        assert outcome.failures == []

    def test_ignored_units_are_counted(self, plan):
        """Test that skipped units are counted apart from run units."""
        coordinator = make_coordinator(ScriptedEngine(skipped={"test_one(pkg.ATest)"}))
        listener = RecordingListener()
        coordinator.add_listener(listener)

        outcome = coordinator.run(plan)

        assert outcome.ignored_count == 1
        assert outcome.run_count == 2
        assert ("recorder", "ignored", "test_one(pkg.ATest)") in listener.log

    def test_empty_plan_is_a_configuration_error(self):
        """Test that a plan without units cannot be run."""
        coordinator = make_coordinator(ScriptedEngine())

        with pytest.raises(ConfigurationError):
            coordinator.run(ExecutionPlan())

    def test_engine_crash_aborts_run(self, plan):
        """Test that an engine error gives an aborted outcome instead of raising."""
        coordinator = make_coordinator(ScriptedEngine(crash_on="test_two(pkg.ATest)"))
        listener = RecordingListener()
        coordinator.add_listener(listener)

        outcome = coordinator.run(plan)

        assert outcome.status == RunStatus.ABORTED
        assert "engine crashed" in outcome.engine_error
        assert listener.log[-1] == ("recorder", "run_finished")
        assert not outcome.was_successful

    def test_abort_requested_by_listener(self, plan):
        """Test that cancellation stops the run at the next unit boundary."""
        coordinator = make_coordinator(ScriptedEngine())

        class StopAfterFirst(RunListener):
            def on_test_finished(self, unit):
                coordinator.cancellation.request("enough")

        listener = RecordingListener()
        coordinator.add_listener(StopAfterFirst())
        coordinator.add_listener(listener)

        outcome = coordinator.run(plan)

        started = [event[2] for event in listener.log if event[1] == "started"]
        assert started == ["test_one(pkg.ATest)"]
        assert outcome.status == RunStatus.ABORTED
        assert outcome.abort_reason == "enough"

    def test_sink_methods_require_a_run(self):
        """Test that engine callbacks outside a run are rejected."""
        coordinator = make_coordinator(ScriptedEngine())

        with pytest.raises(RuntimeError):
            coordinator.test_ignored(None, "no run")


class TestCancellation:
    """Tests for Cancellation."""

    def test_first_reason_wins(self):
        cancellation = Cancellation()
        assert not cancellation.requested

        cancellation.request("first")
        cancellation.request("second")

        assert cancellation.requested
        assert cancellation.reason == "first"


class TestFailFastController:
    """Tests for FailFastController."""

    def test_first_failure_aborts_run(self, plan, tmp_path):
        """Test that fail-fast stops after the first failing unit and history is kept."""
        coordinator = make_coordinator(ScriptedEngine(failing={"test_one(pkg.ATest)"}), fail_fast=True)
        store = HistoryStore(tmp_path / "history.txt")
        recorder = HistoryRecorder(store)
        listener = RecordingListener()
        fail_fast = FailFastController(coordinator.cancellation)
        coordinator.add_listener(listener)
        coordinator.add_listener(recorder)
        coordinator.add_listener(fail_fast)

        with recorder.recording():
            outcome = coordinator.run(plan)

        started = [event[2] for event in listener.log if event[1] == "started"]
        assert started == ["test_one(pkg.ATest)"]
        assert ("recorder", "finished", "test_one(pkg.ATest)") in listener.log
        assert outcome.status == RunStatus.ABORTED
        assert outcome.failure_count == 1
        assert fail_fast.triggered_by.key == "test_one(pkg.ATest)"
        assert HistoryStore.load(tmp_path / "history.txt").runs_since_last_failure == {
            "pkg.ATest": 0,
            "test_one(pkg.ATest)": 0,
        }

    def test_later_failures_ignored(self):
        """Test that only the first failure triggers fail-fast."""
        cancellation = Cancellation()
        controller = FailFastController(cancellation)
        first = TestUnit("T", "test_a")
        second = TestUnit("T", "test_b")

        controller.on_test_failure(first, Failure(unit=first, exception_type="AssertionError", message=""))
        controller.on_test_failure(second, Failure(unit=second, exception_type="AssertionError", message=""))

        assert controller.triggered_by.unit == first
        assert cancellation.reason == "fail-fast triggered by test_a(T)"

    def test_passing_run_not_aborted(self, plan):
        """Test that fail-fast does nothing when nothing fails."""
        coordinator = make_coordinator(ScriptedEngine(), fail_fast=True)
        coordinator.add_listener(FailFastController(coordinator.cancellation))

        outcome = coordinator.run(plan)

        assert outcome.status == RunStatus.COMPLETED
        assert outcome.run_count == 3
