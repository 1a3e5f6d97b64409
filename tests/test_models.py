"""Tests for the storage models."""

from testpackage.storage.models import (
    CauseLink,
    ClassPlan,
    DiscoveredClass,
    ExecutionPlan,
    Failure,
    RunOutcome,
    RunStatus,
    TestUnit,
    is_method_key,
    method_key,
)


class TestKeys:
    """Tests for test key helpers."""

    def test_method_key(self):
        assert method_key("testTrue", "pkg.SimpleTest") == "testTrue(pkg.SimpleTest)"

    def test_is_method_key(self):
        assert is_method_key("testTrue(pkg.SimpleTest)")
        assert not is_method_key("pkg.SimpleTest")


class TestTestUnit:
    """Tests for TestUnit."""

    def test_keys(self):
        unit = TestUnit("pkg.mod.SimpleTest", "testTrue")
        assert unit.class_key == "pkg.mod.SimpleTest"
        assert unit.key == "testTrue(pkg.mod.SimpleTest)"
        assert unit.simple_class_name == "SimpleTest"
        assert str(unit) == unit.key

    def test_units_are_hashable(self):
        assert len({TestUnit("A", "t"), TestUnit("A", "t")}) == 1


class TestExecutionPlan:
    """Tests for ExecutionPlan."""

    def test_units_in_order(self):
        plan = ExecutionPlan(classes=(ClassPlan("B", ("t2", "t1")), ClassPlan("A", ("t3",))))

        assert [u.key for u in plan.units()] == ["t2(B)", "t1(B)", "t3(A)"]
        assert plan.test_count == 3
        assert not plan.is_empty
        assert plan.to_dict() == {"B": ["t2", "t1"], "A": ["t3"]}

    def test_empty_plan(self):
        assert ExecutionPlan().is_empty

    def test_discovered_class_units(self):
        discovered = DiscoveredClass("A", ("t1", "t2"))
        assert [u.key for u in discovered.units()] == ["t1(A)", "t2(A)"]


class TestFailure:
    """Tests for Failure."""

    def test_root_cause_without_chain(self):
        failure = Failure(unit=TestUnit("A", "t"), exception_type="ValueError", message="bad", location="a.py:1 in t")

        assert failure.root_cause == CauseLink("ValueError", "bad", "a.py:1 in t")
        assert failure.key == "t(A)"

    def test_root_cause_is_last_link(self):
        failure = Failure(
            unit=TestUnit("A", "t"),
            exception_type="RuntimeError",
            message="outer",
            causes=[CauseLink("RuntimeError", "outer"), CauseLink("OSError", "inner")],
        )

        assert failure.root_cause.exception_type == "OSError"
        assert failure.to_dict()["causes"][1]["message"] == "inner"


class TestRunOutcome:
    """Tests for RunOutcome."""

    def test_default_values(self):
        outcome = RunOutcome()
        assert outcome.run_count == 0
        assert outcome.status == RunStatus.COMPLETED
        assert not outcome.was_successful

    def test_successful(self):
        assert RunOutcome(run_count=2).was_successful

    def test_failures_counted_per_unit(self):
        unit = TestUnit("A", "t")
        failures = [
            Failure(unit=unit, exception_type="AssertionError", message="first subtest"),
            Failure(unit=unit, exception_type="AssertionError", message="second subtest"),
        ]
        outcome = RunOutcome(run_count=3, failures=failures)

        assert outcome.failure_count == 1
        assert outcome.passed == 2
        assert not outcome.was_successful

    def test_aborted_is_not_successful(self):
        outcome = RunOutcome(run_count=1, status=RunStatus.ABORTED)
        assert outcome.aborted
        assert not outcome.was_successful

    def test_to_dict(self):
        d = RunOutcome(run_count=4, ignored_count=1).to_dict()
        assert d["status"] == "completed"
        assert d["total"] == 4
        assert d["passed"] == 4
        assert d["ignored"] == 1
