"""Data models for test units, execution plans and run outcomes."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional


def method_key(method_name: str, class_name: str) -> str:
    """Build the history key of a test method: ``method(module.Class)``."""
    return f"{method_name}({class_name})"


def is_method_key(key: str) -> bool:
    """Check whether a history key names a method rather than a class."""
    return "(" in key


@dataclass(frozen=True)
class TestUnit:
    """A single test method of a test class."""

    class_name: str
    method_name: str

    @property
    def class_key(self) -> str:
        return self.class_name

    @property
    def key(self) -> str:
        return method_key(self.method_name, self.class_name)

    @property
    def simple_class_name(self) -> str:
        """Class name without its module path."""
        return self.class_name.rsplit(".", 1)[-1]

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class DiscoveredClass:
    """A test class found by discovery, with its test method names."""

    class_name: str
    method_names: tuple[str, ...] = ()

    def units(self) -> Iterator[TestUnit]:
        for name in self.method_names:
            yield TestUnit(self.class_name, name)


@dataclass(frozen=True)
class ClassPlan:
    """Ordered test methods of one class in an execution plan."""

    class_name: str
    method_names: tuple[str, ...]

    def units(self) -> Iterator[TestUnit]:
        for name in self.method_names:
            yield TestUnit(self.class_name, name)


@dataclass(frozen=True)
class ExecutionPlan:
    """Ordered tree of classes and methods to execute."""

    classes: tuple[ClassPlan, ...] = ()

    def units(self) -> Iterator[TestUnit]:
        """Iterate over every test unit in execution order."""
        for class_plan in self.classes:
            yield from class_plan.units()

    @property
    def test_count(self) -> int:
        return sum(len(c.method_names) for c in self.classes)

    @property
    def is_empty(self) -> bool:
        return self.test_count == 0

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {c.class_name: list(c.method_names) for c in self.classes}


@dataclass(frozen=True)
class CauseLink:
    """One exception in a failure's cause chain."""

    exception_type: str
    message: str
    location: Optional[str] = None


@dataclass
class Failure:
    """Failure detail reported by the engine for a test unit."""

    unit: TestUnit
    exception_type: str
    message: str
    causes: list[CauseLink] = field(default_factory=list)
    location: Optional[str] = None
    traceback: str = ""

    @property
    def key(self) -> str:
        return self.unit.key

    @property
    def root_cause(self) -> CauseLink:
        """The innermost exception of the cause chain."""
        if self.causes:
            return self.causes[-1]
        return CauseLink(self.exception_type, self.message, self.location)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "key": self.key,
            "exception_type": self.exception_type,
            "message": self.message,
            "causes": [
                {"exception_type": c.exception_type, "message": c.message, "location": c.location}
                for c in self.causes
            ],
            "location": self.location,
        }


class RunStatus(str, Enum):
    """Completion status of a run."""

    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass
class RunOutcome:
    """Aggregate result of one run."""

    run_count: int = 0
    ignored_count: int = 0
    failures: list[Failure] = field(default_factory=list)
    status: RunStatus = RunStatus.COMPLETED
    abort_reason: Optional[str] = None
    engine_error: Optional[str] = None
    duration_ms: int = 0

    @property
    def failure_count(self) -> int:
        """Number of units that failed at least once."""
        return len({f.key for f in self.failures})

    @property
    def passed(self) -> int:
        return self.run_count - self.failure_count

    @property
    def aborted(self) -> bool:
        return self.status == RunStatus.ABORTED

    @property
    def was_successful(self) -> bool:
        """True when the run completed, nothing failed and something passed."""
        return not self.aborted and self.failure_count == 0 and self.passed > 0

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "status": self.status.value,
            "total": self.run_count,
            "passed": self.passed,
            "failed": self.failure_count,
            "ignored": self.ignored_count,
            "duration_ms": self.duration_ms,
            "abort_reason": self.abort_reason,
            "engine_error": self.engine_error,
            "failures": [f.to_dict() for f in self.failures],
        }
