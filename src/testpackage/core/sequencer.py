"""Test sequencing based on failure history."""

import math
from typing import Iterable, Mapping

from testpackage.storage.models import ClassPlan, DiscoveredClass, ExecutionPlan, method_key


class TestSequencer:
    """Orders test classes and methods so that recent failures run first.

    Classes are sorted by ``(runs since last failure, class name)`` and the
    methods of each class by ``(runs since last failure, method name)``.
    Keys with no history sort after every key that has one.
    """

    def order(
        self,
        discovered: Iterable[DiscoveredClass],
        runs_since_last_failure: Mapping[str, int],
    ) -> ExecutionPlan:
        """Build the execution plan.

        Args:
            discovered: Test classes with their method names
            runs_since_last_failure: History counters keyed by test key

        Returns:
            ExecutionPlan with classes and methods in execution order
        """
        grouped: dict[str, set[str]] = {}
        for discovered_class in discovered:
            grouped.setdefault(discovered_class.class_name, set()).update(discovered_class.method_names)

        def rank(key: str) -> float:
            return runs_since_last_failure.get(key, math.inf)

        class_names = sorted((name for name in grouped if grouped[name]), key=lambda name: (rank(name), name))

        return ExecutionPlan(
            classes=tuple(
                ClassPlan(
                    class_name=class_name,
                    method_names=tuple(
                        sorted(
                            grouped[class_name],
                            key=lambda method: (rank(method_key(method, class_name)), method),
                        )
                    ),
                )
                for class_name in class_names
            )
        )
