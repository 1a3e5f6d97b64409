"""Test discovery functionality."""

import importlib
import inspect
import logging
import pkgutil
import unittest
from dataclasses import dataclass, field
from types import ModuleType
from typing import Iterable, Optional

from testpackage.storage.models import DiscoveredClass

logger = logging.getLogger(__name__)


@dataclass
class DiscoveryResult:
    """Result of test discovery."""

    classes: list[DiscoveredClass] = field(default_factory=list)
    test_classes: dict[str, type] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Check if discovery was successful."""
        return not self.errors

    @property
    def total_count(self) -> int:
        return sum(len(c.method_names) for c in self.classes)


class TestDiscovery:
    """Finds unittest test case classes in named packages.

    Only the modules directly inside each package are searched; sub-packages
    are not descended into. A name that refers to a plain module is searched
    on its own.
    """

    def __init__(self, loader: Optional[unittest.TestLoader] = None):
        self.loader = loader or unittest.TestLoader()

    def discover(self, package_names: Iterable[str]) -> DiscoveryResult:
        """Discover all test classes in the given packages."""
        result = DiscoveryResult()

        for package_name in package_names:
            try:
                package = importlib.import_module(package_name)
            except Exception as e:
                result.errors.append(f"Could not import package {package_name!r}: {e}")
                continue

            for module in self._iter_modules(package, result):
                self._collect_classes(module, result)

        result.classes.sort(key=lambda c: c.class_name)
        logger.debug(
            "Discovered %d test classes (%d tests) in %s",
            len(result.classes),
            result.total_count,
            ", ".join(package_names),
        )
        return result

    def _iter_modules(self, package: ModuleType, result: DiscoveryResult) -> Iterable[ModuleType]:
        yield package

        if not hasattr(package, "__path__"):
            return

        for module_info in pkgutil.iter_modules(package.__path__, prefix=f"{package.__name__}."):
            if module_info.ispkg:
                continue
            try:
                yield importlib.import_module(module_info.name)
            except Exception as e:
                result.errors.append(f"Could not import module {module_info.name!r}: {e}")

    def _collect_classes(self, module: ModuleType, result: DiscoveryResult) -> None:
        for _, obj in inspect.getmembers(module, inspect.isclass):
            # only classes declared in this module, not imported ones
            if obj.__module__ != module.__name__ or not issubclass(obj, unittest.TestCase):
                continue

            method_names = tuple(self.loader.getTestCaseNames(obj))
            if not method_names:
                continue

            class_name = f"{obj.__module__}.{obj.__qualname__}"
            if class_name in result.test_classes:
                continue

            result.test_classes[class_name] = obj
            result.classes.append(DiscoveredClass(class_name=class_name, method_names=method_names))
