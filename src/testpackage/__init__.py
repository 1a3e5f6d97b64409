"""
TestPackage - failure-prioritizing test orchestrator.

This package provides tools to:
- Discover unittest test cases in named packages
- Run recently-failing tests first, based on a local failure history
- Abort on first failure (fail-fast) when asked
- Generate colored console output and JUnit-style XML reports
"""

__version__ = "0.1.0"
__author__ = "TestPackage Team"
