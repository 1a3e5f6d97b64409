"""Shared fixtures for TestPackage tests."""

from pathlib import Path

import pytest

FIXTURES_DIR = Path(__file__).parent / "fixtures"

# fixture packages hold unittest cases that are run by the tests, not by pytest
collect_ignore = ["fixtures"]


@pytest.fixture(autouse=True)
def fixture_packages(monkeypatch):
    """Make the runnertest fixture packages importable."""
    monkeypatch.syspath_prepend(str(FIXTURES_DIR))


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    """Run inside an empty temporary working directory."""
    monkeypatch.chdir(tmp_path)
    return tmp_path
