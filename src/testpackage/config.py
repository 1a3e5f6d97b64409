"""Configuration management for TestPackage."""

import json
import logging
import os
from pathlib import Path
from typing import Mapping, Optional, Sequence

from pydantic import BaseModel, Field, field_validator

from testpackage.errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_NAMES = ["testpackage.json", ".testpackage.json"]
PACKAGE_PROPERTY = "package"
PACKAGE_ENV_VAR = "TESTPACKAGE_PACKAGE"
DEFAULT_HISTORY_FILE = ".testpackage/history.txt"
DEFAULT_REPORT_DIR = "target"


class TestPackageConfig(BaseModel):
    """Project configuration file contents."""

    package: Optional[str] = Field(default=None, description="Default test package when none is given")
    history_file: str = Field(default=DEFAULT_HISTORY_FILE, description="Failure history file")
    report_dir: str = Field(default=DEFAULT_REPORT_DIR, description="Directory for XML reports")
    xml_report: bool = Field(default=True, description="Write JUnit XML reports")

    @field_validator("history_file", "report_dir")
    @classmethod
    def validate_path(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Path cannot be empty")
        return v

    @classmethod
    def from_file(cls, path: Path | str) -> "TestPackageConfig":
        """Load configuration from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, "r") as f:
            data = json.load(f)

        return cls.model_validate(data)

    @classmethod
    def find_and_load(cls, start_dir: Path | str | None = None) -> "TestPackageConfig":
        """Find and load configuration file, searching up the directory tree."""
        if start_dir is None:
            start_dir = Path.cwd()
        else:
            start_dir = Path(start_dir)

        current = start_dir.resolve()
        for directory in [current, *current.parents]:
            for name in CONFIG_NAMES:
                config_path = directory / name
                if config_path.exists():
                    logger.debug("Using configuration file %s", config_path)
                    return cls.from_file(config_path)

        raise FileNotFoundError(
            "No configuration file found. Create testpackage.json or run 'testpackage init'"
        )

    def to_file(self, path: Path | str) -> None:
        """Save configuration to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)

    def get_absolute_paths(self, base_dir: Path | str | None = None) -> dict[str, Path]:
        """Get absolute paths for various config paths."""
        if base_dir is None:
            base_dir = Path.cwd()
        else:
            base_dir = Path(base_dir)

        return {
            "history_file": (base_dir / self.history_file).resolve(),
            "report_dir": (base_dir / self.report_dir).resolve(),
        }


class RunConfig(BaseModel):
    """Settings for a single test run."""

    package_names: list[str] = Field(default_factory=list, description="Packages to search for tests")
    fail_fast: bool = Field(default=False, description="Abort the run at the first failure")
    history_file: Path = Field(default=Path(DEFAULT_HISTORY_FILE), description="Failure history file")
    report_dir: Path = Field(default=Path(DEFAULT_REPORT_DIR), description="Directory for XML reports")
    xml_report: bool = Field(default=True, description="Write JUnit XML reports")
    verbose: bool = Field(default=False, description="Enable verbose output")

    @field_validator("package_names")
    @classmethod
    def validate_package_names(cls, v: list[str]) -> list[str]:
        names = [name.strip() for name in v]
        if any(not name for name in names):
            raise ValueError("Package names cannot be empty")
        return names


def get_default_config() -> TestPackageConfig:
    """Return a default configuration."""
    return TestPackageConfig(package="tests")


def create_example_config(output_path: Path | str) -> Path:
    """Create an example configuration file."""
    output_path = Path(output_path)
    config = get_default_config()
    config.to_file(output_path)
    return output_path


def load_properties(path: Path | str) -> dict[str, str]:
    """Read a simple ``key=value`` properties file.

    ``key: value`` is accepted too. Lines starting with ``#`` or ``!`` are
    comments.

    Raises:
        ConfigurationError: If the file cannot be read
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Could not read properties file {path.absolute()}: {e}") from e

    properties = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line[0] in "#!":
            continue

        separators = [i for i in (line.find("="), line.find(":")) if i >= 0]
        if not separators:
            properties[line] = ""
            continue

        index = min(separators)
        properties[line[:index].strip()] = line[index + 1:].strip()

    return properties


def resolve_package_names(
    cli_names: Sequence[str],
    project_config: Optional[TestPackageConfig] = None,
    properties: Optional[Mapping[str, str]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> list[str]:
    """Decide which packages to run.

    Command line arguments win, then the ``package`` setting of the project
    configuration file, then the ``package`` property from a properties
    file, then the ``TESTPACKAGE_PACKAGE`` environment variable.

    Raises:
        ConfigurationError: If no source names a package
    """
    if cli_names:
        return list(cli_names)

    if project_config is not None and project_config.package:
        return [project_config.package]

    if properties and properties.get(PACKAGE_PROPERTY):
        return [properties[PACKAGE_PROPERTY]]

    environ = os.environ if environ is None else environ
    if environ.get(PACKAGE_ENV_VAR):
        return [environ[PACKAGE_ENV_VAR]]

    raise ConfigurationError(
        "No test package given. Pass package names, set 'package' in testpackage.json, "
        f"or set {PACKAGE_ENV_VAR}"
    )
