"""Command-line interface for TestPackage."""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from testpackage import __version__
from testpackage.config import (
    RunConfig,
    TestPackageConfig,
    create_example_config,
    load_properties,
    resolve_package_names,
)
from testpackage.core.runner import EXIT_FAILED, EXIT_USAGE, TestPackageRunner
from testpackage.errors import TestPackageError
from testpackage.storage.history import HistoryStore
from testpackage.storage.models import is_method_key

console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)

logger = logging.getLogger(__name__)


def print_banner() -> None:
    """Print the TestPackage banner."""
    console.print(
        Panel.fit(
            "[bold blue]TestPackage[/bold blue] - recent failures first",
            subtitle=f"v{__version__}",
        )
    )


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _load_project_config(config_path: Optional[str]) -> tuple[Optional[TestPackageConfig], Path]:
    """Load the project configuration file, if there is one.

    An explicit ``--config`` path must exist; otherwise a missing file just
    means defaults.
    """
    if config_path:
        return TestPackageConfig.from_file(config_path), Path(config_path).resolve().parent

    try:
        config = TestPackageConfig.find_and_load()
    except FileNotFoundError:
        logger.debug("No configuration file found, using defaults")
        return None, Path.cwd()
    return config, Path.cwd()


@click.group()
@click.version_option(version=__version__, prog_name="testpackage")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=False),
    help="Path to configuration file (default: testpackage.json)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def main(ctx: click.Context, config: Optional[str], verbose: bool) -> None:
    """TestPackage - run unittest packages, most recent failures first.

    Keeps a history of test failures in .testpackage/history.txt and uses it
    to order the next run.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config
    _configure_logging(verbose)


@main.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default="testpackage.json",
    help="Output path for configuration file",
)
@click.option("--force", "-f", is_flag=True, help="Overwrite existing configuration")
@click.pass_context
def init(ctx: click.Context, output: str, force: bool) -> None:
    """Initialize a new TestPackage configuration file."""
    print_banner()

    output_path = Path(output)
    if output_path.exists() and not force:
        console.print(f"[yellow]Configuration file already exists:[/yellow] {output_path}")
        console.print("Use --force to overwrite")
        sys.exit(1)

    try:
        create_example_config(output_path)
        console.print(f"[green]Created configuration file:[/green] {output_path}")
        console.print("\nNext steps:")
        console.print("  1. Set 'package' to the package holding your tests")
        console.print("  2. Run [bold]testpackage run[/bold] to execute tests")
    except OSError as e:
        console.print(f"[red]Error creating configuration:[/red] {e}")
        sys.exit(1)


@main.command()
@click.option(
    "--failfast",
    "-ff",
    "fail_fast",
    is_flag=True,
    help="Fail Fast: abort the test run at the first test failure",
)
@click.option(
    "--propertiesfile",
    "-P",
    "properties_file",
    type=click.Path(dir_okay=False),
    help="Properties file providing settings such as 'package'",
)
@click.option(
    "--report-dir",
    type=click.Path(file_okay=False),
    help="Directory for JUnit XML reports (default: target)",
)
@click.option("--xml/--no-xml", "xml_report", default=None, help="Write JUnit XML reports")
@click.argument("packages", nargs=-1)
@click.pass_context
def run(
    ctx: click.Context,
    fail_fast: bool,
    properties_file: Optional[str],
    report_dir: Optional[str],
    xml_report: Optional[bool],
    packages: tuple[str, ...],
) -> None:
    """Execute the tests in PACKAGES, most recent failures first."""
    print_banner()

    verbose = ctx.obj.get("verbose", False)

    try:
        project_config, base_dir = _load_project_config(ctx.obj.get("config_path"))
        properties = load_properties(properties_file) if properties_file else {}
        package_names = resolve_package_names(packages, project_config, properties)

        paths = (project_config or TestPackageConfig()).get_absolute_paths(base_dir)
        run_config = RunConfig(
            package_names=package_names,
            fail_fast=fail_fast,
            history_file=paths["history_file"],
            report_dir=Path(report_dir) if report_dir else paths["report_dir"],
            xml_report=xml_report if xml_report is not None else (project_config or TestPackageConfig()).xml_report,
            verbose=verbose,
        )
    except (TestPackageError, FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(EXIT_FAILED)

    if verbose:
        console.print(f"[dim]Packages:[/dim] {', '.join(run_config.package_names)}")
        console.print(f"[dim]History file:[/dim] {run_config.history_file}")

    try:
        report = TestPackageRunner(run_config, console=console).run()
    except TestPackageError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(EXIT_FAILED)

    if report.history_error is not None:
        console.print(f"[red]Error saving test history:[/red] {report.history_error}")

    if report.outcome.was_successful:
        console.print("[green]OK[/green]")
    else:
        console.print("[red]FAILED[/red]")

    sys.exit(report.exit_code)


@main.command()
@click.option("--limit", "-n", type=int, default=20, help="Number of entries to show")
@click.pass_context
def history(ctx: click.Context, limit: int) -> None:
    """Show the stored failure history, most recent failures first."""
    print_banner()

    try:
        project_config, base_dir = _load_project_config(ctx.obj.get("config_path"))
        paths = (project_config or TestPackageConfig()).get_absolute_paths(base_dir)
        store = HistoryStore.load(paths["history_file"])
    except (TestPackageError, FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(EXIT_FAILED)

    if not len(store):
        console.print("[yellow]No test history found[/yellow]")
        console.print("Run [bold]testpackage run[/bold] first to execute tests")
        return

    entries = sorted(store.runs_since_last_failure.items(), key=lambda item: (item[1], item[0]))

    table = Table(title="Test Failure History")
    table.add_column("Test", style="cyan")
    table.add_column("Kind", style="dim")
    table.add_column("Runs since last failure", justify="right")

    for key, count in entries[:limit]:
        style = "red" if count == 0 else ""
        table.add_row(key, "method" if is_method_key(key) else "class", f"[{style}]{count}[/{style}]" if style else str(count))

    console.print(table)
    if len(entries) > limit:
        console.print(f"  ... and {len(entries) - limit} more")


def cli(args: Optional[list[str]] = None) -> int:
    """Console script entry point.

    Command-line parse errors print usage to stderr and return -1.
    """
    try:
        result = main.main(args=args, prog_name="testpackage", standalone_mode=False)
    except click.UsageError as e:
        e.show(file=sys.stderr)
        click.echo("  Example: testpackage run --failfast myproject.tests", err=True)
        return EXIT_USAGE
    except click.Abort:
        click.echo("Aborted!", err=True)
        return EXIT_FAILED
    return result if isinstance(result, int) else 0


if __name__ == "__main__":
    sys.exit(cli())
