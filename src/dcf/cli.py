"""
DCF command line interface.

Commands:
- validate: Validate a document set and print diagnostics
- coverage: Show variant coverage per component
- tokens: Dump the resolved token graph
"""

from __future__ import annotations

import json
import logging
import platform
import sys
from enum import StrEnum
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table
from rich.text import Text

from ._version import __version__
from .core.errors import DCFError
from .core.ir import UNRESOLVED, Profile, Severity
from .core.project import Project, validate_project
from .core.report import ValidationReport

app = typer.Typer(
    help="DCF - semantic validation and resolution for Design Concept Format documents",
    no_args_is_help=True,
)

console = Console()

SEVERITY_STYLES: dict[Severity, str] = {
    Severity.ERROR: "bold red",
    Severity.WARNING: "yellow",
    Severity.INFO: "cyan",
}


class OutputFormat(StrEnum):
    HUMAN = "human"
    JSON = "json"


class TokenFormat(StrEnum):
    TABLE = "table"
    JSON = "json"


def version_callback(value: bool) -> None:
    """Display version and environment information."""
    if value:
        typer.echo(f"dcf {__version__}")
        typer.echo(f"Python {platform.python_version()} ({platform.python_implementation()})")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and environment information",
        ),
    ] = None,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Log engine stages (debug level)")
    ] = False,
) -> None:
    """DCF CLI main callback for global options."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


PathArgument = Annotated[
    Path,
    typer.Argument(help="Project directory, dcf.toml, or a single document file"),
]
ProfileOption = Annotated[
    Profile | None,
    typer.Option("--profile", "-p", help="Default profile for documents that declare none"),
]
NoCacheOption = Annotated[
    bool, typer.Option("--no-cache", help="Do not read or write the token cache")
]


def _run(
    path: Path,
    profile: Profile | None,
    no_cache: bool,
    workers: int | None = None,
) -> tuple[Project, ValidationReport]:
    try:
        return validate_project(
            path,
            profile=profile.value if profile else None,
            use_cache=not no_cache,
            max_workers=workers,
        )
    except DCFError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=2) from e
    except ValueError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=2) from e


def _print_human_diagnostics(report: ValidationReport) -> None:
    for diagnostic in report.diagnostics:
        line = Text()
        line.append(diagnostic.path)
        line.append(": ")
        line.append(diagnostic.severity.value, style=SEVERITY_STYLES[diagnostic.severity])
        line.append(f"[{diagnostic.rule_id}]: ", style="dim")
        line.append(diagnostic.message)
        console.print(line, soft_wrap=True)

    summary = report.summary()
    status = Text()
    if report.has_errors:
        status.append("✗ Validation failed", style="bold red")
    else:
        status.append("✓ Validation passed", style="bold green")
    status.append(
        f"  ({report.documents} documents, {summary['error']} errors, "
        f"{summary['warning']} warnings, {summary['info']} info)"
    )
    if report.excluded:
        status.append(f"  {len(report.excluded)} excluded")
    console.print(status, soft_wrap=True)


@app.command("validate")
def validate_command(
    path: PathArgument = Path("."),
    profile: ProfileOption = None,
    format: Annotated[
        OutputFormat, typer.Option("--format", "-f", help="Output format")
    ] = OutputFormat.HUMAN,
    no_cache: NoCacheOption = False,
    workers: Annotated[
        int | None, typer.Option("--workers", "-w", min=1, help="Worker threads")
    ] = None,
) -> None:
    """
    Validate a DCF document set.

    Exits with status 0 when no error diagnostics were found, 1 otherwise.
    """
    _project, report = _run(path, profile, no_cache, workers)

    if format == OutputFormat.JSON:
        typer.echo(json.dumps(report.to_dict(), indent=2))
    else:
        _print_human_diagnostics(report)

    if report.exit_code:
        raise typer.Exit(code=report.exit_code)


@app.command("coverage")
def coverage_command(
    path: PathArgument = Path("."),
    profile: ProfileOption = None,
    format: Annotated[
        OutputFormat, typer.Option("--format", "-f", help="Output format")
    ] = OutputFormat.HUMAN,
    no_cache: NoCacheOption = False,
) -> None:
    """Show the variant coverage of every component."""
    _project, report = _run(path, profile, no_cache)

    if format == OutputFormat.JSON:
        data = {name: cov.to_dict() for name, cov in report.coverage.items()}
        typer.echo(json.dumps(data, indent=2))
        return

    if not report.coverage:
        console.print("No components found.")
        return

    table = Table(title="Variant coverage")
    table.add_column("Component", style="bold")
    table.add_column("Total", justify="right")
    table.add_column("Valid", justify="right", style="green")
    table.add_column("Invalid", justify="right", style="red")
    table.add_column("Coverage", justify="right")
    for name, cov in sorted(report.coverage.items()):
        table.add_row(
            name,
            str(cov.total_combinations),
            str(cov.valid_combinations),
            str(cov.invalid_combinations),
            f"{cov.coverage:.0%}",
        )
    console.print(table)


@app.command("tokens")
def tokens_command(
    path: PathArgument = Path("."),
    profile: ProfileOption = None,
    format: Annotated[
        TokenFormat, typer.Option("--format", "-f", help="Output format")
    ] = TokenFormat.TABLE,
    no_cache: NoCacheOption = False,
) -> None:
    """Dump the resolved token graph."""
    _project, report = _run(path, profile, no_cache)
    tokens = report.model.tokens

    if format == TokenFormat.JSON:
        data = {
            "values": {p: (None if v is UNRESOLVED else v) for p, v in tokens.values.items()},
            "unresolved": tokens.unresolved,
            "layers": dict(tokens.layers),
            "merge_order": list(tokens.merge_order),
        }
        typer.echo(json.dumps(data, indent=2))
        return

    table = Table(title="Resolved tokens")
    table.add_column("Path", style="bold")
    table.add_column("Value")
    table.add_column("Layer", style="dim")
    for token_path in sorted(tokens.values):
        value = tokens.values[token_path]
        shown = Text("UNRESOLVED", style="red") if value is UNRESOLVED else Text(str(value))
        table.add_row(token_path, shown, tokens.layers.get(token_path, ""))
    console.print(table)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
