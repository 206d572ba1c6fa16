"""Command-line entry point for transferring diffs onto a new corpus revision."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from .batch import patch_file, run_batch
from .config import DEFAULT_CONFIG_NAME, FuzzPatchConfig, load_config
from .corpus import CorpusLayout
from .diff import parse_diff
from .errors import ConfigError, CorpusError, DiffError
from .reporting import FileOutcome, OutcomeStatus, write_report

APP_HELP = "Apply unified diffs from an old corpus revision onto a new one, tolerating line drift."

EXIT_FAILED = 1
EXIT_FAULT = 2

app = typer.Typer(help=APP_HELP)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.ERROR,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _load(config: Optional[str]) -> FuzzPatchConfig:
    """Load configuration, turning errors into a clean CLI exit."""

    config_path = Path(config) if config else Path.cwd() / DEFAULT_CONFIG_NAME
    if config and not config_path.exists():
        raise typer.BadParameter(f"Config file not found: {config_path}")
    try:
        return load_config(config_path)
    except ConfigError as error:
        typer.echo(str(error), err=True)
        raise typer.Exit(code=1) from error


def _exit_code(outcomes: list[FileOutcome]) -> int:
    if any(outcome.status is OutcomeStatus.FAULT for outcome in outcomes):
        return EXIT_FAULT
    if any(outcome.status is OutcomeStatus.FAILED for outcome in outcomes):
        return EXIT_FAILED
    return 0


def _render_outcome(outcome: FileOutcome) -> None:
    typer.echo(outcome.describe(), err=not outcome.ok)


@app.command()
def apply(
    old_root: Path = typer.Argument(..., help="Old revision root containing the diff folder."),
    new_root: Path = typer.Argument(..., help="New revision root containing the current folder."),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help=f"Path to the YAML configuration (default: ./{DEFAULT_CONFIG_NAME} when present).",
    ),
    workers: Optional[int] = typer.Option(
        None,
        "--workers",
        "-j",
        min=1,
        help="Number of files to process in parallel.",
    ),
    report: Optional[Path] = typer.Option(
        None,
        "--report",
        help="Write a JSON summary of every file outcome to this path.",
    ),
    sentinel: Optional[str] = typer.Option(
        None,
        "--sentinel",
        help="Text marking a target as already patched; empty string disables the check.",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Locate and apply every hunk in memory without writing or copying anything.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Transfer every diff under OLD_ROOT onto the files under NEW_ROOT."""

    _configure_logging(verbose)
    settings = _load(config)
    patch_settings = settings.patch
    if sentinel is not None:
        patch_settings = patch_settings.model_copy(update={"sentinel": sentinel})

    try:
        layout = CorpusLayout.resolve(
            old_root,
            new_root,
            diff_dir=settings.paths.diff_dir,
            current_dir=settings.paths.current_dir,
            diff_suffix=patch_settings.diff_suffix,
        )
    except CorpusError as error:
        typer.echo(str(error), err=True)
        raise typer.Exit(code=EXIT_FAILED) from error

    typer.echo(f"Diff folder: {layout.diff_root}")
    typer.echo(f"Current folder: {layout.current_root}")

    summary = run_batch(
        layout,
        settings=patch_settings,
        workers=workers or settings.batch.workers,
        dry_run=dry_run,
    )
    for outcome in summary.outcomes:
        _render_outcome(outcome)

    report_target = report or (Path(settings.batch.report) if settings.batch.report else None)
    if report_target is not None:
        written = write_report(summary, report_target)
        typer.echo(f"Report written to {written}")

    typer.echo(summary.format_summary())
    code = _exit_code(summary.outcomes)
    if code:
        raise typer.Exit(code=code)


@app.command()
def check(
    diff_file: Path = typer.Argument(..., help="Unified diff to apply."),
    target_file: Path = typer.Argument(..., help="File the diff modifies."),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to the YAML configuration."),
    write: bool = typer.Option(False, "--write/--no-write", help="Write the patched file back to disk."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Patch a single file, by default without writing the result."""

    _configure_logging(verbose)
    settings = _load(config)
    outcome = patch_file(diff_file, target_file, settings=settings.patch, write=write)
    _render_outcome(outcome)
    if outcome.status is OutcomeStatus.PATCHED and not write:
        typer.echo("Not written (use --write to update the file).")
    code = _exit_code([outcome])
    if code:
        raise typer.Exit(code=code)


@app.command()
def inspect(
    diff_file: Path = typer.Argument(..., help="Unified diff to parse."),
) -> None:
    """List the hunks of a diff file."""

    try:
        text = diff_file.read_text(encoding="utf-8-sig")
    except OSError as error:
        typer.echo(f"Unable to read {diff_file}: {error}", err=True)
        raise typer.Exit(code=EXIT_FAILED) from error
    try:
        document = parse_diff(text, source=diff_file)
    except DiffError as error:
        typer.echo(str(error), err=True)
        raise typer.Exit(code=EXIT_FAILED) from error

    typer.echo(f"{diff_file}: {len(document)} hunk(s)")
    for number, hunk in enumerate(document, start=1):
        flag = "" if hunk.is_locatable else "  (added lines only, cannot be located)"
        typer.echo(
            f"  #{number} old line {hunk.old_start}: "
            f"{hunk.context_count} context, {hunk.removed_count} removed, {hunk.added_count} added{flag}"
        )


if __name__ == "__main__":
    app()
