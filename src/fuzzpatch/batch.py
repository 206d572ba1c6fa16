"""Transfer a whole diff tree onto a new revision, one independent file at a time."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from .config import PatchSettings
from .corpus import (
    CorpusEntry,
    CorpusLayout,
    SentinelGuard,
    copy_added_file,
    iter_corpus_entries,
    read_target_lines,
    write_target_lines,
)
from .errors import ApplyConsistencyFault, DiffError, LocateFailure, PatchFailure, TargetMissing
from .reporting import BatchSummary, FileOutcome, OutcomeStatus, emit_event, utc_now
from .session import PatchSession

__all__ = ["patch_file", "process_entry", "run_batch"]

LOGGER = logging.getLogger(__name__)


def _failure_line(error: PatchFailure) -> int | None:
    if isinstance(error, LocateFailure):
        return error.header_index + 1
    if isinstance(error, DiffError):
        return error.line_number
    return None


def patch_file(
    diff_path: Path,
    target_path: Path,
    *,
    settings: PatchSettings,
    write: bool = True,
) -> FileOutcome:
    """Apply one diff file to one target file and describe what happened.

    Recoverable failures and consistency faults are turned into outcomes; the
    target is only written after every hunk has been applied.
    """

    base = {"diff_path": diff_path.as_posix(), "target_path": target_path.as_posix()}
    try:
        if not target_path.is_file():
            raise TargetMissing(target_path)
        diff_text = diff_path.read_text(encoding=settings.encoding)
        lines = read_target_lines(target_path, encoding=settings.encoding)
        session = PatchSession(
            diff_text,
            lines,
            diff_path=diff_path,
            target_path=target_path,
            guard=SentinelGuard(settings.sentinel),
        )
        result = session.run()
        if result.skipped:
            return FileOutcome(**base, status=OutcomeStatus.SKIPPED)
        if write:
            write_target_lines(
                target_path,
                result.lines,
                newline=settings.newline,
                bom=settings.write_bom,
            )
        return FileOutcome(
            **base,
            status=OutcomeStatus.PATCHED,
            stats=result.stats.to_dict(),
            hunks_applied=result.hunks_applied,
        )
    except PatchFailure as error:
        LOGGER.warning("%s", error)
        return FileOutcome(
            **base,
            status=OutcomeStatus.FAILED,
            error_kind=error.kind,
            message=str(error),
            hunk_line=_failure_line(error),
        )
    except ApplyConsistencyFault as error:
        LOGGER.critical("Consistency fault while patching %s: %s", target_path, error, exc_info=True)
        return FileOutcome(
            **base,
            status=OutcomeStatus.FAULT,
            error_kind=error.kind,
            message=str(error),
        )
    except (OSError, UnicodeError) as error:
        LOGGER.warning("I/O error while patching %s: %s", target_path, error)
        return FileOutcome(
            **base,
            status=OutcomeStatus.FAILED,
            error_kind="io_error",
            message=f"{target_path}: {error}",
        )


def _copy_entry(entry: CorpusEntry, *, dry_run: bool) -> FileOutcome:
    base = {"diff_path": entry.source.as_posix(), "target_path": entry.target.as_posix()}
    if dry_run:
        return FileOutcome(**base, status=OutcomeStatus.COPIED, message="dry run")
    try:
        copy_added_file(entry)
    except OSError as error:
        LOGGER.warning("Failed to copy %s: %s", entry.source, error)
        return FileOutcome(**base, status=OutcomeStatus.FAILED, error_kind="io_error", message=str(error))
    return FileOutcome(**base, status=OutcomeStatus.COPIED)


def process_entry(entry: CorpusEntry, *, settings: PatchSettings, dry_run: bool = False) -> FileOutcome:
    """Handle one file of the diff folder and emit its telemetry event."""
    if entry.kind == "diff":
        outcome = patch_file(entry.source, entry.target, settings=settings, write=not dry_run)
    else:
        outcome = _copy_entry(entry, dry_run=dry_run)
    emit_event(
        "file_processed",
        relative=entry.relative,
        status=outcome.status,
        error_kind=outcome.error_kind,
        stats=outcome.stats,
        dry_run=dry_run,
    )
    return outcome


def run_batch(
    layout: CorpusLayout,
    *,
    settings: PatchSettings,
    workers: int = 1,
    dry_run: bool = False,
) -> BatchSummary:
    """Process every entry under ``layout.diff_root``.

    Distinct targets share no state, so with ``workers > 1`` they are handled
    on a thread pool. Entries that land on the same target (an added file and
    a diff for it) stay one serial task in traversal order. Outcomes are
    returned in traversal order either way.
    """

    summary = BatchSummary(
        diff_root=layout.diff_root.as_posix(),
        current_root=layout.current_root.as_posix(),
        dry_run=dry_run,
    )
    entries = list(iter_corpus_entries(layout))
    LOGGER.info("Processing %d file(s) from %s", len(entries), layout.diff_root)

    if workers <= 1 or len(entries) <= 1:
        outcomes = [process_entry(entry, settings=settings, dry_run=dry_run) for entry in entries]
    else:
        groups: dict[Path, list[int]] = {}
        for position, entry in enumerate(entries):
            groups.setdefault(entry.target, []).append(position)

        def run_group(positions: list[int]) -> list[tuple[int, FileOutcome]]:
            return [
                (position, process_entry(entries[position], settings=settings, dry_run=dry_run))
                for position in positions
            ]

        slots: list[FileOutcome | None] = [None] * len(entries)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="fuzzpatch") as pool:
            for results in pool.map(run_group, groups.values()):
                for position, outcome in results:
                    slots[position] = outcome
        outcomes = [outcome for outcome in slots if outcome is not None]

    summary.outcomes = outcomes
    summary.finished_at = utc_now()
    emit_event("batch_finished", counts=summary.counts(), dry_run=dry_run)
    return summary
