"""Apply one diff to one file's lines, hunk by hunk, in diff order."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence, Tuple

from .diff import iter_hunks
from .errors import LocateFailure
from .target import PatchStats, PatchTarget

__all__ = ["PatchSession", "SessionResult", "patch_lines"]

LOGGER = logging.getLogger(__name__)

AlreadyPatchedGuard = Callable[[Sequence[str]], bool]


@dataclass(frozen=True, slots=True)
class SessionResult:
    """Final buffer and counters of a session that ran to completion."""

    lines: Tuple[str, ...]
    stats: PatchStats
    hunks_applied: int = 0
    skipped: bool = False


class PatchSession:
    """Drive the parser, locator and applier for a single file.

    The session works on its own copy of ``lines``. If any hunk cannot be
    located, :class:`LocateFailure` propagates and the caller's data is left
    untouched; the same holds for :class:`ApplyConsistencyFault`. Only a
    normal return hands back content that is safe to write.
    """

    def __init__(
        self,
        diff_text: str,
        lines: Sequence[str],
        *,
        diff_path: Path | str | None = None,
        target_path: Path | str | None = None,
        guard: AlreadyPatchedGuard | None = None,
    ) -> None:
        self.diff_text = diff_text
        self.original = tuple(lines)
        self.diff_path = diff_path
        self.target_path = target_path
        self.guard = guard
        self.target: PatchTarget | None = None

    def run(self) -> SessionResult:
        if self.guard is not None and self.guard(self.original):
            LOGGER.info("File has already been updated once: %s", self.target_path or "<buffer>")
            return SessionResult(lines=self.original, stats=PatchStats(), skipped=True)

        target = PatchTarget.from_lines(self.original)
        self.target = target
        applied = 0
        for hunk in iter_hunks(self.diff_text, source=self.diff_path):
            index = target.locate(hunk)
            if index is None:
                raise LocateFailure(
                    old_start=hunk.old_start,
                    header_index=hunk.header_index,
                    target=self.target_path,
                    diff=self.diff_path,
                )
            target.apply(hunk, index)
            applied += 1

        stats = target.stats
        LOGGER.debug(
            "Applied %d hunk(s) to %s: removed=%d added=%d displacement=%d",
            applied,
            self.target_path or "<buffer>",
            stats.lines_removed,
            stats.lines_added,
            stats.displacement_factor,
        )
        return SessionResult(lines=tuple(target.lines), stats=stats, hunks_applied=applied)


def patch_lines(
    diff_text: str,
    lines: Sequence[str],
    *,
    guard: AlreadyPatchedGuard | None = None,
) -> SessionResult:
    """Apply ``diff_text`` to ``lines`` and return the outcome."""
    return PatchSession(diff_text, lines, guard=guard).run()
