"""Mutable line buffer for one file plus the drift state used to place hunks."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Literal

from .diff import Hunk, LineTag
from .errors import ApplyConsistencyFault

__all__ = ["LocateTrace", "PatchStats", "PatchTarget"]

LOGGER = logging.getLogger(__name__)

SearchDirection = Literal["forward", "backward"]


@dataclass(frozen=True, slots=True)
class PatchStats:
    """Counters reported for a patched file."""

    lines_removed: int = 0
    lines_added: int = 0
    displacement_factor: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "lines_removed": self.lines_removed,
            "lines_added": self.lines_added,
            "displacement_factor": self.displacement_factor,
        }


@dataclass(frozen=True, slots=True)
class LocateTrace:
    """Bookkeeping for the most recent :meth:`PatchTarget.locate` call."""

    guess: int
    index: int | None
    direction: SearchDirection | None
    probes: int
    fence_index: int


@dataclass(slots=True)
class PatchTarget:
    """The evolving content of one file while a diff is applied to it.

    Hunks are located relative to a guess derived from their recorded old-file
    line number, corrected by the net number of lines earlier hunks added or
    removed. The search runs forward first (new revisions tend to gain lines)
    and then backward, but never back to or past ``fence_index``: the last
    line touched by the previous hunk, so a later hunk cannot anchor inside
    text that has already been rewritten.
    """

    lines: list[str]
    lines_removed: int = 0
    lines_added: int = 0
    displacement_factor: int = 0
    fence_index: int = -1
    last_trace: LocateTrace | None = field(default=None, repr=False)

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> PatchTarget:
        return cls(lines=list(lines))

    @property
    def stats(self) -> PatchStats:
        return PatchStats(
            lines_removed=self.lines_removed,
            lines_added=self.lines_added,
            displacement_factor=self.displacement_factor,
        )

    def guess_index(self, hunk: Hunk) -> int:
        """Zero-based position the hunk would occupy if only our own edits shifted it."""
        return hunk.old_start - 1 - self.lines_removed + self.lines_added

    def matches(self, hunk: Hunk, index: int) -> bool:
        """Return True when every context/removed line of ``hunk`` sits at ``index`` onwards.

        Added lines are ignored. At least one context or removed line must be
        compared, so a hunk made only of additions never matches.
        """
        if index < 0:
            return False
        cursor = index
        checked = False
        for line in hunk.lines:
            if line.tag is LineTag.ADDED:
                continue
            if cursor >= len(self.lines) or self.lines[cursor] != line.text:
                return False
            checked = True
            cursor += 1
        return checked

    def locate(self, hunk: Hunk) -> int | None:
        """Find the buffer index where ``hunk`` applies, or ``None``."""

        guess = self.guess_index(hunk)
        probes = 0
        found: int | None = None
        direction: SearchDirection | None = None

        for index in range(max(guess, 0), len(self.lines)):
            probes += 1
            if self.matches(hunk, index):
                found, direction = index, "forward"
                break

        if found is None:
            for index in range(guess - 1, self.fence_index, -1):
                probes += 1
                if self.matches(hunk, index):
                    found, direction = index, "backward"
                    break

        self.last_trace = LocateTrace(
            guess=guess,
            index=found,
            direction=direction,
            probes=probes,
            fence_index=self.fence_index,
        )
        if found is None:
            LOGGER.debug(
                "No anchor for hunk at old line %d (guess %d, fence %d, %d probes)",
                hunk.old_start,
                guess,
                self.fence_index,
                probes,
            )
            return None

        self.displacement_factor += abs(guess - found)
        LOGGER.debug(
            "Hunk at old line %d anchored at index %d via %s search (guess %d)",
            hunk.old_start,
            found,
            direction,
            guess,
        )
        return found

    def _verify(self, cursor: int, expected: str) -> None:
        actual = self.lines[cursor] if 0 <= cursor < len(self.lines) else None
        if actual != expected:
            raise ApplyConsistencyFault(
                f"Located hunk does not match buffer at index {cursor}",
                index=cursor,
                expected=expected,
                actual=actual,
            )

    def apply(self, hunk: Hunk, index: int) -> None:
        """Rewrite the buffer at ``index`` using the hunk's tagged lines.

        The context and removed lines are checked again against the buffer; a
        mismatch means :meth:`locate` and this method disagree and raises
        :class:`ApplyConsistencyFault`.
        """
        cursor = index
        for line in hunk.lines:
            if line.tag is LineTag.CONTEXT:
                self._verify(cursor, line.text)
                cursor += 1
            elif line.tag is LineTag.REMOVED:
                self._verify(cursor, line.text)
                del self.lines[cursor]
                self.lines_removed += 1
            else:
                self.lines.insert(cursor, line.text)
                cursor += 1
                self.lines_added += 1
        # Out-of-order hunks may anchor below the fence on the forward scan.
        self.fence_index = max(self.fence_index, cursor - 1)
