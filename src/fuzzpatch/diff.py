"""Parser for the subset of unified diffs produced by GNU ``diff -u``."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterator, Sequence, Tuple

from .errors import MalformedHeader, MalformedHunkBody, MalformedHunkHeader

__all__ = [
    "NO_NEWLINE_MARKER",
    "DiffDocument",
    "Hunk",
    "HunkLine",
    "LineTag",
    "iter_hunks",
    "parse_diff",
    "split_lines",
]

# GNU diff emits this after a line that lacks a trailing newline.
NO_NEWLINE_MARKER = "\\ No newline at end of file"

_HUNK_MARKER = re.compile(r"^@@ -(?P<old_start>\d+)(?:,\d+)?(?:\s|$)")


class LineTag(str, Enum):
    """Role of a single line inside a hunk, keyed by its diff prefix."""

    CONTEXT = " "
    REMOVED = "-"
    ADDED = "+"

    @property
    def is_anchor(self) -> bool:
        """Context and removed lines must already exist in the target."""
        return self is not LineTag.ADDED


_TAGS_BY_PREFIX = {tag.value: tag for tag in LineTag}


@dataclass(frozen=True, slots=True)
class HunkLine:
    tag: LineTag
    text: str

    def render(self) -> str:
        """Return the line as it appears in a diff, prefix included."""
        return f"{self.tag.value}{self.text}"


@dataclass(frozen=True, slots=True)
class Hunk:
    """One ``@@`` block of a diff.

    ``old_start`` is the 1-based line number the hunk claimed in the old file;
    ``header_index`` is the zero-based position of its ``@@`` line within the
    diff text and is only used for diagnostics.
    """

    old_start: int
    lines: Tuple[HunkLine, ...]
    header_index: int = 0

    @property
    def anchor_lines(self) -> Tuple[str, ...]:
        return tuple(line.text for line in self.lines if line.tag.is_anchor)

    @property
    def removed_count(self) -> int:
        return sum(1 for line in self.lines if line.tag is LineTag.REMOVED)

    @property
    def added_count(self) -> int:
        return sum(1 for line in self.lines if line.tag is LineTag.ADDED)

    @property
    def context_count(self) -> int:
        return sum(1 for line in self.lines if line.tag is LineTag.CONTEXT)

    @property
    def is_locatable(self) -> bool:
        """Return False for added-only hunks, which can never be anchored."""
        return any(line.tag.is_anchor for line in self.lines)


@dataclass(frozen=True, slots=True)
class DiffDocument:
    """Ordered hunks for a single target file."""

    old_header: str
    new_header: str
    hunks: Tuple[Hunk, ...]

    def __len__(self) -> int:
        return len(self.hunks)

    def __iter__(self) -> Iterator[Hunk]:
        return iter(self.hunks)


def split_lines(text: str) -> list[str]:
    """Split ``text`` on LF, CRLF or CR without treating other controls as breaks."""
    if not text:
        return []
    normalised = text.replace("\r\n", "\n").replace("\r", "\n")
    lines = normalised.split("\n")
    if normalised.endswith("\n"):
        lines.pop()
    return lines


def _check_header(lines: Sequence[str], source: Path | str | None) -> None:
    """Require the ``---``/``+++`` header pair and at least one line after it."""

    if len(lines) < 3:
        raise MalformedHeader(
            "Corrupt diff, expected header lines and at least one hunk",
            line_number=len(lines) or 1,
            source=source,
        )
    if not lines[0].startswith("---"):
        raise MalformedHeader("Corrupt diff, first line must start with '---'", line_number=1, source=source)
    if not lines[1].startswith("+++"):
        raise MalformedHeader("Corrupt diff, second line must start with '+++'", line_number=2, source=source)


def _parse_old_start(line: str, index: int, source: Path | str | None) -> int:
    """Return the old-file start line from an ``@@`` marker."""
    marker = line.strip()
    if not marker.startswith("@@"):
        raise MalformedHunkHeader("Corrupt diff, expected hunk marker", line_number=index + 1, source=source)
    match = _HUNK_MARKER.match(marker)
    if not match:
        raise MalformedHunkHeader("Corrupt diff, unreadable hunk start line", line_number=index + 1, source=source)
    return int(match.group("old_start"))


def _iter_from_lines(lines: Sequence[str], source: Path | str | None) -> Iterator[Hunk]:
    _check_header(lines, source)
    index = 2
    while index < len(lines) and lines[index] != NO_NEWLINE_MARKER:
        header_index = index
        old_start = _parse_old_start(lines[index], index, source)
        index += 1
        body: list[HunkLine] = []
        while index < len(lines):
            line = lines[index]
            tag = _TAGS_BY_PREFIX.get(line[:1])
            if tag is not None:
                body.append(HunkLine(tag, line[1:]))
                index += 1
                continue
            if line.startswith("@@") or line == NO_NEWLINE_MARKER:
                break
            raise MalformedHunkBody(
                "Corrupt diff, hunk line must start with ' ', '-' or '+'",
                line_number=index + 1,
                source=source,
            )
        yield Hunk(old_start=old_start, lines=tuple(body), header_index=header_index)


def iter_hunks(raw_text: str, *, source: Path | str | None = None) -> Iterator[Hunk]:
    """Yield hunks from ``raw_text`` in order, validating as it goes.

    Errors surface lazily: a malformed third hunk is only reported after the
    first two have been yielded.
    """
    return _iter_from_lines(split_lines(raw_text), source)


def parse_diff(raw_text: str, *, source: Path | str | None = None) -> DiffDocument:
    """Parse a complete diff into a :class:`DiffDocument`."""
    lines = split_lines(raw_text)
    hunks = tuple(_iter_from_lines(lines, source))
    return DiffDocument(old_header=lines[0], new_header=lines[1], hunks=hunks)
