"""Filesystem collaborators around the patch engine.

Everything here is plain I/O: locating diff files in the old revision,
mapping them to targets in the new revision, copying files that were added
outright, reading and writing targets, and the already-patched check.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Literal, Sequence

from .diff import split_lines
from .errors import CorpusError

__all__ = [
    "CorpusEntry",
    "CorpusLayout",
    "SentinelGuard",
    "copy_added_file",
    "iter_corpus_entries",
    "map_target_path",
    "read_target_lines",
    "target_for_diff",
    "write_target_lines",
]

DEFAULT_DIFF_SUFFIX = ".diff"

EntryKind = Literal["diff", "added"]


@dataclass(frozen=True, slots=True)
class CorpusLayout:
    """Resolved folders for a transfer between two revisions."""

    diff_root: Path
    current_root: Path
    diff_suffix: str = DEFAULT_DIFF_SUFFIX

    @classmethod
    def resolve(
        cls,
        old_root: Path | str,
        new_root: Path | str,
        *,
        diff_dir: str = "Diff",
        current_dir: str = "Current",
        diff_suffix: str = DEFAULT_DIFF_SUFFIX,
    ) -> CorpusLayout:
        """Locate ``old_root/diff_dir`` and ``new_root/current_dir``, both of which must exist."""

        resolved: list[Path] = []
        for base in (Path(old_root), Path(new_root)):
            if not base.is_dir():
                raise CorpusError(f"Directory does not exist: {base}", details={"path": str(base)})
            resolved.append(base.resolve())
        diff_root = resolved[0] / diff_dir
        current_root = resolved[1] / current_dir
        for folder in (diff_root, current_root):
            if not folder.is_dir():
                raise CorpusError(f"Directory does not exist: {folder}", details={"path": str(folder)})
        return cls(diff_root=diff_root, current_root=current_root, diff_suffix=diff_suffix)


@dataclass(frozen=True, slots=True)
class CorpusEntry:
    """A file found under the diff folder and where it lands in the new revision."""

    kind: EntryKind
    source: Path
    relative: Path
    target: Path


def map_target_path(old_root: Path | str, new_root: Path | str, relative: Path | str) -> Path:
    """Translate a path relative to ``old_root`` into the matching path under ``new_root``."""
    relative_path = Path(relative)
    if relative_path.is_absolute():
        relative_path = relative_path.relative_to(Path(old_root))
    return Path(new_root) / relative_path


def target_for_diff(relative: Path, diff_suffix: str = DEFAULT_DIFF_SUFFIX) -> Path:
    """Strip the diff suffix: ``src/Foo.cs.diff`` becomes ``src/Foo.cs``."""
    name = relative.name
    if not name.lower().endswith(diff_suffix.lower()):
        return relative
    return relative.with_name(name[: len(name) - len(diff_suffix)])


def _is_diff(path: Path, diff_suffix: str) -> bool:
    return path.name.lower().endswith(diff_suffix.lower()) and len(path.name) > len(diff_suffix)


def _walk(folder: Path) -> Iterator[Path]:
    children = sorted(folder.iterdir(), key=lambda item: item.name)
    for child in children:
        if child.is_file():
            yield child
    for child in children:
        if child.is_dir():
            yield from _walk(child)


def iter_corpus_entries(layout: CorpusLayout) -> Iterator[CorpusEntry]:
    """Yield every file under the diff folder, files of a folder before its sub-folders."""
    for source in _walk(layout.diff_root):
        relative = source.relative_to(layout.diff_root)
        if _is_diff(source, layout.diff_suffix):
            target_relative = target_for_diff(relative, layout.diff_suffix)
            kind: EntryKind = "diff"
        else:
            target_relative = relative
            kind = "added"
        yield CorpusEntry(
            kind=kind,
            source=source,
            relative=relative,
            target=map_target_path(layout.diff_root, layout.current_root, target_relative),
        )


def copy_added_file(entry: CorpusEntry) -> Path:
    """Copy a file that only exists in the modified revision, overwriting the target."""
    entry.target.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(entry.source, entry.target)
    return entry.target


def read_target_lines(path: Path | str, *, encoding: str = "utf-8-sig") -> list[str]:
    """Read ``path`` as text lines; ``utf-8-sig`` drops a leading BOM when present."""
    return split_lines(Path(path).read_text(encoding=encoding))


def write_target_lines(
    path: Path | str,
    lines: Sequence[str],
    *,
    newline: str = "\n",
    bom: bool = True,
) -> None:
    """Write ``lines`` as UTF-8, each followed by ``newline``.

    The content is staged in a sibling temporary file and moved over ``path``
    so an interrupted write never leaves a half-written target. An existing
    target keeps its permission bits.
    """

    destination = Path(path)
    encoding = "utf-8-sig" if bom else "utf-8"
    payload = "".join(f"{line}{newline}" for line in lines)
    handle = tempfile.NamedTemporaryFile(
        "w",
        encoding=encoding,
        newline="",
        dir=destination.parent,
        prefix=f".{destination.name}.",
        suffix=".tmp",
        delete=False,
    )
    temp_path = Path(handle.name)
    try:
        with handle:
            handle.write(payload)
        # NamedTemporaryFile creates 0600; carry the target's mode over.
        if destination.exists():
            shutil.copymode(destination, temp_path)
        os.replace(temp_path, destination)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise


@dataclass(frozen=True, slots=True)
class SentinelGuard:
    """Report a target as already patched when any line contains ``sentinel``.

    An empty sentinel disables the check.
    """

    sentinel: str

    def __call__(self, lines: Sequence[str]) -> bool:
        if not self.sentinel:
            return False
        return any(self.sentinel in line for line in lines)
