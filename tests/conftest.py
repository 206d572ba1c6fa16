from __future__ import annotations

import difflib
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


def make_diff(old: Sequence[str], new: Sequence[str], *, name: str = "file.txt", context: int = 3) -> str:
    """Render a GNU-style unified diff between two line lists."""
    lines = difflib.unified_diff(list(old), list(new), f"a/{name}", f"b/{name}", n=context, lineterm="")
    return "\n".join(lines) + "\n"


@dataclass(slots=True)
class Corpus:
    """Old/new revision roots laid out the way the batch driver expects."""

    old_root: Path
    new_root: Path

    @property
    def diff_root(self) -> Path:
        return self.old_root / "Diff"

    @property
    def current_root(self) -> Path:
        return self.new_root / "Current"

    def add_target(self, relative: str, lines: Sequence[str]) -> Path:
        path = self.current_root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")
        return path

    def add_diff(self, relative: str, text: str) -> Path:
        path = self.diff_root / f"{relative}.diff"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    def add_new_file(self, relative: str, text: str) -> Path:
        path = self.diff_root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path


@pytest.fixture()
def corpus(tmp_path: Path) -> Corpus:
    """Create empty ``Diff`` and ``Current`` folders under two revision roots."""

    payload = Corpus(old_root=tmp_path / "rev-old", new_root=tmp_path / "rev-new")
    payload.diff_root.mkdir(parents=True)
    payload.current_root.mkdir(parents=True)
    return payload
