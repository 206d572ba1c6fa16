"""Fuzzy transfer of unified diffs onto an independently evolved corpus revision."""

from .diff import DiffDocument, Hunk, HunkLine, LineTag, iter_hunks, parse_diff
from .errors import (
    ApplyConsistencyFault,
    ConfigError,
    CorpusError,
    DiffError,
    FuzzPatchError,
    LocateFailure,
    MalformedHeader,
    MalformedHunkBody,
    MalformedHunkHeader,
    PatchFailure,
    TargetMissing,
)
from .session import PatchSession, SessionResult, patch_lines
from .target import PatchStats, PatchTarget

__all__ = [
    "ApplyConsistencyFault",
    "ConfigError",
    "CorpusError",
    "DiffDocument",
    "DiffError",
    "FuzzPatchError",
    "Hunk",
    "HunkLine",
    "LineTag",
    "LocateFailure",
    "MalformedHeader",
    "MalformedHunkBody",
    "MalformedHunkHeader",
    "PatchFailure",
    "PatchSession",
    "PatchStats",
    "PatchTarget",
    "SessionResult",
    "TargetMissing",
    "iter_hunks",
    "parse_diff",
    "patch_lines",
]

__version__ = "0.1.0"
