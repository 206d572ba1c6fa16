"""Error taxonomy shared by the diff parser, patch engine and batch driver."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

__all__ = [
    "ApplyConsistencyFault",
    "ConfigError",
    "CorpusError",
    "DiffError",
    "FuzzPatchError",
    "LocateFailure",
    "MalformedHeader",
    "MalformedHunkBody",
    "MalformedHunkHeader",
    "PatchFailure",
    "TargetMissing",
]


class FuzzPatchError(RuntimeError):
    """Base class for every error raised by fuzzpatch."""

    kind = "error"

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = dict(details or {})


class ConfigError(FuzzPatchError):
    """Raised when the YAML configuration cannot be loaded or validated."""

    kind = "config"


class CorpusError(FuzzPatchError):
    """Raised when the old/new corpus roots are unusable."""

    kind = "corpus"


class PatchFailure(FuzzPatchError):
    """Recoverable per-file failure; the batch reports it and moves on."""

    kind = "patch_failure"


class DiffError(PatchFailure):
    """The diff text does not follow the supported unified-diff grammar."""

    kind = "diff_error"

    def __init__(self, message: str, *, line_number: int, source: Path | str | None = None) -> None:
        self.line_number = line_number
        self.source = str(source) if source is not None else None
        location = f"{self.source}:{line_number}" if self.source else f"line {line_number}"
        super().__init__(
            f"{message} ({location})",
            details={"line_number": line_number, "source": self.source},
        )


class MalformedHeader(DiffError):
    kind = "malformed_header"


class MalformedHunkHeader(DiffError):
    kind = "malformed_hunk_header"


class MalformedHunkBody(DiffError):
    kind = "malformed_hunk_body"


class LocateFailure(PatchFailure):
    """No anchor for a hunk was found in either search direction."""

    kind = "locate_failure"

    def __init__(
        self,
        *,
        old_start: int,
        header_index: int,
        target: Path | str | None = None,
        diff: Path | str | None = None,
    ) -> None:
        self.old_start = old_start
        self.header_index = header_index
        self.target = str(target) if target is not None else None
        self.diff = str(diff) if diff is not None else None
        where = f" for file {self.diff}" if self.diff else ""
        super().__init__(
            f"Unable to find location to apply hunk at diff line {header_index + 1} "
            f"(old line {old_start}){where}",
            details={
                "old_start": old_start,
                "header_index": header_index,
                "target": self.target,
                "diff": self.diff,
            },
        )


class TargetMissing(PatchFailure):
    """The file a diff modifies does not exist in the new corpus."""

    kind = "target_missing"

    def __init__(self, target: Path | str) -> None:
        self.target = str(target)
        super().__init__(f"File to be modified not found: {self.target}", details={"target": self.target})


class ApplyConsistencyFault(FuzzPatchError):
    """The applier could not confirm a match the locator reported.

    This indicates a defect in the engine rather than a problem with the diff
    or the target, so it deliberately sits outside :class:`PatchFailure` and
    callers that only handle recoverable failures will not swallow it.
    """

    kind = "apply_consistency_fault"

    def __init__(self, message: str, *, index: int, expected: str, actual: str | None) -> None:
        self.index = index
        self.expected = expected
        self.actual = actual
        super().__init__(
            message,
            details={"index": index, "expected": expected, "actual": actual},
        )
