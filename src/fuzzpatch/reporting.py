"""Per-file outcome records, telemetry events and JSON reports."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "BatchSummary",
    "FileOutcome",
    "OutcomeStatus",
    "emit_event",
    "write_report",
]

TELEMETRY_LOGGER = logging.getLogger("fuzzpatch.telemetry")


def utc_now() -> datetime:
    """Return a timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


class RecordModel(BaseModel):
    """Base Pydantic model with strict field handling."""

    model_config = ConfigDict(extra="forbid")


class OutcomeStatus(str, Enum):
    """What happened to a single file of the corpus."""

    PATCHED = "patched"
    SKIPPED = "skipped"
    COPIED = "copied"
    FAILED = "failed"
    FAULT = "fault"


class FileOutcome(RecordModel):
    """Result of processing one entry of the diff folder."""

    diff_path: str
    target_path: str
    status: OutcomeStatus
    error_kind: Optional[str] = None
    message: str = ""
    stats: Optional[Dict[str, int]] = None
    hunks_applied: int = 0
    hunk_line: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.status not in {OutcomeStatus.FAILED, OutcomeStatus.FAULT}

    def describe(self) -> str:
        """Render the console line an operator sees for this outcome."""
        if self.status is OutcomeStatus.PATCHED:
            stats = self.stats or {}
            return (
                f"File in new revision updated: {self.target_path}\n"
                f"  Lines removed = {stats.get('lines_removed', 0)}, "
                f"lines added = {stats.get('lines_added', 0)}, "
                f"displacement = {stats.get('displacement_factor', 0)}."
            )
        if self.status is OutcomeStatus.SKIPPED:
            return f"File has already been updated once: {self.target_path}"
        if self.status is OutcomeStatus.COPIED:
            return f"Added file copied to new revision: {self.target_path}"
        if self.status is OutcomeStatus.FAULT:
            return f"INTERNAL FAULT while patching {self.target_path}: {self.message}"
        return self.message


class BatchSummary(RecordModel):
    """Outcomes for a whole corpus transfer, in diff-path order."""

    diff_root: str
    current_root: str
    dry_run: bool = False
    outcomes: List[FileOutcome] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=utc_now)
    finished_at: Optional[datetime] = None

    @property
    def ok(self) -> bool:
        return all(outcome.ok for outcome in self.outcomes)

    @property
    def has_fault(self) -> bool:
        return any(outcome.status is OutcomeStatus.FAULT for outcome in self.outcomes)

    def counts(self) -> Dict[str, int]:
        totals = {status.value: 0 for status in OutcomeStatus}
        for outcome in self.outcomes:
            totals[outcome.status.value] += 1
        return totals

    def format_summary(self) -> str:
        counts = self.counts()
        parts = [f"{name} {count}" for name, count in counts.items()]
        prefix = "Dry run: " if self.dry_run else ""
        return f"{prefix}{len(self.outcomes)} file(s) | " + " | ".join(parts)


def _serialise_event_value(value: Any) -> Any:
    """Convert event payload values into JSON-friendly representations."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, Path):
        return value.as_posix()
    if isinstance(value, (list, tuple, set)):
        return [_serialise_event_value(item) for item in value]
    if isinstance(value, Mapping):
        return {str(key): _serialise_event_value(child) for key, child in value.items()}
    return str(value)


def emit_event(event: str, **fields: Any) -> None:
    """Log a compact JSON telemetry event."""
    payload = {"event": event, "timestamp": utc_now().isoformat()}
    for key, value in fields.items():
        payload[key] = _serialise_event_value(value)
    TELEMETRY_LOGGER.info(json.dumps(payload, separators=(",", ":"), ensure_ascii=True))


def write_report(summary: BatchSummary, path: Path | str) -> Path:
    """Persist ``summary`` as pretty-printed JSON, creating parent folders."""
    report_path = Path(path)
    report_path.parent.mkdir(parents=True, exist_ok=True)
    payload = summary.model_dump(mode="json")
    payload["counts"] = summary.counts()
    payload["ok"] = summary.ok
    report_path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    return report_path
