from __future__ import annotations

import json
import logging
import threading
from pathlib import Path

import pytest

from conftest import Corpus, make_diff
from fuzzpatch import batch
from fuzzpatch.batch import patch_file, run_batch
from fuzzpatch.config import PatchSettings
from fuzzpatch.corpus import CorpusLayout
from fuzzpatch.reporting import OutcomeStatus, write_report
from fuzzpatch.target import PatchTarget

OLD_SOURCE = [f"int line{index};" for index in range(20)]


def _modified(lines: list[str]) -> list[str]:
    updated = list(lines)
    updated[8:9] = ["int line8; // Yacks", "int extra;"]
    return updated


def _populate(corpus: Corpus) -> None:
    diff = make_diff(OLD_SOURCE, _modified(OLD_SOURCE), name="Parser.cs")
    corpus.add_diff("src/Parser.cs", diff)
    corpus.add_target("src/Parser.cs", ["// upstream header"] + OLD_SOURCE)

    corpus.add_diff("src/Gone.cs", diff)

    corpus.add_diff("src/Done.cs", diff)
    corpus.add_target("src/Done.cs", _modified(OLD_SOURCE))

    corpus.add_diff("src/Drifted.cs", diff)
    corpus.add_target("src/Drifted.cs", [line.replace("line8", "renamed8") for line in OLD_SOURCE])

    corpus.add_new_file("src/YacksCore.cs", "namespace YacksCore {}\n")


def _outcomes_by_name(summary) -> dict[str, object]:
    return {Path(outcome.target_path).name: outcome for outcome in summary.outcomes}


def test_run_batch_reports_each_file_independently(corpus: Corpus) -> None:
    _populate(corpus)
    layout = CorpusLayout.resolve(corpus.old_root, corpus.new_root)
    drifted_before = (corpus.current_root / "src" / "Drifted.cs").read_bytes()

    summary = run_batch(layout, settings=PatchSettings())

    outcomes = _outcomes_by_name(summary)
    assert outcomes["Parser.cs"].status is OutcomeStatus.PATCHED
    assert outcomes["Parser.cs"].stats == {"lines_removed": 1, "lines_added": 2, "displacement_factor": 1}
    assert outcomes["Gone.cs"].status is OutcomeStatus.FAILED
    assert outcomes["Gone.cs"].error_kind == "target_missing"
    assert outcomes["Done.cs"].status is OutcomeStatus.SKIPPED
    assert outcomes["Drifted.cs"].status is OutcomeStatus.FAILED
    assert outcomes["Drifted.cs"].error_kind == "locate_failure"
    assert outcomes["Drifted.cs"].hunk_line == 3
    assert outcomes["YacksCore.cs"].status is OutcomeStatus.COPIED
    assert not summary.ok
    assert summary.counts() == {"patched": 1, "skipped": 1, "copied": 1, "failed": 2, "fault": 0}

    patched = (corpus.current_root / "src" / "Parser.cs").read_bytes()
    expected = "".join(f"{line}\n" for line in ["// upstream header"] + _modified(OLD_SOURCE))
    assert patched == b"\xef\xbb\xbf" + expected.encode("utf-8")
    assert (corpus.current_root / "src" / "Drifted.cs").read_bytes() == drifted_before
    assert (corpus.current_root / "src" / "YacksCore.cs").read_text(encoding="utf-8") == "namespace YacksCore {}\n"


def test_parallel_run_matches_sequential_order(corpus: Corpus, tmp_path: Path) -> None:
    _populate(corpus)
    layout = CorpusLayout.resolve(corpus.old_root, corpus.new_root)

    summary = run_batch(layout, settings=PatchSettings(), workers=4, dry_run=True)

    assert [Path(outcome.target_path).name for outcome in summary.outcomes] == [
        "Done.cs",
        "Drifted.cs",
        "Gone.cs",
        "Parser.cs",
        "YacksCore.cs",
    ]
    sequential = run_batch(layout, settings=PatchSettings(), dry_run=True)
    assert [outcome.status for outcome in summary.outcomes] == [outcome.status for outcome in sequential.outcomes]


def test_dry_run_writes_nothing(corpus: Corpus) -> None:
    _populate(corpus)
    layout = CorpusLayout.resolve(corpus.old_root, corpus.new_root)
    target = corpus.current_root / "src" / "Parser.cs"
    before = target.read_bytes()

    summary = run_batch(layout, settings=PatchSettings(), dry_run=True)

    assert _outcomes_by_name(summary)["Parser.cs"].status is OutcomeStatus.PATCHED
    assert target.read_bytes() == before
    assert not (corpus.current_root / "src" / "YacksCore.cs").exists()
    assert summary.format_summary().startswith("Dry run: 5 file(s)")


def test_malformed_diff_does_not_stop_batch(corpus: Corpus) -> None:
    corpus.add_diff("a.txt", "--- a\n+++ b\n@@ -1 +1 @@\n!oops\n")
    corpus.add_target("a.txt", ["x"])
    corpus.add_diff("b.txt", "--- a\n+++ b\n@@ -1 +1,2 @@\n x\n+y\n")
    corpus.add_target("b.txt", ["x"])
    layout = CorpusLayout.resolve(corpus.old_root, corpus.new_root)

    summary = run_batch(layout, settings=PatchSettings(sentinel=""))

    first, second = summary.outcomes
    assert first.status is OutcomeStatus.FAILED
    assert first.error_kind == "malformed_hunk_body"
    assert first.hunk_line == 4
    assert second.status is OutcomeStatus.PATCHED
    assert (corpus.current_root / "b.txt").read_text(encoding="utf-8-sig") == "x\ny\n"


def test_consistency_fault_is_reported_loudly(
    corpus: Corpus,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    corpus.add_diff("a.txt", "--- a\n+++ b\n@@ -2 +2,2 @@\n x\n+y\n")
    target = corpus.add_target("a.txt", ["w", "x"])
    monkeypatch.setattr(PatchTarget, "locate", lambda self, hunk: 0)
    layout = CorpusLayout.resolve(corpus.old_root, corpus.new_root)

    with caplog.at_level(logging.CRITICAL, logger="fuzzpatch.batch"):
        summary = run_batch(layout, settings=PatchSettings())

    outcome = summary.outcomes[0]
    assert outcome.status is OutcomeStatus.FAULT
    assert outcome.error_kind == "apply_consistency_fault"
    assert summary.has_fault
    assert target.read_text(encoding="utf-8") == "w\nx\n"
    assert any(record.levelno == logging.CRITICAL for record in caplog.records)


def test_telemetry_events_are_json(corpus: Corpus, caplog: pytest.LogCaptureFixture) -> None:
    corpus.add_new_file("new.txt", "n\n")
    layout = CorpusLayout.resolve(corpus.old_root, corpus.new_root)

    with caplog.at_level(logging.INFO, logger="fuzzpatch.telemetry"):
        run_batch(layout, settings=PatchSettings())

    events = [json.loads(record.getMessage()) for record in caplog.records if record.name == "fuzzpatch.telemetry"]
    assert [event["event"] for event in events] == ["file_processed", "batch_finished"]
    assert events[0]["relative"] == "new.txt"
    assert events[0]["status"] == "copied"
    assert events[1]["counts"]["copied"] == 1


def test_patch_file_handles_undecodable_target(tmp_path: Path) -> None:
    diff = tmp_path / "t.bin.diff"
    diff.write_text("--- a\n+++ b\n@@ -1 +1 @@\n x\n", encoding="utf-8")
    target = tmp_path / "t.bin"
    target.write_bytes(b"\xff\xfe\x00bad")

    outcome = patch_file(diff, target, settings=PatchSettings())

    assert outcome.status is OutcomeStatus.FAILED
    assert outcome.error_kind == "io_error"


def test_write_report(corpus: Corpus, tmp_path: Path) -> None:
    _populate(corpus)
    layout = CorpusLayout.resolve(corpus.old_root, corpus.new_root)
    summary = run_batch(layout, settings=PatchSettings(), dry_run=True)

    path = write_report(summary, tmp_path / "reports" / "run.json")

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["ok"] is False
    assert payload["dry_run"] is True
    assert payload["counts"]["failed"] == 2
    assert {entry["status"] for entry in payload["outcomes"]} == {"patched", "skipped", "copied", "failed"}


def test_added_file_and_its_diff_run_serially_on_the_pool(corpus: Corpus, monkeypatch: pytest.MonkeyPatch) -> None:
    corpus.add_new_file("Foo.cs", "a\nb\n")
    corpus.add_diff("Foo.cs", "--- a/Foo.cs\n+++ b/Foo.cs\n@@ -1,2 +1,3 @@\n a\n+x\n b\n")
    corpus.add_target("Foo.cs", ["stale"])
    for name in ("One", "Two", "Three"):
        corpus.add_new_file(f"{name}.txt", f"{name}\n")
    layout = CorpusLayout.resolve(corpus.old_root, corpus.new_root)
    threads: dict[str, set[str]] = {}
    original = batch.process_entry

    def recording_process_entry(entry, **kwargs):
        threads.setdefault(entry.target.name, set()).add(threading.current_thread().name)
        return original(entry, **kwargs)

    monkeypatch.setattr(batch, "process_entry", recording_process_entry)

    summary = run_batch(layout, settings=PatchSettings(), workers=4)

    foo = [outcome for outcome in summary.outcomes if Path(outcome.target_path).name == "Foo.cs"]
    assert [outcome.status for outcome in foo] == [OutcomeStatus.COPIED, OutcomeStatus.PATCHED]
    assert len(threads["Foo.cs"]) == 1
    assert (corpus.current_root / "Foo.cs").read_text(encoding="utf-8-sig") == "a\nx\nb\n"
    assert len(summary.outcomes) == 5
