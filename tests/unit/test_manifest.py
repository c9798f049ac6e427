"""Unit tests for run bookkeeping and artifact writing."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from gitlab_rag.errors import FetchError, PersistenceError
from gitlab_rag.ingestion.manifest import (
    ArtifactWriter,
    FileOutcome,
    RunManifest,
    artifact_name,
    new_timestamp,
)
from gitlab_rag.ingestion.models import Chunk


def _chunk(path: str, index: int, text: str = "body", breadcrumb: str = "") -> Chunk:
    return Chunk(
        id=f"file://{path}|sec=main|i={index}|o={index * 10}",
        source_uri=f"file://{path}",
        repo_path=path,
        text=text,
        chunk_index=index,
        offset=index * 10,
        length=len(text),
        breadcrumb=breadcrumb,
        section_slug=breadcrumb.lower(),
    )


def test_artifact_name_is_zero_padded() -> None:
    assert artifact_name(0) == "chunks/chunk_000000.jsonl"
    assert artifact_name(1234567) == "chunks/chunk_1234567.jsonl"


def test_new_timestamp_format() -> None:
    stamp = new_timestamp()
    assert len(stamp) == 15
    assert stamp[8] == "_"
    assert stamp.replace("_", "").isdigit()


class TestFileOutcome:
    def test_ok_outcome(self) -> None:
        outcome = FileOutcome(path="a.md", extension="md")
        assert outcome.ok
        assert outcome.reason == ""

    def test_failed_outcome_reason(self) -> None:
        outcome = FileOutcome(path="a.md", error=FetchError("HTTP 502 by path: a.md"))
        assert not outcome.ok
        assert outcome.reason == "fetch_failed: HTTP 502 by path: a.md"


class TestRunManifest:
    def test_record_assigns_contiguous_sequences(self) -> None:
        manifest = RunManifest("20240101_000000")
        first = manifest.record(
            FileOutcome(path="a.md", extension="md", chunks=[_chunk("a.md", 0), _chunk("a.md", 1)])
        )
        second = manifest.record(FileOutcome(path="b.txt", extension="txt", chunks=[_chunk("b.txt", 0)]))

        assert [c.global_sequence for c in first + second] == [0, 1, 2]
        assert [c.global_sequence for c in manifest.chunks] == [0, 1, 2]
        assert manifest.total_chunks == 3
        assert manifest.total_files == 2
        assert manifest.extension_counts == {"md": 2, "txt": 1}
        assert manifest.file_chunk_counts == {"a.md": 2, "b.txt": 1}
        assert manifest.total_size_bytes == 12

    def test_failed_outcome_is_skipped(self) -> None:
        manifest = RunManifest("20240101_000000")
        assert manifest.record(FileOutcome(path="x.md", error=FetchError("gone"))) == []
        assert manifest.skipped == {"x.md": "fetch_failed: gone"}
        assert manifest.total_files == 0

    def test_index_entries(self) -> None:
        manifest = RunManifest("20240101_000000")
        manifest.record(
            FileOutcome(path="a.md", extension="md", chunks=[_chunk("a.md", 0, "hello", "Intro")])
        )
        assert manifest.index() == {
            "timestamp": "20240101_000000",
            "total_chunks": 1,
            "chunks_directory": "chunks/",
            "chunks": [
                {
                    "chunk_id": 0,
                    "file": "chunks/chunk_000000.jsonl",
                    "source_file": "a.md",
                    "section": "Intro",
                    "size": 5,
                }
            ],
        }

    def test_summary_uses_integer_average(self) -> None:
        manifest = RunManifest("20240101_000000")
        manifest.record(FileOutcome(path="a.md", extension="md", chunks=[_chunk("a.md", i) for i in range(3)]))
        manifest.record(FileOutcome(path="b.md", extension="md", chunks=[_chunk("b.md", 0), _chunk("b.md", 1)]))
        summary = manifest.summary(session_dir="/tmp/s", project={"path": "g/r"})
        assert summary["statistics"]["average_chunks_per_file"] == 2
        assert summary["session_directory"] == "/tmp/s"
        assert summary["files_skipped"] == {}

    def test_raw_bytes_count_only_ingested_files(self) -> None:
        manifest = RunManifest("20240101_000000")
        manifest.record(FileOutcome(path="a.md", extension="md", size_bytes=40, chunks=[_chunk("a.md", 0)]))
        manifest.record(FileOutcome(path="big.md", extension="md", size_bytes=9_000, error=FetchError("x")))
        stats = manifest.summary(session_dir="/tmp/s", project={})["statistics"]
        assert stats["total_raw_bytes"] == 40
        assert stats["total_size_bytes"] == manifest.total_size_bytes

    def test_frozen_manifest_rejects_records(self) -> None:
        manifest = RunManifest()
        manifest.freeze()
        with pytest.raises(RuntimeError):
            manifest.record(FileOutcome(path="a.md"))


class TestArtifactWriter:
    def test_writes_jsonl_index_and_summary(self, tmp_path: Path) -> None:
        manifest = RunManifest("20240101_000000")
        writer = ArtifactWriter(tmp_path, manifest.timestamp)
        writer.prepare()
        for chunk in manifest.record(
            FileOutcome(path="a.md", extension="md", chunks=[_chunk("a.md", 0, "héllo")])
        ):
            path = writer.write_chunk(chunk)

        assert path == tmp_path / "session_20240101_000000" / "chunks" / "chunk_000000.jsonl"
        line = path.read_text(encoding="utf-8")
        assert line.endswith("\n")
        assert json.loads(line)["content"] == "héllo"

        index_path = writer.write_index(manifest)
        summary_path = writer.write_summary(manifest, {"path": "a.md"})
        assert json.loads(index_path.read_text(encoding="utf-8"))["total_chunks"] == 1
        assert json.loads(summary_path.read_text(encoding="utf-8"))["project"] == {"path": "a.md"}

    def test_unsequenced_chunk_rejected(self, tmp_path: Path) -> None:
        writer = ArtifactWriter(tmp_path, "t")
        writer.prepare()
        with pytest.raises(ValueError):
            writer.write_chunk(_chunk("a.md", 0))

    def test_filesystem_errors_become_persistence_errors(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(PersistenceError):
            ArtifactWriter(blocker, "t").prepare()
