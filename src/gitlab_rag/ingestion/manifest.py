"""Run bookkeeping and on-disk artifacts.

Layout of one run::

    <output_dir>/session_<YYYYmmdd_HHMMSS>/
        chunks/chunk_000000.jsonl   one JSON line per chunk
        chunks_index.json           sequence → artifact / source / section
        summary.json                counts by file and extension, totals
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from gitlab_rag.errors import IngestError, PersistenceError
from gitlab_rag.ingestion.models import Chunk

logger = logging.getLogger(__name__)

CHUNKS_DIRNAME = "chunks"
INDEX_FILENAME = "chunks_index.json"
SUMMARY_FILENAME = "summary.json"


def artifact_name(sequence: int) -> str:
    return f"{CHUNKS_DIRNAME}/chunk_{sequence:06d}.jsonl"


def new_timestamp() -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S")


@dataclass
class FileOutcome:
    """Result of processing one path: its chunks, or why it was skipped."""

    path: str
    extension: str = ""
    # Size of the fetched file before decoding.
    size_bytes: int = 0
    chunks: list[Chunk] = field(default_factory=list)
    error: IngestError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def reason(self) -> str:
        if self.error is None:
            return ""
        return f"{self.error.reason}: {self.error}"


class RunManifest:
    """Single-writer accumulator for one run.

    :meth:`record` is the only mutator; it assigns the run-wide
    ``global_sequence`` and updates every counter in one place.
    """

    def __init__(self, timestamp: str | None = None) -> None:
        self.timestamp = timestamp or new_timestamp()
        self.file_chunk_counts: dict[str, int] = {}
        self.extension_counts: dict[str, int] = {}
        self.skipped: dict[str, str] = {}
        self.index_entries: list[dict[str, Any]] = []
        self.total_size_bytes = 0
        self.total_raw_bytes = 0
        self._chunks: list[Chunk] = []
        self._frozen = False

    @property
    def chunks(self) -> list[Chunk]:
        return list(self._chunks)

    @property
    def total_chunks(self) -> int:
        return len(self._chunks)

    @property
    def total_files(self) -> int:
        return len(self.file_chunk_counts)

    def record(self, outcome: FileOutcome) -> list[Chunk]:
        """Fold one file outcome into the run; return its sequenced chunks."""
        if self._frozen:
            raise RuntimeError("manifest is frozen")
        if not outcome.ok:
            self.skipped[outcome.path] = outcome.reason
            return []

        first = len(self._chunks)
        sequenced = [c.with_sequence(first + i) for i, c in enumerate(outcome.chunks)]
        self._chunks.extend(sequenced)

        self.file_chunk_counts[outcome.path] = len(sequenced)
        self.total_raw_bytes += outcome.size_bytes
        self.extension_counts[outcome.extension] = (
            self.extension_counts.get(outcome.extension, 0) + len(sequenced)
        )
        for chunk in sequenced:
            self.total_size_bytes += chunk.length
            self.index_entries.append(
                {
                    "chunk_id": chunk.global_sequence,
                    "file": artifact_name(chunk.global_sequence),
                    "source_file": outcome.path,
                    "section": chunk.breadcrumb or None,
                    "size": chunk.length,
                }
            )
        return sequenced

    def freeze(self) -> None:
        self._frozen = True

    def index(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "total_chunks": self.total_chunks,
            "chunks_directory": f"{CHUNKS_DIRNAME}/",
            "chunks": self.index_entries,
        }

    def summary(self, *, session_dir: str, project: dict[str, str]) -> dict[str, Any]:
        files = self.total_files
        return {
            "timestamp": self.timestamp,
            "session_directory": session_dir,
            "total_chunks": self.total_chunks,
            "total_files": files,
            "project": project,
            "statistics": {
                "by_extension": self.extension_counts,
                "average_chunks_per_file": self.total_chunks // files if files else 0,
                "total_size_bytes": self.total_size_bytes,
                "total_raw_bytes": self.total_raw_bytes,
            },
            "files_processed": self.file_chunk_counts,
            "files_skipped": self.skipped,
        }


class ArtifactWriter:
    """Writes one run's artifacts below ``<output_dir>/session_<timestamp>``.

    Any filesystem failure is raised as :class:`PersistenceError`.
    """

    def __init__(self, output_dir: str | Path, timestamp: str) -> None:
        self.session_dir = Path(output_dir) / f"session_{timestamp}"
        self.chunks_dir = self.session_dir / CHUNKS_DIRNAME

    def prepare(self) -> None:
        try:
            self.chunks_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(f"cannot create {self.chunks_dir}: {exc}") from exc
        logger.info("Output directory: %s", self.session_dir)

    def write_chunk(self, chunk: Chunk) -> Path:
        if chunk.global_sequence is None:
            raise ValueError(f"chunk {chunk.id} has no global sequence")
        target = self.session_dir / artifact_name(chunk.global_sequence)
        self._write(target, json.dumps(chunk.to_record(), ensure_ascii=False) + "\n")
        return target

    def write_index(self, manifest: RunManifest) -> Path:
        target = self.session_dir / INDEX_FILENAME
        self._write(target, json.dumps(manifest.index(), ensure_ascii=False, indent=2))
        return target

    def write_summary(self, manifest: RunManifest, project: dict[str, str]) -> Path:
        target = self.session_dir / SUMMARY_FILENAME
        payload = manifest.summary(session_dir=str(self.session_dir), project=project)
        self._write(target, json.dumps(payload, ensure_ascii=False, indent=2))
        return target

    @staticmethod
    def _write(target: Path, content: str) -> None:
        try:
            target.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise PersistenceError(f"cannot write {target}: {exc}") from exc
