"""Ingest a single local file through the same normalize → chunk → persist path.

PDFs are chunked page by page: chunk indices restart on every page and
each chunk carries its 1-based ``page``.
"""

from __future__ import annotations

import logging
from pathlib import Path

from gitlab_rag.errors import SizeLimitExceeded
from gitlab_rag.indexing.base import ChunkSink
from gitlab_rag.ingestion.chunker import SectionChunker, parse_front_matter
from gitlab_rag.ingestion.manifest import ArtifactWriter, FileOutcome, RunManifest
from gitlab_rag.ingestion.models import Chunk
from gitlab_rag.ingestion.normalizer import ContentNormalizer, DocumentFormat, extension_of
from gitlab_rag.ingestion.orchestrator import RunReport, RunState

logger = logging.getLogger(__name__)


def chunk_local_file(
    path: str | Path,
    *,
    chunker: SectionChunker,
    normalizer: ContentNormalizer | None = None,
    max_bytes: int | None = None,
) -> list[Chunk]:
    """Read, decode and chunk one local file.

    Raises the per-file :mod:`gitlab_rag.errors` (unsupported format,
    empty content, size limit) and ``OSError`` for unreadable paths.
    """
    normalizer = normalizer or ContentNormalizer()
    file_path = Path(path)
    name = file_path.name
    fmt = DocumentFormat.for_path(name)

    data = file_path.read_bytes()
    if max_bytes is not None and len(data) > max_bytes:
        raise SizeLimitExceeded(f"size={len(data)} exceeds {max_bytes} bytes")

    scheme = "pdf" if fmt is DocumentFormat.PDF else "file"
    base_uri = f"{scheme}://{file_path.as_posix()}"

    if fmt is not DocumentFormat.PDF:
        text = normalizer.decode(name, data)
        return chunker.split(text, source_uri=base_uri, repo_path=name)

    chunks: list[Chunk] = []
    front_matter: dict[str, str] | None = None
    for page, text in normalizer.decode_pages(name, data):
        if front_matter is None:
            front_matter = parse_front_matter(text)
        chunks.extend(
            chunker.split(
                text,
                source_uri=f"{base_uri}#p={page}",
                repo_path=name,
                front_matter=front_matter,
                page=page,
            )
        )
    return chunks


def ingest_local_file(
    path: str | Path,
    *,
    chunker: SectionChunker,
    output_dir: str,
    sink: ChunkSink | None = None,
    normalizer: ContentNormalizer | None = None,
    max_bytes: int | None = None,
    timestamp: str | None = None,
) -> RunReport:
    """Chunk one local file, persist its artifacts and submit the batch."""
    file_path = Path(path)
    manifest = RunManifest(timestamp)
    writer = ArtifactWriter(output_dir, manifest.timestamp)
    writer.prepare()

    chunks = chunk_local_file(file_path, chunker=chunker, normalizer=normalizer, max_bytes=max_bytes)
    outcome = FileOutcome(
        path=file_path.name,
        extension=extension_of(file_path.name),
        size_bytes=file_path.stat().st_size,
        chunks=chunks,
    )
    for chunk in manifest.record(outcome):
        writer.write_chunk(chunk)
    manifest.freeze()
    writer.write_index(manifest)
    writer.write_summary(
        manifest,
        {"path": file_path.as_posix(), "branch": "", "host": "local", "prefix": ""},
    )

    submitted = False
    if not manifest.total_chunks:
        status = RunState.EMPTY
    else:
        if sink is not None:
            sink.add(manifest.chunks)
            submitted = True
        status = RunState.DONE
    logger.info("Ingest ok: %d chunks from %s", manifest.total_chunks, file_path)
    return RunReport(
        status=status,
        session_dir=str(writer.session_dir),
        total_files=manifest.total_files,
        total_chunks=manifest.total_chunks,
        submitted=submitted,
    )
