"""GitLab ingest run: tree → filter → fetch → normalize → chunk → persist → sink.

One :class:`IngestOrchestrator` drives one run.  Files are processed with
bounded concurrency, but their outcomes are committed one at a time in
sorted path order, so sequence numbers and artifact names are
deterministic for a given tree.  A failing file is reported and skipped;
only project resolution, tree listing and artifact persistence can fail
the run.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from urllib.parse import urlsplit

from pydantic import BaseModel, Field

from gitlab_rag.config import Settings, settings
from gitlab_rag.errors import Cancelled, EmptyContent, IngestError, SizeLimitExceeded
from gitlab_rag.indexing.base import ChunkSink
from gitlab_rag.ingestion.chunker import SectionChunker, parse_front_matter
from gitlab_rag.ingestion.gitlab_client import GitLabClient
from gitlab_rag.ingestion.manifest import ArtifactWriter, FileOutcome, RunManifest
from gitlab_rag.ingestion.models import EntryKind, ProjectRef
from gitlab_rag.ingestion.normalizer import ContentNormalizer, DocumentFormat, extension_of
from gitlab_rag.ingestion.paths import PathFilter

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    START = "start"
    RESOLVE_PROJECT = "resolve_project"
    LIST_TREE = "list_tree"
    FILTER_PATHS = "filter_paths"
    PROCESS_FILES = "process_files"
    PERSIST_MANIFEST = "persist_manifest"
    SUBMIT_BATCH = "submit_batch"
    DONE = "done"
    EMPTY = "empty"
    FAILED = "failed"


class RunReport(BaseModel):
    """What a finished run produced."""

    status: RunState
    session_dir: str
    total_files: int = 0
    total_chunks: int = 0
    skipped: dict[str, str] = Field(default_factory=dict)
    submitted: bool = False


def gitlab_source_uri(project: ProjectRef, path: str) -> str:
    """``gitlab://gitlab.com/group/wiki@main/docs/index.md``."""
    host = urlsplit(project.host).netloc or project.host
    name = project.repo_path or project.resolved_id
    return f"gitlab://{host}/{name}@{project.branch}/{path}"


class IngestOrchestrator:
    """Drives a single ingest run.

    Parameters
    ----------
    client:
        An open :class:`GitLabClient`.
    path_filter:
        Selects which files of the tree are ingested.
    chunker:
        Section-aware splitter.
    output_dir:
        Parent directory of the per-run session directory.
    sink:
        Receives the whole chunk batch at the end.  ``None`` writes
        artifacts only.
    normalizer:
        Byte → text decoder; a default :class:`ContentNormalizer` if omitted.
    max_bytes_per_file:
        Files above this size are skipped before decoding.
    concurrency:
        Files processed in parallel.
    timestamp:
        Session timestamp override (tests).
    """

    def __init__(
        self,
        client: GitLabClient,
        *,
        path_filter: PathFilter,
        chunker: SectionChunker,
        output_dir: str,
        sink: ChunkSink | None = None,
        normalizer: ContentNormalizer | None = None,
        max_bytes_per_file: int = 2_000_000,
        concurrency: int = 4,
        timestamp: str | None = None,
    ) -> None:
        self.client = client
        self.path_filter = path_filter
        self.chunker = chunker
        self.output_dir = output_dir
        self.sink = sink
        self.normalizer = normalizer or ContentNormalizer()
        self.max_bytes_per_file = max_bytes_per_file
        self.concurrency = max(1, concurrency)
        self.state = RunState.START
        self._timestamp = timestamp
        self._stop = asyncio.Event()

    @classmethod
    def from_settings(
        cls,
        cfg: Settings,
        *,
        client: GitLabClient,
        sink: ChunkSink | None = None,
    ) -> IngestOrchestrator:
        return cls(
            client,
            path_filter=PathFilter(
                include=cfg.ingest_include,
                exclude=cfg.ingest_exclude,
                prefix=cfg.gitlab_only_path_prefix,
            ),
            chunker=SectionChunker(cfg.chunk_size, cfg.chunk_overlap),
            output_dir=cfg.ingest_output_dir,
            sink=sink,
            max_bytes_per_file=cfg.ingest_max_bytes_per_file,
            concurrency=cfg.ingest_concurrency,
        )

    def request_stop(self) -> None:
        """Stop starting new files; files already in flight still finish."""
        self._stop.set()

    # -- run ----------------------------------------------------------------

    async def run(self) -> RunReport:
        manifest = RunManifest(self._timestamp)
        writer = ArtifactWriter(self.output_dir, manifest.timestamp)
        logger.info(
            "Ingest prefix=%s include=%s exclude=%s",
            self.path_filter.prefix or "-",
            ",".join(self.path_filter.include),
            ",".join(self.path_filter.exclude),
        )
        try:
            return await self._run(manifest, writer)
        except Exception:
            self._advance(RunState.FAILED)
            logger.exception("Ingest run failed")
            raise

    async def _run(self, manifest: RunManifest, writer: ArtifactWriter) -> RunReport:
        self._advance(RunState.RESOLVE_PROJECT)
        project = await self.client.resolve_project()

        self._advance(RunState.LIST_TREE)
        entries = await self.client.list_tree()
        logger.info("tree total=%d", len(entries))

        self._advance(RunState.FILTER_PATHS)
        files = [e for e in entries if e.kind is EntryKind.FILE]
        blob_ids = {e.path: e.blob_id for e in files}
        paths = sorted(self.path_filter.select(e.path for e in files))
        logger.info("Files to process: %d", len(paths))

        await asyncio.to_thread(writer.prepare)
        self._advance(RunState.PROCESS_FILES)
        await self._process_all(paths, blob_ids, project, manifest, writer)

        self._advance(RunState.PERSIST_MANIFEST)
        manifest.freeze()
        index_file = await asyncio.to_thread(writer.write_index, manifest)
        summary_file = await asyncio.to_thread(
            writer.write_summary,
            manifest,
            {
                "path": project.repo_path,
                "branch": project.branch,
                "host": project.host,
                "prefix": self.path_filter.prefix,
            },
        )

        self._advance(RunState.SUBMIT_BATCH)
        chunks = manifest.chunks
        submitted = False
        if not chunks:
            logger.warning("GitLab ingest: no chunks to add")
            final = RunState.EMPTY
        elif self.sink is None:
            logger.info("No sink configured; %d chunks kept as artifacts only", len(chunks))
            final = RunState.DONE
        else:
            self.sink.add(chunks)
            submitted = True
            final = RunState.DONE

        self._advance(final)
        logger.info(
            "GitLab ingest complete: %d chunks, %d files, %d skipped (index=%s summary=%s)",
            manifest.total_chunks,
            manifest.total_files,
            len(manifest.skipped),
            index_file,
            summary_file,
        )
        return RunReport(
            status=final,
            session_dir=str(writer.session_dir),
            total_files=manifest.total_files,
            total_chunks=manifest.total_chunks,
            skipped=dict(manifest.skipped),
            submitted=submitted,
        )

    def _advance(self, state: RunState) -> None:
        logger.debug("run state %s -> %s", self.state.value, state.value)
        self.state = state

    # -- files --------------------------------------------------------------

    async def _process_all(
        self,
        paths: list[str],
        blob_ids: dict[str, str],
        project: ProjectRef,
        manifest: RunManifest,
        writer: ArtifactWriter,
    ) -> None:
        semaphore = asyncio.Semaphore(self.concurrency)

        async def worker(path: str) -> FileOutcome:
            async with semaphore:
                if self._stop.is_set():
                    return FileOutcome(
                        path=path,
                        extension=extension_of(path),
                        error=Cancelled("stop requested before start"),
                    )
                return await self.process_path(path, project, blob_ids.get(path))

        tasks = [asyncio.create_task(worker(p)) for p in paths]
        try:
            for task in tasks:
                await self._commit(await task, manifest, writer)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def process_path(
        self,
        path: str,
        project: ProjectRef,
        blob_id: str | None = None,
    ) -> FileOutcome:
        """Fetch → size check → normalize → front matter → chunk, for one path.

        Never raises for per-file problems; they end up in ``outcome.error``.
        """
        ext = extension_of(path)
        outcome = FileOutcome(path=path, extension=ext)
        try:
            DocumentFormat.for_extension(ext)
            raw = await self.client.fetch(path, blob_id=blob_id)
            outcome.size_bytes = raw.size_bytes
            if raw.size_bytes == 0:
                raise EmptyContent("empty file")
            if raw.size_bytes > self.max_bytes_per_file:
                raise SizeLimitExceeded(
                    f"size={raw.size_bytes} exceeds {self.max_bytes_per_file} bytes"
                )
            text = await asyncio.to_thread(self.normalizer.decode, path, raw.data)
            outcome.chunks = self.chunker.split(
                text,
                source_uri=gitlab_source_uri(project, path),
                repo_path=path,
                branch=project.branch,
                front_matter=parse_front_matter(text),
            )
        except IngestError as exc:
            outcome.chunks = []
            outcome.error = exc
        except Exception as exc:
            logger.warning("Unexpected failure processing %s", path, exc_info=True)
            outcome.chunks = []
            outcome.error = IngestError(f"{type(exc).__name__}: {exc}")
        return outcome

    @staticmethod
    async def _commit(outcome: FileOutcome, manifest: RunManifest, writer: ArtifactWriter) -> None:
        sequenced = manifest.record(outcome)
        if not outcome.ok:
            logger.warning("✗ %s: %s", outcome.path, outcome.reason)
            return
        for chunk in sequenced:
            await asyncio.to_thread(writer.write_chunk, chunk)
        if sequenced:
            logger.info(
                "✓ %s -> %d chunks (chunk_%06d - chunk_%06d)",
                outcome.path,
                len(sequenced),
                sequenced[0].global_sequence,
                sequenced[-1].global_sequence,
            )


def run_ingest(
    cfg: Settings | None = None,
    *,
    sink: ChunkSink | None = None,
    index: bool = True,
) -> RunReport:
    """Run one GitLab ingest synchronously from settings.

    When *sink* is omitted and *index* is true a :class:`ChromaChunkSink`
    is built from the same settings; ``index=False`` only writes
    artifacts.
    """
    cfg = cfg or settings
    if sink is None and index:
        from gitlab_rag.indexing.chroma_sink import ChromaChunkSink

        sink = ChromaChunkSink.from_settings(cfg)

    async def _main() -> RunReport:
        async with GitLabClient.from_settings(cfg) as client:
            orchestrator = IngestOrchestrator.from_settings(cfg, client=client, sink=sink)
            return await orchestrator.run()

    return asyncio.run(_main())
