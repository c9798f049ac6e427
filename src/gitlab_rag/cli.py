"""Command line entry point.

    gitlab-rag gitlab --project-path group/wiki --branch main --prefix docs
    gitlab-rag file ./handbook.pdf --no-index
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Any

from gitlab_rag.config import Settings
from gitlab_rag.ingestion.chunker import SectionChunker
from gitlab_rag.ingestion.local import ingest_local_file
from gitlab_rag.ingestion.orchestrator import RunReport, run_ingest


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gitlab-rag",
        description="Ingest GitLab repository content (or a local file) into chunk artifacts and a vector store",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    gitlab = sub.add_parser("gitlab", help="Ingest a GitLab repository tree")
    gitlab.add_argument("--host", help="GitLab base URL")
    gitlab.add_argument("--project-path", help="Namespaced project path, e.g. group/wiki")
    gitlab.add_argument("--project-id", help="Numeric project id (skips lookup)")
    gitlab.add_argument("--branch", help="Branch / ref to ingest")
    gitlab.add_argument("--prefix", help="Only ingest '<prefix>.md' and '<prefix>/**'")
    gitlab.add_argument("--include", help="Comma-separated include globs")
    gitlab.add_argument("--exclude", help="Comma-separated exclude globs")
    gitlab.add_argument("--concurrency", type=int, help="Files processed in parallel")

    local = sub.add_parser("file", help="Ingest a single local file")
    local.add_argument("path", help="Path to a .md/.txt/.html/.pdf file")

    for p in (gitlab, local):
        p.add_argument("--output-dir", help="Parent directory for session artifacts")
        p.add_argument(
            "--no-index",
            action="store_true",
            help="Write artifacts only; do not submit chunks to the vector store",
        )
    return parser


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    mapping = {
        "host": "gitlab_host",
        "project_path": "gitlab_project_path",
        "project_id": "gitlab_project_id",
        "branch": "gitlab_branch",
        "prefix": "gitlab_only_path_prefix",
        "concurrency": "ingest_concurrency",
        "output_dir": "ingest_output_dir",
        "include": "ingest_include",
        "exclude": "ingest_exclude",
    }
    return {
        field: getattr(args, attr)
        for attr, field in mapping.items()
        if getattr(args, attr, None) is not None
    }


def run(args: argparse.Namespace) -> RunReport:
    cfg = Settings(**_overrides(args))
    if args.command == "gitlab":
        return run_ingest(cfg, index=not args.no_index)

    sink = None
    if not args.no_index:
        from gitlab_rag.indexing.chroma_sink import ChromaChunkSink

        sink = ChromaChunkSink.from_settings(cfg)
    return ingest_local_file(
        args.path,
        chunker=SectionChunker(cfg.chunk_size, cfg.chunk_overlap),
        output_dir=cfg.ingest_output_dir,
        sink=sink,
        max_bytes=cfg.ingest_max_bytes_per_file,
    )


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        report = run(args)
    except Exception as exc:
        print(f"[gitlab-rag] failed: {exc}", file=sys.stderr, flush=True)
        raise SystemExit(1) from exc

    print(report.model_dump_json(indent=2), flush=True)


if __name__ == "__main__":
    main()
