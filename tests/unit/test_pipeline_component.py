"""Unit tests for the KFP ingestion component and pipeline.

The component is exercised through ``component.python_func`` with the
ingest run patched out, so neither a Kubeflow cluster nor GitLab is needed.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from gitlab_rag.ingestion.orchestrator import RunReport, RunState


class _FakeArtifact:
    """Minimal stand-in for ``dsl.Metrics``."""

    def __init__(self, path: str) -> None:
        self.path = path
        self.metadata: dict = {}
        self._metrics: dict = {}

    def log_metric(self, name: str, value) -> None:
        self._metrics[name] = value


def _report(tmp_path: Path) -> RunReport:
    return RunReport(
        status=RunState.DONE,
        session_dir=str(tmp_path / "session_20240101_000000"),
        total_files=3,
        total_chunks=11,
        skipped={"b.md": "fetch_failed: HTTP 500"},
        submitted=True,
    )


@pytest.mark.usefixtures("isolated_env")
class TestIngestGitlabRepository:
    def test_builds_settings_and_reports(self, tmp_path: Path) -> None:
        from pipelines.components.ingest import ingest_gitlab_repository

        metrics = _FakeArtifact(str(tmp_path / "metrics"))
        with patch(
            "gitlab_rag.ingestion.orchestrator.run_ingest",
            return_value=_report(tmp_path),
        ) as run:
            msg = ingest_gitlab_repository.python_func(
                metrics=metrics,
                project_path="group/wiki",
                branch="dev",
                prefix=" handbook ",
                include="docs/**, *.md",
                output_dir=str(tmp_path),
                chunk_size=500,
                chunk_overlap=50,
                index=False,
            )

        cfg = run.call_args.args[0]
        assert run.call_args.kwargs == {"index": False}
        assert cfg.gitlab_project_path == "group/wiki"
        assert cfg.gitlab_branch == "dev"
        assert cfg.gitlab_only_path_prefix == "handbook"
        assert cfg.ingest_include == ["docs/**", "*.md"]
        assert cfg.ingest_output_dir == str(tmp_path)
        assert cfg.chunk_size == 500

        assert metrics._metrics == {"total_files": 3, "total_chunks": 11, "files_skipped": 1}
        assert msg.startswith("Ingest done: 11 chunks from 3 files (1 skipped)")

    def test_blank_globs_keep_defaults(self, tmp_path: Path) -> None:
        from gitlab_rag.config import DEFAULT_EXCLUDE, DEFAULT_INCLUDE
        from pipelines.components.ingest import ingest_gitlab_repository

        with patch(
            "gitlab_rag.ingestion.orchestrator.run_ingest",
            return_value=_report(tmp_path),
        ) as run:
            ingest_gitlab_repository.python_func(
                metrics=_FakeArtifact(str(tmp_path / "metrics")),
                project_id="42",
            )

        cfg = run.call_args.args[0]
        assert cfg.gitlab_project_id == "42"
        assert cfg.ingest_include == DEFAULT_INCLUDE
        assert cfg.ingest_exclude == DEFAULT_EXCLUDE
        assert run.call_args.kwargs == {"index": True}


def test_pipeline_compiles(tmp_path: Path) -> None:
    from kfp import compiler

    from pipelines.ingestion_pipeline import gitlab_ingestion_pipeline

    target = tmp_path / "pipeline.yaml"
    compiler.Compiler().compile(gitlab_ingestion_pipeline, str(target))
    text = target.read_text()
    assert "gitlab-rag-ingestion-pipeline" in text
    assert "ingest-gitlab-repository" in text


def test_component_runs_on_prebuilt_image(tmp_path: Path) -> None:
    from kfp import compiler

    from pipelines.components.ingest import GITLAB_RAG_IMAGE
    from pipelines.ingestion_pipeline import gitlab_ingestion_pipeline

    target = tmp_path / "pipeline.yaml"
    compiler.Compiler().compile(gitlab_ingestion_pipeline, str(target))
    text = target.read_text()
    assert f"image: {GITLAB_RAG_IMAGE}" in text
    # the package is baked into the image, never installed from an index
    assert "'gitlab-rag-ingest'" not in text
    assert "python:3.11-slim" not in text
