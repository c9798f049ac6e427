"""KFP v2 component — Ingest a GitLab repository into the vector store.

Wraps :func:`gitlab_rag.ingestion.orchestrator.run_ingest` so a whole
tree → chunk → Chroma run executes as one pipeline step.  The GitLab
access token is never a pipeline parameter; mount it into the pod as the
``GITLAB_TOKEN`` environment variable (e.g. from a Kubernetes secret).

Image
-----
``gitlab-rag-ingest`` is not published to PyPI, so the step runs on an
image with the package already installed instead of pip-installing it at
start-up.  Build and push it from the repository root, then point
``GITLAB_RAG_IMAGE`` at it before compiling the pipeline:

    docker build -t registry.example.com/gitlab-rag-ingest:0.1.0 .
    docker push registry.example.com/gitlab-rag-ingest:0.1.0
    GITLAB_RAG_IMAGE=registry.example.com/gitlab-rag-ingest:0.1.0 \
        python -m pipelines.ingestion_pipeline --compile

Local testing
-------------
    from pipelines.components.ingest import ingest_gitlab_repository
    ingest_gitlab_repository.python_func(
        project_path="group/wiki",
        metrics=_FakeArtifact("/tmp/metrics"),
        index=False,
    )
"""

import os

from kfp import dsl

# Image built from the repository Dockerfile.
GITLAB_RAG_IMAGE = os.environ.get("GITLAB_RAG_IMAGE", "gitlab-rag-ingest:0.1.0")


@dsl.component(base_image=GITLAB_RAG_IMAGE)
def ingest_gitlab_repository(
    metrics: dsl.Output[dsl.Metrics],
    project_path: str = "",
    project_id: str = "",
    branch: str = "main",
    host: str = "https://gitlab.com",
    prefix: str = "",
    include: str = "",
    exclude: str = "",
    output_dir: str = "/tmp/chunks_output",
    chroma_host: str = "chroma.kubeflow.svc.cluster.local",
    chroma_port: int = 8000,
    collection_name: str = "gitlab_rag",
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2",
    chunk_size: int = 2000,
    chunk_overlap: int = 200,
    concurrency: int = 4,
    index: bool = True,
) -> str:
    """Run one GitLab ingest and report its counts.

    Parameters
    ----------
    metrics:
        Output Metrics artifact with file / chunk / skip counts.
    project_path / project_id:
        Repository to ingest; a non-empty id skips the project lookup.
    branch / host:
        Ref and GitLab base URL.
    prefix:
        Only ingest ``<prefix>.md`` and ``<prefix>/**``.
    include / exclude:
        Comma-separated glob overrides; empty keeps the defaults.
    output_dir:
        Parent directory for the session artifacts.
    chroma_host / chroma_port / collection_name:
        Chroma connection details.
    embedding_model:
        HuggingFace model identifier for embedding.
    chunk_size / chunk_overlap:
        Chunking parameters.
    concurrency:
        Files processed in parallel.
    index:
        Submit chunks to Chroma; ``False`` writes artifacts only.

    Returns
    -------
    str
        Human-readable summary.
    """
    import logging

    from gitlab_rag.config import Settings
    from gitlab_rag.ingestion.orchestrator import run_ingest

    logging.basicConfig(level=logging.INFO)

    update = {
        "gitlab_host": host,
        "gitlab_project_path": project_path,
        "gitlab_project_id": project_id,
        "gitlab_branch": branch,
        "gitlab_only_path_prefix": prefix.strip(),
        "ingest_output_dir": output_dir,
        "ingest_concurrency": concurrency,
        "chroma_host": chroma_host,
        "chroma_port": chroma_port,
        "chroma_collection": collection_name,
        "embedding_model": embedding_model,
        "chunk_size": chunk_size,
        "chunk_overlap": chunk_overlap,
    }
    if include.strip():
        update["ingest_include"] = include
    if exclude.strip():
        update["ingest_exclude"] = exclude

    cfg = Settings(**update)
    report = run_ingest(cfg, index=index)

    metrics.log_metric("total_files", report.total_files)
    metrics.log_metric("total_chunks", report.total_chunks)
    metrics.log_metric("files_skipped", len(report.skipped))

    msg = (
        f"Ingest {report.status.value}: {report.total_chunks} chunks from "
        f"{report.total_files} files ({len(report.skipped)} skipped) → {report.session_dir}"
    )
    print(msg)
    return msg
