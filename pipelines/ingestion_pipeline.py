"""KFP v2 pipeline — GitLab repository ingestion.

A single step that lists a GitLab repository tree, chunks every selected
Markdown / text / HTML / PDF file, writes the session artifacts and
upserts the chunks into Chroma.

Compile
-------
    python -m pipelines.ingestion_pipeline --compile

The GitLab token is read from the ``GITLAB_TOKEN`` env var inside the
step; attach it from a Kubernetes secret when submitting the run.
"""

from kfp import compiler, dsl

from pipelines.components.ingest import ingest_gitlab_repository


@dsl.pipeline(
    name="gitlab-rag-ingestion-pipeline",
    description=(
        "Ingest a GitLab repository: list tree → filter paths → "
        "fetch & normalise → section-aware chunking → index in Chroma."
    ),
)
def gitlab_ingestion_pipeline(
    # ── Source ──────────────────────────────────────────────────────
    project_path: str = "",
    project_id: str = "",
    branch: str = "main",
    host: str = "https://gitlab.com",
    prefix: str = "",
    include: str = "",
    exclude: str = "",
    # ── Chunking ───────────────────────────────────────────────────
    chunk_size: int = 2000,
    chunk_overlap: int = 200,
    concurrency: int = 4,
    # ── Vector DB ──────────────────────────────────────────────────
    chroma_host: str = "chroma.kubeflow.svc.cluster.local",
    chroma_port: int = 8000,
    collection_name: str = "gitlab_rag",
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2",
    index: bool = True,
) -> None:
    """Ingest one GitLab repository into the vector store.

    Parameters
    ----------
    project_path / project_id:
        Repository to ingest; a non-empty id skips the project lookup.
    branch / host:
        Ref and GitLab base URL.
    prefix:
        Only ingest ``<prefix>.md`` and ``<prefix>/**``.
    include / exclude:
        Comma-separated glob overrides.
    chunk_size / chunk_overlap:
        Chunking parameters.
    concurrency:
        Files processed in parallel.
    chroma_host / chroma_port / collection_name:
        Chroma connection details.
    embedding_model:
        HuggingFace model identifier for embedding.
    index:
        Submit chunks to Chroma; ``False`` writes artifacts only.
    """
    ingest_gitlab_repository(
        project_path=project_path,
        project_id=project_id,
        branch=branch,
        host=host,
        prefix=prefix,
        include=include,
        exclude=exclude,
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
        concurrency=concurrency,
        chroma_host=chroma_host,
        chroma_port=chroma_port,
        collection_name=collection_name,
        embedding_model=embedding_model,
        index=index,
    )


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="GitLab RAG ingestion pipeline")
    parser.add_argument(
        "--compile",
        action="store_true",
        help="Compile pipeline to YAML",
    )
    parser.add_argument(
        "--output",
        default="pipelines/compiled/gitlab_ingestion_pipeline.yaml",
        help="Output path for compiled YAML",
    )
    args = parser.parse_args()

    if args.compile:
        compiler.Compiler().compile(gitlab_ingestion_pipeline, args.output)
        print(f"Pipeline compiled → {args.output}")
