"""KFP v2 components — each file exports one @dsl.component."""

from pipelines.components.ingest import ingest_gitlab_repository

__all__ = ["ingest_gitlab_repository"]
