"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

from typing import Annotated

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode

DEFAULT_INCLUDE = ["**/*.md", "**/*.txt", "**/*.html", "**/*.pdf"]
DEFAULT_EXCLUDE = [".git/**", "**/node_modules/**"]


def split_list(raw: str | list[str] | None, fallback: list[str]) -> list[str]:
    """Split a comma-separated value, dropping blanks; blank input → *fallback*."""
    if raw is None:
        return list(fallback)
    parts = raw.split(",") if isinstance(raw, str) else raw
    out = [p.strip() for p in parts if p and p.strip()]
    return out or list(fallback)


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # GitLab source
    gitlab_host: str = Field(default="https://gitlab.com", description="GitLab base URL")
    gitlab_project_path: str = Field(
        default="",
        description="Namespaced project path, e.g. 'group/wiki'. Ignored when a project id is set.",
    )
    gitlab_project_id: str = Field(
        default="",
        description="Numeric project id; skips the path → id lookup when set.",
    )
    gitlab_branch: str = "main"
    gitlab_token: str = Field(default="", description="Sent as PRIVATE-TOKEN when non-empty")
    gitlab_only_path_prefix: str = Field(
        default="",
        description=(
            "Restrict ingestion to '<prefix>.md' and everything under '<prefix>/'. "
            "When set, include globs are not consulted."
        ),
    )

    # Selection / limits
    ingest_include: Annotated[list[str], NoDecode] = Field(default_factory=lambda: list(DEFAULT_INCLUDE))
    ingest_exclude: Annotated[list[str], NoDecode] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE))
    ingest_max_bytes_per_file: int = 2_000_000
    ingest_output_dir: str = "chunks_output"
    ingest_concurrency: int = Field(default=4, ge=1)

    # Chunking
    chunk_size: int = Field(default=2000, gt=0)
    chunk_overlap: int = Field(default=200, ge=0)

    # HTTP
    http_timeout_seconds: float = 30.0
    http_max_retries: int = Field(default=3, ge=1)
    http_retry_backoff: float = 1.0

    # Vector store
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    chroma_collection: str = "gitlab_rag"
    chroma_upsert_batch_size: int = 5000

    # Embedding
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @field_validator("ingest_include", mode="before")
    @classmethod
    def _split_include(cls, value: str | list[str] | None) -> list[str]:
        return split_list(value, DEFAULT_INCLUDE)

    @field_validator("ingest_exclude", mode="before")
    @classmethod
    def _split_exclude(cls, value: str | list[str] | None) -> list[str]:
        return split_list(value, DEFAULT_EXCLUDE)

    @field_validator("gitlab_only_path_prefix")
    @classmethod
    def _strip_prefix(cls, value: str) -> str:
        return value.strip()

    @model_validator(mode="after")
    def _check_overlap(self) -> Settings:
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be < chunk_size ({self.chunk_size})"
            )
        return self


# Module-level singleton; import `settings` wherever needed.
settings = Settings()
