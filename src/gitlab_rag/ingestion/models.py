"""Domain models flowing through the ingestion pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ProjectRef(BaseModel):
    """A GitLab project pinned to a branch, with its resolved numeric id."""

    host: str
    repo_path: str = ""
    resolved_id: str
    branch: str


class EntryKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


class TreeEntry(BaseModel):
    """One row of a recursive repository tree listing.

    Attributes
    ----------
    blob_id:
        GitLab object id; for files this is the blob sha used by the
        blob-raw fallback.
    path:
        Repository-relative path.
    kind:
        ``file`` for GitLab ``blob`` entries, ``directory`` otherwise.
    mode:
        Git file mode string (``"100644"`` …).
    """

    blob_id: str
    path: str
    kind: EntryKind
    mode: str = ""

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> TreeEntry:
        kind = EntryKind.FILE if str(item.get("type", "")).lower() == "blob" else EntryKind.DIRECTORY
        return cls(
            blob_id=str(item.get("id", "")),
            path=str(item.get("path", "")),
            kind=kind,
            mode=str(item.get("mode", "")),
        )


class RawContent(BaseModel):
    """Raw bytes of one repository file."""

    path: str
    data: bytes

    @property
    def size_bytes(self) -> int:
        return len(self.data)


class Chunk(BaseModel):
    """A bounded slice of a document plus the metadata needed to cite it.

    Chunks are immutable.  The orchestrator attaches ``global_sequence``
    via :meth:`with_sequence`, which returns a copy.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    source_uri: str
    repo_path: str
    branch: str = ""
    text: str
    chunk_index: int
    offset: int
    length: int
    breadcrumb: str = ""
    section_slug: str = ""
    front_matter: dict[str, str] = Field(default_factory=dict)
    page: int | None = None
    global_sequence: int | None = None

    def with_sequence(self, sequence: int) -> Chunk:
        return self.model_copy(update={"global_sequence": sequence})

    def to_record(self) -> dict[str, Any]:
        """Per-chunk artifact payload (key order is the on-disk order)."""
        record: dict[str, Any] = {
            "id": self.id,
            "source": self.source_uri,
            "repo_path": self.repo_path,
            "repo_branch": self.branch,
        }
        if self.breadcrumb:
            record["breadcrumbs"] = self.breadcrumb
            record["section_id"] = self.section_slug
        for key, value in self.front_matter.items():
            record[f"fm:{key}"] = value
        if self.page is not None:
            record["page"] = self.page
        record["chunk_index"] = self.chunk_index
        record["offset"] = self.offset
        record["length"] = self.length
        record["content"] = self.text
        return record

    def to_metadata(self) -> dict[str, str | int]:
        """Flat scalar metadata for vector stores (no nested values)."""
        meta: dict[str, str | int] = {
            "id": self.id,
            "source": self.source_uri,
            "repo_path": self.repo_path,
            "repo_branch": self.branch,
            "chunk_index": self.chunk_index,
            "offset": self.offset,
            "length": self.length,
        }
        if self.breadcrumb:
            meta["breadcrumbs"] = self.breadcrumb
            meta["section_id"] = self.section_slug
        if self.page is not None:
            meta["page"] = self.page
        if self.global_sequence is not None:
            meta["g_index"] = self.global_sequence
        for key, value in self.front_matter.items():
            meta[f"fm:{key}"] = value
        return meta
