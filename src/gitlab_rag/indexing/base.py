"""Abstract base class for chunk sinks.

A sink receives the complete, sequenced chunk set of a run in a single
:meth:`ChunkSink.add` call.  Chunk ids are deterministic, so backends
should upsert by id to keep re-runs idempotent.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from gitlab_rag.ingestion.models import Chunk


class ChunkSink(ABC):
    """Backend-agnostic batch-add interface.

    Parameters
    ----------
    collection_name:
        Logical name of the collection / index / namespace.
    """

    def __init__(self, collection_name: str) -> None:
        self.collection_name = collection_name

    @abstractmethod
    def add(self, chunks: Sequence[Chunk]) -> None:
        """Add (or overwrite, keyed by ``chunk.id``) every chunk in *chunks*."""
        ...

    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable.  Optional."""
        return True
