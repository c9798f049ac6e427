"""
Indexing — the downstream sink that receives each run's chunk batch.

Public surface
--------------
- :class:`ChunkSink` — abstract batch-add contract.
- :class:`ChromaChunkSink` — default Chroma backend (lazy import).
- :func:`to_document` — chunk → LangChain ``Document`` conversion.
"""

from gitlab_rag.indexing.base import ChunkSink

__all__ = ["ChromaChunkSink", "ChunkSink", "to_document"]


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import the Chroma backend to avoid pulling in chromadb at import time."""
    if name in {"ChromaChunkSink", "to_document"}:
        from gitlab_rag.indexing import chroma_sink

        return getattr(chroma_sink, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
