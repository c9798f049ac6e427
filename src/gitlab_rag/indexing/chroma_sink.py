"""Chroma implementation of the chunk sink."""

from __future__ import annotations

import logging
from collections.abc import Sequence

import chromadb
from langchain_community.vectorstores import Chroma
from langchain_core.documents import Document
from langchain_huggingface import HuggingFaceEmbeddings

from gitlab_rag.config import Settings, settings
from gitlab_rag.indexing.base import ChunkSink
from gitlab_rag.ingestion.models import Chunk

logger = logging.getLogger(__name__)


def get_embedding_function(model_name: str = settings.embedding_model) -> HuggingFaceEmbeddings:
    """Return the configured sentence-transformer embedding function."""
    return HuggingFaceEmbeddings(model_name=model_name)


def to_document(chunk: Chunk) -> Document:
    """Wrap a chunk as a LangChain ``Document`` with flat metadata."""
    return Document(page_content=chunk.text, metadata=chunk.to_metadata())


class ChromaChunkSink(ChunkSink):
    """Embeds chunks and upserts them into a Chroma collection.

    Parameters
    ----------
    collection_name:
        Name of the Chroma collection.
    host / port:
        Chroma server connection details.
    embedding_model:
        HuggingFace model id used for text → embedding conversion.
    upsert_batch_size:
        Max documents per upsert request.
    """

    def __init__(
        self,
        collection_name: str = settings.chroma_collection,
        *,
        host: str = settings.chroma_host,
        port: int = settings.chroma_port,
        embedding_model: str = settings.embedding_model,
        upsert_batch_size: int = settings.chroma_upsert_batch_size,
    ) -> None:
        super().__init__(collection_name)
        self.upsert_batch_size = max(1, upsert_batch_size)
        self._client = chromadb.HttpClient(host=host, port=port)
        self._store = Chroma(
            client=self._client,
            collection_name=collection_name,
            embedding_function=get_embedding_function(embedding_model),
        )

    @classmethod
    def from_settings(cls, cfg: Settings) -> ChromaChunkSink:
        return cls(
            cfg.chroma_collection,
            host=cfg.chroma_host,
            port=cfg.chroma_port,
            embedding_model=cfg.embedding_model,
            upsert_batch_size=cfg.chroma_upsert_batch_size,
        )

    def add(self, chunks: Sequence[Chunk]) -> None:
        documents = [to_document(c) for c in chunks]
        ids = [c.id for c in chunks]
        for start in range(0, len(documents), self.upsert_batch_size):
            end = start + self.upsert_batch_size
            self._store.add_documents(documents[start:end], ids=ids[start:end])
            logger.info(
                "Upserted %d/%d chunks → collection '%s'",
                min(end, len(documents)),
                len(documents),
                self.collection_name,
            )

    def health_check(self) -> bool:
        try:
            self._client.heartbeat()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False
