"""Knowledge retrieval over the vector store."""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING, Protocol

from .config import config
from .errors import RetrievalError
from .models import RetrievedChunk

if TYPE_CHECKING:
    import numpy as np

    from .models import KnowledgeChunk

logger = config.get_logger(__name__)


class VectorSearch(Protocol):
    """Similarity search as exposed by the vector store backends."""

    def search(
        self, query_embedding: np.ndarray, top_k: int = ...
    ) -> list[tuple[KnowledgeChunk, float]]: ...


class KnowledgeRetriever:
    """Fetches the chunks most similar to a query vector.

    Ranking is owned by the store: results are neither re-scored nor
    filtered, only numbered in the order they arrive.
    """

    def __init__(self, store: VectorSearch, default_limit: int | None = None) -> None:
        self.store = store
        self.default_limit = default_limit or config.RETRIEVAL_LIMIT

    def retrieve(
        self, query: np.ndarray, limit: int | None = None
    ) -> list[RetrievedChunk]:
        """Run one similarity search.

        Returns:
            Chunks ranked from 1, most similar first. An empty list means the
            knowledge base has nothing relevant.

        Raises:
            ValueError: If ``limit`` is not positive.
            RetrievalError: If the store cannot be queried.
        """
        limit = self.default_limit if limit is None else limit
        if limit <= 0:
            msg = f"Retrieval limit must be positive, got {limit}"
            raise ValueError(msg)

        try:
            matches = self.store.search(query, top_k=limit)
        except (sqlite3.Error, RuntimeError, ValueError) as e:
            logger.exception("Vector store search failed")
            msg = "Knowledge search failed"
            raise RetrievalError(msg, upstream_message=str(e)) from e

        chunks = [
            RetrievedChunk(
                rank=rank,
                content=chunk.content,
                similarity=float(score),
                resource_id=chunk.resource_id,
                chunk_id=chunk.chunk_id,
            )
            for rank, (chunk, score) in enumerate(matches, start=1)
        ]
        logger.info("Retrieved %d chunks (limit %d)", len(chunks), limit)
        return chunks
