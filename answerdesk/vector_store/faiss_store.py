"""Knowledge chunks in a FAISS inner-product index, metadata in SQLite."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING

import faiss
import numpy as np

from answerdesk.config import config
from answerdesk.vector_store.base import BaseSQLiteStore

if TYPE_CHECKING:
    from collections.abc import Iterable

    from answerdesk.models import KnowledgeChunk

logger = config.get_logger(__name__)


class FaissVectorStore(BaseSQLiteStore):
    """Exact cosine search over unit vectors with FAISS ``IndexFlatIP``.

    FAISS ids are the ``vector_id`` of the chunk rows, so a search hit maps
    straight back to its metadata row.
    """

    backend = "faiss"

    def __init__(
        self,
        db_path: Path = Path("data/knowledge.db"),
        index_path: Path = Path("data/faiss/index.faiss"),
        raw_top_k_multiplier: int = 2,
    ) -> None:
        self.index_path = Path(index_path)
        self.index_path.parent.mkdir(exist_ok=True, parents=True)

        self.index: faiss.IndexIDMap | None = None
        self.raw_top_k_multiplier = max(1, raw_top_k_multiplier)
        self.chunks: list[KnowledgeChunk] = []

        super().__init__(db_path)

    @staticmethod
    def _as_unit_row(embedding: Iterable[float]) -> np.ndarray:
        """Copy to float32 and L2-normalize in place; zero vectors stay zero."""  # noqa: DOC201
        vector = np.array(embedding, dtype="float32")
        if np.linalg.norm(vector) > 0:
            faiss.normalize_L2(vector.reshape(1, -1))
        return vector

    def _check_dimension(self, size: int, what: str) -> None:
        if self.index is not None and size != self.index.d:
            msg = (
                f"{what} dimension {size} does not match "
                f"FAISS index dimension {self.index.d}"
            )
            raise ValueError(msg)

    def _read_index(self) -> faiss.IndexIDMap | None:
        if not self.index_path.exists():
            return None
        index = faiss.read_index(str(self.index_path))
        if not isinstance(index, (faiss.IndexIDMap, faiss.IndexIDMap2)):
            logger.warning(
                "Index at %s is %s; wrapping it in IndexIDMap",
                self.index_path,
                type(index).__name__,
            )
            index = faiss.IndexIDMap(index)
        logger.info("Read FAISS index with %d vectors", index.ntotal)
        return index

    def add_chunks(self, chunks: list[KnowledgeChunk]) -> None:
        """Insert embedded chunks into SQLite and the index in one batch.

        Raises:
            ValueError: If an embedding has a different dimension than the index.
        """
        rows: list[np.ndarray] = []
        ids: list[int] = []

        with self._connect() as conn:
            cursor = conn.cursor()
            for chunk in chunks:
                if chunk.embedding is None:
                    logger.warning(
                        "Skipping chunk %s of %s without embedding",
                        chunk.chunk_id,
                        chunk.resource_id,
                    )
                    continue

                row = self._as_unit_row(chunk.embedding)
                if self.index is None:
                    self.index = faiss.IndexIDMap(faiss.IndexFlatIP(row.shape[0]))
                    logger.info("Created FAISS index with dimension %d", row.shape[0])
                self._check_dimension(row.shape[0], "Embedding")

                vector_id = self._insert_chunk_row(cursor, chunk, vector_file=None)
                rows.append(row)
                ids.append(vector_id)
                self.chunks.append(chunk)
            conn.commit()

        if not rows or self.index is None:
            logger.warning("No embeddings added to FAISS index")
            return

        self.index.add_with_ids(  # pyright: ignore[reportCallIssue]
            np.vstack(rows), np.asarray(ids, dtype="int64")
        )
        logger.info("Indexed %d chunks (total %d)", len(ids), self.index.ntotal)

    def search(
        self,
        query_embedding: np.ndarray,
        top_k: int = 2,
    ) -> list[tuple[KnowledgeChunk, float]]:
        """Return up to ``top_k`` chunks by descending inner product.

        Hits whose metadata row is gone are skipped; the index is asked for
        ``raw_top_k_multiplier`` times more candidates to make up for them.

        Raises:
            ValueError: If the query dimension does not match the index.
        """
        if self.index is None:
            self.index = self._read_index()
        if self.index is None or self.index.ntotal == 0:
            logger.warning("FAISS index is empty; returning no results")
            return []

        query = self._as_unit_row(query_embedding)
        self._check_dimension(query.shape[0], "Query")

        candidates = min(self.index.ntotal, top_k * self.raw_top_k_multiplier)
        scores, vector_ids = self.index.search(  # pyright: ignore[reportCallIssue]
            query.reshape(1, -1), candidates
        )

        hits: list[tuple[KnowledgeChunk, float]] = []
        with self._connect() as conn:
            cursor = conn.cursor()
            for score, vector_id in zip(scores[0], vector_ids[0], strict=True):
                if vector_id < 0:
                    continue
                chunk = self._fetch_chunk_by_vector_id(cursor, int(vector_id))
                if chunk is not None:
                    hits.append((chunk, float(score)))
                if len(hits) == top_k:
                    break
        return hits

    def save(self) -> None:
        """Write the index next to the metadata database."""
        if self.index is None:
            logger.warning("No FAISS index to save")
            return
        self.index_path.parent.mkdir(exist_ok=True, parents=True)
        faiss.write_index(self.index, str(self.index_path))
        logger.info("Saved FAISS index to %s", self.index_path)

    def load(self) -> None:
        """Read the index file and the chunk metadata.

        Raises:
            sqlite3.Error: If the metadata cannot be read.
        """
        self.index = self._read_index()
        if self.index is None:
            logger.warning("No FAISS index at %s; starting empty", self.index_path)

        try:
            with self._connect() as conn:
                rows = self._load_chunk_rows(conn.cursor())
                self.chunks = [self._build_chunk_from_row(row) for row in rows]
        except sqlite3.Error:
            logger.exception("Error loading FAISS store metadata")
            raise
        logger.info("Loaded %d chunks from metadata store", len(self.chunks))
