"""SQLite-based vector storage with numpy file backend."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import numpy as np

from answerdesk.config import config
from answerdesk.models import KnowledgeChunk  # noqa: TC001
from answerdesk.vector_store.base import BaseSQLiteStore

logger = config.get_logger(__name__)


class SQLiteVectorStore(BaseSQLiteStore):
    """Vector storage using SQLite for metadata and numpy files for embeddings."""

    backend = "sqlite"

    def __init__(
        self,
        db_path: Path = Path("data/knowledge.db"),
        vectors_dir: Path = Path("data/vectors"),
    ) -> None:
        """Initialize the SQLiteVectorStore with database and vector directory paths.

        Args:
            db_path: Path to the SQLite database file.
            vectors_dir: Directory to store numpy vector files.
        """
        self.vectors_dir = Path(vectors_dir)
        self.vectors_dir.mkdir(exist_ok=True, parents=True)

        self.chunks: list[KnowledgeChunk] = []
        self.embeddings: np.ndarray | None = None
        self.vector_ids: list[int] = []

        super().__init__(db_path)

    def add_chunks(self, chunks: list[KnowledgeChunk]) -> None:
        """Add already-embedded chunks to the store."""
        if not chunks:
            return

        inserted = 0

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

                chunk_db_id = self._insert_chunk_row(cursor, chunk, vector_file=None)
                vector_filename = f"chunk{chunk_db_id:08d}.npy"
                np.save(self.vectors_dir / vector_filename, np.asarray(chunk.embedding))
                cursor.execute(
                    "UPDATE chunks SET vector_file = ? WHERE id = ?",
                    (vector_filename, chunk_db_id),
                )

                self.chunks.append(chunk)
                inserted += 1

            conn.commit()

        self._rebuild_embeddings_matrix()

        logger.info("Added %d chunks to SQLite vector store", inserted)

    def _rebuild_embeddings_matrix(self) -> None:
        """Rebuild the embeddings matrix from individual vector files."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT vector_id, vector_file FROM chunks
                WHERE vector_file IS NOT NULL
                ORDER BY id
                """
            )
            rows = cursor.fetchall()

        embeddings_list = []
        vector_ids = []
        for vector_id, vector_file in rows:
            vector_path = self.vectors_dir / vector_file
            if vector_path.exists():
                embeddings_list.append(np.load(vector_path))
                vector_ids.append(int(vector_id))
            else:
                logger.warning("Vector file not found: %s", vector_path)

        self.vector_ids = vector_ids
        self.embeddings = np.vstack(embeddings_list) if embeddings_list else None

        logger.info("Rebuilt embeddings matrix with %d vectors", len(embeddings_list))

    @staticmethod
    def cosine_similarity(
        query_embedding: np.ndarray,
        embeddings: np.ndarray,
    ) -> np.ndarray:
        """Calculate cosine similarity between query and stored embeddings.

        Zero-norm rows score 0 instead of producing NaN.

        Returns:
            np.ndarray: One similarity score per stored embedding.
        """
        query = np.asarray(query_embedding, dtype=np.float64)
        query_norm = np.linalg.norm(query)
        if query_norm == 0:
            return np.zeros(embeddings.shape[0])

        doc_norms = np.linalg.norm(embeddings, axis=1, keepdims=True)
        doc_norms[doc_norms == 0] = 1.0
        return np.dot(embeddings / doc_norms, query / query_norm)

    def search(
        self,
        query_embedding: np.ndarray,
        top_k: int = 2,
    ) -> list[tuple[KnowledgeChunk, float]]:
        """Search for similar chunks based on query embedding.

        Returns:
            (KnowledgeChunk, similarity) tuples, most similar first.

        Raises:
            ValueError: If the query dimension does not match stored vectors.
        """
        if self.embeddings is None:
            self._rebuild_embeddings_matrix()

        if self.embeddings is None:
            return []

        if np.asarray(query_embedding).shape[-1] != self.embeddings.shape[1]:
            msg = (
                f"Query dimension {np.asarray(query_embedding).shape[-1]} does not "
                f"match stored dimension {self.embeddings.shape[1]}"
            )
            raise ValueError(msg)

        similarities = self.cosine_similarity(query_embedding, self.embeddings)
        top_indices = np.argsort(-similarities, kind="stable")[:top_k]

        results = []
        with self._connect() as conn:
            cursor = conn.cursor()
            for idx in top_indices:
                score = float(similarities[idx])
                chunk = self._fetch_chunk_by_vector_id(cursor, self.vector_ids[idx])
                if chunk:
                    logger.debug(
                        "Retrieved chunk %s of %s with similarity %.4f",
                        chunk.chunk_id,
                        chunk.resource_id,
                        score,
                    )
                    results.append((chunk, score))

        return results

    def load(self) -> None:
        """Load chunks from SQLite database.

        Raises:
            sqlite3.Error: If an error occurs while loading
                    from the SQLite vector store.
        """
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                self.chunks = []
                for row in self._load_chunk_rows(cursor):
                    chunk = self._build_chunk_from_row(row)
                    vector_file = row[3]
                    if vector_file:
                        vector_path = self.vectors_dir / str(vector_file)
                        if vector_path.exists():
                            chunk.embedding = np.load(vector_path)
                        else:
                            logger.warning("Vector file missing: %s", vector_path)
                    self.chunks.append(chunk)

            self._rebuild_embeddings_matrix()

            logger.info("Loaded %d chunks from SQLite vector store", len(self.chunks))

        except sqlite3.Error:
            logger.exception("Error loading from SQLite vector store")
            raise
