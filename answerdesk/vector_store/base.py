"""Shared SQLite schema and the resource catalog for vector stores."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    import numpy as np

from answerdesk.config import config
from answerdesk.models import KnowledgeChunk, ResourceRecord

logger = config.get_logger(__name__)

_CHUNK_COLUMNS = """
    c.id,
    c.content,
    c.chunk_id,
    c.vector_file,
    c.vector_id,
    c.resource_id
"""


class BaseSQLiteStore:
    """Chunk metadata and the resource catalog, both kept in SQLite."""

    def __init__(self, db_path: Path) -> None:
        """Initialize metadata store and ensure schema exists."""
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(exist_ok=True, parents=True)
        self._create_tables()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self.db_path))

    def _create_tables(self) -> None:
        """Create resources and chunks tables if they don't exist."""
        with self._connect() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS resources (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT DEFAULT '',
                    file_type TEXT DEFAULT '',
                    file_size INTEGER DEFAULT 0,
                    category TEXT DEFAULT '',
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS chunks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    resource_id TEXT NOT NULL,
                    chunk_id INTEGER NOT NULL DEFAULT 0,
                    content TEXT NOT NULL,
                    vector_file TEXT,
                    vector_id INTEGER UNIQUE,
                    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                )
            """)

            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_chunks_resource ON chunks(resource_id)",
            )
            cursor.execute(
                (
                    "CREATE UNIQUE INDEX IF NOT EXISTS idx_chunks_vector_id "
                    "ON chunks(vector_id)"
                ),
            )
            conn.commit()

    def add_resources(self, records: Iterable[ResourceRecord]) -> None:
        """Insert or replace catalog records."""
        rows = [
            (
                record.id,
                record.title,
                record.description,
                record.file_type,
                record.file_size,
                record.category,
                record.created_at,
            )
            for record in records
        ]
        if not rows:
            return

        with self._connect() as conn:
            conn.executemany(
                """
                INSERT OR REPLACE INTO resources (
                    id, title, description, file_type, file_size, category, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, COALESCE(?, CURRENT_TIMESTAMP))
                """,
                rows,
            )
            conn.commit()

        logger.info("Stored %d catalog records", len(rows))

    def get_resources(self, resource_ids: Sequence[str]) -> list[ResourceRecord]:
        """Fetch catalog records for all ids in one query.

        Ids without a record are left out of the result.

        Returns:
            Records found, in catalog order.
        """
        if not resource_ids:
            return []

        placeholders = ", ".join("?" for _ in resource_ids)
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT id, title, description, file_type, file_size, category,
                       created_at
                FROM resources
                WHERE id IN ({placeholders})
                ORDER BY created_at, id
                """,  # noqa: S608
                [str(resource_id) for resource_id in resource_ids],
            )
            rows = cursor.fetchall()

        return [
            ResourceRecord(
                id=row[0],
                title=row[1],
                description=row[2] or "",
                file_type=row[3] or "",
                file_size=int(row[4] or 0),
                category=row[5] or "",
                created_at=row[6],
            )
            for row in rows
        ]

    @staticmethod
    def _insert_chunk_row(
        cursor: sqlite3.Cursor,
        chunk: KnowledgeChunk,
        *,
        vector_file: str | None,
    ) -> int:
        """Persist a chunk row and return its id.

        The id doubles as the row's ``vector_id``, the key used by the
        vector indexes.

        Raises:
            RuntimeError: If the chunk row cannot be inserted.
        """
        cursor.execute(
            """
            INSERT INTO chunks (resource_id, chunk_id, content, vector_file)
            VALUES (?, ?, ?, ?)
            """,
            (chunk.resource_id, chunk.chunk_id, chunk.content, vector_file),
        )

        chunk_row_id = cursor.lastrowid
        if chunk_row_id is None:
            msg = "Failed to insert chunk row"
            raise RuntimeError(msg)
        chunk_db_id = int(chunk_row_id)
        cursor.execute(
            "UPDATE chunks SET vector_id = ? WHERE id = ?",
            (chunk_db_id, chunk_db_id),
        )
        return chunk_db_id

    @staticmethod
    def _build_chunk_from_row(
        row: tuple,
        *,
        embedding: np.ndarray | None = None,
    ) -> KnowledgeChunk:
        _chunk_db_id, content, chunk_id, _vector_file, _vector_id, resource_id = row
        return KnowledgeChunk(
            content=content,
            resource_id=resource_id,
            chunk_id=int(chunk_id),
            embedding=embedding,
        )

    def _load_chunk_rows(self, cursor: sqlite3.Cursor) -> list[tuple]:
        cursor.execute(f"SELECT {_CHUNK_COLUMNS} FROM chunks c ORDER BY c.id")  # noqa: S608
        return cursor.fetchall()

    def _fetch_chunk_by_vector_id(
        self,
        cursor: sqlite3.Cursor,
        vector_id: int,
    ) -> KnowledgeChunk | None:
        """Fetch a chunk by FAISS/embedding vector id.

        Returns:
            KnowledgeChunk if found; otherwise None.
        """
        cursor.execute(
            f"SELECT {_CHUNK_COLUMNS} FROM chunks c WHERE c.vector_id = ?",  # noqa: S608
            (int(vector_id),),
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return self._build_chunk_from_row(row)

