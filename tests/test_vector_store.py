"""Unit tests for SQLiteVectorStore and the resource catalog."""

import sqlite3

import numpy as np
import pytest

from answerdesk import KnowledgeChunk, ResourceRecord, SQLiteVectorStore
from answerdesk.vector_store import FaissVectorStore, get_vector_store


def test_store_initialization(temp_sqlite_store):
    store = temp_sqlite_store

    assert store.db_path.exists()
    assert store.vectors_dir.exists()
    assert store.chunks == []
    assert store.embeddings is None


def test_search_empty_store_returns_nothing(temp_sqlite_store, mock_embedding_service):
    query = mock_embedding_service.embed("anything")
    assert temp_sqlite_store.search(query, top_k=2) == []


def test_add_and_search_ranks_by_similarity(knowledge_store, sample_knowledge_chunks):
    query = sample_knowledge_chunks[1].embedding

    results = knowledge_store.search(query, top_k=2)

    assert len(results) == 2
    best_chunk, best_score = results[0]
    assert best_chunk.resource_id == "r2"
    assert best_chunk.content == sample_knowledge_chunks[1].content
    assert best_score == pytest.approx(1.0)
    assert results[0][1] >= results[1][1]


def test_search_respects_top_k(knowledge_store, mock_embedding_service):
    query = mock_embedding_service.embed("câu lạc bộ")
    assert len(knowledge_store.search(query, top_k=1)) == 1
    assert len(knowledge_store.search(query, top_k=10)) == 3


def test_search_rejects_dimension_mismatch(knowledge_store):
    with pytest.raises(ValueError, match="dimension"):
        knowledge_store.search(np.ones(8), top_k=2)


def test_skips_chunks_without_embedding(temp_sqlite_store):
    temp_sqlite_store.add_chunks(
        [KnowledgeChunk(content="no vector", resource_id="r9", embedding=None)]
    )

    with sqlite3.connect(temp_sqlite_store.db_path) as conn:
        count = conn.execute("SELECT COUNT(*) FROM chunks").fetchone()[0]
    assert count == 0
    assert temp_sqlite_store.embeddings is None


def test_load_restores_chunks_from_disk(knowledge_store, sample_knowledge_chunks):
    reloaded = SQLiteVectorStore(knowledge_store.db_path, knowledge_store.vectors_dir)
    reloaded.load()

    assert len(reloaded.chunks) == len(sample_knowledge_chunks)
    assert [chunk.resource_id for chunk in reloaded.chunks] == ["r1", "r2", "r3"]
    assert reloaded.embeddings.shape == (3, sample_knowledge_chunks[0].embedding.size)

    results = reloaded.search(sample_knowledge_chunks[2].embedding, top_k=1)
    assert results[0][0].resource_id == "r3"


def test_cosine_similarity_handles_zero_vectors():
    embeddings = np.array([[1.0, 0.0], [0.0, 0.0]])

    scores = SQLiteVectorStore.cosine_similarity(np.array([2.0, 0.0]), embeddings)
    np.testing.assert_allclose(scores, [1.0, 0.0])

    zero_query = SQLiteVectorStore.cosine_similarity(np.zeros(2), embeddings)
    np.testing.assert_allclose(zero_query, [0.0, 0.0])


def test_get_resources_batched_lookup(knowledge_store):
    records = knowledge_store.get_resources(["r2", "r1", "missing"])

    assert {record.id for record in records} == {"r1", "r2"}
    by_id = {record.id: record for record in records}
    assert by_id["r1"].title == "Điều lệ CLB IT UP"
    assert by_id["r1"].file_size == 204800
    assert by_id["r2"].category == "about"


def test_get_resources_empty_ids(knowledge_store):
    assert knowledge_store.get_resources([]) == []


def test_add_resources_replaces_existing(temp_sqlite_store):
    temp_sqlite_store.add_resources([ResourceRecord(id="r1", title="Old")])
    temp_sqlite_store.add_resources([ResourceRecord(id="r1", title="New")])

    records = temp_sqlite_store.get_resources(["r1"])
    assert len(records) == 1
    assert records[0].title == "New"
    assert records[0].created_at is not None


@pytest.mark.parametrize(
    ("backend", "expected_type"),
    [("sqlite", SQLiteVectorStore), ("faiss", FaissVectorStore), ("FAISS", FaissVectorStore)],
)
def test_get_vector_store_backends(tmp_path, backend, expected_type):
    store = get_vector_store(
        backend,
        db_path=tmp_path / "store.db",
        vectors_dir=tmp_path / "vectors",
        index_path=tmp_path / "faiss" / "index.faiss",
    )
    assert isinstance(store, expected_type)


def test_get_vector_store_unknown_backend(tmp_path):
    with pytest.raises(ValueError, match="Unsupported vector store backend"):
        get_vector_store("pinecone", db_path=tmp_path / "store.db")  # type: ignore[arg-type]


def test_chunk_row_id_is_vector_id(temp_sqlite_store):
    chunk = KnowledgeChunk(content="nội dung", resource_id="r1", chunk_id=3)

    with sqlite3.connect(temp_sqlite_store.db_path) as conn:
        cursor = conn.cursor()
        row_id = temp_sqlite_store._insert_chunk_row(cursor, chunk, vector_file=None)
        stored = cursor.execute(
            "SELECT id, vector_id FROM chunks WHERE id = ?", (row_id,)
        ).fetchone()

    assert isinstance(row_id, int)
    assert stored == (row_id, row_id)


def test_added_chunks_are_durable_without_save(
    temp_sqlite_store, sample_knowledge_chunks
):
    temp_sqlite_store.add_chunks(sample_knowledge_chunks)

    reopened = SQLiteVectorStore(temp_sqlite_store.db_path, temp_sqlite_store.vectors_dir)
    reopened.load()

    assert not hasattr(temp_sqlite_store, "save")
    assert len(reopened.search(sample_knowledge_chunks[0].embedding, top_k=1)) == 1
