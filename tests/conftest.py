"""Test configuration and fixtures for AnswerDesk tests.

This module provides reusable test fixtures organized by functionality:
- Constants and test data
- Mock services and API responses
- EmbeddingService / GenerationService fixtures
- Vector store fixtures
- Pipeline and session fixtures
"""

import datetime
import hashlib
from unittest.mock import Mock, create_autospec, patch

import numpy as np
import pytest

from answerdesk import (
    AnswerPipeline,
    ChatSessionStore,
    ChatTurn,
    EmbeddingService,
    FaissVectorStore,
    GenerationService,
    HistoryCache,
    KnowledgeChunk,
    KnowledgeRetriever,
    ResourceRecord,
    SourceResolver,
    SQLiteVectorStore,
)


class TestConstants:
    """Centralized test constants to avoid repetition across test files."""

    __test__ = False

    # API Configuration
    TEST_API_KEY = "test-key"
    TEST_EMBEDDING_MODEL = "gemini-embedding-001"
    TEST_CHAT_MODEL = "gemini-2.5-flash"
    EMBEDDING_DIMENSION = 3072

    # Knowledge base
    FOUNDING_QUESTION = "Câu lạc bộ được thành lập khi nào?"
    RESOURCE_IDS = ("r1", "r2", "r3")


class MockEmbeddingService:
    """Mock embedding service for testing without API calls.

    Generates deterministic unit embeddings based on text content hash,
    ensuring consistent test results across runs.
    """

    def __init__(self, dimension: int = TestConstants.EMBEDDING_DIMENSION) -> None:
        self.dimension = dimension
        self.model = TestConstants.TEST_EMBEDDING_MODEL
        self.calls: list[str] = []

    def embed(self, text: str) -> np.ndarray:
        """Generate deterministic mock embedding based on text hash."""
        self.calls.append(text)
        seed = int.from_bytes(
            hashlib.sha256(text.lower().encode("utf-8")).digest()[:8],
            byteorder="big",
            signed=False,
        )
        rng = np.random.default_rng(seed)
        embedding = rng.normal(0, 1, self.dimension)
        return embedding / np.linalg.norm(embedding)


def raw_vector(dimension: int = TestConstants.EMBEDDING_DIMENSION, seed: int = 7):
    """A non-normalized vector as the embeddings API would send it."""
    rng = np.random.default_rng(seed)
    return (rng.normal(0, 3, dimension)).tolist()


def create_mock_openai_response(embeddings: list[list[float]]) -> Mock:
    """Create a mock OpenAI embeddings API response."""
    mock_response = Mock()
    mock_response.data = [Mock(embedding=emb) for emb in embeddings]
    return mock_response


def create_mock_chat_response(content: str | None) -> Mock:
    """Create a mock OpenAI chat completion response."""
    mock_response = Mock()
    mock_response.choices = [Mock(message=Mock(content=content))]
    return mock_response


def make_turn(role: str, content: str, turn_id: str = "t") -> ChatTurn:
    return ChatTurn(
        id=turn_id,
        role=role,
        content=content,
        timestamp=datetime.datetime(2024, 9, 1, 8, 0, tzinfo=datetime.UTC),
    )


@pytest.fixture
def openai_embeddings_api_mock():
    """Patch the OpenAI embeddings.create method; returns the bare mock."""
    with patch("openai.resources.embeddings.Embeddings.create") as mock_create:
        yield mock_create


@pytest.fixture
def openai_embeddings_factory(openai_embeddings_api_mock):
    """Factory for configuring the embeddings API mock per scenario."""

    def _create_mock(  # noqa: ANN202
        scenario="success",
        embedding=None,
        side_effect=None,
    ):
        openai_embeddings_api_mock.reset_mock()
        openai_embeddings_api_mock.side_effect = None
        openai_embeddings_api_mock.return_value = None

        if scenario == "success":
            vector = embedding if embedding is not None else raw_vector()
            openai_embeddings_api_mock.return_value = create_mock_openai_response(
                [vector]
            )
        elif scenario == "error":
            openai_embeddings_api_mock.side_effect = side_effect
        elif scenario == "empty_data":
            mock_response = Mock()
            mock_response.data = []
            openai_embeddings_api_mock.return_value = mock_response

        return openai_embeddings_api_mock

    return _create_mock


@pytest.fixture
def embedding_service():
    """EmbeddingService with test API key and the production dimension."""
    return EmbeddingService(
        api_key=TestConstants.TEST_API_KEY,
        model=TestConstants.TEST_EMBEDDING_MODEL,
    )


@pytest.fixture
def generation_service():
    return GenerationService(
        api_key=TestConstants.TEST_API_KEY,
        model=TestConstants.TEST_CHAT_MODEL,
    )


@pytest.fixture
def generation_chat_mock(generation_service):
    """Patch chat.completions.create on the generation service's client."""
    with patch.object(
        generation_service.client.chat.completions, "create"
    ) as mock_create:
        yield mock_create


@pytest.fixture(scope="session")
def mock_embedding_service():
    return MockEmbeddingService()


@pytest.fixture
def sample_resources():
    return [
        ResourceRecord(
            id="r1",
            title="Điều lệ CLB IT UP",
            description="Điều lệ hoạt động của câu lạc bộ",
            file_type="pdf",
            file_size=204800,
            category="regulation",
            created_at="2024-01-10 09:00:00",
        ),
        ResourceRecord(
            id="r2",
            title="Lịch sử hình thành",
            description="Quá trình thành lập câu lạc bộ",
            file_type="pdf",
            file_size=102400,
            category="about",
            created_at="2024-02-01 09:00:00",
        ),
        ResourceRecord(
            id="r3",
            title="Sự kiện 2024",
            file_type="docx",
            file_size=5120,
            category="events",
            created_at="2024-03-05 09:00:00",
        ),
    ]


@pytest.fixture
def sample_knowledge_chunks(mock_embedding_service):
    texts = [
        ("r1", "Câu lạc bộ IT UP được thành lập năm 2020 tại Trường Đại học Vinh."),
        ("r2", "Ban chủ nhiệm đầu tiên gồm các sinh viên khoa Công nghệ thông tin."),
        ("r3", "Cuộc thi lập trình ITUP Code War diễn ra vào tháng 11."),
    ]
    return [
        KnowledgeChunk(
            content=text,
            resource_id=resource_id,
            chunk_id=i,
            embedding=mock_embedding_service.embed(text),
        )
        for i, (resource_id, text) in enumerate(texts)
    ]


@pytest.fixture
def temp_sqlite_store(tmp_path) -> SQLiteVectorStore:
    return SQLiteVectorStore(tmp_path / "test_store.db", tmp_path / "vectors")


@pytest.fixture
def temp_faiss_store(tmp_path) -> FaissVectorStore:
    return FaissVectorStore(
        db_path=tmp_path / "faiss_meta.db",
        index_path=tmp_path / "faiss" / "index.faiss",
    )


@pytest.fixture
def knowledge_store(temp_sqlite_store, sample_resources, sample_knowledge_chunks):
    """SQLite store holding the sample catalog and embedded chunks."""
    temp_sqlite_store.add_resources(sample_resources)
    temp_sqlite_store.add_chunks(sample_knowledge_chunks)
    return temp_sqlite_store


@pytest.fixture
def mock_generation_service():
    service = create_autospec(GenerationService, instance=True)
    service.generate.return_value = ""
    return service


@pytest.fixture
def pipeline_factory(mock_embedding_service, mock_generation_service):
    """Build an AnswerPipeline over a given store with mocked model services."""

    def _create_pipeline(store, **kwargs) -> AnswerPipeline:
        return AnswerPipeline(
            embedding_service=mock_embedding_service,
            retriever=KnowledgeRetriever(store),
            generation_service=mock_generation_service,
            source_resolver=SourceResolver(store),
            **kwargs,
        )

    return _create_pipeline


@pytest.fixture
def history_cache(tmp_path) -> HistoryCache:
    return HistoryCache(tmp_path / "cache" / "chat-history.json")


@pytest.fixture
def session_store(history_cache) -> ChatSessionStore:
    return ChatSessionStore(cache=history_cache, max_turns=10, history_window=5)
