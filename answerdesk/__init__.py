"""AnswerDesk - retrieval-augmented answering for the ITUP assistant widget."""

from .context import build_context
from .embeddings import EmbeddingService, normalize_embedding
from .errors import (
    AnswerDeskError,
    EmptyInputError,
    GenerationError,
    InvalidEmbeddingDimension,
    RetrievalError,
    UpstreamServiceError,
    UpstreamTimeoutError,
)
from .generation import GenerationService
from .models import (
    AnswerResult,
    ChatTurn,
    KnowledgeChunk,
    ParsedAnswer,
    ResourceRecord,
    RetrievedChunk,
    Source,
)
from .parser import parse_model_output
from .pipeline import AnswerPipeline
from .prompts import build_prompt, fit_prompt_budget
from .retriever import KnowledgeRetriever
from .session import ChatSession, ChatSessionStore, HistoryCache
from .sources import SourceResolver
from .vector_store import FaissVectorStore, SQLiteVectorStore, get_vector_store

__all__ = [
    "AnswerDeskError",
    "AnswerPipeline",
    "AnswerResult",
    "ChatSession",
    "ChatSessionStore",
    "ChatTurn",
    "EmbeddingService",
    "EmptyInputError",
    "FaissVectorStore",
    "GenerationError",
    "GenerationService",
    "HistoryCache",
    "InvalidEmbeddingDimension",
    "KnowledgeChunk",
    "KnowledgeRetriever",
    "ParsedAnswer",
    "ResourceRecord",
    "RetrievalError",
    "RetrievedChunk",
    "SQLiteVectorStore",
    "Source",
    "SourceResolver",
    "UpstreamServiceError",
    "UpstreamTimeoutError",
    "build_context",
    "build_prompt",
    "fit_prompt_budget",
    "get_vector_store",
    "normalize_embedding",
    "parse_model_output",
]
