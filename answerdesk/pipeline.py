"""Answer pipeline: embed -> retrieve -> prompt -> generate -> parse -> resolve."""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from .config import config
from .context import build_context
from .embeddings import EmbeddingService
from .errors import EmptyInputError
from .generation import GenerationService
from .models import AnswerResult
from .parser import parse_model_output
from .prompts import build_prompt, fit_prompt_budget
from .retriever import KnowledgeRetriever
from .sources import SourceResolver, sources_suffix
from .vector_store import VectorBackend, get_vector_store

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from .models import ChatTurn

logger = config.get_logger(__name__)

NO_KNOWLEDGE_ANSWER = (
    "Tôi chưa tìm thấy thông tin phù hợp trong cơ sở tri thức. "
    "Bạn có thể hỏi lại cụ thể hơn nhé!"
)


class AnswerPipeline:
    """Answers one question from the knowledge base.

    Holds only its collaborators, so a single instance can serve concurrent
    requests.
    """

    def __init__(  # noqa: PLR0913,PLR0917
        self,
        embedding_service: EmbeddingService,
        retriever: KnowledgeRetriever,
        generation_service: GenerationService,
        source_resolver: SourceResolver,
        history_window: int | None = None,
        prompt_max_chars: int | None = None,
    ) -> None:
        self.embedding_service = embedding_service
        self.retriever = retriever
        self.generation_service = generation_service
        self.source_resolver = source_resolver
        self.history_window = (
            history_window if history_window is not None else config.HISTORY_WINDOW
        )
        self.prompt_max_chars = prompt_max_chars or config.PROMPT_MAX_CHARS

    @classmethod
    def from_config(
        cls,
        openai_api_key: str | None = None,
        vector_backend: str | None = None,
        db_path: Path | None = None,
    ) -> AnswerPipeline:
        """Wire the pipeline from environment configuration.

        Args:
            openai_api_key: Provider API key. If None, read from environment.
            vector_backend: "faiss" or "sqlite". Defaults to
                config.VECTOR_BACKEND.
            db_path: SQLite database holding chunks and the resource catalog.
        """
        backend_value = (
            vector_backend if vector_backend is not None else config.VECTOR_BACKEND
        )
        backend = cast("VectorBackend", backend_value.lower())
        store = get_vector_store(backend, db_path=db_path)
        logger.info("Using %s vector storage", getattr(store, "backend", backend))
        store.load()

        return cls(
            embedding_service=EmbeddingService(api_key=openai_api_key),
            retriever=KnowledgeRetriever(store),
            generation_service=GenerationService(api_key=openai_api_key),
            source_resolver=SourceResolver(store),
        )

    def answer(
        self, query: str, history: Sequence[ChatTurn] | None = None
    ) -> AnswerResult:
        """Answer a question using the knowledge base and recent turns.

        Args:
            query: The user's question.
            history: Recent conversation turns, oldest first. Only the last
                ``history_window`` are used.

        Returns:
            AnswerResult with the answer text, deduplicated cited resource
            ids and the sources found in the catalog.

        Raises:
            EmptyInputError: If the query is blank.
        """
        question = (query or "").strip()
        if not question:
            msg = "Thiếu query"
            raise EmptyInputError(msg)

        logger.info("Processing question (%d chars)", len(question))
        logger.debug("Question text: %s", question)

        query_embedding = self.embedding_service.embed(question)
        chunks = self.retriever.retrieve(query_embedding)

        if not chunks:
            logger.info("No knowledge found; skipping generation")
            return AnswerResult(answer=NO_KNOWLEDGE_ANSWER)

        recent = list(history or [])
        recent = recent[-self.history_window :] if self.history_window > 0 else []
        context, recent = fit_prompt_budget(
            question, build_context(chunks), recent, self.prompt_max_chars
        )
        prompt = build_prompt(question, context, recent)

        raw_output = self.generation_service.generate(prompt)
        parsed = parse_model_output(raw_output)
        if parsed.is_fallback:
            logger.warning("Model output had no JSON payload; answering without sources")

        sources = self.source_resolver.resolve(parsed.resource_ids)
        answer = parsed.answer
        if parsed.resource_ids and sources:
            answer += sources_suffix(len(sources))

        for chunk in chunks:
            logger.info(
                "  Context %d: %s (score: %.4f)",
                chunk.rank,
                chunk.resource_id,
                chunk.similarity,
            )

        return AnswerResult(
            answer=answer,
            resource_ids=parsed.resource_ids,
            sources=sources,
        )
