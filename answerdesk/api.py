"""HTTP surface of the answer pipeline (FastAPI)."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import config
from .embeddings import EmbeddingService
from .errors import AnswerDeskError
from .generation import GenerationService
from .models import ChatTurn
from .pipeline import AnswerPipeline
from .retriever import KnowledgeRetriever
from .sources import SourceResolver
from .vector_store import FaissVectorStore, SQLiteVectorStore, get_vector_store

logger = config.get_logger(__name__)


class ChatRequest(BaseModel):
    query: str | None = None
    chatHistory: list[Any] | None = None  # noqa: N815


class EmbedRequest(BaseModel):
    text: str = ""


class GenerateRequest(BaseModel):
    prompt: str = ""


class SourceOut(BaseModel):
    id: str
    title: str
    description: str
    file_type: str
    file_size: int
    category: str
    created_at: str | None
    download_url: str


class ChatResponse(BaseModel):
    need_query: bool = False
    answer: str
    resource_ids: list[str] = Field(default_factory=list)
    sources: list[SourceOut] = Field(default_factory=list)


class EmbedResponse(BaseModel):
    model: str
    dimension: int
    embedding: list[float]


class GenerateResponse(BaseModel):
    output: str


@lru_cache(maxsize=1)
def get_vector_store_instance() -> FaissVectorStore | SQLiteVectorStore:
    store = get_vector_store(config.VECTOR_BACKEND)  # type: ignore[arg-type]
    store.load()
    return store


@lru_cache(maxsize=1)
def get_embedding_service() -> EmbeddingService:
    return EmbeddingService()


@lru_cache(maxsize=1)
def get_generation_service() -> GenerationService:
    return GenerationService()


def get_pipeline(
    store: FaissVectorStore | SQLiteVectorStore = Depends(get_vector_store_instance),  # noqa: B008
    embedding_service: EmbeddingService = Depends(get_embedding_service),  # noqa: B008
    generation_service: GenerationService = Depends(get_generation_service),  # noqa: B008
) -> AnswerPipeline:
    return AnswerPipeline(
        embedding_service=embedding_service,
        retriever=KnowledgeRetriever(store),
        generation_service=generation_service,
        source_resolver=SourceResolver(store),
    )


def parse_history(items: list[Any] | None) -> list[ChatTurn]:
    """Convert widget history items to turns, skipping malformed ones.

    Returns:
        Valid turns in the order received.
    """
    turns: list[ChatTurn] = []
    for item in items or []:
        try:
            turns.append(ChatTurn.from_dict(item))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Ignoring malformed chat history item: %s", e)
    return turns


async def answer_desk_error_handler(
    _request: Request, exc: AnswerDeskError
) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    logger.warning("Rejected request body: %s", exc.errors())
    return JSONResponse(status_code=400, content={"error": "Invalid request body"})


async def unexpected_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error while answering", exc_info=exc)
    return JSONResponse(status_code=500, content={"error": str(exc) or type(exc).__name__})


def create_app() -> FastAPI:
    """Build the FastAPI application.

    Returns:
        The configured application with all routes registered.
    """
    config.setup_logging()

    app = FastAPI(title="AnswerDesk", version="1.0.0")
    app.add_exception_handler(AnswerDeskError, answer_desk_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unexpected_error_handler)

    @app.post("/api/chat", response_model=ChatResponse)
    def chat(
        body: ChatRequest,
        pipeline: AnswerPipeline = Depends(get_pipeline),  # noqa: B008
    ) -> dict[str, Any]:
        result = pipeline.answer(body.query, parse_history(body.chatHistory))
        return result.to_dict()

    @app.post("/api/embed", response_model=EmbedResponse)
    def embed(
        body: EmbedRequest,
        service: EmbeddingService = Depends(get_embedding_service),  # noqa: B008
    ) -> dict[str, Any]:
        vector = service.embed(body.text)
        return {
            "model": service.model,
            "dimension": len(vector),
            "embedding": vector.tolist(),
        }

    @app.post("/api/generate", response_model=GenerateResponse)
    def generate(
        body: GenerateRequest,
        service: GenerationService = Depends(get_generation_service),  # noqa: B008
    ) -> dict[str, str]:
        return {"output": service.generate(body.prompt)}

    @app.get("/api/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "vector_backend": config.VECTOR_BACKEND}

    return app


app = create_app()
