"""Embedding gateway over the OpenAI-compatible embeddings API."""

import re

import numpy as np
from openai import APIConnectionError, APIStatusError, APITimeoutError, OpenAI

from .config import config
from .errors import (
    EmptyInputError,
    InvalidEmbeddingDimension,
    UpstreamServiceError,
    UpstreamTimeoutError,
)

logger = config.get_logger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


def preprocess_text(text: str, max_chars: int | None = None) -> str:
    """Trim, collapse whitespace runs and cap the text length.

    Returns:
        The cleaned text, at most ``max_chars`` characters long.

    Raises:
        EmptyInputError: If nothing is left after trimming.
    """
    cleaned = _WHITESPACE_RE.sub(" ", text or "").strip()
    if not cleaned:
        msg = "Text is required"
        raise EmptyInputError(msg)

    limit = max_chars if max_chars is not None else config.EMBEDDING_MAX_CHARS
    if len(cleaned) > limit:
        logger.info("Truncating embedding input from %d to %d chars", len(cleaned), limit)
        cleaned = cleaned[:limit]
    return cleaned


def normalize_embedding(vector: np.ndarray) -> np.ndarray:
    """Scale a vector to unit L2 norm; the zero vector is returned unchanged.

    Returns:
        Unit-length float array, or the input when its norm is 0.
    """
    vector = np.asarray(vector, dtype=np.float64)
    norm = np.linalg.norm(vector)
    if norm == 0:
        return vector
    return vector / norm


class EmbeddingService:
    """Turns question text into unit-length embedding vectors."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        dimension: int | None = None,
        client: OpenAI | None = None,
    ) -> None:
        """Initialize the EmbeddingService.

        Args:
            api_key: Provider API key. If None, read from the environment.
            model: Embedding model name. If None, uses config.EMBEDDING_MODEL.
            dimension: Expected vector length. If None, uses
                config.EMBEDDING_DIMENSION.
            client: Preconfigured OpenAI client, mainly for tests.
        """
        if client is None:
            default_headers = config.get_api_headers()
            client = OpenAI(
                api_key=api_key or config.get_openai_api_key(),
                base_url=config.OPENAI_BASE_URL,
                default_headers=default_headers or None,
                timeout=config.EMBEDDING_TIMEOUT,
                max_retries=config.EMBEDDING_MAX_RETRIES,
            )
        self.client = client
        self.model = model or config.EMBEDDING_MODEL
        self.dimension = dimension or config.EMBEDDING_DIMENSION

    def _request_embedding(self, text: str) -> list[float]:
        """Call the embeddings API once and return the raw vector.

        Raises:
            UpstreamTimeoutError: If the call timed out after retries.
            UpstreamServiceError: On non-success status, transport failure
                or a payload without a numeric vector.
        """
        try:
            response = self.client.embeddings.create(model=self.model, input=text)
        except APITimeoutError as e:
            logger.exception("Embedding request timed out")
            msg = "Embedding service timed out"
            raise UpstreamTimeoutError(msg, upstream_message=str(e)) from e
        except APIStatusError as e:
            logger.exception("Embedding service returned status %s", e.status_code)
            msg = "Embedding service error"
            raise UpstreamServiceError(
                msg, upstream_status=e.status_code, upstream_message=e.message
            ) from e
        except APIConnectionError as e:
            logger.exception("Embedding service unreachable")
            msg = "Embedding service unreachable"
            raise UpstreamServiceError(msg, upstream_message=str(e)) from e

        try:
            raw = response.data[0].embedding
        except (AttributeError, IndexError, TypeError) as e:
            msg = "Malformed embedding response"
            raise UpstreamServiceError(msg, upstream_message=repr(response)) from e

        if not isinstance(raw, (list, tuple)):
            msg = "Malformed embedding response"
            raise UpstreamServiceError(msg, upstream_message=repr(raw)[:200])
        return list(raw)

    def embed(self, text: str) -> np.ndarray:
        """Get a unit-length embedding for a single text.

        Args:
            text: The input text; trimmed, whitespace-collapsed and truncated
                before it is sent.

        Returns:
            np.ndarray: Normalized vector of ``self.dimension`` floats.

        Raises:
            InvalidEmbeddingDimension: If the vector length is not
                ``self.dimension``.
            UpstreamServiceError: If the payload holds non-numeric values.
        """
        cleaned = preprocess_text(text)
        raw = self._request_embedding(cleaned)

        if len(raw) != self.dimension:
            logger.error(
                "Embedding dimension mismatch: expected %d, got %d",
                self.dimension,
                len(raw),
            )
            raise InvalidEmbeddingDimension(self.dimension, len(raw))

        try:
            vector = np.asarray(raw, dtype=np.float64)
        except (TypeError, ValueError) as e:
            msg = "Embedding contains non-numeric values"
            raise UpstreamServiceError(msg) from e

        return normalize_embedding(vector)
