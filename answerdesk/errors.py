"""Error taxonomy for the answer pipeline.

Every error carries the HTTP status the API layer answers with, plus the
upstream diagnostics (status/message) where a collaborator failed.
"""

from __future__ import annotations


class AnswerDeskError(Exception):
    """Base class for pipeline failures surfaced to the request boundary."""

    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        upstream_status: int | None = None,
        upstream_message: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.upstream_status = upstream_status
        self.upstream_message = upstream_message

    def to_dict(self) -> dict[str, object]:
        """Serialize for JSON error responses.

        Returns:
            Mapping with ``error`` and, when known, upstream diagnostics.
        """
        payload: dict[str, object] = {"error": self.message}
        if self.upstream_status is not None:
            payload["status"] = self.upstream_status
        if self.upstream_message:
            payload["message"] = self.upstream_message
        return payload


class EmptyInputError(AnswerDeskError, ValueError):
    """Input text was empty after trimming."""

    status_code = 400


class UpstreamServiceError(AnswerDeskError):
    """The embedding service failed or answered with an unusable payload."""

    status_code = 502


class InvalidEmbeddingDimension(UpstreamServiceError):
    """The embedding service returned a vector of the wrong length."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"Embedding dimension mismatch: expected {expected}, got {actual}",
        )
        self.expected = expected
        self.actual = actual


class UpstreamTimeoutError(AnswerDeskError):
    """An outbound call did not finish within its configured timeout."""

    status_code = 504


class RetrievalError(AnswerDeskError):
    """The vector store could not be queried."""


class GenerationError(AnswerDeskError):
    """The generation model call failed."""
