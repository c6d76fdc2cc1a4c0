"""Render retrieved chunks into the labeled context block of the prompt."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .models import RetrievedChunk

CHUNK_SEPARATOR = "\n\n"


def format_chunk(chunk: RetrievedChunk) -> str:
    return f"content: [#{chunk.rank}] {chunk.content}, resource_id: {chunk.resource_id}"


def build_context(chunks: Sequence[RetrievedChunk]) -> str:
    """Render chunks in arrival order, one labeled entry each.

    Returns:
        The context block, or an empty string when there are no chunks.
    """
    return CHUNK_SEPARATOR.join(format_chunk(chunk) for chunk in chunks)
