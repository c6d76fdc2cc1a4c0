"""Resolve cited resource ids into displayable sources."""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING, Protocol

from .config import config
from .models import Source

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .models import ResourceRecord

logger = config.get_logger(__name__)

SOURCES_SUFFIX_TEMPLATE = "\n\n📚 Thông tin từ {count} tài liệu ITUP"


class ResourceCatalog(Protocol):
    """Batched lookup of resource records by id."""

    def get_resources(self, resource_ids: Sequence[str]) -> list[ResourceRecord]: ...


def sources_suffix(count: int) -> str:
    """Human-readable note naming how many documents backed the answer.

    Returns:
        The suffix, or an empty string when no document was used.
    """
    if count <= 0:
        return ""
    return SOURCES_SUFFIX_TEMPLATE.format(count=count)


class SourceResolver:
    """Looks up cited resources in the catalog."""

    def __init__(self, catalog: ResourceCatalog) -> None:
        self.catalog = catalog

    def resolve(self, resource_ids: Sequence[str]) -> list[Source]:
        """Fetch display metadata for all ids with one catalog call.

        Unknown ids are dropped. A failing catalog yields no sources rather
        than an error, since the answer itself is still valid.

        Returns:
            One Source per catalog record found.
        """
        if not resource_ids:
            return []

        unique_ids = list(dict.fromkeys(resource_ids))
        try:
            records = self.catalog.get_resources(unique_ids)
        except sqlite3.Error:
            logger.exception("Error fetching source details")
            return []

        sources = [Source.from_record(record) for record in records]
        if len(sources) < len(unique_ids):
            logger.info(
                "Resolved %d of %d cited resources", len(sources), len(unique_ids)
            )
        return sources
