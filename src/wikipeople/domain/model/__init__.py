"""Public domain model surface."""

from __future__ import annotations

from wikipeople.domain.model.enums import ImportStatus, SearchType
from wikipeople.domain.model.import_log import ImportLogEntry
from wikipeople.domain.model.person import PersonRecord, new_id, utc_now
from wikipeople.domain.model.primitives import CategoryName, Coordinates, PageId, WikidataId

__all__ = [
    "CategoryName",
    "Coordinates",
    "ImportLogEntry",
    "ImportStatus",
    "PageId",
    "PersonRecord",
    "SearchType",
    "WikidataId",
    "new_id",
    "utc_now",
]
