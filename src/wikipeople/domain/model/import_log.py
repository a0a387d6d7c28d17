"""Append-only audit entries, one per category per sync run."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from uuid import UUID

from .enums import ImportStatus
from .person import new_id, utc_now

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(eq=False, kw_only=True)
class ImportLogEntry:
    id: UUID = field(default_factory=new_id)
    source_ref: str
    status: ImportStatus
    message: str | None = None
    records_processed: int = 0
    imported_at: datetime = field(default_factory=utc_now)

    @classmethod
    def success(cls, source_ref: str, *, records_processed: int, message: str | None = None) -> ImportLogEntry:
        return cls(
            source_ref=source_ref,
            status=ImportStatus.SUCCESS,
            message=message,
            records_processed=records_processed,
        )

    @classmethod
    def failure(cls, source_ref: str, *, message: str) -> ImportLogEntry:
        return cls(source_ref=source_ref, status=ImportStatus.FAILED, message=message)
