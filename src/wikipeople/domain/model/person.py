"""The person record, the central stored entity."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from .primitives import Coordinates

if TYPE_CHECKING:
    from .primitives import PageId


def new_id() -> UUID:
    return uuid4()


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(eq=False, kw_only=True)
class PersonRecord:
    """A notable person as stored.

    Records flagged ``is_manual`` belong to a human curator; the ingestion
    pipeline never writes to them. ``lat`` and ``lng`` are either both set or
    both ``None``; use :meth:`set_coordinates` rather than assigning them one
    at a time.
    """

    id: UUID = field(default_factory=new_id)
    external_id: PageId | None = None
    name: str
    slug: str | None = None

    summary: str | None = None
    image_url: str | None = None
    category: str | None = None
    meta_data: dict[str, Any] = field(default_factory=dict[str, Any])

    birth_date: str | None = None
    birth_year: int | None = None
    birth_place: str | None = None
    lat: float | None = None
    lng: float | None = None
    birth_location: str | None = None

    views: int = 0
    rating: float = 0.0
    is_manual: bool = False

    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def coordinates(self) -> Coordinates | None:
        if self.lat is None or self.lng is None:
            return None
        return Coordinates(lat=self.lat, lng=self.lng)

    def set_coordinates(self, coordinates: Coordinates | None) -> None:
        if coordinates is None:
            self.lat = None
            self.lng = None
            return
        self.lat = coordinates.lat
        self.lng = coordinates.lng

    @property
    def occupations(self) -> list[str]:
        value = self.meta_data.get("occupations")
        return list(value) if isinstance(value, list) else []

    @property
    def is_fully_cached(self) -> bool:
        """Everything the detail and geocoding stages would fetch is already stored."""
        return (
            not self.is_manual
            and self.coordinates is not None
            and bool(self.meta_data)
            and bool(self.summary)
            and bool(self.image_url)
        )

    def touch(self, now: datetime | None = None) -> None:
        stamp = now or utc_now()
        if self.created_at is None:
            self.created_at = stamp
        self.updated_at = stamp
