"""Ports for persisting person records and import logs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from wikipeople.domain.model import ImportLogEntry, PersonRecord

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence
    from uuid import UUID

    from wikipeople.domain.model import Coordinates, PageId


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...


@dataclass(frozen=True, slots=True)
class Scored[T]:
    """A stored entity together with the score that ranked it."""

    item: T
    score: float


@runtime_checkable
class PersonRepository(Repository[PersonRecord], Protocol):
    """Persistence contract for person records.

    The query methods mirror what the storage engine can answer natively:
    keyed lookups, trigram similarity, text rank, spatial predicates and
    document containment.
    """

    def add_all(self, persons: Sequence[PersonRecord]) -> None: ...

    def find_by_external_ids(self, external_ids: Iterable[PageId]) -> dict[PageId, PersonRecord]: ...

    def find_by_normalized_name(self, normalized_name: str) -> PersonRecord | None: ...

    def most_similar_name(self, normalized_name: str, *, threshold: float) -> Scored[PersonRecord] | None: ...

    def slug_exists(self, slug: str) -> bool: ...

    def update_geometry(self, person_ids: Iterable[UUID]) -> None: ...

    def stored_coordinates(self) -> dict[str, Coordinates]: ...

    def recompute_ratings(self) -> int: ...

    def delete_non_manual(self) -> int: ...

    def count(self) -> int: ...

    def similar_names(self, query: str, *, threshold: float, limit: int) -> list[Scored[PersonRecord]]: ...

    def text_matches(self, query: str, *, limit: int) -> list[Scored[PersonRecord]]: ...

    def within_radius(
        self, lat: float, lng: float, *, radius_km: float, limit: int
    ) -> list[Scored[PersonRecord]]: ...

    def within_polygon(self, polygon: Mapping[str, Any], *, limit: int) -> list[PersonRecord]: ...

    def metadata_contains(self, fragment: Mapping[str, Any], *, limit: int) -> list[PersonRecord]: ...

    def top_rated(self, *, limit: int) -> list[PersonRecord]: ...


@runtime_checkable
class ImportLogRepository(Repository[ImportLogEntry], Protocol):
    def recent(self, *, limit: int) -> list[ImportLogEntry]: ...
