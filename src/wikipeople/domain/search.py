"""Ranked person search over the stored records."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Any

from wikipeople.domain.geo import InvalidGeometryError, polygon_rings
from wikipeople.domain.model import SearchType
from wikipeople.domain.similarity import edit_distance

if TYPE_CHECKING:
    from collections.abc import Mapping

    from wikipeople.domain.model import PersonRecord
    from wikipeople.domain.ports.unit_of_work import UnitOfWorkFactory

log = getLogger(__name__)

DEFAULT_LIMIT = 20
DEFAULT_SIMILARITY_THRESHOLD = 0.1
FUZZY_CANDIDATE_MULTIPLE = 5
TYPO_DISTANCE = 1


class InvalidSearchError(ValueError):
    """A search request that cannot be answered as given."""


@dataclass(frozen=True, slots=True)
class SearchHit:
    person: PersonRecord
    score: float
    distance: int | None = None


@dataclass(frozen=True, slots=True)
class GeoHit:
    person: PersonRecord
    distance_km: float


class SearchService:
    """Fuzzy, full-text, geographic and metadata queries.

    Fuzzy search selects candidates by trigram similarity above a low
    threshold from a pool wider than the limit. Names within one edit of the
    query rank first; the rest follow by similarity, with edit distance
    breaking ties.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        *,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    ) -> None:
        self._uow_factory = uow_factory
        self._threshold = similarity_threshold

    def search(
        self,
        query: str,
        *,
        search_type: SearchType = SearchType.COMBINED,
        limit: int = DEFAULT_LIMIT,
    ) -> list[SearchHit]:
        query = query.strip()
        if not query or limit < 1:
            return []
        match search_type:
            case SearchType.FUZZY:
                return self._fuzzy(query, limit=limit)
            case SearchType.FULLTEXT:
                return self._fulltext(query, limit=limit)
            case SearchType.COMBINED:
                return self._combined(query, limit=limit)

    def _fuzzy(self, query: str, *, limit: int) -> list[SearchHit]:
        with self._uow_factory() as uow:
            scored = uow.repositories.persons.similar_names(
                query, threshold=self._threshold, limit=limit * FUZZY_CANDIDATE_MULTIPLE
            )
        hits = [
            SearchHit(person=hit.item, score=hit.score, distance=edit_distance(hit.item.name, query))
            for hit in scored
        ]
        hits.sort(key=_fuzzy_rank)
        return hits[:limit]

    def _fulltext(self, query: str, *, limit: int) -> list[SearchHit]:
        with self._uow_factory() as uow:
            scored = uow.repositories.persons.text_matches(query, limit=limit)
        return [SearchHit(person=hit.item, score=hit.score) for hit in scored]

    def _combined(self, query: str, *, limit: int) -> list[SearchHit]:
        hits = self._fuzzy(query, limit=limit)
        if len(hits) >= limit:
            return hits
        seen = {hit.person.id for hit in hits}
        for hit in self._fulltext(query, limit=limit):
            if hit.person.id in seen:
                continue
            seen.add(hit.person.id)
            hits.append(hit)
        return hits[:limit]

    def search_by_radius(
        self, lat: float, lng: float, radius_km: float, *, limit: int = DEFAULT_LIMIT
    ) -> list[GeoHit]:
        if not (-90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0):
            raise InvalidSearchError(f"Coordinates out of range: {lat}, {lng}")
        if radius_km <= 0:
            raise InvalidSearchError("Radius must be positive")
        with self._uow_factory() as uow:
            scored = uow.repositories.persons.within_radius(lat, lng, radius_km=radius_km, limit=limit)
        return [GeoHit(person=hit.item, distance_km=hit.score) for hit in scored]

    def search_by_polygon(self, polygon: Mapping[str, Any], *, limit: int = DEFAULT_LIMIT) -> list[PersonRecord]:
        try:
            polygon_rings(polygon)
        except InvalidGeometryError as exc:
            raise InvalidSearchError(str(exc)) from exc
        with self._uow_factory() as uow:
            return uow.repositories.persons.within_polygon(polygon, limit=limit)

    def search_by_occupation(self, occupation: str, *, limit: int = DEFAULT_LIMIT) -> list[PersonRecord]:
        occupation = occupation.strip().lower()
        if not occupation:
            return []
        return self.search_by_metadata({"occupations": [occupation]}, limit=limit)

    def search_by_metadata(self, fragment: Mapping[str, Any], *, limit: int = DEFAULT_LIMIT) -> list[PersonRecord]:
        if not fragment:
            raise InvalidSearchError("Metadata filter must not be empty")
        with self._uow_factory() as uow:
            return uow.repositories.persons.metadata_contains(fragment, limit=limit)

    def top_people(self, *, limit: int = 2000) -> list[PersonRecord]:
        with self._uow_factory() as uow:
            return uow.repositories.persons.top_rated(limit=limit)


def _fuzzy_rank(hit: SearchHit) -> tuple[bool, float, int]:
    distance = hit.distance if hit.distance is not None else 0
    return (distance > TYPO_DISTANCE, -hit.score, distance)
