"""Per-run and per-category state shared by the enrichment phases."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from wikipeople.domain.normalization import Normalizer

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from wikipeople.config.sync import SyncConfig
    from wikipeople.config.vocabulary import Vocabulary
    from wikipeople.domain.model import CategoryName, Coordinates, PageId, PersonRecord, WikidataId
    from wikipeople.domain.ports.fetching import Sources
    from wikipeople.domain.ports.unit_of_work import UnitOfWorkFactory

type Sleep = Callable[[float], Awaitable[None]]


@dataclass(slots=True)
class Candidate:
    """A category member on its way to becoming a stored person record."""

    page_id: PageId
    title: str
    existing: PersonRecord | None = None

    views: int = 0
    wikidata_id: WikidataId | None = None

    birth_date: str | None = None
    birth_place: str | None = None
    death_date: str | None = None
    death_place: str | None = None
    occupations: tuple[str, ...] = ()
    summary: str | None = None
    image_url: str | None = None
    coordinates: Coordinates | None = None

    category: CategoryName | None = None
    rating: float = 0.0

    @property
    def is_fully_cached(self) -> bool:
        return self.existing is not None and self.existing.is_fully_cached

    def adopt_stored(self, record: PersonRecord) -> None:
        """Copy the detail fields of an already stored record."""

        self.birth_date = record.birth_date
        self.birth_place = record.birth_place
        self.summary = record.summary
        self.image_url = record.image_url
        self.occupations = tuple(record.occupations)
        death_place = record.meta_data.get("death_place")
        self.death_place = death_place if isinstance(death_place, str) else None
        wikidata_id = record.meta_data.get("wikidata_id")
        if isinstance(wikidata_id, str):
            self.wikidata_id = wikidata_id
        if not record.is_manual:
            self.coordinates = record.coordinates


@dataclass(slots=True)
class CategoryBatch:
    """Working set for one category as it moves through the phases."""

    category: CategoryName
    limit: int | None = None
    candidates: list[Candidate] = field(default_factory=list[Candidate])
    existing: Mapping[PageId, PersonRecord] = field(default_factory=dict)

    members_found: int = 0
    skipped_existing: int = 0
    dropped_unverifiable: int = 0
    dropped_not_human: int = 0
    failed_candidates: int = 0


class GeocodeCache:
    """Place name to coordinates for the duration of one run.

    Keys are casefolded. A stored ``None`` records that the geocoder found
    nothing for the place, which is also worth remembering.
    """

    def __init__(self, seed: Mapping[str, Coordinates] | None = None) -> None:
        self._entries: dict[str, Coordinates | None] = {}
        for place, coordinates in (seed or {}).items():
            self._entries[self.key(place)] = coordinates
        self.hits = 0

    @staticmethod
    def key(place: str) -> str:
        return place.strip().casefold()

    def __contains__(self, place: object) -> bool:
        return isinstance(place, str) and self.key(place) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, place: str) -> tuple[bool, Coordinates | None]:
        key = self.key(place)
        if key not in self._entries:
            return False, None
        self.hits += 1
        return True, self._entries[key]

    def remember(self, place: str, coordinates: Coordinates | None) -> None:
        self._entries[self.key(place)] = coordinates


@dataclass(slots=True)
class RunCounters:
    categories_done: int = 0
    categories_failed: int = 0
    inserted: int = 0
    updated: int = 0
    skipped_manual: int = 0
    skipped_existing: int = 0
    save_errors: int = 0
    geocoder_calls: int = 0


@dataclass(slots=True)
class RunContext:
    """Everything one sync run threads through its phases.

    A context belongs to exactly one run; the geocode cache it carries only
    ever grows while the run lasts.
    """

    sources: Sources
    uow_factory: UnitOfWorkFactory
    config: SyncConfig
    vocabulary: Vocabulary
    force_refresh: bool = False
    geocode_cache: GeocodeCache = field(default_factory=GeocodeCache)
    counters: RunCounters = field(default_factory=RunCounters)
    sleep: Sleep = asyncio.sleep
    normalizer: Normalizer = field(init=False)

    def __post_init__(self) -> None:
        self.normalizer = Normalizer.from_vocabulary(self.vocabulary)

    async def pause(self, seconds: float) -> None:
        if seconds > 0:
            await self.sleep(seconds)
