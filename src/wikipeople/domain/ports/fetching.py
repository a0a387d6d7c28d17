"""Ports for fetching data from the encyclopedia, knowledge graph and geocoder.

Every source method resolves to either a value or :class:`Unavailable`. An
``Unavailable`` result means the source could not answer; it never means the
entity does not exist, and callers must not treat it that way.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence
    from datetime import date

    from wikipeople.domain.model import CategoryName, Coordinates, PageId, WikidataId


@dataclass(frozen=True, slots=True)
class Unavailable:
    """Explicit signal that an external source could not answer."""

    source: str
    reason: str

    def __bool__(self) -> bool:
        return False


type Fetched[T] = T | Unavailable


@dataclass(frozen=True, slots=True)
class CategoryMember:
    page_id: PageId
    title: str


@dataclass(frozen=True, slots=True)
class PageText:
    page_id: PageId
    summary: str | None = None
    image_url: str | None = None


@dataclass(frozen=True, slots=True)
class InfoboxFacts:
    birth_date: str | None = None
    birth_place: str | None = None


@dataclass(frozen=True, slots=True)
class PersonDetails:
    wikidata_id: WikidataId
    birth_date: str | None = None
    birth_place: str | None = None
    death_date: str | None = None
    death_place: str | None = None
    occupations: tuple[str, ...] = field(default_factory=tuple)


@runtime_checkable
class EncyclopediaSource(Protocol):
    """Category listings and page content of one Wikipedia edition."""

    async def category_members(self, category: CategoryName) -> Fetched[list[CategoryMember]]: ...

    async def categories_with_prefix(self, prefix: str) -> Fetched[list[CategoryName]]: ...

    async def wikidata_ids(self, page_ids: Sequence[PageId]) -> Fetched[dict[PageId, WikidataId]]: ...

    async def page_texts(self, page_ids: Sequence[PageId]) -> Fetched[dict[PageId, PageText]]: ...

    async def infobox_facts(self, page_id: PageId) -> Fetched[InfoboxFacts]: ...


@runtime_checkable
class PageviewSource(Protocol):
    async def total_views(self, title: str, *, start: date, end: date) -> Fetched[int]: ...


@runtime_checkable
class KnowledgeGraphSource(Protocol):
    """Structured person facts keyed by knowledge-graph id.

    Both methods batch their input; a failed batch is left out of the
    mapping (or set) rather than failing the whole call.
    """

    async def human_ids(self, ids: Iterable[WikidataId]) -> Fetched[HumannessReport]: ...

    async def person_details(
        self, ids: Iterable[WikidataId]
    ) -> Fetched[Mapping[WikidataId, PersonDetails]]: ...


@dataclass(frozen=True, slots=True)
class HumannessReport:
    """Outcome of an "instance of human" check over several batches."""

    humans: frozenset[WikidataId]
    unverified: frozenset[WikidataId] = frozenset()


@runtime_checkable
class Geocoder(Protocol):
    async def geocode(self, place: str) -> Fetched[Coordinates | None]:
        """Coordinates for ``place``; ``None`` when the service found nothing."""
        ...


@dataclass(slots=True)
class Sources:
    """The external sources one sync run talks to."""

    encyclopedia: EncyclopediaSource
    pageviews: PageviewSource
    knowledge_graph: KnowledgeGraphSource
    geocoder: Geocoder


__all__ = [
    "CategoryMember",
    "EncyclopediaSource",
    "Fetched",
    "Geocoder",
    "HumannessReport",
    "InfoboxFacts",
    "KnowledgeGraphSource",
    "PageText",
    "PageviewSource",
    "PersonDetails",
    "Sources",
    "Unavailable",
]
