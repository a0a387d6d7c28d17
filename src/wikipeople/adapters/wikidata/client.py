"""Wikidata Query Service client."""

from __future__ import annotations

from itertools import batched
from logging import getLogger
from typing import TYPE_CHECKING

from wikipeople.adapters.http_resilience import (
    ResilientClient,
    decode_json,
    ensure_success,
    unavailable_on_failure,
)
from wikipeople.config.wikidata import DEFAULT_SPARQL_URL
from wikipeople.domain.ports.fetching import HumannessReport, PersonDetails, Unavailable

from .queries import details_query, entity_id, humans_query, is_entity_id
from .schema import SparqlResponse

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from types import TracebackType

    from wikipeople.config.http_resilience import ResilienceConfig
    from wikipeople.config.wikidata import WikidataConfig
    from wikipeople.domain.model import WikidataId
    from wikipeople.domain.ports.fetching import KnowledgeGraphSource

log = getLogger(__name__)

SOURCE = "wikidata"
DEFAULT_CHUNK_SIZE = 50


def _date_part(value: str | None) -> str | None:
    if not value:
        return None
    return value.split("T", 1)[0].lstrip("+")


def _label(value: str | None) -> str | None:
    # the label service echoes the entity id when no label exists in any language
    if not value or is_entity_id(value):
        return None
    return value


class _DetailsBuilder:
    def __init__(self, wikidata_id: WikidataId) -> None:
        self.wikidata_id = wikidata_id
        self.birth_date: str | None = None
        self.birth_place: str | None = None
        self.death_date: str | None = None
        self.death_place: str | None = None
        self.occupations: dict[str, None] = {}

    def absorb(self, row: dict[str, str]) -> None:
        self.birth_date = self.birth_date or _date_part(row.get("birthDate"))
        self.birth_place = self.birth_place or _label(row.get("birthPlaceLabel"))
        self.death_date = self.death_date or _date_part(row.get("deathDate"))
        self.death_place = self.death_place or _label(row.get("deathPlaceLabel"))
        occupation = _label(row.get("occupationLabel"))
        if occupation:
            self.occupations.setdefault(occupation, None)

    def build(self) -> PersonDetails:
        return PersonDetails(
            wikidata_id=self.wikidata_id,
            birth_date=self.birth_date,
            birth_place=self.birth_place,
            death_date=self.death_date,
            death_place=self.death_place,
            occupations=tuple(self.occupations),
        )


class WikidataClient:
    """Batched SPARQL lookups; a failing batch is logged and left out of the result."""

    def __init__(
        self,
        *,
        config: WikidataConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._config = config
        self._client = (client_factory or ResilientClient)(config.resilience)
        self._chunk_size = chunk_size

    async def __aenter__(self) -> WikidataClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def human_ids(self, ids: Iterable[WikidataId]) -> HumannessReport | Unavailable:
        chunks = self._chunks(ids)
        humans: set[WikidataId] = set()
        unverified: set[WikidataId] = set()
        failure: Unavailable | None = None
        for chunk in chunks:
            result = await self._select(humans_query(chunk))
            if isinstance(result, Unavailable):
                log.warning("Humanness batch of %d ids failed: %s", len(chunk), result.reason)
                unverified.update(chunk)
                failure = result
                continue
            humans.update(entity_id(row["item"]) for row in result if "item" in row)
        if failure is not None and len(unverified) == sum(map(len, chunks)):
            return failure
        return HumannessReport(humans=frozenset(humans), unverified=frozenset(unverified))

    async def person_details(self, ids: Iterable[WikidataId]) -> dict[WikidataId, PersonDetails] | Unavailable:
        chunks = self._chunks(ids)
        builders: dict[WikidataId, _DetailsBuilder] = {}
        failures = 0
        last_failure: Unavailable | None = None
        for chunk in chunks:
            result = await self._select(details_query(chunk, languages=self._config.label_languages))
            if isinstance(result, Unavailable):
                log.warning("Details batch of %d ids failed: %s", len(chunk), result.reason)
                failures += 1
                last_failure = result
                continue
            for row in result:
                if "item" not in row:
                    continue
                item = entity_id(row["item"])
                builders.setdefault(item, _DetailsBuilder(item)).absorb(row)
        if last_failure is not None and failures == len(chunks):
            return last_failure
        return {item: builder.build() for item, builder in builders.items()}

    def _chunks(self, ids: Iterable[WikidataId]) -> list[tuple[WikidataId, ...]]:
        valid: dict[WikidataId, None] = {}
        for item in ids:
            if is_entity_id(item):
                valid.setdefault(item, None)
            else:
                log.warning("Ignoring malformed Wikidata id %r", item)
        return list(batched(valid, self._chunk_size))

    @unavailable_on_failure(SOURCE)
    async def _select(self, query: str) -> list[dict[str, str]]:
        url = self._config.resilience.base_url or DEFAULT_SPARQL_URL
        response = await self._client.post(url, data={"query": query, "format": "json"})
        ensure_success(response, source=SOURCE)
        payload = SparqlResponse.model_validate(decode_json(response, source=SOURCE))
        return [{name: value.value for name, value in row.items()} for row in payload.results.bindings]


if TYPE_CHECKING:
    from wikipeople.config.wikidata import get_wikidata_config

    _source_check: KnowledgeGraphSource = WikidataClient(config=get_wikidata_config())
