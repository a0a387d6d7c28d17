"""Application entry points: sync control, search and maintenance."""

from __future__ import annotations

import asyncio
from contextlib import AsyncExitStack, asynccontextmanager
from logging import getLogger
from typing import TYPE_CHECKING, Any

from wikipeople.adapters.geoapify import GeoapifyGeocoder
from wikipeople.adapters.sqlalchemy.unit_of_work import SqlAlchemyPeopleUnitOfWork, is_started, startup
from wikipeople.adapters.wikidata import WikidataClient
from wikipeople.adapters.wikipedia import PageviewsClient, WikipediaClient
from wikipeople.config import (
    get_geoapify_config,
    get_sync_config,
    get_wikidata_config,
    get_wikipedia_config,
    load_vocabulary,
)
from wikipeople.config.sync import DEFAULT_SINGLE_CATEGORY_LIMIT
from wikipeople.domain.discovery import discover_categories
from wikipeople.domain.ingest_pipeline import RunContext
from wikipeople.domain.model import SearchType
from wikipeople.domain.ports.fetching import Sources
from wikipeople.domain.search import SearchService
from wikipeople.domain.sync import (
    SyncSupervisor,
    sync_categories,
    validate_category_request,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Mapping, Sequence
    from contextlib import AbstractAsyncContextManager

    from wikipeople.config import SyncConfig, Vocabulary
    from wikipeople.domain.ingest_pipeline.context import Sleep
    from wikipeople.domain.model import CategoryName, ImportLogEntry, PersonRecord
    from wikipeople.domain.ports.unit_of_work import UnitOfWorkFactory
    from wikipeople.domain.search import GeoHit, SearchHit
    from wikipeople.domain.sync import CancellationToken, SyncAck, SyncReport, SyncStatus

type SourcesFactory = Callable[[], AbstractAsyncContextManager[Sources]]
type CategorySelector = Callable[[Sources], Awaitable[Sequence[CategoryName]]]

log = getLogger(__name__)


@asynccontextmanager
async def open_sources(*, sync_config: SyncConfig | None = None) -> AsyncIterator[Sources]:
    """Live HTTP adapters for one run, closed when the run ends."""

    wikipedia_config = get_wikipedia_config()
    vocabulary = load_vocabulary(wikipedia_config.language)
    delay = (sync_config or get_sync_config()).request_delay
    async with AsyncExitStack() as stack:
        encyclopedia = await stack.enter_async_context(
            WikipediaClient(config=wikipedia_config, vocabulary=vocabulary, page_delay=delay)
        )
        pageviews = await stack.enter_async_context(PageviewsClient(config=wikipedia_config))
        knowledge_graph = await stack.enter_async_context(WikidataClient(config=get_wikidata_config()))
        geocoder = await stack.enter_async_context(GeoapifyGeocoder(config=get_geoapify_config()))
        yield Sources(
            encyclopedia=encyclopedia,
            pageviews=pageviews,
            knowledge_graph=knowledge_graph,
            geocoder=geocoder,
        )


class WikiPeople:
    """The operations offered to the web layer and the command line.

    Sync triggers start a background task and return an acknowledgement at
    once; they must be awaited inside a running event loop.
    """

    def __init__(
        self,
        *,
        sources_factory: SourcesFactory | None = None,
        uow_factory: UnitOfWorkFactory | None = None,
        sync_config: SyncConfig | None = None,
        vocabulary: Vocabulary | None = None,
        supervisor: SyncSupervisor | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if uow_factory is None:
            if not is_started():
                startup()
            uow_factory = SqlAlchemyPeopleUnitOfWork
        self.sync_config = sync_config or get_sync_config()
        self.vocabulary = vocabulary or load_vocabulary(get_wikipedia_config().language)
        self._uow_factory = uow_factory
        self._sources_factory = sources_factory or (lambda: open_sources(sync_config=self.sync_config))
        self._supervisor = supervisor or SyncSupervisor()
        self._sleep = sleep
        self._search = SearchService(
            uow_factory, similarity_threshold=self.sync_config.search_similarity_threshold
        )

    # sync control

    async def trigger_sync(self, *, force_refresh: bool = False, discover: bool = False) -> SyncAck:
        """Sync every core category, or every discovered one with ``discover``."""

        async def select(sources: Sources) -> Sequence[CategoryName]:
            if discover:
                return await discover_categories(sources.encyclopedia, self.vocabulary)
            return self.vocabulary.core_categories

        async def job(token: CancellationToken) -> SyncReport:
            return await self.run_sync(select, force_refresh=force_refresh, token=token)

        return self._supervisor.start(job, description="full sync")

    async def trigger_category_sync(
        self, category: str, *, limit: int = DEFAULT_SINGLE_CATEGORY_LIMIT
    ) -> SyncAck:
        """Sync one category; raises ``InvalidSyncRequestError`` for bad input."""

        name = validate_category_request(category, limit)
        if not name.startswith(self.vocabulary.category_namespace):
            name = f"{self.vocabulary.category_namespace}{name}"

        async def select(_sources: Sources) -> Sequence[CategoryName]:
            return [name]

        async def job(token: CancellationToken) -> SyncReport:
            return await self.run_sync(select, force_refresh=True, limit=limit, token=token)

        return self._supervisor.start(job, description=f"sync of {name}")

    def stop_sync(self) -> bool:
        return self._supervisor.stop()

    def sync_status(self) -> SyncStatus:
        return self._supervisor.status()

    async def wait_for_sync(self) -> SyncReport | None:
        return await self._supervisor.wait()

    async def run_sync(
        self,
        select: CategorySelector,
        *,
        force_refresh: bool = False,
        limit: int | None = None,
        token: CancellationToken | None = None,
    ) -> SyncReport:
        """Run one sync in the foreground over the categories ``select`` picks."""

        async with self._sources_factory() as sources:
            context = RunContext(
                sources=sources,
                uow_factory=self._uow_factory,
                config=self.sync_config,
                vocabulary=self.vocabulary,
                force_refresh=force_refresh,
                sleep=self._sleep,
            )
            categories = await select(sources)
            return await sync_categories(categories, context=context, token=token, limit=limit)

    async def list_available_categories(self) -> list[CategoryName]:
        async with self._sources_factory() as sources:
            return await discover_categories(sources.encyclopedia, self.vocabulary)

    # maintenance

    def clear_imported_persons(self) -> int:
        with self._uow_factory() as uow:
            deleted = uow.repositories.persons.delete_non_manual()
            uow.commit()
        log.info("Deleted %d imported records", deleted)
        return deleted

    def recompute_ratings(self) -> int:
        with self._uow_factory() as uow:
            updated = uow.repositories.persons.recompute_ratings()
            uow.commit()
        return updated

    def recent_import_logs(self, limit: int = 50) -> list[ImportLogEntry]:
        with self._uow_factory() as uow:
            return uow.repositories.import_logs.recent(limit=limit)

    # search

    def search(
        self, query: str, *, search_type: SearchType = SearchType.COMBINED, limit: int = 20
    ) -> list[SearchHit]:
        return self._search.search(query, search_type=search_type, limit=limit)

    def search_by_radius(self, lat: float, lng: float, radius_km: float, *, limit: int = 20) -> list[GeoHit]:
        return self._search.search_by_radius(lat, lng, radius_km, limit=limit)

    def search_by_polygon(self, polygon: Mapping[str, Any], *, limit: int = 20) -> list[PersonRecord]:
        return self._search.search_by_polygon(polygon, limit=limit)

    def search_by_occupation(self, occupation: str, *, limit: int = 20) -> list[PersonRecord]:
        return self._search.search_by_occupation(occupation, limit=limit)

    def search_by_metadata(self, fragment: Mapping[str, Any], *, limit: int = 20) -> list[PersonRecord]:
        return self._search.search_by_metadata(fragment, limit=limit)

    def top_people(self, limit: int = 2000) -> list[PersonRecord]:
        return self._search.top_people(limit=limit)
