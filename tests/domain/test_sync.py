from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING

import pytest

from tests.support.people import KYIV, make_cached_person, store
from tests.support.sources import (
    FakeEncyclopedia,
    FakeGeocoder,
    FakeKnowledgeGraph,
    FakePageviews,
    make_sources,
    members,
)
from wikipeople.domain.ingest_pipeline import RunContext
from wikipeople.domain.model import ImportStatus
from wikipeople.domain.ports.fetching import PageText, PersonDetails, Sources, Unavailable
from wikipeople.domain.sync import (
    CancellationToken,
    InvalidSyncRequestError,
    SyncReport,
    SyncState,
    SyncSupervisor,
    sync_categories,
    validate_category_request,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from wikipeople.adapters.sqlalchemy.unit_of_work import SqlAlchemyPeopleUnitOfWork
    from wikipeople.config import SyncConfig, Vocabulary

    type UowFactory = Callable[[], SqlAlchemyPeopleUnitOfWork]

SCIENTISTS = "Категорія:Українські науковці"
WRITERS = "Категорія:Українські письменники"


@dataclass
class _ScientistSources:
    encyclopedia: FakeEncyclopedia
    pageviews: FakePageviews
    graph: FakeKnowledgeGraph
    geocoder: FakeGeocoder

    @property
    def sources(self) -> Sources:
        return make_sources(
            encyclopedia=self.encyclopedia,
            pageviews=self.pageviews,
            knowledge_graph=self.graph,
            geocoder=self.geocoder,
        )


def _scientist_sources() -> _ScientistSources:
    encyclopedia = FakeEncyclopedia(
        members={
            SCIENTISTS: members(
                (1, "Іван Пулюй"),
                (2, "Борис Патон"),
                (3, "Невідомий Науковець"),
            )
        },
        ids={1: "Q1", 2: "Q2"},
        texts={2: PageText(page_id=2, summary="Український науковець.", image_url="https://upload.example/2.jpg")},
    )
    graph = FakeKnowledgeGraph(
        humans={"Q1", "Q2"},
        details={
            "Q2": PersonDetails(
                wikidata_id="Q2",
                birth_date="1918-11-27",
                birth_place="Київ, Українська РСР",
                death_date="2020-08-19",
                occupations=("фізик",),
            )
        },
    )
    return _ScientistSources(
        encyclopedia=encyclopedia,
        pageviews=FakePageviews(views={"Іван Пулюй": 800, "Борис Патон": 5000, "Невідомий Науковець": 10}),
        graph=graph,
        geocoder=FakeGeocoder(),
    )


def _context(
    sources: Sources,
    uow_factory: UowFactory,
    vocabulary: Vocabulary,
    sync_config: SyncConfig,
) -> RunContext:
    return RunContext(sources=sources, uow_factory=uow_factory, config=sync_config, vocabulary=vocabulary)


def test_validate_category_request() -> None:
    assert validate_category_request("  Категорія:Поети ", 5) == "Категорія:Поети"
    with pytest.raises(InvalidSyncRequestError):
        validate_category_request("   ", 5)
    with pytest.raises(InvalidSyncRequestError):
        validate_category_request("Категорія:Поети", 0)


def test_sync_stores_new_people_and_skips_stored_ones(
    sqlite_unit_of_work: UowFactory, vocabulary: Vocabulary, sync_config: SyncConfig
) -> None:
    store(sqlite_unit_of_work, [make_cached_person("Іван Пулюй", external_id=1, views=100)])
    fakes = _scientist_sources()
    context = _context(fakes.sources, sqlite_unit_of_work, vocabulary, sync_config)

    report = asyncio.run(sync_categories([SCIENTISTS], context=context))

    assert report.failed_categories == []
    assert report.records_processed == 2
    assert report.ratings_recomputed == 2
    assert context.counters.inserted == 1
    assert context.counters.skipped_existing == 1
    assert fakes.geocoder.calls == []
    assert "Іван Пулюй" not in fakes.pageviews.calls
    assert 1 not in fakes.encyclopedia.requested_pages()
    assert 2 in fakes.encyclopedia.requested_pages()
    assert all("Q1" not in ids for ids in fakes.graph.human_calls + fakes.graph.detail_calls)

    with sqlite_unit_of_work() as uow:
        persons = uow.repositories.persons
        assert persons.count() == 2
        paton = persons.find_by_external_ids([2])[2]
        assert paton.slug == "борис-патон"
        assert paton.birth_place == "Київ"
        assert paton.birth_year == 1918
        assert paton.coordinates == KYIV
        assert paton.birth_location == f"POINT({KYIV.lng} {KYIV.lat})"
        assert paton.category == "scientist"
        assert paton.meta_data["wikidata_id"] == "Q2"
        assert paton.meta_data["death_year"] == 2020
        assert paton.rating == pytest.approx(10.0)
        (entry,) = uow.repositories.import_logs.recent(limit=10)
    assert entry.source_ref == SCIENTISTS
    assert entry.status is ImportStatus.SUCCESS
    assert entry.records_processed == 2


def test_failed_category_is_logged_and_the_run_continues(
    sqlite_unit_of_work: UowFactory, vocabulary: Vocabulary, sync_config: SyncConfig
) -> None:
    encyclopedia = FakeEncyclopedia(
        members={SCIENTISTS: Unavailable(source="wikipedia", reason="timeout"), WRITERS: []}
    )
    context = _context(make_sources(encyclopedia=encyclopedia), sqlite_unit_of_work, vocabulary, sync_config)

    report = asyncio.run(sync_categories([SCIENTISTS, WRITERS], context=context))

    assert report.failed_categories == [SCIENTISTS]
    assert [outcome.succeeded for outcome in report.outcomes] == [False, True]
    assert context.counters.categories_failed == 1
    with sqlite_unit_of_work() as uow:
        statuses = {entry.source_ref: entry.status for entry in uow.repositories.import_logs.recent(limit=10)}
    assert statuses == {SCIENTISTS: ImportStatus.FAILED, WRITERS: ImportStatus.SUCCESS}


def test_ratings_untouched_when_every_category_fails(
    sqlite_unit_of_work: UowFactory, vocabulary: Vocabulary, sync_config: SyncConfig
) -> None:
    store(sqlite_unit_of_work, [make_cached_person("Іван Пулюй", external_id=1, rating=3.5)])
    encyclopedia = FakeEncyclopedia(members={SCIENTISTS: Unavailable(source="wikipedia", reason="down")})
    context = _context(make_sources(encyclopedia=encyclopedia), sqlite_unit_of_work, vocabulary, sync_config)

    report = asyncio.run(sync_categories([SCIENTISTS], context=context))

    assert report.ratings_recomputed == 0
    with sqlite_unit_of_work() as uow:
        assert uow.repositories.persons.find_by_external_ids([1])[1].rating == 3.5


def test_cancelled_run_stops_before_the_next_category(
    sqlite_unit_of_work: UowFactory, vocabulary: Vocabulary, sync_config: SyncConfig
) -> None:
    encyclopedia = FakeEncyclopedia()
    context = _context(make_sources(encyclopedia=encyclopedia), sqlite_unit_of_work, vocabulary, sync_config)
    token = CancellationToken()
    token.cancel()

    report = asyncio.run(sync_categories([SCIENTISTS, WRITERS], context=context, token=token))

    assert report.cancelled
    assert report.outcomes == []
    assert encyclopedia.calls == []


def test_supervisor_runs_one_job_at_a_time() -> None:
    supervisor = SyncSupervisor()

    async def scenario() -> None:
        gate = asyncio.Event()

        async def job(token: CancellationToken) -> SyncReport:
            await gate.wait()
            return SyncReport(cancelled=token.cancelled)

        first = supervisor.start(job)
        second = supervisor.start(job)
        assert first.status == "started"
        assert second.status == "already_running"
        assert supervisor.status().state is SyncState.RUNNING

        gate.set()
        report = await supervisor.wait()
        assert report is not None
        assert not report.cancelled
        status = supervisor.status()
        assert status.state is SyncState.IDLE
        assert status.last_report is report

    asyncio.run(scenario())


def test_supervisor_stop_is_cooperative() -> None:
    supervisor = SyncSupervisor()

    async def scenario() -> None:
        async def job(token: CancellationToken) -> SyncReport:
            while not token.cancelled:
                await asyncio.sleep(0)
            return SyncReport(cancelled=True)

        assert not supervisor.stop()
        supervisor.start(job)
        await asyncio.sleep(0)
        assert supervisor.stop()
        assert supervisor.status().state is SyncState.STOPPING
        report = await supervisor.wait()
        assert report is not None
        assert report.cancelled

    asyncio.run(scenario())


def test_supervisor_records_job_errors() -> None:
    supervisor = SyncSupervisor()

    async def scenario() -> SyncReport | None:
        async def job(token: CancellationToken) -> SyncReport:  # noqa: ARG001
            raise RuntimeError("database is locked")

        supervisor.start(job)
        return await supervisor.wait()

    assert asyncio.run(scenario()) is None
    status = supervisor.status()
    assert not status.running
    assert status.last_error == "database is locked"
