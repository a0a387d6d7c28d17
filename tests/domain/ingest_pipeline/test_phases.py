"""Each enrichment phase on its own, against in-memory sources."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import TYPE_CHECKING, NoReturn

import pytest

from tests.support.people import KYIV, LVIV, make_cached_person, make_person
from tests.support.sources import (
    FakeEncyclopedia,
    FakeGeocoder,
    FakeKnowledgeGraph,
    FakePageviews,
    make_sources,
    members,
)
from wikipeople.config import SkipPolicy, SyncConfig, Vocabulary
from wikipeople.domain.ingest_pipeline import (
    Candidate,
    CategoryBatch,
    CategoryFetchError,
    DetailsPhase,
    EnrichmentPipeline,
    FetchMembersPhase,
    GeocodeCache,
    GeocodingPhase,
    HumannessPhase,
    RatingPhase,
    RunContext,
    SkipStoredPhase,
    ViewCountPhase,
    is_article_title,
)
from wikipeople.domain.model import Coordinates
from wikipeople.domain.ports.fetching import InfoboxFacts, PageText, PersonDetails, Sources, Unavailable

if TYPE_CHECKING:
    from wikipeople.domain.ingest_pipeline import PipelinePhase

CATEGORY = "Категорія:Українські науковці"


def _no_database() -> NoReturn:
    raise AssertionError("this phase must not touch the database")


def _context(
    sources: Sources,
    vocabulary: Vocabulary,
    config: SyncConfig,
    *,
    force_refresh: bool = False,
) -> RunContext:
    return RunContext(
        sources=sources,
        uow_factory=_no_database,
        config=config,
        vocabulary=vocabulary,
        force_refresh=force_refresh,
    )


def _run(phase: PipelinePhase, batch: CategoryBatch, context: RunContext) -> CategoryBatch:
    return asyncio.run(EnrichmentPipeline(phases=(phase,)).run(batch, context=context))


def _batch(*candidates: Candidate, limit: int | None = None) -> CategoryBatch:
    return CategoryBatch(category=CATEGORY, limit=limit, candidates=list(candidates))


def test_article_titles(vocabulary: Vocabulary) -> None:
    assert is_article_title("Іван Франко", vocabulary)
    assert not is_article_title("Список українських науковців", vocabulary)
    assert not is_article_title("Шаблон:Науковці", vocabulary)
    assert not is_article_title("Франко (значення)", vocabulary)
    assert not is_article_title("   ", vocabulary)


def test_fetch_members_filters_and_deduplicates(vocabulary: Vocabulary, sync_config: SyncConfig) -> None:
    encyclopedia = FakeEncyclopedia(
        members={
            CATEGORY: members(
                (1, "Іван Пулюй"),
                (2, "Список українських фізиків"),
                (1, "Іван Пулюй"),
                (3, "Пулюй (значення)"),
                (4, "Борис Патон"),
            )
        }
    )
    context = _context(make_sources(encyclopedia=encyclopedia), vocabulary, sync_config)

    batch = _run(FetchMembersPhase(), _batch(), context)

    assert [candidate.page_id for candidate in batch.candidates] == [1, 4]
    assert batch.members_found == 5


def test_fetch_members_unavailable_fails_the_category(vocabulary: Vocabulary, sync_config: SyncConfig) -> None:
    encyclopedia = FakeEncyclopedia(members={CATEGORY: Unavailable(source="wikipedia", reason="timeout")})
    context = _context(make_sources(encyclopedia=encyclopedia), vocabulary, sync_config)

    with pytest.raises(CategoryFetchError, match="timeout"):
        _run(FetchMembersPhase(), _batch(), context)


def test_skip_stored_policies(vocabulary: Vocabulary, sync_config: SyncConfig) -> None:
    partial = make_person("Частковий Запис", external_id=2)

    def candidates() -> list[Candidate]:
        return [
            Candidate(page_id=1, title="Повний", existing=make_cached_person("Повний", external_id=1)),
            Candidate(page_id=2, title="Частковий Запис", existing=partial),
            Candidate(page_id=3, title="Новий"),
        ]

    any_stored = _run(SkipStoredPhase(), _batch(*candidates()), _context(make_sources(), vocabulary, sync_config))
    assert [candidate.page_id for candidate in any_stored.candidates] == [3]
    assert any_stored.skipped_existing == 2

    fully_cached_config = replace(sync_config, skip_policy=SkipPolicy.FULLY_CACHED)
    fully_cached = _run(
        SkipStoredPhase(), _batch(*candidates()), _context(make_sources(), vocabulary, fully_cached_config)
    )
    assert [candidate.page_id for candidate in fully_cached.candidates] == [2, 3]

    forced = _run(
        SkipStoredPhase(),
        _batch(*candidates()),
        _context(make_sources(), vocabulary, sync_config, force_refresh=True),
    )
    assert len(forced.candidates) == 3
    assert forced.skipped_existing == 0


def test_view_counts_sort_and_cut_the_head(vocabulary: Vocabulary, sync_config: SyncConfig) -> None:
    pageviews = FakePageviews(views={"A": 10, "B": 500, "C": 50, "D": 5})
    stored = make_person("E", external_id=5, views=9000)
    context = _context(
        make_sources(pageviews=pageviews), vocabulary, replace(sync_config, head_multiple=1)
    )
    batch = _batch(
        Candidate(page_id=1, title="A"),
        Candidate(page_id=2, title="B"),
        Candidate(page_id=3, title="C"),
        Candidate(page_id=4, title="D"),
        Candidate(page_id=5, title="E", existing=stored),
        limit=3,
    )

    _run(ViewCountPhase(), batch, context)

    assert [(candidate.title, candidate.views) for candidate in batch.candidates] == [
        ("E", 9000),
        ("B", 500),
        ("C", 50),
    ]
    assert "E" not in pageviews.calls


def test_humanness_drops_unverifiable_and_non_humans(vocabulary: Vocabulary, sync_config: SyncConfig) -> None:
    encyclopedia = FakeEncyclopedia(ids={1: "Q1", 2: "Q2"})
    graph = FakeKnowledgeGraph(humans={"Q1"})
    context = _context(make_sources(encyclopedia=encyclopedia, knowledge_graph=graph), vocabulary, sync_config)
    stored = make_person("Збережений", external_id=4)
    batch = _batch(
        Candidate(page_id=1, title="Людина"),
        Candidate(page_id=2, title="Корабель"),
        Candidate(page_id=3, title="Без елемента"),
        Candidate(page_id=4, title="Збережений", existing=stored),
    )

    _run(HumannessPhase(), batch, context)

    assert [candidate.page_id for candidate in batch.candidates] == [1, 4]
    assert batch.candidates[0].wikidata_id == "Q1"
    assert batch.dropped_unverifiable == 1
    assert batch.dropped_not_human == 1
    assert graph.human_calls == [("Q1", "Q2")]


def test_humanness_fails_open_when_graph_is_down(vocabulary: Vocabulary, sync_config: SyncConfig) -> None:
    encyclopedia = FakeEncyclopedia(ids={1: "Q1", 2: "Q2"})
    graph = FakeKnowledgeGraph(down=True)
    context = _context(make_sources(encyclopedia=encyclopedia, knowledge_graph=graph), vocabulary, sync_config)
    batch = _batch(Candidate(page_id=1, title="A"), Candidate(page_id=2, title="B"), limit=1)

    _run(HumannessPhase(), batch, context)

    assert [candidate.page_id for candidate in batch.candidates] == [1]


def test_humanness_drops_candidates_from_a_failed_graph_batch(
    vocabulary: Vocabulary, sync_config: SyncConfig
) -> None:
    encyclopedia = FakeEncyclopedia(ids={1: "Q1", 2: "Q2"})
    graph = FakeKnowledgeGraph(humans={"Q1"}, unverified={"Q2"})
    context = _context(make_sources(encyclopedia=encyclopedia, knowledge_graph=graph), vocabulary, sync_config)
    batch = _batch(Candidate(page_id=1, title="Людина"), Candidate(page_id=2, title="Невідомо хто"))

    _run(HumannessPhase(), batch, context)

    assert [candidate.page_id for candidate in batch.candidates] == [1]
    assert batch.dropped_unverifiable == 1
    assert batch.dropped_not_human == 0


def test_humanness_drops_pages_whose_id_lookup_failed(vocabulary: Vocabulary, sync_config: SyncConfig) -> None:
    encyclopedia = FakeEncyclopedia(ids={1: "Q1", 2: "Q2"}, failing_id_pages={2})
    graph = FakeKnowledgeGraph(humans={"Q1", "Q2"})
    config = replace(sync_config, knowledge_graph_batch_size=1)
    context = _context(make_sources(encyclopedia=encyclopedia, knowledge_graph=graph), vocabulary, config)
    batch = _batch(Candidate(page_id=1, title="Людина"), Candidate(page_id=2, title="Друга людина"))

    _run(HumannessPhase(), batch, context)

    assert [candidate.page_id for candidate in batch.candidates] == [1]
    assert batch.dropped_unverifiable == 1
    assert graph.human_calls == [("Q1",)]


def test_humanness_fails_open_when_every_id_lookup_fails(vocabulary: Vocabulary, sync_config: SyncConfig) -> None:
    encyclopedia = FakeEncyclopedia(ids={1: "Q1", 2: "Q2"}, failing_id_pages={1, 2})
    graph = FakeKnowledgeGraph()
    context = _context(make_sources(encyclopedia=encyclopedia, knowledge_graph=graph), vocabulary, sync_config)
    batch = _batch(Candidate(page_id=1, title="A"), Candidate(page_id=2, title="B"))

    _run(HumannessPhase(), batch, context)

    assert [candidate.page_id for candidate in batch.candidates] == [1, 2]
    assert batch.dropped_unverifiable == 0
    assert graph.human_calls == []


def test_details_from_graph_text_and_infobox(vocabulary: Vocabulary, sync_config: SyncConfig) -> None:
    encyclopedia = FakeEncyclopedia(
        texts={
            1: PageText(page_id=1, summary="Фізик.", image_url="https://upload.example/1.jpg"),
            2: PageText(page_id=2, summary="Інженер."),
        },
        infoboxes={2: InfoboxFacts(birth_date="1918", birth_place="Київ")},
    )
    graph = FakeKnowledgeGraph(
        details={
            "Q1": PersonDetails(
                wikidata_id="Q1",
                birth_date="1845-02-02",
                birth_place="Гримайлів",
                death_date="1918-01-31",
                occupations=("фізик", "винахідник"),
            )
        }
    )
    context = _context(make_sources(encyclopedia=encyclopedia, knowledge_graph=graph), vocabulary, sync_config)
    cached = make_cached_person("Кешований", external_id=3)
    batch = _batch(
        Candidate(page_id=1, title="Іван Пулюй", wikidata_id="Q1"),
        Candidate(page_id=2, title="Борис Патон", wikidata_id="Q2"),
        Candidate(page_id=3, title="Кешований", existing=cached),
    )

    _run(DetailsPhase(), batch, context)

    pulyui, paton, stored = batch.candidates
    assert pulyui.birth_date == "1845-02-02"
    assert pulyui.birth_place == "Гримайлів"
    assert pulyui.occupations == ("фізик", "винахідник")
    assert pulyui.image_url == "https://upload.example/1.jpg"
    assert paton.birth_place == "Київ"
    assert paton.summary == "Інженер."
    assert stored.summary == cached.summary
    assert stored.coordinates == KYIV
    assert encyclopedia.called("infobox_facts") == [2]
    assert encyclopedia.called("page_texts") == [(1, 2)]


def test_geocoding_uses_the_run_cache(vocabulary: Vocabulary, sync_config: SyncConfig) -> None:
    geocoder = FakeGeocoder(places={"Львів": LVIV})
    context = _context(make_sources(geocoder=geocoder), vocabulary, sync_config)
    context.geocode_cache.remember("київ", KYIV)
    context.geocode_cache.remember("Атлантида", None)
    batch = _batch(
        Candidate(page_id=1, title="A", birth_place="Київ, Російська імперія"),
        Candidate(page_id=2, title="B", birth_place="Львів"),
        Candidate(page_id=3, title="C", birth_place="Львів (місто)"),
        Candidate(page_id=4, title="D", birth_place="Атлантида"),
        Candidate(page_id=5, title="E", birth_place="Невідомо"),
        Candidate(page_id=6, title="F", birth_place="1918"),
    )

    _run(GeocodingPhase(), batch, context)

    assert [candidate.coordinates for candidate in batch.candidates] == [KYIV, LVIV, LVIV, None, None, None]
    assert geocoder.calls == ["Львів"]
    assert context.counters.geocoder_calls == 1


def test_geocoding_keeps_stored_coordinates(vocabulary: Vocabulary, sync_config: SyncConfig) -> None:
    geocoder = FakeGeocoder(places={"Київ": Coordinates(lat=0.0, lng=0.0)})
    context = _context(make_sources(geocoder=geocoder), vocabulary, sync_config, force_refresh=True)
    stored = make_person("Збережений", external_id=1, birth_place="Київ", coordinates=KYIV)
    batch = _batch(Candidate(page_id=1, title="Збережений", existing=stored, birth_place="Київ"))

    _run(GeocodingPhase(), batch, context)

    assert batch.candidates[0].coordinates == KYIV
    assert geocoder.calls == []


def test_geocoding_does_not_remember_failures(vocabulary: Vocabulary, sync_config: SyncConfig) -> None:
    class FlakyGeocoder(FakeGeocoder):
        async def geocode(self, place: str) -> Coordinates | None | Unavailable:  # type: ignore[override]
            self.calls.append(place)
            if len(self.calls) == 1:
                return Unavailable(source="geoapify", reason="timeout")
            return LVIV

    geocoder = FlakyGeocoder()
    context = _context(make_sources(geocoder=geocoder), vocabulary, sync_config)
    batch = _batch(
        Candidate(page_id=1, title="A", birth_place="Львів"),
        Candidate(page_id=2, title="B", birth_place="Львів"),
    )

    _run(GeocodingPhase(), batch, context)

    assert [candidate.coordinates for candidate in batch.candidates] == [None, LVIV]
    assert context.geocode_cache.lookup("львів") == (True, LVIV)


def test_rating_phase_assigns_category_and_provisional_rating(
    vocabulary: Vocabulary, sync_config: SyncConfig
) -> None:
    batch = _batch(Candidate(page_id=1, title="A", views=99), Candidate(page_id=2, title="B"))

    _run(RatingPhase(), batch, _context(make_sources(), vocabulary, sync_config))

    assert [candidate.category for candidate in batch.candidates] == [CATEGORY, CATEGORY]
    assert batch.candidates[0].rating == pytest.approx(4.0)
    assert batch.candidates[1].rating == 0.0


def test_failing_candidate_is_dropped_not_fatal(vocabulary: Vocabulary, sync_config: SyncConfig) -> None:
    class ExplodingPageviews(FakePageviews):
        async def total_views(self, title: str, **kwargs: object) -> int:  # type: ignore[override]
            if title == "B":
                raise RuntimeError("boom")
            return 1

    context = _context(make_sources(pageviews=ExplodingPageviews()), vocabulary, sync_config)
    batch = _batch(Candidate(page_id=1, title="A"), Candidate(page_id=2, title="B"))

    _run(ViewCountPhase(), batch, context)

    assert [candidate.title for candidate in batch.candidates] == ["A"]
    assert batch.failed_candidates == 1


def test_geocode_cache_keys_are_casefolded() -> None:
    cache = GeocodeCache(seed={" Київ ": KYIV})

    assert "КИЇВ" in cache
    assert cache.lookup("київ") == (True, KYIV)
    assert cache.lookup("Львів") == (False, None)
    assert cache.hits == 1
    assert len(cache) == 1
