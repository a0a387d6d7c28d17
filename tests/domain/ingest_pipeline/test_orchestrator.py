from __future__ import annotations

import asyncio
from dataclasses import dataclass

import pytest

from tests.support.sources import make_sources
from wikipeople.config import SyncConfig, Vocabulary
from wikipeople.domain.ingest_pipeline import (
    CategoryBatch,
    EnrichmentPipeline,
    PipelinePhase,
    RunContext,
    default_pipeline,
)


@dataclass(slots=True)
class _RecordingPhase(PipelinePhase):
    name: str
    calls: list[str]

    async def run(self, batch: CategoryBatch, *, context: RunContext) -> None:
        _ = (batch, context)
        self.calls.append(self.name)


@pytest.fixture
def context(vocabulary: Vocabulary, sync_config: SyncConfig) -> RunContext:
    def no_database() -> None:
        raise AssertionError("unexpected database access")

    return RunContext(
        sources=make_sources(),
        uow_factory=no_database,  # type: ignore[arg-type]
        config=sync_config,
        vocabulary=vocabulary,
    )


def test_pipeline_runs_phases_in_order(context: RunContext) -> None:
    calls: list[str] = []
    first = _RecordingPhase(name="first", calls=calls)
    second = _RecordingPhase(name="second", calls=calls)
    pipeline = EnrichmentPipeline(phases=(first,)).with_phase(second)

    batch = asyncio.run(pipeline.run(CategoryBatch(category="Категорія:Поети"), context=context))

    assert calls == ["first", "second"]
    assert batch.category == "Категорія:Поети"


def test_extend_keeps_the_original_pipeline(context: RunContext) -> None:
    calls: list[str] = []
    base = EnrichmentPipeline(phases=(_RecordingPhase(name="base", calls=calls),))
    extended = base.extend([_RecordingPhase(name="extra", calls=calls)])

    asyncio.run(base.run(CategoryBatch(category="Категорія:Поети"), context=context))

    assert calls == ["base"]
    assert len(extended.phases) == 2


def test_default_pipeline_stage_order() -> None:
    assert [phase.name for phase in default_pipeline().phases] == [
        "fetch-members",
        "existing-records",
        "skip-stored",
        "view-counts",
        "humanness",
        "details",
        "geocoding",
        "rating",
    ]
