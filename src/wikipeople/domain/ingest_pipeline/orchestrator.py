"""Phase-based orchestrator for the category enrichment pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable, Sequence

    from wikipeople.domain.ingest_pipeline.context import Candidate, CategoryBatch, RunContext

log = getLogger(__name__)


class PipelinePhase(Protocol):
    """Contract implemented by each enrichment phase."""

    name: str

    async def run(self, batch: CategoryBatch, *, context: RunContext) -> None: ...


class CategoryFetchError(RuntimeError):
    """The member listing of a category could not be obtained."""


@dataclass(slots=True)
class EnrichmentPipeline:
    """Run the ordered phases over one category batch."""

    phases: Sequence[PipelinePhase] = field(default_factory=tuple)

    def with_phase(self, phase: PipelinePhase) -> EnrichmentPipeline:
        return EnrichmentPipeline(phases=(*self.phases, phase))

    def extend(self, phases: Iterable[PipelinePhase]) -> EnrichmentPipeline:
        return EnrichmentPipeline(phases=(*self.phases, *tuple(phases)))

    async def run(self, batch: CategoryBatch, *, context: RunContext) -> CategoryBatch:
        for phase in self.phases:
            await phase.run(batch, context=context)
            log.debug("%s: %d candidates after %s", batch.category, len(batch.candidates), phase.name)
        return batch


async def for_each_candidate(
    batch: CategoryBatch,
    step: Callable[[Candidate], Awaitable[None]],
    *,
    phase: str,
) -> None:
    """Apply ``step`` to every candidate, dropping the ones it fails on.

    One candidate's error is logged and counted; the rest of the batch goes on.
    """

    survivors: list[Candidate] = []
    for candidate in batch.candidates:
        try:
            await step(candidate)
        except Exception:
            log.exception("%s failed for %r in %s", phase, candidate.title, batch.category)
            batch.failed_candidates += 1
            continue
        survivors.append(candidate)
    batch.candidates[:] = survivors
