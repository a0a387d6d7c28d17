"""Stage five: keep only candidates the knowledge graph calls human."""

from __future__ import annotations

from dataclasses import dataclass
from itertools import batched
from logging import getLogger
from typing import TYPE_CHECKING

from wikipeople.domain.ingest_pipeline.orchestrator import PipelinePhase
from wikipeople.domain.ports.fetching import Unavailable

if TYPE_CHECKING:
    from wikipeople.domain.ingest_pipeline.context import Candidate, CategoryBatch, RunContext
    from wikipeople.domain.model import PageId

log = getLogger(__name__)


class HumannessPhase(PipelinePhase):
    """Check ``instance of: human`` for candidates without a stored record.

    Stored candidates are trusted. A candidate whose page has no linked graph
    item is dropped, and so is one whose id lookup or graph batch failed while
    other batches succeeded. Only when a step fails for every batch does the
    phase fail open and let the affected candidates through. The surviving set
    is cut to the requested limit.
    """

    name = "humanness"

    async def run(self, batch: CategoryBatch, *, context: RunContext) -> None:
        pending = [candidate for candidate in batch.candidates if candidate.existing is None]
        unresolved, ids_down = await self._resolve_ids(pending, context=context)

        to_check = {
            candidate.wikidata_id
            for candidate in pending
            if candidate.wikidata_id is not None
        }
        verdict = await self._check(to_check, context=context)

        kept: list[Candidate] = []
        for candidate in batch.candidates:
            if candidate.existing is not None or ids_down:
                kept.append(candidate)
            elif candidate.page_id in unresolved:
                log.warning("Dropping %r: its graph id lookup failed", candidate.title)
                batch.dropped_unverifiable += 1
            elif candidate.wikidata_id is None:
                log.warning(
                    "Dropping %r: no knowledge-graph item, cannot verify it is a person",
                    candidate.title,
                )
                batch.dropped_unverifiable += 1
            elif verdict.humans is None or candidate.wikidata_id in verdict.humans:
                kept.append(candidate)
            elif candidate.wikidata_id in verdict.unverified:
                log.warning("Dropping %r: its humanness batch failed", candidate.title)
                batch.dropped_unverifiable += 1
            else:
                log.debug("Dropping %r: not an instance of human", candidate.title)
                batch.dropped_not_human += 1

        if batch.limit is not None:
            del kept[batch.limit :]
        batch.candidates[:] = kept

    async def _resolve_ids(
        self, pending: list[Candidate], *, context: RunContext
    ) -> tuple[set[PageId], bool]:
        """Fill in graph ids.

        Returns the page ids whose lookup failed and whether every lookup did.
        """

        unresolved: set[PageId] = set()
        size = context.config.knowledge_graph_batch_size
        for chunk in batched(pending, size):
            resolved = await context.sources.encyclopedia.wikidata_ids(
                [candidate.page_id for candidate in chunk]
            )
            await context.pause(context.config.request_delay)
            if isinstance(resolved, Unavailable):
                log.warning("Graph id lookup failed for %d pages: %s", len(chunk), resolved.reason)
                unresolved.update(candidate.page_id for candidate in chunk)
                continue
            for candidate in chunk:
                candidate.wikidata_id = resolved.get(candidate.page_id)
        ids_down = bool(pending) and len(unresolved) == len(pending)
        if ids_down:
            log.warning("Graph id lookup unavailable, failing open for %d pages", len(pending))
        return unresolved, ids_down

    async def _check(self, ids: set[str], *, context: RunContext) -> _Verdict:
        if not ids:
            return _Verdict(humans=frozenset())
        report = await context.sources.knowledge_graph.human_ids(sorted(ids))
        if isinstance(report, Unavailable):
            log.warning("Humanness check unavailable, failing open: %s", report.reason)
            return _Verdict(humans=None)
        if report.unverified:
            log.warning("%d ids could not be verified and are dropped", len(report.unverified))
        return _Verdict(humans=report.humans, unverified=report.unverified)


@dataclass(frozen=True, slots=True)
class _Verdict:
    """Ids confirmed human; ``humans`` is ``None`` when everything passes."""

    humans: frozenset[str] | None
    unverified: frozenset[str] = frozenset()
