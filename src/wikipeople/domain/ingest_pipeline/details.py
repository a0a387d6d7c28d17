"""Stage six: birth and death facts, occupations, summary and image."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from wikipeople.domain.ingest_pipeline.orchestrator import PipelinePhase, for_each_candidate
from wikipeople.domain.ports.fetching import Unavailable

if TYPE_CHECKING:
    from collections.abc import Mapping

    from wikipeople.domain.ingest_pipeline.context import Candidate, CategoryBatch, RunContext
    from wikipeople.domain.model import PageId, WikidataId
    from wikipeople.domain.ports.fetching import PageText, PersonDetails

log = getLogger(__name__)


class DetailsPhase(PipelinePhase):
    """Fill in the facts a stored record would carry.

    Fully cached candidates reuse their stored fields without any request.
    The others get one graph query and one extracts query per batch, and an
    infobox lookup when the birth date or place is still missing.
    """

    name = "details"

    async def run(self, batch: CategoryBatch, *, context: RunContext) -> None:
        to_fetch: list[Candidate] = []
        for candidate in batch.candidates:
            if candidate.is_fully_cached and candidate.existing is not None:
                candidate.adopt_stored(candidate.existing)
            else:
                to_fetch.append(candidate)
        if not to_fetch:
            return

        details = await self._details(to_fetch, context=context)
        texts = await self._texts(to_fetch, context=context)
        fetching = {id(candidate) for candidate in to_fetch}

        async def enrich(candidate: Candidate) -> None:
            if id(candidate) not in fetching:
                return
            if candidate.wikidata_id is not None and candidate.wikidata_id in details:
                _apply_details(candidate, details[candidate.wikidata_id])
            text = texts.get(candidate.page_id)
            if text is not None:
                candidate.summary = text.summary
                candidate.image_url = text.image_url
            if candidate.birth_date and candidate.birth_place:
                return
            await context.pause(context.config.request_delay)
            facts = await context.sources.encyclopedia.infobox_facts(candidate.page_id)
            if isinstance(facts, Unavailable):
                log.debug("No infobox for %r: %s", candidate.title, facts.reason)
                return
            candidate.birth_date = candidate.birth_date or facts.birth_date
            candidate.birth_place = candidate.birth_place or facts.birth_place

        await for_each_candidate(batch, enrich, phase=self.name)

    async def _details(
        self, candidates: list[Candidate], *, context: RunContext
    ) -> Mapping[WikidataId, PersonDetails]:
        ids = [candidate.wikidata_id for candidate in candidates if candidate.wikidata_id]
        if not ids:
            return {}
        details = await context.sources.knowledge_graph.person_details(ids)
        if isinstance(details, Unavailable):
            log.warning("Person details unavailable for %d items: %s", len(ids), details.reason)
            return {}
        return details

    async def _texts(self, candidates: list[Candidate], *, context: RunContext) -> Mapping[PageId, PageText]:
        texts = await context.sources.encyclopedia.page_texts([candidate.page_id for candidate in candidates])
        await context.pause(context.config.request_delay)
        if isinstance(texts, Unavailable):
            log.warning("Page extracts unavailable for %d pages: %s", len(candidates), texts.reason)
            return {}
        return texts


def _apply_details(candidate: Candidate, details: PersonDetails) -> None:
    candidate.birth_date = details.birth_date
    candidate.birth_place = details.birth_place
    candidate.death_date = details.death_date
    candidate.death_place = details.death_place
    candidate.occupations = details.occupations
