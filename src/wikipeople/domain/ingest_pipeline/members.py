"""Stages one to three: members, stored records and the skip decision."""

from __future__ import annotations

from itertools import batched
from logging import getLogger
from typing import TYPE_CHECKING

from wikipeople.config.sync import SkipPolicy
from wikipeople.domain.ingest_pipeline.context import Candidate
from wikipeople.domain.ingest_pipeline.orchestrator import CategoryFetchError, PipelinePhase
from wikipeople.domain.ports.fetching import Unavailable

if TYPE_CHECKING:
    from wikipeople.config.vocabulary import Vocabulary
    from wikipeople.domain.ingest_pipeline.context import CategoryBatch, RunContext
    from wikipeople.domain.model import PageId, PersonRecord

log = getLogger(__name__)


def is_article_title(title: str, vocabulary: Vocabulary) -> bool:
    """Reject lists, disambiguation pages and namespaced pages."""

    folded = title.strip().casefold()
    if not folded:
        return False
    if any(folded.startswith(prefix.casefold()) for prefix in vocabulary.rejected_title_prefixes):
        return False
    return not any(marker.casefold() in folded for marker in vocabulary.disambiguation_markers)


def is_ignored(title: str, vocabulary: Vocabulary) -> bool:
    folded = title.casefold()
    return any(word.casefold() in folded for word in vocabulary.ignored_titles)


class FetchMembersPhase(PipelinePhase):
    name = "fetch-members"

    async def run(self, batch: CategoryBatch, *, context: RunContext) -> None:
        members = await context.sources.encyclopedia.category_members(batch.category)
        if isinstance(members, Unavailable):
            raise CategoryFetchError(f"members of {batch.category} unavailable: {members.reason}")
        batch.members_found = len(members)

        seen: set[PageId] = set()
        for member in members:
            if member.page_id in seen:
                continue
            seen.add(member.page_id)
            if not is_article_title(member.title, context.vocabulary):
                continue
            if is_ignored(member.title, context.vocabulary):
                log.debug("Ignoring listed title %r", member.title)
                continue
            batch.candidates.append(Candidate(page_id=member.page_id, title=member.title))
        log.info(
            "%s: %d of %d members look like articles",
            batch.category,
            len(batch.candidates),
            batch.members_found,
        )


class ExistingRecordsPhase(PipelinePhase):
    """Load stored records for every candidate in fixed-size batches."""

    name = "existing-records"

    async def run(self, batch: CategoryBatch, *, context: RunContext) -> None:
        page_ids = [candidate.page_id for candidate in batch.candidates]
        existing: dict[PageId, PersonRecord] = {}
        with context.uow_factory() as uow:
            for chunk in batched(page_ids, context.config.existing_batch_size):
                existing.update(uow.repositories.persons.find_by_external_ids(chunk))
        batch.existing = existing
        for candidate in batch.candidates:
            candidate.existing = existing.get(candidate.page_id)
            if candidate.existing is None:
                continue
            stored_id = candidate.existing.meta_data.get("wikidata_id")
            if isinstance(stored_id, str):
                candidate.wikidata_id = stored_id


class SkipStoredPhase(PipelinePhase):
    """Leave already stored candidates alone unless the run forces a refresh."""

    name = "skip-stored"

    async def run(self, batch: CategoryBatch, *, context: RunContext) -> None:
        if context.force_refresh:
            return
        policy = context.config.skip_policy
        kept: list[Candidate] = []
        for candidate in batch.candidates:
            if candidate.existing is not None and (
                policy is SkipPolicy.ANY_STORED or candidate.is_fully_cached
            ):
                batch.skipped_existing += 1
                continue
            kept.append(candidate)
        batch.candidates[:] = kept
        if batch.skipped_existing:
            log.info("%s: %d candidates already stored", batch.category, batch.skipped_existing)
