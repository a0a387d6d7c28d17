"""Stage four: page views, ordering and the head cut."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from wikipeople.domain.ingest_pipeline.orchestrator import PipelinePhase, for_each_candidate
from wikipeople.domain.ports.fetching import Unavailable

if TYPE_CHECKING:
    from wikipeople.domain.ingest_pipeline.context import Candidate, CategoryBatch, RunContext

log = getLogger(__name__)


class ViewCountPhase(PipelinePhase):
    """Attach monthly view totals and keep the most viewed candidates.

    With a limit, only ``limit * head_multiple`` candidates go on so the
    humanness check still has room to thin the set.
    """

    name = "view-counts"

    async def run(self, batch: CategoryBatch, *, context: RunContext) -> None:
        async def attach_views(candidate: Candidate) -> None:
            stored = candidate.existing.views if candidate.existing is not None else 0
            if stored > 0 and not context.force_refresh:
                candidate.views = stored
                return
            views = await context.sources.pageviews.total_views(
                candidate.title,
                start=context.config.pageviews_start,
                end=context.config.pageviews_end,
            )
            await context.pause(context.config.pageview_delay)
            if isinstance(views, Unavailable):
                log.warning("No view count for %r: %s", candidate.title, views.reason)
                candidate.views = stored
                return
            candidate.views = views

        await for_each_candidate(batch, attach_views, phase=self.name)
        batch.candidates.sort(key=lambda candidate: candidate.views, reverse=True)
        if batch.limit is not None:
            del batch.candidates[batch.limit * context.config.head_multiple :]
