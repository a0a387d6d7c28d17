"""Entry points for running the enrichment pipeline on one category."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .context import CategoryBatch
from .details import DetailsPhase
from .geocoding import GeocodingPhase, RatingPhase
from .humanness import HumannessPhase
from .members import ExistingRecordsPhase, FetchMembersPhase, SkipStoredPhase
from .orchestrator import EnrichmentPipeline
from .popularity import ViewCountPhase

if TYPE_CHECKING:
    from wikipeople.domain.model import CategoryName

    from .context import RunContext


def default_pipeline() -> EnrichmentPipeline:
    return EnrichmentPipeline(
        phases=(
            FetchMembersPhase(),
            ExistingRecordsPhase(),
            SkipStoredPhase(),
            ViewCountPhase(),
            HumannessPhase(),
            DetailsPhase(),
            GeocodingPhase(),
            RatingPhase(),
        )
    )


async def enrich_category(
    category: CategoryName,
    *,
    context: RunContext,
    limit: int | None = None,
    pipeline: EnrichmentPipeline | None = None,
) -> CategoryBatch:
    """Turn one category into enriched candidates ready for persistence."""

    batch = CategoryBatch(category=category, limit=limit)
    return await (pipeline or default_pipeline()).run(batch, context=context)
