"""Category enrichment pipeline for wikipeople.

A category moves through explicit, separately testable phases. Each phase
works on a ``CategoryBatch`` and reads the run-wide ``RunContext`` (sources,
configuration, geocode cache, counters), so no state outlives one run.
"""

from __future__ import annotations

from .context import Candidate, CategoryBatch, GeocodeCache, RunContext, RunCounters
from .details import DetailsPhase
from .geocoding import GeocodingPhase, RatingPhase
from .humanness import HumannessPhase
from .members import (
    ExistingRecordsPhase,
    FetchMembersPhase,
    SkipStoredPhase,
    is_article_title,
    is_ignored,
)
from .orchestrator import CategoryFetchError, EnrichmentPipeline, PipelinePhase
from .popularity import ViewCountPhase
from .runner import default_pipeline, enrich_category

__all__ = [
    "Candidate",
    "CategoryBatch",
    "CategoryFetchError",
    "DetailsPhase",
    "EnrichmentPipeline",
    "ExistingRecordsPhase",
    "FetchMembersPhase",
    "GeocodeCache",
    "GeocodingPhase",
    "HumannessPhase",
    "PipelinePhase",
    "RatingPhase",
    "RunContext",
    "RunCounters",
    "SkipStoredPhase",
    "ViewCountPhase",
    "default_pipeline",
    "enrich_category",
    "is_article_title",
    "is_ignored",
]
