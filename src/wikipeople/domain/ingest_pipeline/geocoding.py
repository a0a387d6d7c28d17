"""Stages seven and eight: birthplace coordinates, category and provisional rating."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from wikipeople.domain.ingest_pipeline.orchestrator import PipelinePhase, for_each_candidate
from wikipeople.domain.normalization import is_numeric_place, provisional_rating
from wikipeople.domain.ports.fetching import Unavailable

if TYPE_CHECKING:
    from wikipeople.domain.ingest_pipeline.context import Candidate, CategoryBatch, RunContext

log = getLogger(__name__)


class GeocodingPhase(PipelinePhase):
    """Resolve birthplaces through the run-wide geocode cache.

    Candidates with coordinates from a non-manual stored record are left as
    they are. Only a cache miss reaches the geocoder; its answer, including
    "not found", is remembered for the rest of the run. A failed lookup is
    not remembered so a later candidate may retry the place.
    """

    name = "geocoding"

    async def run(self, batch: CategoryBatch, *, context: RunContext) -> None:
        async def locate(candidate: Candidate) -> None:
            existing = candidate.existing
            if existing is not None and not existing.is_manual and existing.coordinates is not None:
                candidate.coordinates = existing.coordinates
                return
            if candidate.coordinates is not None:
                return

            place = context.normalizer.birth_place(candidate.birth_place)
            if not place or context.vocabulary.is_unknown_place(place) or is_numeric_place(place):
                return

            cached, coordinates = context.geocode_cache.lookup(place)
            if cached:
                candidate.coordinates = coordinates
                return

            result = await context.sources.geocoder.geocode(place)
            context.counters.geocoder_calls += 1
            await context.pause(context.config.geocode_delay)
            if isinstance(result, Unavailable):
                log.warning("Geocoding %r unavailable: %s", place, result.reason)
                return
            context.geocode_cache.remember(place, result)
            candidate.coordinates = result

        await for_each_candidate(batch, locate, phase=self.name)


class RatingPhase(PipelinePhase):
    name = "rating"

    async def run(self, batch: CategoryBatch, *, context: RunContext) -> None:
        for candidate in batch.candidates:
            candidate.category = batch.category
            candidate.rating = provisional_rating(candidate.views, cap=context.config.max_rating)
