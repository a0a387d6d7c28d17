"""Synchronization defaults for the ingestion pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import StrEnum

from .env import env_float, env_int

DEFAULT_EXISTING_BATCH_SIZE = 500
DEFAULT_KNOWLEDGE_GRAPH_BATCH_SIZE = 50
DEFAULT_CATEGORY_LIMIT = 50
DEFAULT_SINGLE_CATEGORY_LIMIT = 10
DEFAULT_HEAD_MULTIPLE = 3

# Seconds to wait after rate-sensitive calls, on top of the per-client limiter.
DEFAULT_REQUEST_DELAY = 0.2
DEFAULT_CATEGORY_DELAY = 2.0


class SkipPolicy(StrEnum):
    """When an incremental run leaves an already stored candidate alone."""

    ANY_STORED = "any_stored"
    FULLY_CACHED = "fully_cached"


@dataclass(frozen=True, slots=True)
class SyncConfig:
    existing_batch_size: int = DEFAULT_EXISTING_BATCH_SIZE
    knowledge_graph_batch_size: int = DEFAULT_KNOWLEDGE_GRAPH_BATCH_SIZE
    category_limit: int | None = DEFAULT_CATEGORY_LIMIT
    head_multiple: int = DEFAULT_HEAD_MULTIPLE
    skip_policy: SkipPolicy = SkipPolicy.ANY_STORED

    request_delay: float = DEFAULT_REQUEST_DELAY
    pageview_delay: float = DEFAULT_REQUEST_DELAY / 2
    geocode_delay: float = DEFAULT_REQUEST_DELAY * 2
    category_delay: float = DEFAULT_CATEGORY_DELAY

    pageviews_start: date = date(2023, 1, 1)
    pageviews_end: date = date(2024, 1, 1)

    max_rating: float = 10.0
    fuzzy_match_threshold: float = 0.6
    search_similarity_threshold: float = 0.1


def get_sync_config() -> SyncConfig:
    limit = env_int("WIKIPEOPLE_CATEGORY_LIMIT", DEFAULT_CATEGORY_LIMIT)
    return SyncConfig(
        category_limit=limit if limit is None or limit > 0 else None,
        request_delay=env_float("WIKIPEOPLE_REQUEST_DELAY", DEFAULT_REQUEST_DELAY),
        category_delay=env_float("WIKIPEOPLE_CATEGORY_DELAY", DEFAULT_CATEGORY_DELAY),
    )
