"""Wikimedia REST pageview metrics."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING
from urllib.parse import quote

import httpx

from wikipeople.adapters.http_resilience import (
    ResilientClient,
    decode_json,
    ensure_success,
    unavailable_on_failure,
)
from wikipeople.config.wikipedia import PAGEVIEWS_BASE_URL

from .schema import PageviewsResponse

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import date
    from types import TracebackType

    from wikipeople.config.http_resilience import ResilienceConfig
    from wikipeople.config.wikipedia import WikipediaConfig
    from wikipeople.domain.ports.fetching import PageviewSource

log = getLogger(__name__)

SOURCE = "pageviews"


def article_path(title: str) -> str:
    return quote(title.replace(" ", "_"), safe="")


def _timestamp(day: date) -> str:
    return f"{day:%Y%m%d}00"


class PageviewsClient:
    """Monthly per-article views summed over a date window.

    A 404 from the metrics service means the page had no recorded views in
    the window and is reported as ``0``.
    """

    def __init__(
        self,
        *,
        config: WikipediaConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._config = config
        self._client = (client_factory or ResilientClient)(config.pageviews)
        self._base_url = config.pageviews.base_url or PAGEVIEWS_BASE_URL

    async def __aenter__(self) -> PageviewsClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def url_for(self, title: str, *, start: date, end: date) -> str:
        return (
            f"{self._base_url}/{self._config.project}/all-access/all-agents/"
            f"{article_path(title)}/monthly/{_timestamp(start)}/{_timestamp(end)}"
        )

    @unavailable_on_failure(SOURCE)
    async def total_views(self, title: str, *, start: date, end: date) -> int:
        headers: dict[str, str] = {}
        if self._config.access_token:
            headers["Authorization"] = f"Bearer {self._config.access_token}"
        response = await self._client.get(self.url_for(title, start=start, end=end), headers=headers)
        if response.status_code == httpx.codes.NOT_FOUND:
            log.debug("No pageview data for %s", title)
            return 0
        ensure_success(response, source=SOURCE)
        return PageviewsResponse.model_validate(decode_json(response, source=SOURCE)).total


if TYPE_CHECKING:
    from wikipeople.config.wikipedia import get_wikipedia_config

    _source_check: PageviewSource = PageviewsClient(config=get_wikipedia_config())
