"""MediaWiki Action API client for one Wikipedia edition."""

from __future__ import annotations

import asyncio
from itertools import batched
from logging import getLogger
from typing import TYPE_CHECKING

from wikipeople.adapters.http_resilience import (
    ExternalServiceError,
    ResilientClient,
    decode_json,
    ensure_success,
    unavailable_on_failure,
)
from wikipeople.domain.ports.fetching import (
    CategoryMember,
    InfoboxFacts,
    PageText,
    Unavailable,
)

from .infobox import parse_infobox
from .schema import ParseResponse, QueryResponse

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence
    from types import TracebackType

    from wikipeople.config.http_resilience import ResilienceConfig
    from wikipeople.config.vocabulary import Vocabulary
    from wikipeople.config.wikipedia import WikipediaConfig
    from wikipeople.domain.model import CategoryName, PageId, WikidataId

log = getLogger(__name__)

SOURCE = "wikipedia"
LIST_LIMIT = "500"
PAGEPROPS_CHUNK = 50
EXTRACTS_CHUNK = 20
ARTICLE_NAMESPACE = "0"


class WikipediaClient:
    """Category listings, page properties, intro extracts and infobox facts.

    Listing calls drain every continuation token before returning and wait
    ``page_delay`` seconds between pages.
    """

    def __init__(
        self,
        *,
        config: WikipediaConfig,
        vocabulary: Vocabulary,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
        page_delay: float = 0.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._config = config
        self._vocabulary = vocabulary
        self._client = (client_factory or ResilientClient)(config.resilience)
        self._page_delay = page_delay
        self._sleep = sleep

    async def __aenter__(self) -> WikipediaClient:
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

    @unavailable_on_failure(SOURCE)
    async def category_members(self, category: CategoryName) -> list[CategoryMember]:
        params = {
            "list": "categorymembers",
            "cmtitle": category,
            "cmlimit": LIST_LIMIT,
            "cmnamespace": ARTICLE_NAMESPACE,
            "cmtype": "page",
        }
        members: list[CategoryMember] = []
        while True:
            payload = await self._query(params)
            members.extend(
                CategoryMember(page_id=item.pageid, title=item.title)
                for item in payload.query.categorymembers
            )
            token = payload.continuation.cmcontinue if payload.continuation else None
            if not token:
                break
            params = {**params, "cmcontinue": token}
            await self._sleep(self._page_delay)
        log.debug("Category %s has %d article members", category, len(members))
        return members

    @unavailable_on_failure(SOURCE)
    async def categories_with_prefix(self, prefix: str) -> list[CategoryName]:
        """Category names (without namespace) starting with ``prefix``."""

        params = {"list": "allcategories", "acprefix": prefix, "aclimit": LIST_LIMIT}
        names: list[CategoryName] = []
        while True:
            payload = await self._query(params)
            names.extend(entry.category for entry in payload.query.allcategories)
            token = payload.continuation.accontinue if payload.continuation else None
            if not token:
                break
            params = {**params, "accontinue": token}
            await self._sleep(self._page_delay)
        return names

    @unavailable_on_failure(SOURCE)
    async def wikidata_ids(self, page_ids: Sequence[PageId]) -> dict[PageId, WikidataId]:
        resolved: dict[PageId, WikidataId] = {}
        for chunk in batched(page_ids, PAGEPROPS_CHUNK):
            payload = await self._query(
                {
                    "prop": "pageprops",
                    "ppprop": "wikibase_item",
                    "pageids": "|".join(str(page_id) for page_id in chunk),
                }
            )
            for page in payload.query.pages:
                if page.pageid is None or page.pageprops is None:
                    continue
                if page.pageprops.wikibase_item:
                    resolved[page.pageid] = page.pageprops.wikibase_item
        return resolved

    async def page_texts(self, page_ids: Sequence[PageId]) -> dict[PageId, PageText] | Unavailable:
        """Intro extracts and lead images; failed chunks are left out."""

        texts: dict[PageId, PageText] = {}
        failures: list[Unavailable] = []
        for chunk in batched(page_ids, EXTRACTS_CHUNK):
            result = await self._page_text_chunk(chunk)
            if isinstance(result, Unavailable):
                failures.append(result)
                continue
            texts.update(result)
        if failures and not texts:
            return failures[0]
        return texts

    @unavailable_on_failure(SOURCE)
    async def _page_text_chunk(self, chunk: Sequence[PageId]) -> dict[PageId, PageText]:
        payload = await self._query(
            {
                "prop": "extracts|pageimages",
                "exintro": "1",
                "explaintext": "1",
                "exlimit": str(EXTRACTS_CHUNK),
                "piprop": "original",
                "pageids": "|".join(str(page_id) for page_id in chunk),
            }
        )
        return {
            page.pageid: PageText(
                page_id=page.pageid,
                summary=page.extract or page.description,
                image_url=page.original.source if page.original else None,
            )
            for page in payload.query.pages
            if page.pageid is not None and not page.missing
        }

    @unavailable_on_failure(SOURCE)
    async def infobox_facts(self, page_id: PageId) -> InfoboxFacts:
        response = await self._client.get(
            self._config.api_url,
            params={
                "action": "parse",
                "format": "json",
                "formatversion": "2",
                "pageid": str(page_id),
                "prop": "text",
            },
        )
        ensure_success(response, source=SOURCE)
        payload = ParseResponse.model_validate(decode_json(response, source=SOURCE))
        if payload.error is not None:
            raise ExternalServiceError(
                f"parse failed for page {page_id}: {payload.error.info}", source=SOURCE
            )
        if payload.parse is None or not payload.parse.text:
            return InfoboxFacts()
        return parse_infobox(
            payload.parse.text,
            birth_date_headers=self._vocabulary.birth_date_headers,
            birth_place_headers=self._vocabulary.birth_place_headers,
        )

    async def _query(self, params: dict[str, str]) -> QueryResponse:
        response = await self._client.get(
            self._config.api_url,
            params={"action": "query", "format": "json", "formatversion": "2", **params},
        )
        ensure_success(response, source=SOURCE)
        payload = QueryResponse.model_validate(decode_json(response, source=SOURCE))
        if payload.error is not None:
            raise ExternalServiceError(
                f"{payload.error.code}: {payload.error.info}",
                source=SOURCE,
                status_code=response.status_code,
                retryable=payload.error.code == "maxlag",
            )
        return payload


if TYPE_CHECKING:
    from wikipeople.config.vocabulary import load_vocabulary
    from wikipeople.domain.ports.fetching import EncyclopediaSource
    from wikipeople.config.wikipedia import get_wikipedia_config

    _source_check: EncyclopediaSource = WikipediaClient(
        config=get_wikipedia_config(), vocabulary=load_vocabulary("uk")
    )
