"""Geoapify forward geocoding."""

from __future__ import annotations

import re
from logging import getLogger
from typing import TYPE_CHECKING

from wikipeople.adapters.http_resilience import (
    ResilientClient,
    decode_json,
    ensure_success,
    unavailable_on_failure,
)
from wikipeople.config.geoapify import DEFAULT_GEOAPIFY_URL
from wikipeople.domain.model import Coordinates
from wikipeople.domain.ports.fetching import Unavailable

from .schema import GeocodeResponse

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from wikipeople.config.geoapify import GeoapifyConfig
    from wikipeople.config.http_resilience import ResilienceConfig
    from wikipeople.domain.ports.fetching import Geocoder

log = getLogger(__name__)

SOURCE = "geoapify"
_PARENTHETICAL = re.compile(r"\(.*\)")


def clean_address(address: str) -> str:
    return " ".join(_PARENTHETICAL.sub("", address).split())


class GeoapifyGeocoder:
    """Single best-effort lookup per place; never retried."""

    def __init__(
        self,
        *,
        config: GeoapifyConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._config = config
        self._client = (client_factory or ResilientClient)(config.resilience)
        if not config.enabled:
            log.warning("GEOAPIFY_API_KEY is not set; geocoding is unavailable")

    async def __aenter__(self) -> GeoapifyGeocoder:
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

    async def geocode(self, place: str) -> Coordinates | None | Unavailable:
        if not self._config.enabled:
            return Unavailable(source=SOURCE, reason="no API key configured")
        address = clean_address(place)
        if not address:
            return None
        return await self._lookup(address)

    @unavailable_on_failure(SOURCE)
    async def _lookup(self, address: str) -> Coordinates | None:
        response = await self._client.get(
            self._config.resilience.base_url or DEFAULT_GEOAPIFY_URL,
            params={"text": address, "apiKey": self._config.api_key or "", "limit": "1"},
        )
        ensure_success(response, source=SOURCE)
        payload = GeocodeResponse.model_validate(decode_json(response, source=SOURCE))
        if not payload.features:
            log.info("No geocoding result for %r", address)
            return None
        properties = payload.features[0].properties
        if properties.lat is None or properties.lon is None:
            return None
        return Coordinates(lat=properties.lat, lng=properties.lon)


if TYPE_CHECKING:
    from wikipeople.config.geoapify import get_geoapify_config

    _geocoder_check: Geocoder = GeoapifyGeocoder(config=get_geoapify_config())
