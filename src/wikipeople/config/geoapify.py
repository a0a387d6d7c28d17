"""Geoapify geocoder configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

DEFAULT_GEOAPIFY_URL = "https://api.geoapify.com/v1/geocode/search"


@dataclass(frozen=True, slots=True)
class GeoapifyConfig:
    resilience: ResilienceConfig
    api_key: str | None = None

    @property
    def enabled(self) -> bool:
        return self.api_key is not None


def get_geoapify_config() -> GeoapifyConfig:
    resilience = ResilienceConfig(
        name="geoapify",
        base_url=DEFAULT_GEOAPIFY_URL,
        timeout_seconds=10.0,
        retry=RetryPolicy.no_retry(),
        # free tier allows 5 requests per second
        ratelimit=RateLimit(max_calls=1, per_seconds=0.4),
    )
    return GeoapifyConfig(resilience=resilience, api_key=optional_env_var("GEOAPIFY_API_KEY"))
