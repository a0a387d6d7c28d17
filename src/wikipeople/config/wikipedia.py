"""Wikipedia (Action API + pageview metrics) configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .storage import get_http_cache_path

DEFAULT_LANGUAGE = "uk"
DEFAULT_CONTACT = "https://github.com/wikipeople/wikipeople"
PAGEVIEWS_BASE_URL = "https://wikimedia.org/api/rest_v1/metrics/pageviews/per-article"


def user_agent(contact: str | None = None) -> str:
    return f"wikipeople/1.0 ({contact or DEFAULT_CONTACT})"


def _is_pageview_payload(payload: object) -> bool:
    # error bodies (404 for never-viewed pages, throttling) must not be cached
    return isinstance(payload, dict) and "items" in payload


@dataclass(frozen=True, slots=True)
class WikipediaConfig:
    language: str
    resilience: ResilienceConfig
    pageviews: ResilienceConfig
    access_token: str | None = None

    @property
    def project(self) -> str:
        return f"{self.language}.wikipedia"

    @property
    def api_url(self) -> str:
        return f"https://{self.language}.wikipedia.org/w/api.php"


def get_wikipedia_config() -> WikipediaConfig:
    language = optional_env_var("WIKIPEDIA_LANGUAGE", DEFAULT_LANGUAGE) or DEFAULT_LANGUAGE
    headers = {"User-Agent": user_agent(optional_env_var("WIKIPEOPLE_CONTACT"))}

    resilience = ResilienceConfig(
        name="wikipedia",
        base_url=f"https://{language}.wikipedia.org/w/api.php",
        timeout_seconds=15.0,
        retry=RetryPolicy(total=3, backoff_factor=1.0),
        ratelimit=RateLimit(max_calls=5, per_seconds=1.0),
        default_headers=headers,
    )
    pageviews = ResilienceConfig(
        name="pageviews",
        base_url=PAGEVIEWS_BASE_URL,
        timeout_seconds=15.0,
        retry=RetryPolicy(total=3, backoff_factor=1.0),
        ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
        cache=CacheConfig(
            enabled=True,
            backend="sqlite",
            sqlite_path=str(get_http_cache_path()),
            should_cache=_is_pageview_payload,
        ),
        default_headers=headers,
    )
    return WikipediaConfig(
        language=language,
        resilience=resilience,
        pageviews=pageviews,
        access_token=optional_env_var("WIKIMEDIA_ACCESS_TOKEN"),
    )
