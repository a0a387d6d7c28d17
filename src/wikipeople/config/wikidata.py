"""Wikidata SPARQL endpoint configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .wikipedia import DEFAULT_LANGUAGE, user_agent

DEFAULT_SPARQL_URL = "https://query.wikidata.org/sparql"


@dataclass(frozen=True, slots=True)
class WikidataConfig:
    resilience: ResilienceConfig
    label_languages: tuple[str, ...] = (DEFAULT_LANGUAGE, "en")


def get_wikidata_config() -> WikidataConfig:
    language = optional_env_var("WIKIPEDIA_LANGUAGE", DEFAULT_LANGUAGE) or DEFAULT_LANGUAGE
    resilience = ResilienceConfig(
        name="wikidata",
        base_url=DEFAULT_SPARQL_URL,
        # the public endpoint aborts queries after 60 s
        timeout_seconds=60.0,
        retry=RetryPolicy(total=3, backoff_factor=2.0),
        ratelimit=RateLimit(max_calls=1, per_seconds=1.0),
        default_headers={
            "User-Agent": user_agent(optional_env_var("WIKIPEOPLE_CONTACT")),
            "Accept": "application/sparql-results+json",
        },
    )
    languages = (language, "en") if language != "en" else ("en",)
    return WikidataConfig(resilience=resilience, label_languages=languages)
