"""Application configuration helpers."""

from __future__ import annotations

from .env import env_float, env_int, optional_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError, VocabularyError
from .geoapify import GeoapifyConfig, get_geoapify_config
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .storage import DataPaths, get_data_paths, get_database_uri, get_http_cache_path
from .sync import SkipPolicy, SyncConfig, get_sync_config
from .vocabulary import Vocabulary, available_languages, load_vocabulary
from .wikidata import WikidataConfig, get_wikidata_config
from .wikipedia import WikipediaConfig, get_wikipedia_config

__all__ = [
    "CacheConfig",
    "ConfigurationError",
    "DataPaths",
    "GeoapifyConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "SkipPolicy",
    "SyncConfig",
    "Vocabulary",
    "VocabularyError",
    "WikidataConfig",
    "WikipediaConfig",
    "available_languages",
    "configure_logging",
    "env_float",
    "env_int",
    "get_data_paths",
    "get_database_uri",
    "get_geoapify_config",
    "get_http_cache_path",
    "get_sync_config",
    "get_wikidata_config",
    "get_wikipedia_config",
    "load_vocabulary",
    "optional_env_var",
    "require_env_vars",
]
