"""Wikipedia adapters: Action API client, infobox parser and pageview metrics."""

from __future__ import annotations

from .client import WikipediaClient
from .infobox import parse_infobox
from .pageviews import PageviewsClient

__all__ = ["PageviewsClient", "WikipediaClient", "parse_infobox"]
