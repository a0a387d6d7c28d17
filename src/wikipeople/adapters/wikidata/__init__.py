"""Wikidata adapter: batched SPARQL lookups for humanness and person facts."""

from __future__ import annotations

from .client import WikidataClient

__all__ = ["WikidataClient"]
