"""SPARQL query builders for the Wikidata Query Service."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

ENTITY_PREFIX = "http://www.wikidata.org/entity/"
HUMAN = "Q5"

_ENTITY_ID = re.compile(r"^Q[1-9][0-9]*$")


def is_entity_id(value: str) -> bool:
    return _ENTITY_ID.match(value) is not None


def entity_id(uri: str) -> str:
    return uri.removeprefix(ENTITY_PREFIX).rsplit("/", 1)[-1]


def _values(ids: Iterable[str]) -> str:
    return " ".join(f"wd:{item}" for item in ids)


def humans_query(ids: Sequence[str]) -> str:
    return (
        "SELECT ?item WHERE {\n"
        f"  VALUES ?item {{ {_values(ids)} }}\n"
        f"  ?item wdt:P31 wd:{HUMAN} .\n"
        "}"
    )


def details_query(ids: Sequence[str], *, languages: Sequence[str]) -> str:
    return (
        "SELECT ?item ?birthDate ?birthPlaceLabel ?deathDate ?deathPlaceLabel ?occupationLabel WHERE {\n"
        f"  VALUES ?item {{ {_values(ids)} }}\n"
        "  OPTIONAL { ?item wdt:P569 ?birthDate . }\n"
        "  OPTIONAL { ?item wdt:P19 ?birthPlace . }\n"
        "  OPTIONAL { ?item wdt:P570 ?deathDate . }\n"
        "  OPTIONAL { ?item wdt:P20 ?deathPlace . }\n"
        "  OPTIONAL { ?item wdt:P106 ?occupation . }\n"
        f'  SERVICE wikibase:label {{ bd:serviceParam wikibase:language "{",".join(languages)}" . }}\n'
        "}"
    )
