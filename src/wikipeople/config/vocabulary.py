"""Static per-language vocabulary: seed categories, keyword lists and label maps.

Each supported Wikipedia edition ships a TOML file under ``config/data``. The
file is parsed once per process and exposed as an immutable :class:`Vocabulary`.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from functools import cache
from importlib import resources
from typing import TYPE_CHECKING, Any

from .errors import VocabularyError

if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass(frozen=True, slots=True)
class Vocabulary:
    language: str
    category_namespace: str
    core_categories: tuple[str, ...]
    supplementary_categories: tuple[str, ...]
    category_labels: Mapping[str, str]
    discovery_prefixes: tuple[str, ...]
    language_markers: tuple[str, ...]
    people_keywords: tuple[str, ...]
    exclusion_keywords: tuple[str, ...]
    occupations: Mapping[str, str]
    historical_suffixes: tuple[str, ...]
    unknown_place_markers: tuple[str, ...]
    rejected_title_prefixes: tuple[str, ...]
    disambiguation_markers: tuple[str, ...]
    ignored_titles: tuple[str, ...]
    birth_date_headers: tuple[str, ...]
    birth_place_headers: tuple[str, ...]

    def label_for(self, category: str) -> str | None:
        return self.category_labels.get(category)

    def is_unknown_place(self, place: str) -> bool:
        folded = place.strip().casefold()
        return not folded or any(marker.casefold() == folded for marker in self.unknown_place_markers)


def available_languages() -> tuple[str, ...]:
    data = resources.files(__package__).joinpath("data")
    return tuple(
        sorted(
            entry.name.removesuffix(".toml")
            for entry in data.iterdir()
            if entry.name.endswith(".toml")
        )
    )


@cache
def load_vocabulary(language: str) -> Vocabulary:
    """Load the vocabulary bundled for ``language`` (e.g. ``"uk"``)."""

    resource = resources.files(__package__).joinpath("data", f"{language}.toml")
    if not resource.is_file():
        raise VocabularyError(
            f"No vocabulary bundled for language {language!r}; "
            f"available: {', '.join(available_languages())}"
        )
    try:
        raw = tomllib.loads(resource.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise VocabularyError(f"Malformed vocabulary for {language!r}: {exc}") from exc
    return _build(language, raw)


def _build(language: str, raw: Mapping[str, Any]) -> Vocabulary:
    try:
        categories = raw["categories"]
        discovery = raw["discovery"]
        places = raw.get("places", {})
        titles = raw.get("titles", {})
        infobox = raw.get("infobox", {})
        return Vocabulary(
            language=language,
            category_namespace=str(raw["category_namespace"]),
            core_categories=tuple(categories["core"]),
            supplementary_categories=tuple(categories.get("supplementary", ())),
            category_labels=dict(raw.get("category_labels", {})),
            discovery_prefixes=tuple(discovery["prefixes"]),
            language_markers=tuple(discovery.get("language_markers", ())),
            people_keywords=tuple(discovery["people_keywords"]),
            exclusion_keywords=tuple(discovery.get("exclusion_keywords", ())),
            occupations={key.casefold(): value for key, value in raw.get("occupations", {}).items()},
            historical_suffixes=tuple(places.get("historical_suffixes", ())),
            unknown_place_markers=tuple(places.get("unknown_markers", ())),
            rejected_title_prefixes=tuple(titles.get("rejected_prefixes", ())),
            disambiguation_markers=tuple(titles.get("disambiguation_markers", ())),
            ignored_titles=tuple(titles.get("ignored", ())),
            birth_date_headers=tuple(infobox.get("birth_date_headers", ())),
            birth_place_headers=tuple(infobox.get("birth_place_headers", ())),
        )
    except KeyError as exc:
        raise VocabularyError(f"Vocabulary for {language!r} is missing {exc.args[0]!r}") from exc
