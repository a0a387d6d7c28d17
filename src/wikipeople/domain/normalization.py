"""Pure text transforms for names, slugs, birthplaces, categories and years.

Everything here is deterministic and free of I/O. The lookup tables (category
labels, occupation synonyms, historical place suffixes) come from the bundled
vocabulary but can be passed explicitly.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from wikipeople.config.vocabulary import Vocabulary

_PARENTHETICAL = re.compile(r"\([^)]*\)")
_APOSTROPHES = re.compile(r"[‘’ʼʹ`´]")
_WHITESPACE = re.compile(r"\s+")
_SLUG_STRIP = re.compile(r"[^\w\s-]|_")
_HYPHENS = re.compile(r"-+")
_TRAILING_COMMA = re.compile(r",\s*$")
_ISO_YEAR = re.compile(r"^([0-9]{4})-")
_BARE_YEAR = re.compile(r"(?<![0-9])([0-9]{4})(?![0-9])")
_NUMERIC_PLACE = re.compile(r"^[\d\s.,/\-]+$")

CANONICAL_APOSTROPHE = "'"
MAX_RATING = 10.0


def normalize_name(name: str) -> str:
    """Comparison key for a person's name.

    Lowercases, drops parenthetical qualifiers such as ``(поет)``, folds the
    apostrophe variants used in Ukrainian spelling to ``'`` and collapses
    whitespace. Applying it twice gives the same result as applying it once.
    """

    lowered = _PARENTHETICAL.sub(" ", name.lower())
    unified = _APOSTROPHES.sub(CANONICAL_APOSTROPHE, lowered)
    return _WHITESPACE.sub(" ", unified).strip()


def to_slug(name: str) -> str:
    """URL-safe slug: lowercase letters, digits and single inner hyphens."""

    stripped = _SLUG_STRIP.sub("", name.lower())
    hyphenated = _WHITESPACE.sub("-", stripped.strip())
    return _HYPHENS.sub("-", hyphenated).strip("-")


def normalize_birth_place(place: str | None, *, historical_suffixes: Iterable[str] = ()) -> str | None:
    """Display form of a birthplace without notes or defunct-polity qualifiers."""

    if not place:
        return place
    cleaned = _PARENTHETICAL.sub("", place)
    suffixes = "|".join(re.escape(suffix) for suffix in historical_suffixes)
    if suffixes:
        cleaned = re.sub(rf",?\s*(?:{suffixes})", "", cleaned, flags=re.IGNORECASE)
    cleaned = _TRAILING_COMMA.sub("", cleaned.strip())
    return _WHITESPACE.sub(" ", cleaned).strip()


def is_numeric_place(place: str | None) -> bool:
    """A "place" made only of digits and separators, typically a leaked year."""

    return bool(place) and _NUMERIC_PLACE.match(place or "") is not None


def map_category_label(category: str, labels: Mapping[str, str]) -> str:
    return labels.get(category, category)


def extract_birth_year(date_text: str | None) -> int | None:
    if not date_text:
        return None
    match = _ISO_YEAR.match(date_text) or _BARE_YEAR.search(date_text)
    if match is None:
        return None
    return int(match.group(1))


@dataclass(frozen=True, slots=True)
class OccupationProfile:
    occupations: tuple[str, ...]

    @property
    def primary_category(self) -> str | None:
        return self.occupations[0] if self.occupations else None


def enrich_occupations(labels: Iterable[str], synonyms: Mapping[str, str]) -> OccupationProfile:
    """Map occupation labels to canonical tags, keeping first-seen order.

    ``synonyms`` keys are expected casefolded; unmapped labels pass through
    lowercased and trimmed.
    """

    seen: dict[str, None] = {}
    for label in labels:
        key = label.strip().lower()
        if not key:
            continue
        seen.setdefault(synonyms.get(key.casefold(), key), None)
    return OccupationProfile(occupations=tuple(seen))


def provisional_rating(views: int, *, cap: float = MAX_RATING) -> float:
    """Log-scaled popularity used until the percentile pass runs."""

    return min(cap, math.log10(max(views, 0) + 1) * 2)


@dataclass(frozen=True, slots=True)
class Normalizer:
    """Normalization functions bound to one vocabulary's tables."""

    category_labels: Mapping[str, str]
    occupation_synonyms: Mapping[str, str]
    historical_suffixes: tuple[str, ...]

    @classmethod
    def from_vocabulary(cls, vocabulary: Vocabulary) -> Normalizer:
        return cls(
            category_labels=vocabulary.category_labels,
            occupation_synonyms=vocabulary.occupations,
            historical_suffixes=vocabulary.historical_suffixes,
        )

    def birth_place(self, place: str | None) -> str | None:
        return normalize_birth_place(place, historical_suffixes=self.historical_suffixes)

    def category_label(self, category: str) -> str:
        return map_category_label(category, self.category_labels)

    def occupations(self, labels: Iterable[str]) -> OccupationProfile:
        return enrich_occupations(labels, self.occupation_synonyms)
