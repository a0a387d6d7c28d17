"""Category discovery over the encyclopedia's category index."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from wikipeople.domain.ports.fetching import Unavailable

if TYPE_CHECKING:
    from wikipeople.config.vocabulary import Vocabulary
    from wikipeople.domain.model import CategoryName
    from wikipeople.domain.ports.fetching import EncyclopediaSource

log = getLogger(__name__)


def _contains_any(text: str, keywords: tuple[str, ...]) -> bool:
    return any(keyword.casefold() in text for keyword in keywords)


def is_people_category(name: str, *, prefix: str, vocabulary: Vocabulary) -> bool:
    """Classify a category name (without namespace) found under ``prefix``.

    A name qualifies when it mentions a people keyword, mentions no exclusion
    keyword and carries a language marker, unless ``prefix`` already carries
    one.
    """

    folded = name.casefold()
    if not _contains_any(folded, vocabulary.people_keywords):
        return False
    if _contains_any(folded, vocabulary.exclusion_keywords):
        return False
    if _contains_any(prefix.casefold(), vocabulary.language_markers):
        return True
    return _contains_any(folded, vocabulary.language_markers)


async def discover_categories(
    source: EncyclopediaSource,
    vocabulary: Vocabulary,
) -> list[CategoryName]:
    """Sorted union of matching prefixed categories and the supplementary list.

    A prefix whose listing fails contributes nothing; the other prefixes are
    still collected.
    """

    found: set[CategoryName] = set(vocabulary.supplementary_categories)
    for prefix in vocabulary.discovery_prefixes:
        names = await source.categories_with_prefix(prefix)
        if isinstance(names, Unavailable):
            log.warning("Skipping discovery prefix %r: %s", prefix, names.reason)
            continue
        accepted = [
            f"{vocabulary.category_namespace}{name}"
            for name in names
            if is_people_category(name, prefix=prefix, vocabulary=vocabulary)
        ]
        log.info("Prefix %r: %d of %d categories accepted", prefix, len(accepted), len(names))
        found.update(accepted)
    return sorted(found)
