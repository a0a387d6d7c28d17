from __future__ import annotations

import asyncio

import pytest

from tests.support.sources import FakeEncyclopedia
from wikipeople.config import Vocabulary
from wikipeople.domain.discovery import discover_categories, is_people_category
from wikipeople.domain.ports.fetching import Unavailable


@pytest.mark.parametrize(
    ("name", "prefix", "accepted"),
    [
        ("Українські поети", "Українські", True),
        ("Українські фільми", "Українські", False),
        ("Українські футбольні клуби", "Українські", False),
        ("Українці-журналісти", "Українці", True),
        ("Українські письменники за алфавітом", "Українські", False),
        ("Поети", "Поети", False),
    ],
)
def test_is_people_category(name: str, prefix: str, accepted: bool, vocabulary: Vocabulary) -> None:
    assert is_people_category(name, prefix=prefix, vocabulary=vocabulary) is accepted


def test_language_marker_required_when_prefix_has_none(vocabulary: Vocabulary) -> None:
    assert not is_people_category("Поети Франції", prefix="Поети", vocabulary=vocabulary)
    assert is_people_category("Поети України", prefix="Поети", vocabulary=vocabulary)


def test_discover_categories_unions_prefixes_and_supplementary_list(vocabulary: Vocabulary) -> None:
    encyclopedia = FakeEncyclopedia(
        prefixes={
            "Українські": ["Українські поети", "Українські фільми", "Українські композитори"],
            "Українці": Unavailable(source="wikipedia", reason="timeout"),
        }
    )

    categories = asyncio.run(discover_categories(encyclopedia, vocabulary))

    assert categories == sorted(categories)
    assert "Категорія:Українські поети" in categories
    assert "Категорія:Українські композитори" in categories
    assert "Категорія:Українські фільми" not in categories
    assert set(vocabulary.supplementary_categories) <= set(categories)
    assert len(categories) == len(set(categories))
    assert encyclopedia.called("categories_with_prefix") == ["Українські", "Українці"]
