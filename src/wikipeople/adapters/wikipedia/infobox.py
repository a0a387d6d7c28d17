"""Best-effort extraction of birth facts from a rendered infobox."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from bs4 import BeautifulSoup

from wikipeople.domain.ports.fetching import InfoboxFacts

if TYPE_CHECKING:
    from collections.abc import Sequence

    from bs4 import Tag

log = getLogger(__name__)

BIRTH_DATE_PROPERTY = "P569"
BIRTH_PLACE_PROPERTY = "P19"


def _cell_value(cell: Tag, property_id: str) -> str | None:
    tagged = cell.select_one(f'[data-wikidata-property-id="{property_id}"]')
    source = tagged if tagged is not None else cell
    text = " ".join(source.get_text(" ", strip=True).split())
    return text or None


def parse_infobox(
    html: str,
    *,
    birth_date_headers: Sequence[str],
    birth_place_headers: Sequence[str],
) -> InfoboxFacts:
    """Read birth date and place from the first ``.infobox`` table of ``html``.

    Rows are matched by header text; a cell carrying the Wikidata property
    marker wins over the cell's full text.
    """

    soup = BeautifulSoup(html, "html.parser")
    infobox = soup.select_one(".infobox")
    if infobox is None:
        return InfoboxFacts()

    birth_date: str | None = None
    birth_place: str | None = None
    for row in infobox.select("tr"):
        header = row.select_one("th")
        cell = row.select_one("td")
        if header is None or cell is None:
            continue
        header_text = header.get_text(" ", strip=True).lower()
        if birth_date is None and any(marker in header_text for marker in birth_date_headers):
            birth_date = _cell_value(cell, BIRTH_DATE_PROPERTY)
        if birth_place is None and any(marker in header_text for marker in birth_place_headers):
            birth_place = _cell_value(cell, BIRTH_PLACE_PROPERTY)
    return InfoboxFacts(birth_date=birth_date, birth_place=birth_place)
