"""Match enriched candidates to stored records and write them."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from wikipeople.domain.model import PersonRecord
from wikipeople.domain.normalization import (
    extract_birth_year,
    is_numeric_place,
    normalize_name,
    to_slug,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from wikipeople.domain.ingest_pipeline.context import Candidate
    from wikipeople.domain.model import PageId
    from wikipeople.domain.normalization import Normalizer
    from wikipeople.domain.ports.persistence import PersonRepository
    from wikipeople.domain.ports.unit_of_work import PeopleUnitOfWork

log = getLogger(__name__)

DEFAULT_FUZZY_MATCH_THRESHOLD = 0.6


@dataclass(frozen=True, slots=True)
class SaveSummary:
    inserted: int = 0
    updated: int = 0
    skipped_manual: int = 0
    errors: int = 0

    @property
    def saved(self) -> int:
        return self.inserted + self.updated


class EntityResolver:
    """Find the stored record a candidate refers to.

    Strategies run in order and the first hit wins: external id, exact
    normalized name, then the most similar normalized name at or above
    ``threshold``.
    """

    def __init__(self, persons: PersonRepository, *, threshold: float = DEFAULT_FUZZY_MATCH_THRESHOLD) -> None:
        self._persons = persons
        self._threshold = threshold

    def find_match(self, *, name: str, external_id: PageId | None = None) -> PersonRecord | None:
        if external_id is not None:
            by_id = self._persons.find_by_external_ids([external_id]).get(external_id)
            if by_id is not None:
                return by_id
        normalized = normalize_name(name)
        if not normalized:
            return None
        by_name = self._persons.find_by_normalized_name(normalized)
        if by_name is not None:
            return by_name
        similar = self._persons.most_similar_name(normalized, threshold=self._threshold)
        if similar is not None:
            log.debug("Fuzzy match %r -> %r (%.2f)", name, similar.item.name, similar.score)
            return similar.item
        return None


@dataclass(frozen=True, slots=True)
class _Fields:
    birth_place: str | None
    birth_year: int | None
    category: str | None
    occupations: tuple[str, ...]


def _prepare(candidate: Candidate, normalizer: Normalizer) -> _Fields:
    place = normalizer.birth_place(candidate.birth_place)
    if is_numeric_place(place):
        log.warning("Discarding numeric birthplace %r for %r", place, candidate.title)
        place = None
    profile = normalizer.occupations(candidate.occupations)
    label = normalizer.category_label(candidate.category) if candidate.category else None
    return _Fields(
        birth_place=place or None,
        birth_year=extract_birth_year(candidate.birth_date),
        category=profile.primary_category or label,
        occupations=profile.occupations,
    )


def merge_meta_data(stored: dict[str, Any], candidate: Candidate, occupations: tuple[str, ...]) -> None:
    """Overwrite a key only when the fresh value is non-empty."""

    fresh: dict[str, Any] = {
        "occupations": list(occupations),
        "death_place": candidate.death_place,
        "death_year": extract_birth_year(candidate.death_date),
        "wikidata_id": candidate.wikidata_id,
    }
    for key, value in fresh.items():
        if value not in (None, "", []):
            stored[key] = value


class _SlugAllocator:
    def __init__(self, persons: PersonRepository) -> None:
        self._persons = persons
        self._taken: set[str] = set()

    def allocate(self, name: str, external_id: PageId | None) -> str:
        base = to_slug(name) or "person"
        options = [base]
        if external_id is not None:
            options.append(f"{base}-{external_id}")
        for slug in options:
            if self._free(slug):
                return self._claim(slug)
        while True:
            slug = f"{base}-{uuid4().hex[:6]}"
            if self._free(slug):
                return self._claim(slug)

    def _free(self, slug: str) -> bool:
        return slug not in self._taken and not self._persons.slug_exists(slug)

    def _claim(self, slug: str) -> str:
        self._taken.add(slug)
        return slug


def _apply_update(record: PersonRecord, candidate: Candidate, fields: _Fields) -> None:
    if record.external_id is None:
        record.external_id = candidate.page_id
    record.summary = candidate.summary or record.summary
    record.image_url = candidate.image_url or record.image_url
    record.birth_date = candidate.birth_date or record.birth_date
    record.birth_year = fields.birth_year or record.birth_year
    record.birth_place = fields.birth_place or record.birth_place
    if candidate.coordinates is not None:
        record.set_coordinates(candidate.coordinates)
    record.category = fields.category or record.category
    record.views = candidate.views
    record.rating = candidate.rating
    merge_meta_data(record.meta_data, candidate, fields.occupations)
    record.touch()


def _new_record(candidate: Candidate, fields: _Fields, slug: str) -> PersonRecord:
    record = PersonRecord(
        external_id=candidate.page_id,
        name=candidate.title,
        slug=slug,
        summary=candidate.summary,
        image_url=candidate.image_url,
        category=fields.category,
        birth_date=candidate.birth_date,
        birth_year=fields.birth_year,
        birth_place=fields.birth_place,
        views=candidate.views,
        rating=candidate.rating,
    )
    record.set_coordinates(candidate.coordinates)
    merge_meta_data(record.meta_data, candidate, fields.occupations)
    record.touch()
    return record


def persist_candidates(
    uow: PeopleUnitOfWork,
    candidates: Iterable[Candidate],
    *,
    normalizer: Normalizer,
    threshold: float = DEFAULT_FUZZY_MATCH_THRESHOLD,
) -> SaveSummary:
    """Insert or update one record per candidate inside ``uow``.

    Manual records are never touched. Each update runs in its own savepoint
    together with its geometry refresh. New records go in one bulk insert and,
    if that fails, one savepoint per record. A failing record is counted and
    skipped. The caller commits.
    """

    persons = uow.repositories.persons
    resolver = EntityResolver(persons, threshold=threshold)
    slugs = _SlugAllocator(persons)
    updated = skipped_manual = errors = 0
    fresh: list[PersonRecord] = []
    claimed: set[PageId] = set()

    for candidate in candidates:
        if candidate.page_id in claimed:
            continue
        claimed.add(candidate.page_id)
        match = resolver.find_match(name=candidate.title, external_id=candidate.page_id)
        if match is not None and match.is_manual:
            log.info("Skipping manual record %r", match.name)
            skipped_manual += 1
            continue
        fields = _prepare(candidate, normalizer)
        if match is None:
            fresh.append(_new_record(candidate, fields, slugs.allocate(candidate.title, candidate.page_id)))
            continue
        try:
            with uow.savepoint():
                _apply_update(match, candidate, fields)
                persons.update_geometry([match.id])
        except Exception:
            log.exception("Could not update %r", match.name)
            errors += 1
            continue
        updated += 1

    inserted, insert_errors = _insert(uow, fresh)
    summary = SaveSummary(
        inserted=inserted,
        updated=updated,
        skipped_manual=skipped_manual,
        errors=errors + insert_errors,
    )
    log.info(
        "Saved %d new and %d updated records (%d manual skipped, %d errors)",
        summary.inserted,
        summary.updated,
        summary.skipped_manual,
        summary.errors,
    )
    return summary


def _insert(uow: PeopleUnitOfWork, records: list[PersonRecord]) -> tuple[int, int]:
    if not records:
        return 0, 0
    persons = uow.repositories.persons
    try:
        with uow.savepoint():
            persons.add_all(records)
            persons.update_geometry([record.id for record in records])
    except Exception as exc:  # noqa: BLE001
        log.warning("Bulk insert of %d records failed, inserting one by one: %s", len(records), exc)
    else:
        return len(records), 0

    inserted = errors = 0
    for record in records:
        try:
            with uow.savepoint():
                persons.add(record)
                persons.update_geometry([record.id])
        except Exception:
            log.exception("Could not insert %r", record.name)
            errors += 1
            continue
        inserted += 1
    return inserted, errors
