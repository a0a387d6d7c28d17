"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from sqlalchemy import String, case, cast, delete, func, literal, select, text, update

from wikipeople.adapters.sqlalchemy.mappings import import_log_table, person_table
from wikipeople.domain.model import Coordinates, ImportLogEntry, PersonRecord
from wikipeople.domain.ports.persistence import Scored

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence
    from uuid import UUID

    from sqlalchemy.orm import Session

    from wikipeople.domain.model import PageId

# percent_rank() is 0 for the lowest view count and 1 for the highest
_RECOMPUTE_RATINGS = text(
    """
    UPDATE person SET rating = (
        SELECT ranked.pct FROM (
            SELECT id, percent_rank() OVER (ORDER BY views) * :scale AS pct FROM person
        ) AS ranked
        WHERE ranked.id = person.id
    )
    """
)


def _search_document() -> Any:
    return person_table.c.name + literal(" ") + func.coalesce(person_table.c.summary, "")


class SqlAlchemyPersonRepository:
    def __init__(self, session: Session, *, max_rating: float = 10.0) -> None:
        self.session = session
        self._max_rating = max_rating

    def add(self, entity: PersonRecord) -> None:
        self.session.add(entity)
        self.session.flush()

    def add_all(self, persons: Sequence[PersonRecord]) -> None:
        self.session.add_all(persons)
        self.session.flush()

    def find_by_external_ids(self, external_ids: Iterable[PageId]) -> dict[PageId, PersonRecord]:
        ids = list(dict.fromkeys(external_ids))
        if not ids:
            return {}
        stmt = select(PersonRecord).where(person_table.c.external_id.in_(ids))
        return {
            person.external_id: person
            for person in self.session.execute(stmt).scalars()
            if person.external_id is not None
        }

    def find_by_normalized_name(self, normalized_name: str) -> PersonRecord | None:
        stmt = (
            select(PersonRecord)
            .where(func.normalize_name(person_table.c.name) == normalized_name)
            .order_by(person_table.c.created_at)
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def most_similar_name(self, normalized_name: str, *, threshold: float) -> Scored[PersonRecord] | None:
        score = func.similarity(func.normalize_name(person_table.c.name), normalized_name)
        stmt = (
            select(PersonRecord, score.label("score"))
            .where(score >= threshold)
            .order_by(score.desc())
            .limit(1)
        )
        row = self.session.execute(stmt).first()
        if row is None:
            return None
        return Scored(item=row[0], score=float(row[1]))

    def slug_exists(self, slug: str) -> bool:
        stmt = select(person_table.c.id).where(person_table.c.slug == slug).limit(1)
        return self.session.execute(stmt).first() is not None

    def update_geometry(self, person_ids: Iterable[UUID]) -> None:
        ids = list(person_ids)
        if not ids:
            return
        self.session.flush()
        point = (
            literal("POINT(")
            + cast(person_table.c.lng, String)
            + literal(" ")
            + cast(person_table.c.lat, String)
            + literal(")")
        )
        stmt = (
            update(PersonRecord)
            .where(person_table.c.id.in_(ids))
            .where(person_table.c.is_manual.is_(False))
            .values(
                birth_location=case(
                    (person_table.c.lat.is_not(None), point),
                    else_=None,
                )
            )
            .execution_options(synchronize_session="fetch")
        )
        self.session.execute(stmt)

    def stored_coordinates(self) -> dict[str, Coordinates]:
        """Coordinates of imported records keyed by casefolded birthplace."""

        stmt = (
            select(person_table.c.birth_place, person_table.c.lat, person_table.c.lng)
            .where(person_table.c.is_manual.is_(False))
            .where(person_table.c.birth_place.is_not(None))
            .where(person_table.c.lat.is_not(None))
            .where(person_table.c.lng.is_not(None))
            .order_by(person_table.c.updated_at)
        )
        return {
            place.casefold(): Coordinates(lat=lat, lng=lng)
            for place, lat, lng in self.session.execute(stmt)
            if place
        }

    def recompute_ratings(self) -> int:
        self.session.flush()
        result = self.session.execute(_RECOMPUTE_RATINGS, {"scale": self._max_rating})
        self.session.expire_all()
        return int(getattr(result, "rowcount", 0) or 0)

    def delete_non_manual(self) -> int:
        imported = person_table.c.is_manual.is_(False)
        total = self.session.execute(select(func.count()).select_from(person_table).where(imported)).scalar_one()
        self.session.execute(delete(PersonRecord).where(imported).execution_options(synchronize_session="fetch"))
        return int(total)

    def count(self) -> int:
        return int(self.session.execute(select(func.count()).select_from(person_table)).scalar_one())

    def similar_names(self, query: str, *, threshold: float, limit: int) -> list[Scored[PersonRecord]]:
        score = func.similarity(person_table.c.name, query)
        stmt = (
            select(PersonRecord, score.label("score"))
            .where(score > threshold)
            .order_by(score.desc(), person_table.c.rating.desc())
            .limit(limit)
        )
        return [Scored(item=person, score=float(value)) for person, value in self.session.execute(stmt)]

    def text_matches(self, query: str, *, limit: int) -> list[Scored[PersonRecord]]:
        rank = func.text_rank(_search_document(), query)
        stmt = (
            select(PersonRecord, rank.label("rank"))
            .where(rank > 0)
            .order_by(rank.desc(), person_table.c.rating.desc())
            .limit(limit)
        )
        return [Scored(item=person, score=float(value)) for person, value in self.session.execute(stmt)]

    def within_radius(
        self, lat: float, lng: float, *, radius_km: float, limit: int
    ) -> list[Scored[PersonRecord]]:
        distance = func.haversine_km(person_table.c.lat, person_table.c.lng, lat, lng)
        stmt = (
            select(PersonRecord, distance.label("distance"))
            .where(person_table.c.lat.is_not(None))
            .where(distance <= radius_km)
            .order_by(distance.asc())
            .limit(limit)
        )
        return [Scored(item=person, score=float(value)) for person, value in self.session.execute(stmt)]

    def within_polygon(self, polygon: Mapping[str, Any], *, limit: int) -> list[PersonRecord]:
        stmt = (
            select(PersonRecord)
            .where(person_table.c.lat.is_not(None))
            .where(func.point_in_polygon(person_table.c.lat, person_table.c.lng, json.dumps(polygon)) == 1)
            .order_by(person_table.c.rating.desc())
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars())

    def metadata_contains(self, fragment: Mapping[str, Any], *, limit: int) -> list[PersonRecord]:
        stmt = (
            select(PersonRecord)
            .where(func.json_contains(person_table.c.meta_data, json.dumps(fragment)) == 1)
            .order_by(person_table.c.rating.desc())
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars())

    def top_rated(self, *, limit: int) -> list[PersonRecord]:
        stmt = select(PersonRecord).order_by(person_table.c.rating.desc()).limit(limit)
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyImportLogRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: ImportLogEntry) -> None:
        self.session.add(entity)
        self.session.flush()

    def recent(self, *, limit: int) -> list[ImportLogEntry]:
        stmt = select(ImportLogEntry).order_by(import_log_table.c.imported_at.desc()).limit(limit)
        return list(self.session.execute(stmt).scalars())


if TYPE_CHECKING:
    from wikipeople.domain.ports.persistence import ImportLogRepository, PersonRepository

    def _check(session: Session) -> None:
        _persons: PersonRepository = SqlAlchemyPersonRepository(session)
        _logs: ImportLogRepository = SqlAlchemyImportLogRepository(session)
