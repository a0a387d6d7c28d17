"""SQLAlchemy mapping metadata for the wikipeople domain model."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Dialect,
    Enum,
    Float,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    Uuid,
    orm,
)
from sqlalchemy.ext.mutable import MutableDict
from sqlalchemy.orm import configure_mappers

from wikipeople.domain.model import ImportLogEntry, ImportStatus, PersonRecord

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

person_table = Table(
    "person",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("external_id", Integer, nullable=True, unique=True),
    Column("name", String, nullable=False, index=True),
    Column("slug", String, nullable=False, unique=True),
    Column("summary", Text, nullable=True),
    Column("image_url", String, nullable=True),
    Column("category", String, nullable=True, index=True),
    Column("meta_data", MutableDict.as_mutable(JSON()), nullable=False, default=dict),
    Column("birth_date", String, nullable=True),
    Column("birth_year", Integer, nullable=True, index=True),
    Column("birth_place", String, nullable=True),
    Column("lat", Float, nullable=True),
    Column("lng", Float, nullable=True),
    Column("birth_location", String, nullable=True),
    Column("views", Integer, nullable=False, default=0),
    Column("rating", Float, nullable=False, default=0.0, index=True),
    Column("is_manual", Boolean, nullable=False, default=False),
    Column("created_at", UTCDateTime(), nullable=True),
    Column("updated_at", UTCDateTime(), nullable=True),
    CheckConstraint("(lat IS NULL) = (lng IS NULL)", name="coordinates_paired"),
    CheckConstraint("views >= 0", name="views_non_negative"),
)

import_log_table = Table(
    "import_log",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("source_ref", String, nullable=False),
    Column(
        "status",
        Enum(ImportStatus, native_enum=False, length=16, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    ),
    Column("message", Text, nullable=True),
    Column("records_processed", Integer, nullable=False, default=0),
    Column("imported_at", UTCDateTime(), nullable=False, index=True),
)


def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model (idempotent)."""

    if mapper_registry.mappers:
        return mapper_registry

    log.info("Starting SQLAlchemy mappers")
    mapper_registry.map_imperatively(PersonRecord, person_table)
    mapper_registry.map_imperatively(ImportLogEntry, import_log_table)
    configure_mappers()
    return mapper_registry
