"""SQLAlchemy adapter package for wikipeople."""

from __future__ import annotations

from .functions import build_engine, install_sqlite_support
from .mappings import mapper_registry, start_mappers
from .repositories import SqlAlchemyImportLogRepository, SqlAlchemyPersonRepository
from .unit_of_work import (
    SqlAlchemyPeopleUnitOfWork,
    StartupError,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyImportLogRepository",
    "SqlAlchemyPeopleUnitOfWork",
    "SqlAlchemyPersonRepository",
    "StartupError",
    "build_engine",
    "install_sqlite_support",
    "is_started",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
