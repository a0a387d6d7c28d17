from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session, sessionmaker

from wikipeople.adapters.sqlalchemy import build_engine, start_mappers
from wikipeople.adapters.sqlalchemy.migrations import upgrade_head
from wikipeople.adapters.sqlalchemy.unit_of_work import SqlAlchemyPeopleUnitOfWork, shutdown, startup
from wikipeople.config import SyncConfig, Vocabulary, load_vocabulary

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def isolated_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    data_dir = tmp_path / "data"
    monkeypatch.setenv("WIKIPEOPLE_DATA_DIR", str(data_dir))
    return data_dir


@pytest.fixture
def vocabulary() -> Vocabulary:
    return load_vocabulary("uk")


@pytest.fixture
def sync_config() -> SyncConfig:
    return SyncConfig(
        request_delay=0.0,
        pageview_delay=0.0,
        geocode_delay=0.0,
        category_delay=0.0,
    )


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = build_engine("sqlite+pysqlite:///:memory:")
    start_mappers()
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_session(sqlite_engine: Engine) -> Iterator[Session]:
    session_factory = sessionmaker(bind=sqlite_engine, future=True)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyPeopleUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyPeopleUnitOfWork:
        return SqlAlchemyPeopleUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()
