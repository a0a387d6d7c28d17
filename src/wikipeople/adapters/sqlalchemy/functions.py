"""SQL functions registered on every SQLite connection.

SQLite has no trigram, text-search, spatial or JSON-containment operators of
the kind the search and matching queries need, so the engine exposes Python
implementations under these names:

``normalize_name(text)``, ``similarity(a, b)``, ``text_rank(document, query)``,
``haversine_km(lat1, lng1, lat2, lng2)``, ``point_in_polygon(lat, lng, geojson)``
and ``json_contains(document, fragment)``.
"""

from __future__ import annotations

import json
from logging import getLogger
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import create_engine, event

from wikipeople.domain.geo import InvalidGeometryError, haversine_km, point_in_polygon
from wikipeople.domain.normalization import normalize_name
from wikipeople.domain.similarity import text_rank, trigram_similarity

if TYPE_CHECKING:
    import sqlite3
    from collections.abc import Callable

    from sqlalchemy.engine import Connection, Engine
    from sqlalchemy.pool import ConnectionPoolEntry

log = getLogger(__name__)


def json_contains(document: Any, fragment: Any) -> bool:
    """Containment with PostgreSQL ``jsonb @>`` semantics.

    Objects match when every fragment key is present with a contained value,
    arrays when every fragment element is contained by some document element,
    and scalars by equality of both type and value.
    """

    if isinstance(fragment, dict):
        if not isinstance(document, dict):
            return False
        doc = cast(dict[str, Any], document)
        return all(key in doc and json_contains(doc[key], value) for key, value in fragment.items())
    if isinstance(fragment, list):
        if not isinstance(document, list):
            return False
        items = cast(list[Any], document)
        return all(any(json_contains(item, wanted) for item in items) for wanted in fragment)
    if isinstance(document, (dict, list)):
        return False
    return type(document) is type(fragment) and document == fragment


def _sql_normalize_name(value: str | None) -> str | None:
    return normalize_name(value) if value is not None else None


def _sql_similarity(left: str | None, right: str | None) -> float:
    return trigram_similarity(left, right)


def _sql_text_rank(document: str | None, query: str | None) -> float:
    return text_rank(document, query)


def _sql_haversine(
    lat1: float | None, lng1: float | None, lat2: float | None, lng2: float | None
) -> float | None:
    if lat1 is None or lng1 is None or lat2 is None or lng2 is None:
        return None
    return haversine_km(lat1, lng1, lat2, lng2)


def _sql_point_in_polygon(lat: float | None, lng: float | None, geojson: str | None) -> int:
    if lat is None or lng is None or not geojson:
        return 0
    try:
        return int(point_in_polygon(lat, lng, json.loads(geojson)))
    except (json.JSONDecodeError, InvalidGeometryError):
        return 0


def _sql_json_contains(document: str | None, fragment: str | None) -> int:
    if document is None or fragment is None:
        return 0
    try:
        return int(json_contains(json.loads(document), json.loads(fragment)))
    except json.JSONDecodeError:
        return 0


SQL_FUNCTIONS: dict[str, tuple[int, Callable[..., Any]]] = {
    "normalize_name": (1, _sql_normalize_name),
    "similarity": (2, _sql_similarity),
    "text_rank": (2, _sql_text_rank),
    "haversine_km": (4, _sql_haversine),
    "point_in_polygon": (3, _sql_point_in_polygon),
    "json_contains": (2, _sql_json_contains),
}


def register_functions(dbapi_connection: sqlite3.Connection) -> None:
    for name, (arity, function) in SQL_FUNCTIONS.items():
        dbapi_connection.create_function(name, arity, function, deterministic=True)


def install_sqlite_support(engine: Engine) -> Engine:
    """Register SQL functions and enable working SAVEPOINTs on a pysqlite engine.

    Must run before the engine opens its first connection.
    """

    if engine.dialect.name != "sqlite":
        log.warning(
            "Database dialect %s is not supported; search and matching expect SQLite",
            engine.dialect.name,
        )
        return engine

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection: sqlite3.Connection, _record: ConnectionPoolEntry) -> None:  # pyright: ignore[reportUnusedFunction]
        # hand transaction control to SQLAlchemy so nested transactions work
        dbapi_connection.isolation_level = None
        register_functions(dbapi_connection)

    @event.listens_for(engine, "begin")
    def _on_begin(connection: Connection) -> None:  # pyright: ignore[reportUnusedFunction]
        connection.exec_driver_sql("BEGIN")

    return engine


def build_engine(database_uri: str) -> Engine:
    return install_sqlite_support(create_engine(database_uri, future=True))
