"""Where wikipeople keeps its SQLite files."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .env import optional_env_var

DATABASE_FILENAME = "wikipeople.db"
HTTP_CACHE_FILENAME = "http_cache.db"


@dataclass(frozen=True, slots=True)
class DataPaths:
    """The local data directory and the two SQLite files inside it.

    The directory is created on first access to either file.
    """

    root: Path

    @property
    def database(self) -> Path:
        return self._file(DATABASE_FILENAME)

    @property
    def http_cache(self) -> Path:
        return self._file(HTTP_CACHE_FILENAME)

    def _file(self, name: str) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        return self.root / name


def get_data_paths() -> DataPaths:
    configured = optional_env_var("WIKIPEOPLE_DATA_DIR")
    if configured:
        root = Path(configured)
    else:
        xdg_data = optional_env_var("XDG_DATA_HOME")
        root = (Path(xdg_data) if xdg_data else Path.home() / ".local" / "share") / "wikipeople"
    return DataPaths(root=root.expanduser().resolve())


def get_database_uri(*, paths: DataPaths | None = None) -> str:
    """``DATABASE_URI`` when set, else the SQLite file in the data directory."""

    configured = optional_env_var("DATABASE_URI")
    if configured:
        return configured
    return f"sqlite+pysqlite:///{(paths or get_data_paths()).database}"


def get_http_cache_path() -> Path:
    return get_data_paths().http_cache
