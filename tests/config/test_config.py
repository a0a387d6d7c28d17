from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from wikipeople.config import (
    ConfigurationError,
    MissingConfigurationError,
    SkipPolicy,
    VocabularyError,
    available_languages,
    env_int,
    get_data_paths,
    get_database_uri,
    get_geoapify_config,
    get_sync_config,
    get_wikidata_config,
    get_wikipedia_config,
    load_vocabulary,
    require_env_vars,
)
from wikipeople.config.storage import DataPaths
from wikipeople.config.sync import DEFAULT_CATEGORY_LIMIT

if TYPE_CHECKING:
    from pathlib import Path


def test_sync_config_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("WIKIPEOPLE_CATEGORY_LIMIT", raising=False)
    config = get_sync_config()

    assert config.category_limit == DEFAULT_CATEGORY_LIMIT
    assert config.skip_policy is SkipPolicy.ANY_STORED
    assert config.max_rating == 10.0


def test_sync_config_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WIKIPEOPLE_CATEGORY_LIMIT", "0")
    monkeypatch.setenv("WIKIPEOPLE_CATEGORY_DELAY", "0.5")

    config = get_sync_config()

    assert config.category_limit is None
    assert config.category_delay == 0.5


def test_env_int_rejects_garbage(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WIKIPEOPLE_CATEGORY_LIMIT", "many")

    with pytest.raises(ConfigurationError):
        env_int("WIKIPEOPLE_CATEGORY_LIMIT", 5)


def test_require_env_vars_reports_blank_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WIKIPEOPLE_TEST_A", "value")
    monkeypatch.setenv("WIKIPEOPLE_TEST_B", "  ")

    with pytest.raises(MissingConfigurationError, match="WIKIPEOPLE_TEST_B"):
        require_env_vars(["WIKIPEOPLE_TEST_A", "WIKIPEOPLE_TEST_B"])


def test_database_uri_prefers_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URI", "sqlite+pysqlite:///:memory:")
    assert get_database_uri() == "sqlite+pysqlite:///:memory:"


def test_database_uri_falls_back_to_data_dir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("DATABASE_URI", raising=False)
    paths = DataPaths(root=tmp_path / "store")

    uri = get_database_uri(paths=paths)

    assert uri == f"sqlite+pysqlite:///{tmp_path / 'store' / 'wikipeople.db'}"
    assert (tmp_path / "store").is_dir()


def test_data_paths_follow_the_environment(monkeypatch: pytest.MonkeyPatch, isolated_data_dir: Path) -> None:
    paths = get_data_paths()

    assert paths.root == isolated_data_dir.resolve()
    assert paths.http_cache == isolated_data_dir.resolve() / "http_cache.db"

    monkeypatch.delenv("WIKIPEOPLE_DATA_DIR")
    monkeypatch.setenv("XDG_DATA_HOME", str(isolated_data_dir.parent / "xdg"))
    assert get_data_paths().root == (isolated_data_dir.parent / "xdg" / "wikipeople").resolve()


def test_wikipedia_config_follows_language(monkeypatch: pytest.MonkeyPatch, isolated_data_dir: Path) -> None:
    monkeypatch.setenv("WIKIPEDIA_LANGUAGE", "en")

    config = get_wikipedia_config()

    assert config.api_url == "https://en.wikipedia.org/w/api.php"
    assert config.project == "en.wikipedia"
    assert config.pageviews.cache is not None
    assert config.pageviews.cache.sqlite_path == str(isolated_data_dir.resolve() / "http_cache.db")
    assert get_wikidata_config().label_languages == ("en",)


def test_geoapify_config_without_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GEOAPIFY_API_KEY", raising=False)
    config = get_geoapify_config()

    assert not config.enabled
    assert config.resilience.retry.total == 0


def test_bundled_vocabularies() -> None:
    assert {"en", "uk"} <= set(available_languages())

    uk = load_vocabulary("uk")
    assert uk.category_namespace == "Категорія:"
    assert "Категорія:Українські науковці" in uk.core_categories
    assert uk.label_for("Категорія:Українські науковці") == "scientist"
    assert uk.is_unknown_place(" невідомо ")
    assert uk.is_unknown_place("")
    assert not uk.is_unknown_place("Київ")


def test_unknown_vocabulary_language() -> None:
    with pytest.raises(VocabularyError, match="xx"):
        load_vocabulary("xx")
