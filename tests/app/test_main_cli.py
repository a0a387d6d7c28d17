from __future__ import annotations

import json
import signal
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import pytest

from tests.support.people import make_person
from wikipeople.domain.model import ImportLogEntry, SearchType
from wikipeople.domain.search import SearchHit
from wikipeople.domain.sync import InvalidSyncRequestError, SyncAck, SyncReport, SyncState, SyncStatus
from wikipeople.ui import cli

if TYPE_CHECKING:
    from pathlib import Path

    from wikipeople.domain.model import PersonRecord

SQUARE = {
    "type": "Polygon",
    "coordinates": [[[30.0, 50.0], [31.0, 50.0], [31.0, 51.0], [30.0, 51.0], [30.0, 50.0]]],
}


@dataclass
class FakeApp:
    people: list[PersonRecord] = field(default_factory=list)
    report: SyncReport | None = field(default_factory=SyncReport)
    failure: Exception | None = None
    state: SyncState = SyncState.IDLE
    interrupts: int = 0
    stop_requests: int = 0
    calls: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    def _record(self, name: str, **kwargs: Any) -> None:
        self.calls.append((name, kwargs))
        if self.failure is not None:
            raise self.failure

    async def trigger_sync(self, **kwargs: Any) -> SyncAck:
        self._record("trigger_sync", **kwargs)
        return SyncAck(status="started", message="full sync started in background")

    async def trigger_category_sync(self, category: str, **kwargs: Any) -> SyncAck:
        self._record("trigger_category_sync", category=category, **kwargs)
        return SyncAck(status="started", message="sync started in background")

    async def wait_for_sync(self) -> SyncReport | None:
        handler = signal.getsignal(signal.SIGINT)
        assert callable(handler)
        for _ in range(self.interrupts):
            handler(signal.SIGINT, None)
        return self.report

    def stop_sync(self) -> bool:
        self.stop_requests += 1
        self.state = SyncState.STOPPING
        return True

    def sync_status(self) -> SyncStatus:
        return SyncStatus(state=self.state, last_error="database is locked")

    def search(self, query: str, **kwargs: Any) -> list[SearchHit]:
        self._record("search", query=query, **kwargs)
        return [SearchHit(person=person, score=0.9) for person in self.people]

    def search_by_polygon(self, polygon: dict[str, Any], **kwargs: Any) -> list[PersonRecord]:
        self._record("search_by_polygon", polygon=polygon, **kwargs)
        return self.people

    def search_by_metadata(self, fragment: dict[str, Any], **kwargs: Any) -> list[PersonRecord]:
        self._record("search_by_metadata", fragment=fragment, **kwargs)
        return self.people

    def top_people(self, **kwargs: Any) -> list[PersonRecord]:
        self._record("top_people", **kwargs)
        return self.people

    def recent_import_logs(self, **kwargs: Any) -> list[ImportLogEntry]:
        self._record("recent_import_logs", **kwargs)
        entry = ImportLogEntry.success("Категорія:Українські науковці", records_processed=12, message="ok")
        entry.imported_at = datetime(2024, 5, 1, 12, 30, tzinfo=UTC)
        return [entry]


@pytest.fixture
def fake_app(monkeypatch: pytest.MonkeyPatch) -> FakeApp:
    app = FakeApp(people=[make_person("Іван Франко", birth_year=1856, birth_place="Нагуєвичі", rating=7.5)])
    monkeypatch.setattr(cli, "_build_app", lambda: app)
    return app


def test_search_passes_type_and_limit(fake_app: FakeApp, capsys: pytest.CaptureFixture[str]) -> None:
    cli.main(["search", "Франко", "--type", "fuzzy", "--limit", "5"])

    assert fake_app.calls == [("search", {"query": "Франко", "search_type": SearchType.FUZZY, "limit": 5})]
    assert " 7.50  Іван Франко (b. 1856), Нагуєвичі  [0.90]" in capsys.readouterr().out


def test_sync_flags_reach_the_trigger(fake_app: FakeApp) -> None:
    cli.main(["sync", "--force", "--discover"])

    assert fake_app.calls == [("trigger_sync", {"force_refresh": True, "discover": True})]


def test_category_sync_defaults_to_small_limit(fake_app: FakeApp) -> None:
    cli.main(["sync-category", "Українські поети"])

    assert fake_app.calls == [("trigger_category_sync", {"category": "Українські поети", "limit": 10})]


def test_polygon_from_text_and_file(fake_app: FakeApp, tmp_path: Path) -> None:
    path = tmp_path / "kyiv.geojson"
    path.write_text(json.dumps(SQUARE), encoding="utf-8")

    cli.main(["polygon", json.dumps(SQUARE)])
    cli.main(["polygon", str(path), "--limit", "3"])

    assert fake_app.calls == [
        ("search_by_polygon", {"polygon": SQUARE, "limit": 20}),
        ("search_by_polygon", {"polygon": SQUARE, "limit": 3}),
    ]


@pytest.mark.parametrize("fragment", ['{"occupations": [', "[1, 2]", "no-such-file.json"])
def test_bad_metadata_filter_exits_before_building_the_app(
    monkeypatch: pytest.MonkeyPatch, fragment: str
) -> None:
    def fail() -> FakeApp:
        raise AssertionError("app must not be built")

    monkeypatch.setattr(cli, "_build_app", fail)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["metadata", fragment])

    assert excinfo.value.code == 2


def test_invalid_sync_request_exits_with_usage_code(fake_app: FakeApp) -> None:
    fake_app.failure = InvalidSyncRequestError("Category name must not be empty")

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["sync-category", " "])

    assert excinfo.value.code == 2


def test_unfinished_sync_is_fatal(fake_app: FakeApp) -> None:
    fake_app.report = None

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["sync"])

    assert excinfo.value.code == 1


def test_unexpected_error_is_fatal(fake_app: FakeApp) -> None:
    fake_app.failure = RuntimeError("database is locked")

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["top"])

    assert excinfo.value.code == 1


def test_unknown_command_is_a_usage_error(fake_app: FakeApp) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["export"])

    assert excinfo.value.code == 2
    assert fake_app.calls == []


def test_logs_show_category_and_counts(fake_app: FakeApp, capsys: pytest.CaptureFixture[str]) -> None:
    cli.main(["logs", "--limit", "5"])

    out = capsys.readouterr().out
    assert fake_app.calls == [("recent_import_logs", {"limit": 5})]
    assert "2024-05-01 12:30  success     12  Категорія:Українські науковці  ok" in out


def test_ctrl_c_during_sync_stops_at_the_next_category(fake_app: FakeApp) -> None:
    fake_app.state = SyncState.RUNNING
    fake_app.interrupts = 1
    before = signal.getsignal(signal.SIGINT)

    cli.main(["sync"])

    assert fake_app.stop_requests == 1
    assert signal.getsignal(signal.SIGINT) is before


def test_second_ctrl_c_during_sync_quits(fake_app: FakeApp) -> None:
    fake_app.state = SyncState.RUNNING
    fake_app.interrupts = 2

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["sync"])

    assert excinfo.value.code == 0
    assert fake_app.stop_requests == 1
