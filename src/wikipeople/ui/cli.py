# ruff: noqa: T201

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from signal import SIGINT, default_int_handler, signal
from typing import TYPE_CHECKING, Any

from dotenv import load_dotenv

from wikipeople.app import WikiPeople
from wikipeople.config import configure_logging
from wikipeople.config.sync import DEFAULT_SINGLE_CATEGORY_LIMIT
from wikipeople.domain.model import SearchType
from wikipeople.domain.sync import SyncState

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import FrameType

    from wikipeople.domain.model import PersonRecord
    from wikipeople.domain.sync import SyncAck, SyncReport

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Import and search notable people from Wikipedia")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync = subparsers.add_parser("sync", help="Sync all core categories")
    sync.add_argument(
        "--force",
        action="store_true",
        help="Re-enrich records that are already stored",
    )
    sync.add_argument(
        "--discover",
        action="store_true",
        help="Sync every discovered people category instead of the core list",
    )

    single = subparsers.add_parser("sync-category", help="Sync one category")
    single.add_argument("category", type=str, help="Category name, with or without namespace")
    single.add_argument(
        "--limit",
        type=int,
        default=DEFAULT_SINGLE_CATEGORY_LIMIT,
        help="Maximum number of people to keep (default: %(default)s)",
    )

    subparsers.add_parser("categories", help="List discoverable people categories")

    search = subparsers.add_parser("search", help="Search people by name")
    search.add_argument("query", type=str)
    search.add_argument(
        "--type",
        dest="search_type",
        choices=[member.value for member in SearchType],
        default=SearchType.COMBINED.value,
    )
    search.add_argument("--limit", type=int, default=20)

    radius = subparsers.add_parser("radius", help="People born within a radius")
    radius.add_argument("lat", type=float)
    radius.add_argument("lng", type=float)
    radius.add_argument("radius_km", type=float)
    radius.add_argument("--limit", type=int, default=20)

    polygon = subparsers.add_parser("polygon", help="People born inside a GeoJSON polygon")
    polygon.add_argument("geometry", type=str, help="GeoJSON text or a path to a GeoJSON file")
    polygon.add_argument("--limit", type=int, default=20)

    occupation = subparsers.add_parser("occupation", help="People with an occupation")
    occupation.add_argument("occupation", type=str)
    occupation.add_argument("--limit", type=int, default=20)

    metadata = subparsers.add_parser("metadata", help="People whose metadata contains a JSON fragment")
    metadata.add_argument("fragment", type=str)
    metadata.add_argument("--limit", type=int, default=20)

    top = subparsers.add_parser("top", help="Highest rated people")
    top.add_argument("--limit", type=int, default=2000)

    logs = subparsers.add_parser("logs", help="Recent import log entries")
    logs.add_argument("--limit", type=int, default=50)

    subparsers.add_parser("recompute-ratings", help="Recompute popularity ratings")
    subparsers.add_parser("clear", help="Delete every imported (non-manual) record")

    return parser.parse_args(list(argv))


def _parse_json_object(value: str, *, what: str) -> dict[str, Any]:
    text = value
    if not value.lstrip().startswith("{"):
        try:
            text = Path(value).read_text(encoding="utf-8")
        except OSError as exc:
            raise ValueError(f"Cannot read {what} from {value}: {exc}") from exc
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid {what}: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ValueError(f"Invalid {what}: expected a JSON object")  # noqa: TRY004
    return parsed  # pyright: ignore[reportUnknownVariableType]


def _build_app() -> WikiPeople:
    return WikiPeople()


async def _run_sync(app: WikiPeople, args: argparse.Namespace) -> SyncReport:
    ack: SyncAck
    if args.command == "sync":
        ack = await app.trigger_sync(force_refresh=args.force, discover=args.discover)
    else:
        ack = await app.trigger_category_sync(args.category, limit=args.limit)
    log.info(ack.message)
    previous = signal(SIGINT, _stop_sync_on_interrupt(app))
    try:
        report = await app.wait_for_sync()
    finally:
        signal(SIGINT, previous if previous is not None else default_int_handler)
    if report is None:
        raise RuntimeError(app.sync_status().last_error or "Sync did not finish")
    return report


def _stop_sync_on_interrupt(app: WikiPeople) -> Callable[[int, FrameType | None], None]:
    """First Ctrl+C stops the sync at the next category; a second one quits."""

    def handler(signal_received: int, frame: FrameType | None) -> None:
        if app.sync_status().state is SyncState.RUNNING and app.stop_sync():
            log.info("Stopping after the current category (Ctrl+C again to quit)")
            return
        sigint_handler(signal_received, frame)

    return handler


def _print_person(person: PersonRecord, suffix: str = "") -> None:
    born = f" (b. {person.birth_year})" if person.birth_year else ""
    place = f", {person.birth_place}" if person.birth_place else ""
    print(f"{person.rating:5.2f}  {person.name}{born}{place}{suffix}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        polygon = fragment = None
        if parsed_args.command == "polygon":
            polygon = _parse_json_object(parsed_args.geometry, what="GeoJSON polygon")
        elif parsed_args.command == "metadata":
            fragment = _parse_json_object(parsed_args.fragment, what="metadata filter")
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        app = _build_app()
        command = parsed_args.command
        if command in {"sync", "sync-category"}:
            report = asyncio.run(_run_sync(app, parsed_args))
            log.info(
                "Sync finished: categories=%d, failed=%d, processed=%d, cancelled=%s",
                len(report.outcomes),
                len(report.failed_categories),
                report.records_processed,
                report.cancelled,
            )
        elif command == "categories":
            for category in asyncio.run(app.list_available_categories()):
                print(category)
        elif command == "search":
            for hit in app.search(
                parsed_args.query,
                search_type=SearchType(parsed_args.search_type),
                limit=parsed_args.limit,
            ):
                _print_person(hit.person, f"  [{hit.score:.2f}]")
        elif command == "radius":
            for geo_hit in app.search_by_radius(
                parsed_args.lat, parsed_args.lng, parsed_args.radius_km, limit=parsed_args.limit
            ):
                _print_person(geo_hit.person, f"  [{geo_hit.distance_km:.1f} km]")
        elif command == "polygon" and polygon is not None:
            for person in app.search_by_polygon(polygon, limit=parsed_args.limit):
                _print_person(person)
        elif command == "occupation":
            for person in app.search_by_occupation(parsed_args.occupation, limit=parsed_args.limit):
                _print_person(person)
        elif command == "metadata" and fragment is not None:
            for person in app.search_by_metadata(fragment, limit=parsed_args.limit):
                _print_person(person)
        elif command == "top":
            for person in app.top_people(limit=parsed_args.limit):
                _print_person(person)
        elif command == "logs":
            for entry in app.recent_import_logs(limit=parsed_args.limit):
                print(
                    f"{entry.imported_at:%Y-%m-%d %H:%M}  {entry.status.value:<7}  "
                    f"{entry.records_processed:>5}  {entry.source_ref}  {entry.message or ''}"
                )
        elif command == "recompute-ratings":
            log.info("Recomputed ratings for %d records", app.recompute_ratings())
        elif command == "clear":
            log.info("Deleted %d imported records", app.clear_imported_persons())
        else:
            raise ValueError(f"Unsupported command: {command}")  # noqa: TRY301

    except ValueError:
        log.exception("Invalid request")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
