"""Sync runs over many categories and the supervisor that launches them."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Any

from wikipeople.domain.entity_resolution import persist_candidates
from wikipeople.domain.ingest_pipeline import enrich_category
from wikipeople.domain.model import ImportLogEntry, utc_now

if TYPE_CHECKING:
    from collections.abc import Callable, Coroutine, Sequence
    from datetime import datetime

    from wikipeople.domain.ingest_pipeline import EnrichmentPipeline, RunContext
    from wikipeople.domain.model import CategoryName

log = getLogger(__name__)


class InvalidSyncRequestError(ValueError):
    """A sync request that cannot even start."""


def validate_category_request(category: str, limit: int) -> str:
    category = category.strip()
    if not category:
        raise InvalidSyncRequestError("Category name must not be empty")
    if limit < 1:
        raise InvalidSyncRequestError(f"Limit must be at least 1, got {limit}")
    return category


class CancellationToken:
    """Cooperative stop flag, honoured between categories."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass(slots=True)
class CategoryOutcome:
    category: CategoryName
    succeeded: bool
    records_processed: int = 0
    message: str | None = None


@dataclass(slots=True)
class SyncReport:
    started_at: datetime = field(default_factory=utc_now)
    finished_at: datetime | None = None
    outcomes: list[CategoryOutcome] = field(default_factory=list[CategoryOutcome])
    cancelled: bool = False
    ratings_recomputed: int = 0

    @property
    def records_processed(self) -> int:
        return sum(outcome.records_processed for outcome in self.outcomes)

    @property
    def failed_categories(self) -> list[CategoryName]:
        return [outcome.category for outcome in self.outcomes if not outcome.succeeded]


async def sync_categories(
    categories: Sequence[CategoryName],
    *,
    context: RunContext,
    token: CancellationToken | None = None,
    limit: int | None = None,
    pipeline: EnrichmentPipeline | None = None,
) -> SyncReport:
    """Enrich and store each category in turn, then recompute ratings.

    A failing category is logged as a failed import entry and the run moves
    on. Cancellation is checked before each category, never during a write.
    """

    report = SyncReport()
    with context.uow_factory() as uow:
        known = uow.repositories.persons.stored_coordinates()
    for place, coordinates in known.items():
        context.geocode_cache.remember(place, coordinates)
    log.info(
        "Sync started: %d categories, %d known places, force_refresh=%s",
        len(categories),
        len(context.geocode_cache),
        context.force_refresh,
    )

    for index, category in enumerate(categories):
        if token is not None and token.cancelled:
            log.info("Sync cancelled before %s", category)
            report.cancelled = True
            break
        if index:
            await context.pause(context.config.category_delay)
        outcome = await _sync_category(
            category,
            context=context,
            limit=limit or context.config.category_limit,
            pipeline=pipeline,
        )
        report.outcomes.append(outcome)

    if any(outcome.succeeded for outcome in report.outcomes):
        report.ratings_recomputed = recompute_ratings(context)
    report.finished_at = utc_now()
    log.info(
        "Sync finished: %d categories, %d failed, %d records processed",
        len(report.outcomes),
        len(report.failed_categories),
        report.records_processed,
    )
    return report


async def _sync_category(
    category: CategoryName,
    *,
    context: RunContext,
    limit: int | None,
    pipeline: EnrichmentPipeline | None,
) -> CategoryOutcome:
    counters = context.counters
    try:
        batch = await enrich_category(category, context=context, limit=limit, pipeline=pipeline)
        with context.uow_factory() as uow:
            summary = persist_candidates(
                uow,
                batch.candidates,
                normalizer=context.normalizer,
                threshold=context.config.fuzzy_match_threshold,
            )
            processed = summary.saved + batch.skipped_existing
            uow.repositories.import_logs.add(
                ImportLogEntry.success(
                    category,
                    records_processed=processed,
                    message=(
                        f"{summary.inserted} inserted, {summary.updated} updated, "
                        f"{batch.skipped_existing} already stored, {summary.errors} errors"
                    ),
                )
            )
            uow.commit()
    except Exception as exc:
        log.exception("Category %s failed", category)
        counters.categories_failed += 1
        _log_failure(category, str(exc) or type(exc).__name__, context=context)
        return CategoryOutcome(category=category, succeeded=False, message=str(exc))

    counters.categories_done += 1
    counters.inserted += summary.inserted
    counters.updated += summary.updated
    counters.skipped_manual += summary.skipped_manual
    counters.skipped_existing += batch.skipped_existing
    counters.save_errors += summary.errors
    return CategoryOutcome(category=category, succeeded=True, records_processed=processed)


def _log_failure(category: CategoryName, message: str, *, context: RunContext) -> None:
    try:
        with context.uow_factory() as uow:
            uow.repositories.import_logs.add(ImportLogEntry.failure(category, message=message))
            uow.commit()
    except Exception:
        log.exception("Could not record the failure of %s", category)


def recompute_ratings(context: RunContext) -> int:
    with context.uow_factory() as uow:
        updated = uow.repositories.persons.recompute_ratings()
        uow.commit()
    log.info("Recomputed ratings for %d records", updated)
    return updated


class SyncState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass(frozen=True, slots=True)
class SyncAck:
    status: str
    message: str


@dataclass(frozen=True, slots=True)
class SyncStatus:
    state: SyncState
    last_report: SyncReport | None = None
    last_error: str | None = None

    @property
    def running(self) -> bool:
        return self.state is not SyncState.IDLE


type SyncJob = Callable[[CancellationToken], Coroutine[Any, Any, SyncReport]]


class SyncSupervisor:
    """Owns the single background sync task of a process.

    Starting while a run is active is acknowledged but does nothing. Running
    two supervisors against one database is not supported.
    """

    def __init__(self) -> None:
        self._task: asyncio.Task[SyncReport] | None = None
        self._token: CancellationToken | None = None
        self._last_report: SyncReport | None = None
        self._last_error: str | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, job: SyncJob, *, description: str = "sync") -> SyncAck:
        if self.running:
            return SyncAck(status="already_running", message="A sync is already running")
        token = CancellationToken()
        self._token = token
        self._task = asyncio.create_task(job(token), name=description)
        self._task.add_done_callback(self._finished)
        log.info("Started %s in the background", description)
        return SyncAck(status="started", message=f"{description} started in background")

    def stop(self) -> bool:
        if not self.running or self._token is None:
            return False
        self._token.cancel()
        log.info("Stop requested; the sync halts at the next category boundary")
        return True

    def status(self) -> SyncStatus:
        if not self.running:
            state = SyncState.IDLE
        elif self._token is not None and self._token.cancelled:
            state = SyncState.STOPPING
        else:
            state = SyncState.RUNNING
        return SyncStatus(state=state, last_report=self._last_report, last_error=self._last_error)

    async def wait(self) -> SyncReport | None:
        if self._task is None:
            return self._last_report
        await asyncio.wait({self._task})
        return self._last_report

    def _finished(self, task: asyncio.Task[SyncReport]) -> None:
        if task.cancelled():
            self._last_error = "cancelled"
            return
        error = task.exception()
        if error is not None:
            log.error("Sync task failed", exc_info=error)
            self._last_error = str(error) or type(error).__name__
            return
        self._last_report = task.result()
        self._last_error = None
