"""
Applications Background Jobs

Scheduled maintenance for the applications module:
1. Retention purge - delete applications (record + attachment) submitted
   before the retention cutoff
2. Rate-limit sweep - drop expired in-memory throttle buckets

Design Principles:
- Jobs are idempotent (safe to run multiple times); a second purge with
  the same cutoff removes nothing
- Jobs handle their own database sessions
- Work is bounded: at most purge_max_iterations batches of
  purge_batch_size rows per run

Error Handling:
- A failed attachment delete is logged and the sweep continues; the
  orphaned blob is tolerated
- A failed record delete aborts the run, keeping the count of rows
  already removed
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession

from recruitment_api.core.config import settings
from recruitment_api.core.database import async_session_maker
from recruitment_api.core.rate_limit import evict_stale_rate_buckets
from recruitment_api.core.scheduler import register_job
from recruitment_api.core.storage import StorageError, SupabaseStorage, get_storage
from recruitment_api.modules.applications import repository

logger = logging.getLogger(__name__)

JOB_ID_PURGE_EXPIRED = "applications_purge_expired"
JOB_ID_EVICT_RATE_BUCKETS = "rate_limit_evict_stale_buckets"


@dataclass
class PurgeResult:
    removed: int
    cutoff: datetime
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def retention_cutoff(retention_days: int, now: datetime | None = None) -> datetime:
    """Applications submitted strictly before this instant are expired."""
    return (now or datetime.now(UTC)) - timedelta(days=max(1, retention_days))


async def purge_expired_applications(
    session_factory: Callable[[], AsyncSession],
    storage: SupabaseStorage,
    retention_days: int,
    *,
    cutoff: datetime | None = None,
    batch_size: int | None = None,
    max_iterations: int | None = None,
) -> PurgeResult:
    """
    Delete expired applications from both stores in bounded batches.

    Each batch: select up to batch_size expired rows, delete their
    attachments (best effort), then delete the rows and their history.

    Args:
        session_factory: Callable returning a new AsyncSession
        storage: Blob store client
        retention_days: Retention window used when cutoff is not given
        cutoff: Explicit cutoff, overrides retention_days
        batch_size: Rows per batch, defaults to PURGE_BATCH_SIZE
        max_iterations: Batch limit per run, defaults to PURGE_MAX_ITERATIONS

    Returns:
        PurgeResult with the number of applications removed; `error` is set
        when the run was aborted
    """
    cutoff = cutoff or retention_cutoff(retention_days)
    batch_size = batch_size or settings.purge_batch_size
    max_iterations = max_iterations or settings.purge_max_iterations
    removed = 0

    logger.info(f"Starting retention purge (cutoff={cutoff.isoformat()})")

    async with session_factory() as db:
        for iteration in range(max_iterations):
            try:
                rows = await repository.select_expired_batch(db, cutoff, batch_size)
            except Exception as e:
                logger.error(f"Purge failed listing expired applications: {e}", exc_info=True)
                return PurgeResult(removed, cutoff, "Failed to list records for cleanup.")

            if not rows:
                break

            paths = [path for _id, path in rows if path]
            if paths:
                try:
                    await storage.remove_many(paths)
                except StorageError as e:
                    logger.warning(f"Purge batch {iteration}: attachment delete failed: {e}")

            ids = [application_id for application_id, _path in rows]
            try:
                await repository.delete_by_ids(db, ids)
            except Exception as e:
                logger.error(
                    f"Purge batch {iteration}: record delete failed after {removed} removed: {e}",
                    exc_info=True,
                )
                return PurgeResult(removed, cutoff, "Failed to delete records from the database.")

            removed += len(rows)
            logger.debug(f"Purge batch {iteration}: removed {len(rows)}")

    logger.info(f"Retention purge completed. Removed: {removed}")
    return PurgeResult(removed, cutoff)


async def run_scheduled_purge() -> dict[str, Any]:
    """Scheduler entry point for the retention purge."""
    result = await purge_expired_applications(
        async_session_maker,
        get_storage(),
        settings.retention_days,
    )
    summary = {
        "executed_at": datetime.now(UTC).isoformat(),
        "removed": result.removed,
        "cutoff": result.cutoff.isoformat(),
        "error": result.error,
    }
    if result.error:
        # Surface as a job failure so the scheduler listener logs it
        raise RuntimeError(f"Retention purge aborted: {result.error} ({summary})")
    return summary


def register_application_jobs() -> None:
    """
    Register the applications background jobs with the scheduler.

    Registered jobs:
    1. applications_purge_expired - every CLEANUP_INTERVAL_HOURS
    2. rate_limit_evict_stale_buckets - once per rate-limit window
    """
    register_job(
        job_id=JOB_ID_PURGE_EXPIRED,
        func=run_scheduled_purge,
        trigger=IntervalTrigger(hours=settings.cleanup_interval_hours),
    )
    logger.info(
        f"Registered job: {JOB_ID_PURGE_EXPIRED} "
        f"(interval: {settings.cleanup_interval_hours} hours)"
    )

    register_job(
        job_id=JOB_ID_EVICT_RATE_BUCKETS,
        func=evict_stale_rate_buckets,
        trigger=IntervalTrigger(seconds=settings.rate_limit_window_seconds),
    )
    logger.info(
        f"Registered job: {JOB_ID_EVICT_RATE_BUCKETS} "
        f"(interval: {settings.rate_limit_window_seconds} seconds)"
    )
