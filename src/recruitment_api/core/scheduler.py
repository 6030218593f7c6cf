"""
Background Job Scheduler

Maintenance jobs (retention purge, throttle sweep) run on an APScheduler
AsyncIOScheduler sharing the API's event loop.

Jobs live in a registry independent of the scheduler instance, so the
debug endpoints can list and run them even when the scheduler is not
started. Registered jobs must tolerate being run twice.

Usage:
    register_job("retention_purge", run_purge, IntervalTrigger(hours=24))
    await start_scheduler()
    ...
    await stop_scheduler()
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, JobExecutionEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.base import BaseTrigger

logger = logging.getLogger(__name__)

JobFunc = Callable[[], Awaitable[Any]]

SCHEDULER_TIMEZONE = "UTC"

# One pending run per job; runs missed by more than 5 minutes are skipped
JOB_DEFAULTS = {
    "coalesce": True,
    "max_instances": 1,
    "misfire_grace_time": 300,
}


@dataclass(frozen=True)
class RegisteredJob:
    job_id: str
    func: JobFunc
    trigger: BaseTrigger


_scheduler: AsyncIOScheduler | None = None
_jobs: dict[str, RegisteredJob] = {}


def _on_job_event(event: JobExecutionEvent) -> None:
    if event.exception:
        logger.error(
            f"Scheduled job {event.job_id} raised: {event.exception}",
            exc_info=event.exception,
        )
    else:
        logger.info(f"Scheduled job {event.job_id} finished")


def _schedule(job: RegisteredJob) -> None:
    if _scheduler is None:
        return
    _scheduler.add_job(job.func, trigger=job.trigger, id=job.job_id, replace_existing=True)
    logger.info(f"Scheduled job {job.job_id} ({job.trigger})")


def get_scheduler() -> AsyncIOScheduler | None:
    return _scheduler


async def start_scheduler() -> AsyncIOScheduler:
    """
    Start the scheduler with every registered job.

    Calling it again while running returns the running instance.
    """
    global _scheduler

    if _scheduler is not None and _scheduler.running:
        return _scheduler

    _scheduler = AsyncIOScheduler(timezone=SCHEDULER_TIMEZONE, job_defaults=JOB_DEFAULTS)
    _scheduler.add_listener(_on_job_event, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

    for job in _jobs.values():
        _schedule(job)

    _scheduler.start()
    logger.info(f"Scheduler started ({len(_jobs)} job(s))")
    return _scheduler


async def stop_scheduler() -> None:
    """Shut the scheduler down, letting running jobs finish."""
    global _scheduler

    if _scheduler is None or not _scheduler.running:
        return

    _scheduler.shutdown(wait=True)
    _scheduler = None
    logger.info("Scheduler stopped")


def register_job(job_id: str, func: JobFunc, trigger: BaseTrigger) -> None:
    """
    Add a job to the registry, replacing any job with the same id.

    If the scheduler is already running the job is scheduled at once,
    otherwise on start_scheduler().
    """
    job = RegisteredJob(job_id=job_id, func=func, trigger=trigger)
    _jobs[job_id] = job
    _schedule(job)


async def trigger_job_manually(job_id: str) -> dict[str, Any]:
    """
    Run a registered job immediately.

    Failures are reported in the result instead of raised.

    Returns:
        Dict with job_id, status ("success" or "error"), executed_at and
        either "result" (the job's return value) or "error"

    Raises:
        ValueError: If job_id is not registered
    """
    job = _jobs.get(job_id)
    if job is None:
        raise ValueError(f"Unknown job {job_id!r}. Registered: {sorted(_jobs)}")

    outcome: dict[str, Any] = {
        "job_id": job_id,
        "executed_at": datetime.now(UTC).isoformat(),
    }
    logger.info(f"Running job {job_id} on demand")

    try:
        outcome["result"] = await job.func()
        outcome["status"] = "success"
    except Exception as e:
        logger.error(f"On-demand run of {job_id} failed: {e}", exc_info=True)
        outcome["error"] = str(e)
        outcome["status"] = "error"

    return outcome


def list_registered_jobs() -> list[dict[str, Any]]:
    """Registered jobs; next_run_time and is_paused appear once the scheduler runs."""
    listing = []
    for job_id in _jobs:
        entry: dict[str, Any] = {"job_id": job_id, "registered": True}
        if _scheduler is not None:
            scheduled = _scheduler.get_job(job_id)
            next_run = scheduled.next_run_time if scheduled else None
            entry["next_run_time"] = next_run.isoformat() if next_run else None
            entry["is_paused"] = next_run is None
        listing.append(entry)
    return listing


def _set_paused(job_id: str, paused: bool) -> bool:
    if _scheduler is None or _scheduler.get_job(job_id) is None:
        logger.warning(f"Cannot {'pause' if paused else 'resume'} {job_id}: not scheduled")
        return False

    if paused:
        _scheduler.pause_job(job_id)
    else:
        _scheduler.resume_job(job_id)
    logger.info(f"Job {job_id} {'paused' if paused else 'resumed'}")
    return True


def pause_job(job_id: str) -> bool:
    """Returns False when the scheduler is not running or the job is unknown."""
    return _set_paused(job_id, True)


def resume_job(job_id: str) -> bool:
    """Returns False when the scheduler is not running or the job is unknown."""
    return _set_paused(job_id, False)
