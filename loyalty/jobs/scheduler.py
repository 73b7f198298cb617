"""
APScheduler Configuration

One AsyncIOScheduler is shared by every background job in the process.
Job starters add their triggers here; the scheduler itself is started and
stopped by the application lifespan.

Architecture:
- Starters call schedule_cron / schedule_interval and get a handle back
- Cron triggers run run_job_body, which resolves the body by name
- A failing run is logged and never unschedules its trigger
"""

import logging
import re
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from loyalty.config import settings
from loyalty.jobs.registry import ScheduledJobHandle, get_job_body

logger = logging.getLogger(__name__)

# Job stores
jobstores = {
    'default': MemoryJobStore()
}

# Executors
executors = {
    'default': AsyncIOExecutor(),
}

# Job defaults
job_defaults = {
    'coalesce': True,  # Combine multiple pending executions into one
    'max_instances': 1,  # Only one instance of each job at a time
    'misfire_grace_time': 60,  # Allow 60 seconds grace time for misfires
}

# Create scheduler
scheduler = AsyncIOScheduler(
    jobstores=jobstores,
    executors=executors,
    job_defaults=job_defaults,
    timezone=settings.JOBS_TIMEZONE
)


# Standard cron numbers weekdays from Sunday (0 or 7); APScheduler numbers them
# from Monday, so numeric weekdays are rewritten as names.
_CRON_WEEKDAYS = ("sun", "mon", "tue", "wed", "thu", "fri", "sat", "sun")

_CRON_WEEKDAY_EXPR = re.compile(r"^(\*|\d+)(?:-(\d+))?(?:/(\d+))?$")


def _weekday_name(number: int) -> str:
    return _CRON_WEEKDAYS[number] if number < len(_CRON_WEEKDAYS) else str(number)


def _weekday_expr(part: str) -> str:
    match = _CRON_WEEKDAY_EXPR.match(part)
    if not match:
        return part

    first, last, step = match.groups()
    if first == "*":
        if step is None:
            return part
        first, last = "0", "6"
    elif last is None:
        if step is None:
            return _weekday_name(int(first))
        last = "6"

    start, end = int(first), int(last)
    if step is not None:
        # Stepped days are listed explicitly since the two numberings step differently
        names = []
        for number in range(start, end + 1, int(step)):
            name = _weekday_name(number)
            if name not in names:
                names.append(name)
        return ",".join(names)

    # "sun" is the last APScheduler weekday, so a range cannot start there
    if start == 0:
        return "sun" if end == 0 else f"sun,mon-{_weekday_name(end)}"
    return f"{_weekday_name(start)}-{_weekday_name(end)}"


def _weekday_names(field: str) -> str:
    return ",".join(_weekday_expr(part) for part in field.split(","))


def cron_trigger(crontab: str, tz=None) -> CronTrigger:
    """Build a CronTrigger from a standard five-field crontab."""
    values = crontab.split()
    if len(values) != 5:
        raise ValueError(f"Wrong number of fields in crontab '{crontab}'; got {len(values)}, expected 5")

    minute, hour, day, month, day_of_week = values
    return CronTrigger(
        minute=minute,
        hour=hour,
        day=day,
        month=month,
        day_of_week=_weekday_names(day_of_week),
        timezone=tz,
    )


async def run_job_body(job_name: str, label: str, **kwargs) -> None:
    """
    Run a registered job body from the scheduler.

    Logs start, duration and the body's result. Errors are logged and
    swallowed so the trigger keeps firing on its next schedule.
    """
    body = get_job_body(job_name)
    if body is None:
        logger.warning(f"{label} job skipped: no body registered for '{job_name}'")
        return

    logger.info(f"Starting {label} job...")
    start_time = time.monotonic()

    try:
        result = await body(**kwargs)
        duration = time.monotonic() - start_time
        logger.info(f"{label} job completed in {duration:.2f}s")
        if isinstance(result, dict):
            summary = ", ".join(f"{key.capitalize()}: {value}" for key, value in result.items())
            logger.info(summary)
        elif result is not None:
            logger.info(f"{label} job result: {result}")
    except Exception as e:
        logger.exception(f"{label} job failed: {e}")


def schedule_cron(
    job_id: str,
    name: str,
    crontab: str,
    func: Callable,
    args: Optional[Sequence[Any]] = None,
    kwargs: Optional[Dict[str, Any]] = None,
    target: Optional[AsyncIOScheduler] = None,
) -> ScheduledJobHandle:
    """
    Add a cron-triggered job.

    Raises ValueError for a malformed five-field crontab.
    """
    sched = target or scheduler
    trigger = cron_trigger(crontab, tz=sched.timezone)
    job = sched.add_job(
        func,
        trigger,
        args=list(args or []),
        kwargs=dict(kwargs or {}),
        id=job_id,
        name=name,
        replace_existing=True,
    )
    return ScheduledJobHandle(job_id, job)


def schedule_interval(
    job_id: str,
    name: str,
    seconds: float,
    func: Callable,
    run_immediately: bool = False,
    target: Optional[AsyncIOScheduler] = None,
) -> ScheduledJobHandle:
    """Add an interval-triggered job, optionally firing once right away."""
    if seconds <= 0:
        raise ValueError(f"Interval must be positive, got {seconds}")

    sched = target or scheduler
    extra = {}
    if run_immediately:
        extra['next_run_time'] = datetime.now(timezone.utc)

    job = sched.add_job(
        func,
        IntervalTrigger(seconds=seconds, timezone=sched.timezone),
        id=job_id,
        name=name,
        replace_existing=True,
        **extra,
    )
    return ScheduledJobHandle(job_id, job)


def start_scheduler() -> None:
    """Start the scheduler. Must run inside the application's event loop."""
    if not scheduler.running:
        scheduler.start()
        logger.info("Background job scheduler started")


def shutdown_scheduler() -> None:
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Background job scheduler stopped")


def get_job_status(target: Optional[AsyncIOScheduler] = None) -> List[Dict[str, Any]]:
    """Get status of all scheduled jobs."""
    sched = target or scheduler
    status = []
    for job in sched.get_jobs():
        # Pending jobs (scheduler not started yet) have no next_run_time
        next_run_time = getattr(job, 'next_run_time', None)
        status.append({
            'id': job.id,
            'name': job.name,
            'next_run_time': str(next_run_time) if next_run_time else None,
            'trigger': str(job.trigger),
        })
    return status
