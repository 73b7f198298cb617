"""
Recurring Tasks Job

Re-creates completed recurring tasks once their interval has elapsed.
Runs daily at 6:00 AM by default (RECURRING_TASKS_CRON).
"""

import logging

from loyalty.config import settings
from loyalty.jobs.registry import ScheduledJobHandle
from loyalty.jobs.scheduler import run_job_body, schedule_cron

logger = logging.getLogger(__name__)

RECURRING_TASKS_BODY = "recurring_tasks"


def start_recurring_tasks_job() -> ScheduledJobHandle:
    handle = schedule_cron(
        "recurring_tasks",
        "Recurring Tasks",
        settings.RECURRING_TASKS_CRON,
        run_job_body,
        args=[RECURRING_TASKS_BODY, "Recurring tasks"],
    )
    logger.info(f"Recurring tasks job scheduled: {settings.RECURRING_TASKS_CRON}")
    return handle
