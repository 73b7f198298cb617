"""
Automated Customer Messages

- Birthday messages: daily at 9:00 AM (BIRTHDAY_MESSAGES_CRON)
- Inactivity messages: Mondays at 10:00 AM (INACTIVITY_MESSAGES_CRON),
  for customers without an order in INACTIVITY_DAYS days

Both bodies only queue messages; delivery is the message worker's job.
"""

import logging

from loyalty.config import settings
from loyalty.jobs.registry import ScheduledJobHandle
from loyalty.jobs.scheduler import run_job_body, schedule_cron

logger = logging.getLogger(__name__)

BIRTHDAY_MESSAGES_BODY = "birthday_messages"
INACTIVITY_MESSAGES_BODY = "inactivity_messages"


def start_birthday_messages_job() -> ScheduledJobHandle:
    handle = schedule_cron(
        "birthday_messages",
        "Birthday Messages",
        settings.BIRTHDAY_MESSAGES_CRON,
        run_job_body,
        args=[BIRTHDAY_MESSAGES_BODY, "Birthday messages"],
    )
    logger.info(f"Birthday messages job scheduled: {settings.BIRTHDAY_MESSAGES_CRON}")
    return handle


def start_inactivity_messages_job() -> ScheduledJobHandle:
    handle = schedule_cron(
        "inactivity_messages",
        "Inactivity Messages",
        settings.INACTIVITY_MESSAGES_CRON,
        run_job_body,
        args=[INACTIVITY_MESSAGES_BODY, "Inactivity messages"],
        kwargs={"inactive_days": settings.INACTIVITY_DAYS},
    )
    logger.info(
        f"Inactivity messages job scheduled: {settings.INACTIVITY_MESSAGES_CRON} "
        f"({settings.INACTIVITY_DAYS} days inactive)"
    )
    return handle
