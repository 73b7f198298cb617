"""
RFM Scoring Job

Recomputes recency/frequency/monetary scores for every customer.
Runs daily at 2:00 AM by default (RFM_JOB_CRON).
"""

import logging

from loyalty.config import settings
from loyalty.jobs.registry import ScheduledJobHandle
from loyalty.jobs.scheduler import run_job_body, schedule_cron

logger = logging.getLogger(__name__)

RFM_JOB_BODY = "rfm_scoring"


def start_rfm_job() -> ScheduledJobHandle:
    handle = schedule_cron(
        "rfm_scoring",
        "RFM Scoring",
        settings.RFM_JOB_CRON,
        run_job_body,
        args=[RFM_JOB_BODY, "RFM scoring"],
    )
    logger.info(f"RFM scoring job scheduled: {settings.RFM_JOB_CRON}")
    return handle
