"""
Background Jobs Module

Startup order is fixed:
1. RFM scoring
2. Birthday messages
3. Inactivity messages
4. Recurring tasks
5. Message queue worker
"""

from typing import Optional, Tuple

from loyalty.config import settings
from loyalty.jobs.automated_messages_job import start_birthday_messages_job, start_inactivity_messages_job
from loyalty.jobs.orchestrator import (
    JobOrchestrator,
    JobOrchestratorError,
    JobsAlreadyStartedError,
    OrchestratorState,
    StartupReport,
)
from loyalty.jobs.recurring_tasks_job import start_recurring_tasks_job
from loyalty.jobs.registry import JobHandle, JobRegistration, job_body
from loyalty.jobs.rfm_job import start_rfm_job

_orchestrator: Optional[JobOrchestrator] = None


def default_registrations() -> Tuple[JobRegistration, ...]:
    from loyalty.workers.message_worker import start_message_worker

    return (
        JobRegistration("scoring", start_rfm_job),
        JobRegistration("birthday", start_birthday_messages_job),
        JobRegistration("inactivity", start_inactivity_messages_job),
        JobRegistration("recurring", start_recurring_tasks_job),
        JobRegistration("worker", start_message_worker),
    )


def get_orchestrator() -> JobOrchestrator:
    """Process-wide orchestrator, built on first use."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = JobOrchestrator(
            default_registrations(),
            isolate_failures=settings.JOBS_ISOLATE_FAILURES,
        )
    return _orchestrator


def reset_orchestrator() -> None:
    global _orchestrator
    _orchestrator = None


def start_jobs() -> StartupReport:
    """Initialize all background jobs."""
    return get_orchestrator().start()


def stop_jobs() -> None:
    if _orchestrator is not None:
        _orchestrator.stop()


__all__ = [
    "JobHandle",
    "JobOrchestrator",
    "JobOrchestratorError",
    "JobRegistration",
    "JobsAlreadyStartedError",
    "OrchestratorState",
    "StartupReport",
    "default_registrations",
    "get_orchestrator",
    "job_body",
    "reset_orchestrator",
    "start_jobs",
    "stop_jobs",
]
