"""
Job Registration and Body Registry

Two registries live here:

- JobRegistration: one named starter in the orchestrator's fixed startup
  list. A starter arms a recurring trigger and returns a JobHandle.
- Job bodies: the business logic a scheduled trigger runs, registered by
  name with the @job_body decorator. Bodies live in the business-logic
  modules; the scheduler only knows them by name.

Usage:
    @job_body("rfm_scoring")
    async def score_customers():
        ...
        return {"processed": 120, "updated": 118, "errors": 2}
"""

import importlib
import logging
from dataclasses import dataclass
from functools import wraps
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Protocol, runtime_checkable

from apscheduler.jobstores.base import JobLookupError

logger = logging.getLogger(__name__)


@runtime_checkable
class JobHandle(Protocol):
    """Lifecycle handle for an armed background job."""

    name: str

    def stop(self) -> None:
        ...


# A starter may return None when it has nothing to tear down
JobStarter = Callable[[], Optional[JobHandle]]


@dataclass(frozen=True)
class JobRegistration:
    """A named, zero-argument job starter."""
    name: str
    start: JobStarter


class ScheduledJobHandle:
    """JobHandle backed by an APScheduler job."""

    def __init__(self, name: str, job):
        self.name = name
        self.job = job
        self._stopped = False

    @property
    def job_id(self) -> str:
        return self.job.id

    def stop(self) -> None:
        """Remove the trigger from the scheduler. Safe to call twice."""
        if self._stopped:
            return
        try:
            self.job.remove()
        except JobLookupError:
            logger.debug(f"Job '{self.job.id}' was already removed")
        self._stopped = True
        logger.info(f"Background job '{self.name}' stopped")

    def __repr__(self) -> str:
        return f"<ScheduledJobHandle(name='{self.name}', job_id='{self.job.id}')>"


# ==================== Job Bodies ====================

JobBody = Callable[..., Awaitable[object]]

_job_bodies: Dict[str, JobBody] = {}


def job_body(name: str):
    """
    Decorator to register the body a scheduled job runs.

    Registering the same name twice replaces the earlier body.
    """
    def decorator(func: JobBody):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            return await func(*args, **kwargs)

        if name in _job_bodies:
            logger.debug(f"Replacing job body: {name}")
        _job_bodies[name] = wrapper
        logger.debug(f"Registered job body: {name}")
        return wrapper
    return decorator


def get_job_body(name: str) -> Optional[JobBody]:
    return _job_bodies.get(name)


def registered_job_bodies() -> List[str]:
    return sorted(_job_bodies)


def clear_job_bodies() -> None:
    _job_bodies.clear()


def load_job_body_modules(modules: Iterable[str]) -> None:
    """Import the modules whose @job_body decorators provide the job bodies."""
    for module in modules:
        importlib.import_module(module)
        logger.info(f"Loaded job bodies from {module}")
