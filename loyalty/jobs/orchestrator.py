"""
Background Job Orchestrator

Brings up a fixed, ordered list of job starters exactly once per process.

- Starters run synchronously, in registration order
- Each starter only arms its trigger; nothing here waits for job work
- One confirmation line is logged once every starter has returned
- By default the first failing starter aborts startup and its error
  propagates; with isolate_failures=True the rest are still started
- A second start() is rejected, so jobs are never armed twice
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from loyalty.jobs.registry import JobHandle, JobRegistration

logger = logging.getLogger(__name__)

CONFIRMATION_MESSAGE = "All background jobs started"


class OrchestratorState(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    STARTING = "STARTING"
    STARTED = "STARTED"
    FAILED = "FAILED"
    STOPPED = "STOPPED"


class JobOrchestratorError(Exception):
    """Base class for orchestration errors."""


class JobsAlreadyStartedError(JobOrchestratorError):
    """start() was called on an orchestrator that has already run."""

    def __init__(self, state: OrchestratorState):
        self.state = state
        super().__init__(f"Background jobs cannot be started again (state: {state.value})")


class DuplicateJobError(JobOrchestratorError):
    """Two registrations share a name."""


@dataclass
class StartupReport:
    """Outcome of one start() call."""
    started: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict:
        return {"started": list(self.started), "failed": dict(self.failed), "ok": self.ok}


class JobOrchestrator:
    """
    Single-use coordinator for the process's background jobs.

    Args:
        registrations: Ordered job starters. Order is fixed at construction.
        isolate_failures: Keep starting the remaining jobs when one fails,
            and report failures instead of raising.
    """

    def __init__(self, registrations: Iterable[JobRegistration], isolate_failures: bool = False):
        self._registrations: Tuple[JobRegistration, ...] = tuple(registrations)
        self.isolate_failures = isolate_failures

        seen = set()
        for registration in self._registrations:
            if registration.name in seen:
                raise DuplicateJobError(f"Job '{registration.name}' is registered more than once")
            seen.add(registration.name)

        self._state = OrchestratorState.NOT_STARTED
        self._handles: List[JobHandle] = []
        self._report: Optional[StartupReport] = None

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def job_names(self) -> List[str]:
        return [registration.name for registration in self._registrations]

    @property
    def handles(self) -> List[JobHandle]:
        return list(self._handles)

    @property
    def report(self) -> Optional[StartupReport]:
        return self._report

    def start(self) -> StartupReport:
        """
        Invoke every starter once, in order.

        Raises:
            JobsAlreadyStartedError: start() already ran on this instance.
            Exception: the first starter error, unless isolate_failures is set.
        """
        if self._state is not OrchestratorState.NOT_STARTED:
            raise JobsAlreadyStartedError(self._state)

        self._state = OrchestratorState.STARTING
        report = StartupReport()
        self._report = report

        for registration in self._registrations:
            try:
                handle = registration.start()
            except Exception as e:
                report.failed[registration.name] = f"{type(e).__name__}: {e}"
                if not self.isolate_failures:
                    self._state = OrchestratorState.FAILED
                    logger.error(f"Background job '{registration.name}' failed to start: {e}")
                    raise
                logger.exception(f"Background job '{registration.name}' failed to start")
                continue

            if handle is not None:
                self._handles.append(handle)
            report.started.append(registration.name)

        if report.failed:
            self._state = OrchestratorState.FAILED
            logger.warning(
                f"Background jobs started with failures: "
                f"{len(report.started)}/{len(self._registrations)} started, "
                f"failed: {', '.join(report.failed)}"
            )
            return report

        self._state = OrchestratorState.STARTED
        logger.info(CONFIRMATION_MESSAGE)
        return report

    def stop(self) -> None:
        """Stop every armed job, last started first."""
        if self._state in (OrchestratorState.NOT_STARTED, OrchestratorState.STOPPED):
            return

        for handle in reversed(self._handles):
            try:
                handle.stop()
            except Exception:
                logger.exception(f"Failed to stop background job '{getattr(handle, 'name', handle)}'")

        self._handles.clear()
        self._state = OrchestratorState.STOPPED
        logger.info("All background jobs stopped")

    def __repr__(self) -> str:
        return f"<JobOrchestrator(state={self._state.value}, jobs={self.job_names})>"
