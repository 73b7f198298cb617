import logging

import pytest

from loyalty.jobs.orchestrator import (
    CONFIRMATION_MESSAGE,
    DuplicateJobError,
    JobOrchestrator,
    JobsAlreadyStartedError,
    OrchestratorState,
)
from loyalty.jobs.registry import JobRegistration

JOB_NAMES = ["scoring", "birthday", "inactivity", "recurring", "worker"]


class _Handle:
    def __init__(self, name: str, stopped: list):
        self.name = name
        self._stopped = stopped

    def stop(self) -> None:
        self._stopped.append(self.name)


def _registrations(calls: list, stopped: list, failing: dict | None = None) -> list[JobRegistration]:
    failing = failing or {}

    def make_starter(name: str):
        def start():
            if name in failing:
                raise failing[name]
            calls.append(name)
            return _Handle(name, stopped)
        return start

    return [JobRegistration(name, make_starter(name)) for name in JOB_NAMES]


def _confirmations(caplog) -> list:
    return [r for r in caplog.records if r.getMessage() == CONFIRMATION_MESSAGE]


def test_start_invokes_every_starter_once_in_declared_order(caplog) -> None:
    caplog.set_level(logging.INFO, logger="loyalty.jobs.orchestrator")
    calls: list = []
    orchestrator = JobOrchestrator(_registrations(calls, []))

    report = orchestrator.start()

    assert calls == ["scoring", "birthday", "inactivity", "recurring", "worker"]
    assert report.started == JOB_NAMES
    assert report.ok
    assert orchestrator.state is OrchestratorState.STARTED
    assert len(_confirmations(caplog)) == 1


def test_failing_starter_aborts_startup_and_propagates(caplog) -> None:
    caplog.set_level(logging.INFO, logger="loyalty.jobs.orchestrator")
    calls: list = []
    boom = RuntimeError("boom")
    orchestrator = JobOrchestrator(_registrations(calls, [], failing={"recurring": boom}))

    with pytest.raises(RuntimeError, match="boom") as exc_info:
        orchestrator.start()

    assert exc_info.value is boom
    assert calls == ["scoring", "birthday", "inactivity"]
    assert _confirmations(caplog) == []
    assert orchestrator.state is OrchestratorState.FAILED
    assert orchestrator.report.failed == {"recurring": "RuntimeError: boom"}


def test_first_starter_failure_starts_nothing() -> None:
    calls: list = []
    orchestrator = JobOrchestrator(_registrations(calls, [], failing={"scoring": ValueError("bad cron")}))

    with pytest.raises(ValueError):
        orchestrator.start()

    assert calls == []
    assert orchestrator.handles == []


def test_second_start_is_rejected_without_rearming() -> None:
    calls: list = []
    orchestrator = JobOrchestrator(_registrations(calls, []))
    orchestrator.start()

    with pytest.raises(JobsAlreadyStartedError) as exc_info:
        orchestrator.start()

    assert exc_info.value.state is OrchestratorState.STARTED
    assert calls == JOB_NAMES
    assert len(orchestrator.handles) == 5


def test_start_after_failure_is_rejected() -> None:
    calls: list = []
    orchestrator = JobOrchestrator(_registrations(calls, [], failing={"birthday": RuntimeError("x")}))
    with pytest.raises(RuntimeError):
        orchestrator.start()

    with pytest.raises(JobsAlreadyStartedError):
        orchestrator.start()
    assert calls == ["scoring"]


def test_isolated_failures_start_remaining_jobs(caplog) -> None:
    caplog.set_level(logging.INFO, logger="loyalty.jobs.orchestrator")
    calls: list = []
    orchestrator = JobOrchestrator(
        _registrations(calls, [], failing={"recurring": RuntimeError("boom")}),
        isolate_failures=True,
    )

    report = orchestrator.start()

    assert calls == ["scoring", "birthday", "inactivity", "worker"]
    assert report.started == ["scoring", "birthday", "inactivity", "worker"]
    assert report.failed == {"recurring": "RuntimeError: boom"}
    assert not report.ok
    assert orchestrator.state is OrchestratorState.FAILED
    assert _confirmations(caplog) == []
    assert any("recurring" in r.getMessage() and r.levelno == logging.WARNING for r in caplog.records)


def test_isolated_mode_without_failures_confirms(caplog) -> None:
    caplog.set_level(logging.INFO, logger="loyalty.jobs.orchestrator")
    orchestrator = JobOrchestrator(_registrations([], []), isolate_failures=True)

    report = orchestrator.start()

    assert report.ok
    assert len(_confirmations(caplog)) == 1


def test_stop_stops_handles_in_reverse_order() -> None:
    stopped: list = []
    orchestrator = JobOrchestrator(_registrations([], stopped))
    orchestrator.start()

    orchestrator.stop()

    assert stopped == list(reversed(JOB_NAMES))
    assert orchestrator.state is OrchestratorState.STOPPED
    assert orchestrator.handles == []

    orchestrator.stop()
    assert stopped == list(reversed(JOB_NAMES))


def test_stop_after_partial_failure_stops_started_jobs() -> None:
    stopped: list = []
    orchestrator = JobOrchestrator(_registrations([], stopped, failing={"inactivity": RuntimeError("x")}))
    with pytest.raises(RuntimeError):
        orchestrator.start()

    orchestrator.stop()

    assert stopped == ["birthday", "scoring"]


def test_stop_continues_when_a_handle_fails() -> None:
    stopped: list = []

    class _BrokenHandle:
        name = "broken"

        def stop(self) -> None:
            raise RuntimeError("cannot stop")

    registrations = [
        JobRegistration("first", lambda: _Handle("first", stopped)),
        JobRegistration("broken", _BrokenHandle),
        JobRegistration("last", lambda: _Handle("last", stopped)),
    ]
    orchestrator = JobOrchestrator(registrations)
    orchestrator.start()

    orchestrator.stop()

    assert stopped == ["last", "first"]
    assert orchestrator.state is OrchestratorState.STOPPED


def test_stop_before_start_is_a_noop() -> None:
    orchestrator = JobOrchestrator(_registrations([], []))

    orchestrator.stop()

    assert orchestrator.state is OrchestratorState.NOT_STARTED
    orchestrator.start()
    assert orchestrator.state is OrchestratorState.STARTED


def test_starters_without_handles_are_allowed() -> None:
    calls: list = []
    orchestrator = JobOrchestrator([
        JobRegistration("a", lambda: calls.append("a")),
        JobRegistration("b", lambda: calls.append("b")),
    ])

    report = orchestrator.start()

    assert calls == ["a", "b"]
    assert report.started == ["a", "b"]
    assert orchestrator.handles == []


def test_duplicate_job_names_are_rejected() -> None:
    with pytest.raises(DuplicateJobError):
        JobOrchestrator([
            JobRegistration("scoring", lambda: None),
            JobRegistration("scoring", lambda: None),
        ])


def test_registration_order_is_fixed_at_construction() -> None:
    registrations = _registrations([], [])
    orchestrator = JobOrchestrator(registrations)

    registrations.reverse()

    assert orchestrator.job_names == JOB_NAMES


def test_empty_registration_set_still_confirms(caplog) -> None:
    caplog.set_level(logging.INFO, logger="loyalty.jobs.orchestrator")
    orchestrator = JobOrchestrator([])

    report = orchestrator.start()

    assert report.started == []
    assert len(_confirmations(caplog)) == 1
