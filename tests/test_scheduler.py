import asyncio
import logging
from datetime import datetime, timezone

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from loyalty.jobs.registry import (
    ScheduledJobHandle,
    get_job_body,
    job_body,
    load_job_body_modules,
    registered_job_bodies,
)
from loyalty.jobs.scheduler import (
    cron_trigger,
    get_job_status,
    run_job_body,
    schedule_cron,
    schedule_interval,
)


async def _noop():
    return None


def test_run_job_body_logs_result_summary(caplog) -> None:
    caplog.set_level(logging.INFO, logger="loyalty.jobs.scheduler")

    @job_body("rfm_scoring")
    async def score():
        return {"processed": 3, "updated": 2, "errors": 1}

    asyncio.run(run_job_body("rfm_scoring", "RFM scoring"))

    assert "Starting RFM scoring job..." in caplog.messages
    assert any(m.startswith("RFM scoring job completed in ") for m in caplog.messages)
    assert "Processed: 3, Updated: 2, Errors: 1" in caplog.messages


def test_run_job_body_passes_keyword_arguments() -> None:
    received = {}

    @job_body("inactivity_messages")
    async def inactivity(inactive_days: int):
        received["days"] = inactive_days
        return 4

    asyncio.run(run_job_body("inactivity_messages", "Inactivity messages", inactive_days=60))

    assert received == {"days": 60}


def test_run_job_body_swallows_body_errors(caplog) -> None:
    caplog.set_level(logging.INFO, logger="loyalty.jobs.scheduler")

    @job_body("recurring_tasks")
    async def broken():
        raise RuntimeError("database unavailable")

    asyncio.run(run_job_body("recurring_tasks", "Recurring tasks"))

    failures = [r for r in caplog.records if r.levelno == logging.ERROR]
    assert len(failures) == 1
    assert "Recurring tasks job failed: database unavailable" in failures[0].getMessage()
    assert failures[0].exc_info is not None


def test_run_job_body_without_registered_body_warns(caplog) -> None:
    caplog.set_level(logging.INFO, logger="loyalty.jobs.scheduler")

    asyncio.run(run_job_body("birthday_messages", "Birthday messages"))

    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "birthday_messages" in warnings[0].getMessage()


def test_job_body_registration_replaces_previous_body() -> None:
    @job_body("rfm_scoring")
    async def first():
        return "first"

    @job_body("rfm_scoring")
    async def second():
        return "second"

    assert registered_job_bodies() == ["rfm_scoring"]
    assert asyncio.run(get_job_body("rfm_scoring")()) == "second"


def test_load_job_body_modules_imports_modules() -> None:
    load_job_body_modules(["json"])

    with pytest.raises(ModuleNotFoundError):
        load_job_body_modules(["loyalty.no_such_module"])


@pytest.mark.parametrize(
    "crontab, expected",
    [
        ("0 10 * * 1", "day_of_week='mon'"),
        ("0 10 * * 0", "day_of_week='sun'"),
        ("0 10 * * 7", "day_of_week='sun'"),
        ("0 10 * * 1-5", "day_of_week='mon-fri'"),
        ("0 10 * * 1,3", "day_of_week='mon,wed'"),
        ("0 10 * * 0-6", "day_of_week='sun,mon-sat'"),
        ("0 10 * * 0-4", "day_of_week='sun,mon-thu'"),
        ("0 10 * * 0,5-6", "day_of_week='sun,fri-sat'"),
        ("0 10 * * */2", "day_of_week='sun,tue,thu,sat'"),
        ("0 10 * * 1-5/2", "day_of_week='mon,wed,fri'"),
        ("0 10 * * mon-fri", "day_of_week='mon-fri'"),
    ],
)
def test_cron_trigger_uses_standard_weekday_numbers(crontab, expected) -> None:
    assert expected in str(cron_trigger(crontab, tz="UTC"))


def test_weekday_range_from_sunday_fires_on_sunday() -> None:
    trigger = cron_trigger("0 9 * * 0-4", tz="UTC")
    friday = datetime(2026, 3, 6, 10, 0, tzinfo=timezone.utc)

    next_fire = trigger.get_next_fire_time(None, friday)

    assert next_fire == datetime(2026, 3, 8, 9, 0, tzinfo=timezone.utc)
    assert next_fire.strftime("%a") == "Sun"


def test_cron_trigger_rejects_wrong_field_count() -> None:
    with pytest.raises(ValueError):
        cron_trigger("0 2 * *")


def test_schedule_cron_returns_removable_handle() -> None:
    target = AsyncIOScheduler(timezone="UTC")
    handle = schedule_cron("nightly", "Nightly", "0 2 * * *", _noop, target=target)

    assert handle.job_id == "nightly"
    assert [job.id for job in target.get_jobs()] == ["nightly"]

    handle.stop()
    handle.stop()

    assert target.get_jobs() == []


def test_handle_stop_tolerates_jobs_removed_elsewhere() -> None:
    target = AsyncIOScheduler(timezone="UTC")
    handle = schedule_cron("nightly", "Nightly", "0 2 * * *", _noop, target=target)
    target.remove_all_jobs()

    handle.stop()

    assert isinstance(handle, ScheduledJobHandle)


def test_schedule_interval_rejects_non_positive_interval() -> None:
    target = AsyncIOScheduler(timezone="UTC")

    with pytest.raises(ValueError):
        schedule_interval("poll", "Poll", 0, _noop, target=target)


def test_schedule_interval_can_run_immediately() -> None:
    target = AsyncIOScheduler(timezone="UTC")

    schedule_interval("poll", "Poll", 10, _noop, run_immediately=True, target=target)

    status = get_job_status(target)
    assert status[0]["id"] == "poll"
    assert status[0]["name"] == "Poll"
    assert status[0]["next_run_time"] is not None
    assert "interval" in status[0]["trigger"]


def test_get_job_status_for_pending_cron_job() -> None:
    target = AsyncIOScheduler(timezone="UTC")
    schedule_cron("nightly", "Nightly", "0 2 * * *", _noop, target=target)

    status = get_job_status(target)

    assert status == [{
        "id": "nightly",
        "name": "Nightly",
        "next_run_time": None,
        "trigger": str(target.get_job("nightly").trigger),
    }]
