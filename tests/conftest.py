import os

# Settings are read once at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SMS_PROVIDER", "mock")

import pytest  # noqa: E402

from loyalty import jobs  # noqa: E402
from loyalty.jobs.registry import clear_job_bodies  # noqa: E402
from loyalty.jobs.scheduler import scheduler  # noqa: E402


@pytest.fixture(autouse=True)
def _clean_job_state():
    jobs.reset_orchestrator()
    clear_job_bodies()
    if not scheduler.running:
        scheduler.remove_all_jobs()
    yield
    jobs.reset_orchestrator()
    clear_job_bodies()
    if not scheduler.running:
        scheduler.remove_all_jobs()
