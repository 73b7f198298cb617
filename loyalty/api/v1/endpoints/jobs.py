"""API endpoints for background job status."""
from fastapi import APIRouter

from loyalty.config import settings
from loyalty.jobs import get_orchestrator
from loyalty.jobs.registry import registered_job_bodies
from loyalty.jobs.scheduler import get_job_status
from loyalty.schemas.jobs import JobStatusResponse

router = APIRouter()


@router.get("", response_model=JobStatusResponse)
async def job_status():
    """Orchestrator state, last startup report and scheduled triggers."""
    orchestrator = get_orchestrator()
    report = orchestrator.report

    return JobStatusResponse(
        enabled=settings.jobs_enabled,
        state=orchestrator.state.value,
        isolate_failures=orchestrator.isolate_failures,
        registered=orchestrator.job_names,
        job_bodies=registered_job_bodies(),
        report=report.to_dict() if report is not None else None,
        scheduled=get_job_status(),
    )
