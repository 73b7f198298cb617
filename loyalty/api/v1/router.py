from fastapi import APIRouter

from loyalty.api.v1.endpoints import jobs

api_router = APIRouter(prefix="/api/v1")

# Background Jobs
api_router.include_router(jobs.router, prefix="/jobs", tags=["Background Jobs"])
