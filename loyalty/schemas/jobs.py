"""Schemas for background job status."""
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class StartupReportResponse(BaseModel):
    started: List[str] = Field(default_factory=list)
    failed: Dict[str, str] = Field(default_factory=dict)
    ok: bool = True


class ScheduledJobResponse(BaseModel):
    id: str
    name: str
    next_run_time: Optional[str] = None
    trigger: str


class JobStatusResponse(BaseModel):
    enabled: bool
    state: str
    isolate_failures: bool
    registered: List[str]
    job_bodies: List[str]
    report: Optional[StartupReportResponse] = None
    scheduled: List[ScheduledJobResponse] = Field(default_factory=list)
