"""Sync job endpoints."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi import Depends

from mailrules.auth.strategy import Identity
from mailrules.constants import SYNC_JOBS_PREFIX
from mailrules.dependencies.auth import get_current_identity
from mailrules.dependencies.services import get_sync_job_runner
from mailrules.errors import JobNotFound
from mailrules.errors import ValidationError
from mailrules.schemas.schemas import SyncJobOut
from mailrules.schemas.schemas import SyncJobStartedOut
from mailrules.services.sync_jobs import SyncJobRunner

router = APIRouter(prefix=SYNC_JOBS_PREFIX, tags=["sync"])


@router.post("", response_model=SyncJobStartedOut)
def start_sync_job(
    identity: Identity = Depends(get_current_identity),
    runner: SyncJobRunner = Depends(get_sync_job_runner),
) -> SyncJobStartedOut:
    """Run one sync pass for the caller and return the finished job id."""

    if not identity.organization_id:
        raise ValidationError("User profile not found")

    job = runner.run(identity.organization_id, identity.user_id)
    return SyncJobStartedOut(job_id=job.id)


@router.get("/{job_id}", response_model=SyncJobOut)
def read_sync_job(
    job_id: str,
    identity: Identity = Depends(get_current_identity),
    runner: SyncJobRunner = Depends(get_sync_job_runner),
):
    job = runner.get(job_id)
    # Other users' jobs are reported as missing, not forbidden.
    if job is None or job.user_id != identity.user_id:
        raise JobNotFound()
    return job
