"""Sync job runner.

A sync job is a status record wrapped around one pass over the user's
connected providers.  The per-provider sync routine is injected; the
default only logs, real mailbox synchronisation lives elsewhere.

Status graph: ``pending → running → completed``.  ``failed`` is accepted as
a transition target but nothing in :meth:`SyncJobRunner.run` drives a job
there once it exists, a provider failure is logged and skipped instead.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mailrules.crud import crud
from mailrules.errors import DecryptionError
from mailrules.errors import InvalidJobTransition
from mailrules.errors import JobCreationError
from mailrules.models.enums import JobStatus
from mailrules.models.models import Job
from mailrules.services.token_vault import TokenVaultStore
from mailrules.utils.crypto import TokenCipher
from mailrules.utils.log import log
from mailrules.utils.time import utc_now_naive

logger = log.bind(component="sync-jobs")

ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.RUNNING, JobStatus.FAILED}),
    JobStatus.RUNNING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}

SyncRoutine = Callable[[str, str], None]


def log_only_sync(provider: str, access_token: str) -> None:  # noqa: ARG001 – token intentionally unused
    logger.info("provider-sync", provider=provider)


class SyncJobRunner:
    def __init__(
        self,
        db: Session,
        vault: TokenVaultStore,
        cipher: TokenCipher,
        *,
        sync_provider: SyncRoutine = log_only_sync,
        clock: Callable[[], datetime] = utc_now_naive,
    ):
        self._db = db
        self._vault = vault
        self._cipher = cipher
        self._sync_provider = sync_provider
        self._clock = clock

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    def create(self, organization_id: str, user_id: str) -> Job:
        try:
            job = crud.create_job(self._db, organization_id=organization_id, user_id=user_id)
        except SQLAlchemyError as exc:
            self._db.rollback()
            logger.error("job-create-failed", user_id=user_id, error=str(exc))
            raise JobCreationError("Failed to create job") from exc

        logger.info("job-created", job_id=job.id, user_id=user_id)
        return job

    def _transition(self, job: Job, target: JobStatus, **stamps: datetime) -> Job:
        current = JobStatus(job.status)
        if target not in ALLOWED_TRANSITIONS[current]:
            raise InvalidJobTransition(f"job {job.id}: {current.value} → {target.value} is not allowed")
        return crud.set_job_status(self._db, job, target, **stamps)

    def start(self, job: Job) -> Job:
        job = self._transition(job, JobStatus.RUNNING, started_at=self._clock())
        logger.info("job-started", job_id=job.id)
        return job

    def complete(self, job: Job) -> Job:
        job = self._transition(job, JobStatus.COMPLETED, completed_at=self._clock())
        logger.info("job-completed", job_id=job.id)
        return job

    def fail(self, job: Job) -> Job:
        job = self._transition(job, JobStatus.FAILED, completed_at=self._clock())
        logger.warning("job-failed", job_id=job.id)
        return job

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    def run(self, organization_id: str, user_id: str) -> Job:
        """Create a job, sync every connected provider, mark it completed."""

        job = self.create(organization_id, user_id)
        job = self.start(job)

        for record in self._vault.get_all(user_id):
            try:
                access_token = self._cipher.decrypt(record.encrypted_access_token)
            except DecryptionError as exc:
                logger.warning("provider-skipped", job_id=job.id, provider=record.provider, error=str(exc))
                continue

            try:
                self._sync_provider(record.provider, access_token)
            except Exception as exc:  # noqa: BLE001 – one provider must not abort the job
                logger.error("provider-sync-failed", job_id=job.id, provider=record.provider, error=str(exc))

        return self.complete(job)

    def get(self, job_id: str) -> Job | None:
        return crud.get_job(self._db, job_id)


__all__ = [
    "ALLOWED_TRANSITIONS",
    "SyncJobRunner",
    "log_only_sync",
]
