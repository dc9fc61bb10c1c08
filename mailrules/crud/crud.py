import uuid
from datetime import datetime
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from mailrules.models.enums import JobStatus
from mailrules.models.models import Job
from mailrules.models.models import OAuthToken

# Columns callers may write through the vault helpers.  Plaintext never has a
# column to land in.
VAULT_WRITABLE_FIELDS = frozenset({"encrypted_access_token", "encrypted_refresh_token", "expires_at"})


def _check_vault_fields(fields: Dict[str, Any]) -> None:
    unknown = set(fields) - VAULT_WRITABLE_FIELDS
    if unknown:
        raise ValueError(f"unsupported token vault fields: {sorted(unknown)}")


# ---------------------------------------------------------------------------
# Token vault helpers
# ---------------------------------------------------------------------------


def get_oauth_tokens(db: Session, user_id: str) -> List[OAuthToken]:
    """Return every vault row for *user_id*, freshly loaded from the database."""
    return (
        db.query(OAuthToken)
        .filter(OAuthToken.user_id == user_id)
        .order_by(OAuthToken.id.asc())
        .populate_existing()
        .all()
    )


def get_oauth_token(db: Session, user_id: str, provider: str) -> Optional[OAuthToken]:
    return (
        db.query(OAuthToken)
        .filter(OAuthToken.user_id == user_id, OAuthToken.provider == provider)
        .populate_existing()
        .first()
    )


def upsert_oauth_token(db: Session, user_id: str, provider: str, **fields: Any) -> OAuthToken:
    """Insert **or** update the vault row for *(user_id, provider)*.

    Uses an atomic ``INSERT … ON CONFLICT DO UPDATE`` keyed on the
    UNIQUE(user_id, provider) constraint so concurrent writers never create
    duplicate rows.  Every write bumps ``version``.
    """

    _check_vault_fields(fields)
    if not user_id or not provider:
        raise ValueError("upsert_oauth_token: user_id and provider are required")

    if db.get_bind().dialect.name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    else:
        from sqlalchemy.dialects.sqlite import insert

    table = OAuthToken.__table__
    stmt = insert(table).values(user_id=user_id, provider=provider, version=1, **fields)
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "provider"],
        set_={
            **fields,
            "version": table.c.version + 1,
            # SQLite does not evaluate ``onupdate`` for ON CONFLICT updates.
            "updated_at": func.now(),
        },
    )

    db.execute(stmt)
    db.commit()

    return db.query(OAuthToken).filter_by(user_id=user_id, provider=provider).one()


def update_oauth_token_if_version(
    db: Session,
    user_id: str,
    provider: str,
    expected_version: int,
    **fields: Any,
) -> bool:
    """Apply *fields* only when the row still carries *expected_version*.

    Returns ``False`` when another writer got there first (row missing or
    version moved on); nothing is written in that case.
    """

    _check_vault_fields(fields)

    updated = (
        db.query(OAuthToken)
        .filter(
            OAuthToken.user_id == user_id,
            OAuthToken.provider == provider,
            OAuthToken.version == expected_version,
        )
        .update(
            {**fields, "version": expected_version + 1, "updated_at": func.now()},
            synchronize_session=False,
        )
    )
    db.commit()
    return updated == 1


# ---------------------------------------------------------------------------
# Job helpers
# ---------------------------------------------------------------------------


def create_job(db: Session, *, organization_id: str, user_id: str, job_type: str = "sync") -> Job:
    job = Job(
        id=str(uuid.uuid4()),
        organization_id=organization_id,
        user_id=user_id,
        job_type=job_type,
        status=JobStatus.PENDING,
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


def get_job(db: Session, job_id: str) -> Optional[Job]:
    return db.query(Job).filter(Job.id == job_id).first()


def set_job_status(
    db: Session,
    job: Job,
    status: JobStatus,
    *,
    started_at: Optional[datetime] = None,
    completed_at: Optional[datetime] = None,
) -> Job:
    job.status = status
    if started_at is not None:
        job.started_at = started_at
    if completed_at is not None:
        job.completed_at = completed_at
    db.commit()
    db.refresh(job)
    return job
