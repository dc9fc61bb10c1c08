from sqlalchemy import Column
from sqlalchemy import DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import Integer
from sqlalchemy import String
from sqlalchemy import Text
from sqlalchemy import UniqueConstraint
from sqlalchemy.sql import func

from mailrules.database import Base
from mailrules.models.enums import JobStatus

# ---------------------------------------------------------------------------
# Token vault – encrypted provider credentials, one row per (user, provider)
# ---------------------------------------------------------------------------


class OAuthToken(Base):
    """Encrypted OAuth credentials for one user on one email provider.

    Only ciphertext produced by :class:`mailrules.utils.crypto.TokenCipher`
    is stored.  ``expires_at`` is naive UTC; ``NULL`` means the access token is
    never treated as expired.  ``version`` is bumped on every write so the
    refresh coordinator can detect a concurrent refresh of the same row.
    """

    __tablename__ = "oauth_token_vault"
    __table_args__ = (UniqueConstraint("user_id", "provider", name="uix_token_vault_user_provider"),)

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(String(64), nullable=False, index=True)
    # "google" | "microsoft" – kept as a plain string so rows for providers
    # this build does not know yet can still be loaded and skipped.
    provider = Column(String(32), nullable=False)

    encrypted_access_token = Column(Text, nullable=False)
    encrypted_refresh_token = Column(Text, nullable=True)
    expires_at = Column(DateTime, nullable=True)

    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self) -> str:
        return f"<OAuthToken user_id={self.user_id!r} provider={self.provider!r} version={self.version}>"


# ---------------------------------------------------------------------------
# Jobs – minimal background job record (pending → running → completed)
# ---------------------------------------------------------------------------


class Job(Base):
    __tablename__ = "jobs"

    id = Column(String(36), primary_key=True)

    organization_id = Column(String(64), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    job_type = Column(String(32), nullable=False, default="sync")

    status = Column(
        SAEnum(JobStatus, native_enum=False, name="job_status_enum", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=JobStatus.PENDING,
    )

    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
