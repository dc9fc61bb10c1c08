"""Token vault store – persisted, encrypted OAuth credentials.

Thin service wrapper over the vault helpers in :pymod:`mailrules.crud.crud`
so the refresh coordinator, cleanup orchestrator and job runner depend on
one small object instead of SQLAlchemy sessions.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from mailrules.crud import crud
from mailrules.models.models import OAuthToken


class TokenVaultStore:
    def __init__(self, db: Session):
        self._db = db

    def get_all(self, user_id: str) -> list[OAuthToken]:
        return crud.get_oauth_tokens(self._db, user_id)

    def get(self, user_id: str, provider: str) -> OAuthToken | None:
        return crud.get_oauth_token(self._db, user_id, provider)

    def upsert(self, user_id: str, provider: str, **fields: Any) -> OAuthToken:
        """Unconditional write keyed by *(user_id, provider)*."""
        return crud.upsert_oauth_token(self._db, user_id, provider, **fields)

    def compare_and_swap(self, user_id: str, provider: str, expected_version: int, **fields: Any) -> bool:
        """Write *fields* only if nobody else wrote the row since *expected_version* was read."""
        return crud.update_oauth_token_if_version(self._db, user_id, provider, expected_version, **fields)


__all__ = ["TokenVaultStore"]
