"""Public liveness endpoint."""

from typing import Any
from typing import Dict

from fastapi import APIRouter
from fastapi import status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from mailrules.database import get_session_factory
from mailrules.email.providers import supported_providers
from mailrules.utils.log import log

router = APIRouter(tags=["system"])

logger = log.bind(component="health")


@router.get("/health", status_code=status.HTTP_200_OK)
def health() -> Dict[str, Any]:
    """Report whether the database answers; never raises."""

    db_ok = True
    try:
        with get_session_factory()() as s:
            s.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.warning("health-db-failed", error=str(exc))
        db_ok = False

    return {
        "status": "ok" if db_ok else "degraded",
        "database": db_ok,
        "providers": supported_providers(),
    }
