"""Rule cleanup endpoint.

Called by the app when a user deletes a categorisation rule.  Validation and
authentication failures are answered before the vault is read; provider
failures never fail the request, they only shrink the ``results`` list.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi import Depends

from mailrules.auth.strategy import Identity
from mailrules.constants import CLEANUP_RULE_PATH
from mailrules.dependencies.auth import get_current_identity
from mailrules.dependencies.services import get_rule_cleanup_service
from mailrules.schemas.schemas import CleanupRuleIn
from mailrules.schemas.schemas import CleanupRuleOut
from mailrules.schemas.schemas import ProviderCleanupResultOut
from mailrules.services.rule_cleanup import CleanupRuleRequest
from mailrules.services.rule_cleanup import RuleCleanupService

router = APIRouter(tags=["rules"])


@router.post(CLEANUP_RULE_PATH, response_model=CleanupRuleOut)
def cleanup_rule(
    payload: CleanupRuleIn,
    identity: Identity = Depends(get_current_identity),
    service: RuleCleanupService = Depends(get_rule_cleanup_service),
) -> CleanupRuleOut:
    request = CleanupRuleRequest(
        rule_type=payload.rule_type,
        rule_value=payload.rule_value,
        category_name=payload.category_name,
        category_sort_order=payload.category_sort_order,
    )
    outcome = service.cleanup_rule(identity.user_id, request)

    return CleanupRuleOut(
        results=[
            ProviderCleanupResultOut(
                provider=r.provider,
                emails_processed=r.emails_processed,
                filter_deleted=r.filter_deleted,
            )
            for r in outcome.results
        ],
        total_emails_processed=outcome.total_emails_processed,
    )
