"""Rule cleanup orchestrator.

When a user deletes an inbox rule the messages it categorised are put back
and the provider-side filter / rule is removed, on every connected provider.

The loop is best-effort per provider: a provider whose token cannot be
obtained is skipped (no entry in the results), a provider whose label or
folder no longer exists contributes ``{emailsProcessed: 0, filterDeleted:
False}``, and adapter failures degrade inside the adapter.  Only an empty
vault aborts the request.
"""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field
from typing import Any
from typing import Callable

from mailrules.email.providers import ProviderAdapter
from mailrules.email.rules import derive_target_name
from mailrules.errors import DecryptionError
from mailrules.errors import NoProvidersConnected
from mailrules.errors import TokenUnavailable
from mailrules.models.enums import RuleType
from mailrules.services.token_refresh import TokenRefreshCoordinator
from mailrules.services.token_vault import TokenVaultStore
from mailrules.utils.log import log

logger = log.bind(component="rule-cleanup")


@dataclass(frozen=True)
class CleanupRuleRequest:
    rule_type: RuleType
    rule_value: str
    category_name: str
    category_sort_order: int

    @property
    def target_name(self) -> str:
        return derive_target_name(self.category_name, self.category_sort_order)


@dataclass(frozen=True)
class ProviderCleanupResult:
    provider: str
    emails_processed: int
    filter_deleted: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "emailsProcessed": self.emails_processed,
            "filterDeleted": self.filter_deleted,
        }


@dataclass
class CleanupOutcome:
    results: list[ProviderCleanupResult] = field(default_factory=list)

    @property
    def total_emails_processed(self) -> int:
        return sum(r.emails_processed for r in self.results)


class RuleCleanupService:
    """Fan one cleanup request out over every provider in the user's vault."""

    def __init__(
        self,
        vault: TokenVaultStore,
        coordinator: TokenRefreshCoordinator,
        adapter_for: Callable[[str], ProviderAdapter | None],
    ):
        self._vault = vault
        self._coordinator = coordinator
        self._adapter_for = adapter_for

    def cleanup_rule(self, user_id: str, request: CleanupRuleRequest) -> CleanupOutcome:
        records = self._vault.get_all(user_id)
        if not records:
            raise NoProvidersConnected()

        target_name = request.target_name
        outcome = CleanupOutcome()

        for record in records:
            provider = record.provider

            adapter = self._adapter_for(provider)
            if adapter is None:
                logger.warning("provider-skipped", provider=provider, reason="unsupported")
                continue

            try:
                token = self._coordinator.get_valid_access_token(record)
            except (TokenUnavailable, DecryptionError) as exc:
                logger.warning(
                    "provider-skipped",
                    provider=provider,
                    user_id=user_id,
                    reason=type(exc).__name__,
                    error=str(exc),
                )
                continue

            target_id = adapter.resolve_cleanup_target(token, target_name)
            if target_id is None:
                outcome.results.append(ProviderCleanupResult(provider, 0, False))
                continue

            processed = adapter.unlabel_matching(token, request.rule_type, request.rule_value, target_id)
            deleted = adapter.delete_filter_or_rule(token, request.rule_type, request.rule_value, target_name)
            outcome.results.append(ProviderCleanupResult(provider, processed, deleted))

        logger.info(
            "rule-cleanup-complete",
            user_id=user_id,
            rule_type=request.rule_type.value,
            providers=len(outcome.results),
            total=outcome.total_emails_processed,
        )
        return outcome


__all__ = [
    "CleanupOutcome",
    "CleanupRuleRequest",
    "ProviderCleanupResult",
    "RuleCleanupService",
]
