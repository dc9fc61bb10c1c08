"""Provider abstraction for rule cleanup.

Every supported mailbox provider implements :class:`ProviderAdapter`.  The
orchestrator only ever talks to that interface, so adding a provider means
one new adapter module plus a registry entry below.

Adapters are cheap, per-request objects: they hold the injected
``httpx.Client`` and nothing else, so no token or secret outlives the
request that produced it.
"""

from __future__ import annotations

from typing import Callable
from typing import Protocol
from typing import runtime_checkable

import httpx

from mailrules.config import Settings
from mailrules.email.gmail import GmailAdapter
from mailrules.email.outlook import OutlookAdapter
from mailrules.models.enums import OAuthProvider
from mailrules.models.enums import RuleType

# ---------------------------------------------------------------------------
# Public interface
# ---------------------------------------------------------------------------


@runtime_checkable
class ProviderAdapter(Protocol):
    """Capabilities a provider must expose for rule cleanup."""

    name: str  # vault provider identifier ("google" / "microsoft")

    def resolve_cleanup_target(self, token: str, derived_name: str) -> str | None:
        """Return the label / folder id called *derived_name*, ``None`` when absent."""

    def unlabel_matching(self, token: str, rule_type: RuleType | str, rule_value: str, target_id: str) -> int:
        """Undo the categorisation of matching messages; return how many were changed."""

    def delete_filter_or_rule(self, token: str, rule_type: RuleType | str, rule_value: str, derived_name: str) -> bool:
        """Remove the server-side filter / rule; ``True`` when gone or never present."""


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_REGISTRY: dict[str, Callable[[httpx.Client, Settings], ProviderAdapter]] = {
    OAuthProvider.GOOGLE.value: lambda http, settings: GmailAdapter(http),
    OAuthProvider.MICROSOFT.value: lambda http, settings: OutlookAdapter(
        http, rule_name_prefix=settings.rule_name_prefix
    ),
}


def get_adapter(provider: str, http: httpx.Client, settings: Settings) -> ProviderAdapter | None:
    """Return an adapter for *provider* or *None* if unsupported."""

    factory = _REGISTRY.get(provider)
    if factory is None:
        return None
    return factory(http, settings)


def supported_providers() -> list[str]:  # noqa: D401 – tiny helper
    """Return list of provider identifiers registered."""

    return list(_REGISTRY)


__all__ = [
    "ProviderAdapter",
    "get_adapter",
    "supported_providers",
]
