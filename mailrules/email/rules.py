"""Pure helpers shared by every provider adapter.

Nothing in here touches the network: naming of the per-category label /
folder, the message predicate used for client-side filtering, Gmail search
query construction, and validation of user-supplied rule values.
"""

from __future__ import annotations

import re
from typing import Any
from typing import Mapping

from mailrules.errors import ValidationError
from mailrules.models.enums import RuleType

MAX_ADDRESS_LENGTH = 255
MAX_KEYWORD_LENGTH = 100

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_DOMAIN_RE = re.compile(r"^[a-z0-9.-]+\.[a-z]{2,}$", re.IGNORECASE)


def derive_target_name(category_name: str, sort_order: int) -> str:
    """Return the label / folder name for a category.

    Categories are numbered from 1 in the mailbox so they sort in the same
    order as in the app: ``derive_target_name("Urgent", 2) == "3: Urgent"``.
    """

    return f"{sort_order + 1}: {category_name}"


def coerce_rule_type(value: Any) -> RuleType:
    try:
        return RuleType(value)
    except ValueError as exc:
        allowed = ", ".join(t.value for t in RuleType)
        raise ValidationError(f"Invalid rule_type '{value}'. Expected one of: {allowed}") from exc


def validate_rule_value(rule_type: RuleType | str, value: str) -> str:
    """Return the trimmed *value* or raise :class:`ValidationError`."""

    rule_type = coerce_rule_type(rule_type)
    cleaned = (value or "").strip()

    if rule_type is RuleType.SENDER:
        if not _EMAIL_RE.match(cleaned):
            raise ValidationError("Invalid email address")
        if len(cleaned) > MAX_ADDRESS_LENGTH:
            raise ValidationError("Email must be less than 255 characters")
    elif rule_type is RuleType.DOMAIN:
        if not _DOMAIN_RE.match(cleaned):
            raise ValidationError("Invalid domain format")
        if len(cleaned) > MAX_ADDRESS_LENGTH:
            raise ValidationError("Domain must be less than 255 characters")
    else:
        if not cleaned:
            raise ValidationError("Keyword is required")
        if len(cleaned) > MAX_KEYWORD_LENGTH:
            raise ValidationError("Keyword must be less than 100 characters")

    return cleaned


def matches_rule(
    rule_type: RuleType | str,
    rule_value: str,
    *,
    sender: str | None,
    subject: str | None = None,
    body_preview: str | None = None,
) -> bool:
    """Case-insensitive rule predicate applied to one message."""

    rule_type = RuleType(rule_type)
    needle = rule_value.lower()
    address = (sender or "").lower()

    if rule_type is RuleType.SENDER:
        return address == needle
    if rule_type is RuleType.DOMAIN:
        return address.endswith(f"@{needle}")
    return needle in (subject or "").lower() or needle in (body_preview or "").lower()


def graph_message_matches(rule_type: RuleType | str, rule_value: str, message: Mapping[str, Any]) -> bool:
    """Apply :func:`matches_rule` to a Microsoft Graph message resource."""

    sender = ((message.get("from") or {}).get("emailAddress") or {}).get("address")
    return matches_rule(
        rule_type,
        rule_value,
        sender=sender,
        subject=message.get("subject"),
        body_preview=message.get("bodyPreview"),
    )


def gmail_search_query(rule_type: RuleType | str, rule_value: str) -> str:
    """Gmail ``q`` expression selecting messages a rule would have labelled."""

    rule_type = RuleType(rule_type)
    if rule_type is RuleType.SENDER:
        return f"from:{rule_value}"
    if rule_type is RuleType.DOMAIN:
        return f"from:@{rule_value}"
    if any(ch.isspace() for ch in rule_value):
        return '"{}"'.format(rule_value.replace('"', ""))
    return rule_value


def outlook_rule_display_name(prefix: str, target_name: str, rule_type: RuleType | str, rule_value: str) -> str:
    """Display name the app gave the Outlook inbox rule it created."""

    return f"{prefix}: {target_name} - {RuleType(rule_type).value}:{rule_value}"


__all__ = [
    "derive_target_name",
    "coerce_rule_type",
    "validate_rule_value",
    "matches_rule",
    "graph_message_matches",
    "gmail_search_query",
    "outlook_rule_display_name",
]
