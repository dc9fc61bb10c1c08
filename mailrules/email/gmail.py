"""Gmail adapter (``gmail.googleapis.com``).

Unlabelling is one search plus one ``batchModify``; the search is capped at
500 ids and does not paginate, so very large labels need a second cleanup.
"""

from __future__ import annotations

from mailrules.email.http import RESTAdapter
from mailrules.email.rules import gmail_search_query
from mailrules.errors import ProviderAPIError
from mailrules.models.enums import OAuthProvider
from mailrules.models.enums import RuleType
from mailrules.utils.log import log

logger = log.bind(component="gmail-adapter")

GMAIL_API = "https://gmail.googleapis.com/gmail/v1/users/me"
MAX_RESULTS = 500


class GmailAdapter(RESTAdapter):
    name = OAuthProvider.GOOGLE.value
    base_url = GMAIL_API

    # ------------------------------------------------------------------
    # Label lookup
    # ------------------------------------------------------------------

    def resolve_cleanup_target(self, token: str, derived_name: str) -> str | None:
        """Return the id of the label called *derived_name*, or ``None``."""

        try:
            body = self._request("GET", "labels", token, operation="labels.list")
        except ProviderAPIError as exc:
            logger.warning("label-lookup-failed", status=exc.status_code, detail=exc.detail)
            return None

        for label in body.get("labels") or []:
            if label.get("name") == derived_name:
                return label.get("id")

        logger.info("label-not-found", label=derived_name)
        return None

    # ------------------------------------------------------------------
    # Message cleanup
    # ------------------------------------------------------------------

    def unlabel_matching(self, token: str, rule_type: RuleType | str, rule_value: str, target_id: str) -> int:
        """Remove *target_id* from messages matching the rule; return the count."""

        params = {
            "q": gmail_search_query(rule_type, rule_value),
            "labelIds": target_id,
            "maxResults": MAX_RESULTS,
        }
        try:
            body = self._request("GET", "messages", token, operation="messages.list", params=params)
        except ProviderAPIError as exc:
            logger.warning("message-search-failed", status=exc.status_code, detail=exc.detail)
            return 0

        ids = [m["id"] for m in body.get("messages") or [] if m.get("id")]
        if not ids:
            logger.info("no-messages-to-unlabel", label_id=target_id)
            return 0

        try:
            self._request(
                "POST",
                "messages/batchModify",
                token,
                operation="messages.batchModify",
                json={"ids": ids, "removeLabelIds": [target_id], "addLabelIds": []},
            )
        except ProviderAPIError as exc:
            logger.warning("batch-modify-failed", status=exc.status_code, count=len(ids), detail=exc.detail)
            return 0

        logger.info("messages-unlabelled", label_id=target_id, count=len(ids))
        return len(ids)

    # ------------------------------------------------------------------
    # Filter cleanup
    # ------------------------------------------------------------------

    def delete_filter_or_rule(self, token: str, rule_type: RuleType | str, rule_value: str, derived_name: str) -> bool:
        """Delete the Gmail filter created for this rule.

        Returns ``True`` when the filter was deleted or never existed.
        """

        try:
            body = self._request("GET", "settings/filters", token, operation="filters.list")
        except ProviderAPIError as exc:
            logger.warning("filter-list-failed", status=exc.status_code, detail=exc.detail)
            return False

        rule_type = RuleType(rule_type)
        for gmail_filter in body.get("filter") or []:
            if not _filter_matches(gmail_filter.get("criteria") or {}, rule_type, rule_value):
                continue

            filter_id = gmail_filter.get("id")
            try:
                self._request("DELETE", f"settings/filters/{filter_id}", token, operation="filters.delete")
            except ProviderAPIError as exc:
                logger.warning("filter-delete-failed", filter_id=filter_id, status=exc.status_code)
                return False

            logger.info("filter-deleted", filter_id=filter_id)
            return True

        logger.info("filter-not-found", rule_type=rule_type.value)
        return True


def _filter_matches(criteria: dict, rule_type: RuleType, rule_value: str) -> bool:
    if rule_type is RuleType.SENDER:
        return criteria.get("from") == rule_value
    if rule_type is RuleType.DOMAIN:
        return criteria.get("from") == f"@{rule_value}"
    return criteria.get("query") == rule_value


__all__ = ["GmailAdapter", "GMAIL_API", "MAX_RESULTS"]
