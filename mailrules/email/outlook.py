"""Outlook adapter backed by Microsoft Graph (``graph.microsoft.com``).

Graph has no server-side query matching the rule predicate across sender,
subject and preview, so messages are fetched from the category folder and
filtered here, then moved back one request at a time.
"""

from __future__ import annotations

import httpx

from mailrules.email.http import RESTAdapter
from mailrules.email.rules import graph_message_matches
from mailrules.email.rules import outlook_rule_display_name
from mailrules.errors import ProviderAPIError
from mailrules.models.enums import OAuthProvider
from mailrules.models.enums import RuleType
from mailrules.utils.log import log

logger = log.bind(component="outlook-adapter")

GRAPH_API = "https://graph.microsoft.com/v1.0/me"
MAX_FOLDER_MESSAGES = 500
# Graph accepts well-known folder names wherever a folder id is expected.
INBOX_FOLDER = "inbox"


class OutlookAdapter(RESTAdapter):
    name = OAuthProvider.MICROSOFT.value
    base_url = GRAPH_API

    def __init__(self, http: httpx.Client, *, rule_name_prefix: str = "Wibookly", base_url: str | None = None):
        super().__init__(http, base_url=base_url)
        self.rule_name_prefix = rule_name_prefix

    def resolve_cleanup_target(self, token: str, derived_name: str) -> str | None:
        """Return the id of the mail folder whose displayName is *derived_name*."""

        try:
            body = self._request("GET", "mailFolders", token, operation="mailFolders.list")
        except ProviderAPIError as exc:
            logger.warning("folder-lookup-failed", status=exc.status_code, detail=exc.detail)
            return None

        for folder in body.get("value") or []:
            if folder.get("displayName") == derived_name:
                return folder.get("id")

        logger.info("folder-not-found", folder=derived_name)
        return None

    def unlabel_matching(self, token: str, rule_type: RuleType | str, rule_value: str, target_id: str) -> int:
        """Move matching messages from *target_id* back to the inbox; return the count moved."""

        params = {
            "$top": MAX_FOLDER_MESSAGES,
            "$select": "id,from,subject,bodyPreview",
        }
        try:
            body = self._request(
                "GET",
                f"mailFolders/{target_id}/messages",
                token,
                operation="messages.list",
                params=params,
            )
        except ProviderAPIError as exc:
            logger.warning("folder-messages-failed", status=exc.status_code, detail=exc.detail)
            return 0

        matching = [m for m in body.get("value") or [] if graph_message_matches(rule_type, rule_value, m)]
        if not matching:
            logger.info("no-messages-to-move", folder_id=target_id)
            return 0

        moved = 0
        for message in matching:
            try:
                self._request(
                    "POST",
                    f"messages/{message['id']}/move",
                    token,
                    operation="messages.move",
                    json={"destinationId": INBOX_FOLDER},
                )
            except ProviderAPIError as exc:
                logger.warning("message-move-failed", message_id=message.get("id"), status=exc.status_code)
                continue
            moved += 1

        logger.info("messages-moved", folder_id=target_id, matched=len(matching), moved=moved)
        return moved

    def delete_filter_or_rule(self, token: str, rule_type: RuleType | str, rule_value: str, derived_name: str) -> bool:
        """Delete the inbox rule the app created for this category rule."""

        rule_name = outlook_rule_display_name(self.rule_name_prefix, derived_name, rule_type, rule_value)

        try:
            body = self._request("GET", "mailFolders/inbox/messageRules", token, operation="messageRules.list")
        except ProviderAPIError as exc:
            logger.warning("rule-list-failed", status=exc.status_code, detail=exc.detail)
            return False

        target = next((r for r in body.get("value") or [] if r.get("displayName") == rule_name), None)
        if target is None:
            logger.info("rule-not-found", rule_name=rule_name)
            return True

        try:
            self._request(
                "DELETE",
                f"mailFolders/inbox/messageRules/{target['id']}",
                token,
                operation="messageRules.delete",
            )
        except ProviderAPIError as exc:
            logger.warning("rule-delete-failed", rule_id=target.get("id"), status=exc.status_code)
            return False

        logger.info("rule-deleted", rule_id=target.get("id"))
        return True


__all__ = ["OutlookAdapter", "GRAPH_API", "INBOX_FOLDER", "MAX_FOLDER_MESSAGES"]
