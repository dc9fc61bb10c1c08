from datetime import datetime
from datetime import timedelta

import pytest

from mailrules.email.gmail import GMAIL_API
from mailrules.utils.time import utc_now_naive

VALID_BODY = {
    "rule_type": "sender",
    "rule_value": "boss@co.com",
    "category_name": "Urgent",
    "category_sort_order": 2,
}


def _future() -> datetime:
    return utc_now_naive() + timedelta(hours=1)


def test_cleanup_rule_gmail_end_to_end(client, auth_headers, store_token, fake_api):
    store_token("user-1", "google", "g-token", expires_at=_future())
    fake_api.add("GET", f"{GMAIL_API}/labels", json={"labels": [{"id": "Label_7", "name": "3: Urgent"}]})
    fake_api.add("GET", f"{GMAIL_API}/messages", json={"messages": [{"id": "a"}, {"id": "b"}, {"id": "c"}]})
    fake_api.add("POST", f"{GMAIL_API}/messages/batchModify", status=204)
    fake_api.add(
        "GET",
        f"{GMAIL_API}/settings/filters",
        json={"filter": [{"id": "F1", "criteria": {"from": "boss@co.com"}}]},
    )
    fake_api.add("DELETE", f"{GMAIL_API}/settings/filters/F1", status=204)

    response = client.post("/api/cleanup-rule", json=VALID_BODY, headers=auth_headers())

    assert response.status_code == 200
    assert response.json() == {
        "message": "Rule cleanup complete",
        "results": [{"provider": "google", "emailsProcessed": 3, "filterDeleted": True}],
        "totalEmailsProcessed": 3,
    }


def test_cleanup_rule_only_touches_callers_vault(client, auth_headers, store_token, fake_api):
    store_token("someone-else", "google", "their-token", expires_at=_future())

    response = client.post("/api/cleanup-rule", json=VALID_BODY, headers=auth_headers("user-1"))

    assert response.status_code == 400
    assert response.json() == {"error": "No connected email providers found"}
    assert fake_api.calls == []


def test_missing_authorization_header(client, fake_api):
    response = client.post("/api/cleanup-rule", json=VALID_BODY)

    assert response.status_code == 401
    assert response.json() == {"error": "Missing authorization header"}


def test_invalid_token(client):
    response = client.post("/api/cleanup-rule", json=VALID_BODY, headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


def test_missing_fields(client, auth_headers, store_token, fake_api):
    store_token("user-1", "google", "g-token")

    response = client.post("/api/cleanup-rule", json={"rule_type": "sender"}, headers=auth_headers())

    assert response.status_code == 400
    assert response.json() == {
        "error": "Missing required fields: rule_type, rule_value, category_name, category_sort_order"
    }
    assert fake_api.calls == []


def test_invalid_rule_value(client, auth_headers, fake_api):
    body = {**VALID_BODY, "rule_value": "not-an-email"}

    response = client.post("/api/cleanup-rule", json=body, headers=auth_headers())

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid email address"}


def test_malformed_sort_order_is_bad_request(client, auth_headers):
    body = {**VALID_BODY, "category_sort_order": "first"}

    response = client.post("/api/cleanup-rule", json=body, headers=auth_headers())

    assert response.status_code == 400
    assert "error" in response.json()


@pytest.mark.parametrize("sort_order", [True, "1", 1.5, -1])
def test_coercible_sort_order_is_rejected(client, auth_headers, store_token, fake_api, sort_order):
    store_token("user-1", "google", "g-token", expires_at=_future())
    fake_api.add("GET", f"{GMAIL_API}/labels", json={"labels": [{"id": "L2", "name": "2: Urgent"}]})
    body = {**VALID_BODY, "category_sort_order": sort_order}

    response = client.post("/api/cleanup-rule", json=body, headers=auth_headers())

    assert response.status_code == 400
    assert response.json()["error"].startswith("category_sort_order: ")
    assert fake_api.calls == []
