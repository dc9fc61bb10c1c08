"""Shared request plumbing for the REST-backed provider adapters."""

from __future__ import annotations

from typing import Any

import httpx

from mailrules.errors import ProviderAPIError

# Provider error bodies can echo request details; keep the logged part short.
_MAX_DETAIL = 300


class RESTAdapter:
    """Base class holding the injected ``httpx.Client`` and auth header logic.

    Subclasses call :meth:`_request` which returns the decoded JSON body (or
    ``{}`` for empty 2xx responses) and raises :class:`ProviderAPIError` for
    every non-2xx answer and transport failure.  Public adapter methods catch
    that error and degrade; it never leaves the adapter.
    """

    name: str = ""
    base_url: str = ""

    def __init__(self, http: httpx.Client, *, base_url: str | None = None):
        self._http = http
        if base_url is not None:
            self.base_url = base_url.rstrip("/")

    def _request(
        self,
        method: str,
        path: str,
        token: str,
        *,
        operation: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self.base_url}/{path.lstrip('/')}"
        headers = {"Authorization": f"Bearer {token}"}

        try:
            response = self._http.request(method, url, params=params, json=json, headers=headers)
        except httpx.HTTPError as exc:
            raise ProviderAPIError(self.name, operation, None, str(exc)) from exc

        if not response.is_success:
            raise ProviderAPIError(self.name, operation, response.status_code, response.text[:_MAX_DETAIL])

        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError as exc:
            raise ProviderAPIError(self.name, operation, response.status_code, "invalid JSON body") from exc
        return body if isinstance(body, dict) else {}


__all__ = ["RESTAdapter"]
