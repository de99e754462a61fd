"""
HTTP client for the remote ledger.

The ledger is a pair of PostgREST tables (item_records, recycle_bin) as
served by Supabase at ``<url>/rest/v1/<table>``. Rows are keyed by ``id``
and every read, write and delete is filtered by ``user_id``.

All failures surface as LedgerError; callers decide whether to report
or swallow them.
"""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import urlparse

import httpx

from .errors import LedgerError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

REST_PREFIX = "/rest/v1"


class RestLedger:
    """PostgREST client implementing RemoteLedgerProtocol."""

    def __init__(
        self,
        url: str,
        api_key: str,
        *,
        access_token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._url = url.rstrip("/")

        # Refuse non-HTTPS for remote APIs (keys would be sent in cleartext)
        if not self._url.startswith("https://"):
            host = urlparse(self._url).hostname or ""
            if host not in ("localhost", "127.0.0.1", "::1"):
                raise ValueError(
                    f"Ledger URL must use HTTPS (got {self._url}). "
                    "Use HTTPS to protect API credentials, or use localhost for local development."
                )

        headers: dict[str, str] = {
            "apikey": api_key,
            "Authorization": f"Bearer {access_token or api_key}",
            "Content-Type": "application/json",
        }
        self._client = httpx.Client(
            base_url=self._url + REST_PREFIX,
            headers=headers,
            timeout=timeout,
        )

    def _request(
        self,
        method: str,
        table: str,
        *,
        params: Optional[dict[str, str]] = None,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> httpx.Response:
        headers = {"Prefer": prefer} if prefer else None
        try:
            resp = self._client.request(
                method, f"/{table}", params=params, json=json, headers=headers,
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise LedgerError(
                f"{method} {table} rejected: {e.response.status_code} {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise LedgerError(f"{method} {table} failed: {e}") from e
        return resp

    def upsert(
        self,
        table: str,
        rows: list[dict[str, Any]],
        conflict_key: str = "id",
    ) -> None:
        """POST with merge-duplicates: insert or replace by ``conflict_key``."""
        self._request(
            "POST", table,
            params={"on_conflict": conflict_key},
            json=rows,
            prefer="resolution=merge-duplicates,return=minimal",
        )
        logger.debug("Upserted %d rows into %s", len(rows), table)

    def insert(self, table: str, rows: list[dict[str, Any]]) -> None:
        """Plain POST. An existing id is a conflict (409) and raises."""
        self._request("POST", table, json=rows, prefer="return=minimal")
        logger.debug("Inserted %d rows into %s", len(rows), table)

    def delete(self, table: str, *, id: str, owner_id: str) -> None:
        self._request(
            "DELETE", table,
            params={"id": f"eq.{id}", "user_id": f"eq.{owner_id}"},
        )

    def select(
        self,
        table: str,
        *,
        owner_id: str,
        order_by: Optional[str] = None,
        descending: bool = True,
    ) -> list[dict[str, Any]]:
        params = {"select": "*", "user_id": f"eq.{owner_id}"}
        if order_by:
            params["order"] = f"{order_by}.{'desc' if descending else 'asc'}"
        resp = self._request("GET", table, params=params)
        try:
            data = resp.json()
        except ValueError as e:
            raise LedgerError(f"GET {table} returned invalid JSON: {e}") from e
        if not isinstance(data, list):
            raise LedgerError(f"GET {table} returned {type(data).__name__}, expected list")
        return data

    def count(self, table: str, *, owner_id: str) -> int:
        """Exact row count from the Content-Range header of a HEAD request."""
        resp = self._request(
            "HEAD", table,
            params={"select": "id", "user_id": f"eq.{owner_id}"},
            prefer="count=exact",
        )
        content_range = resp.headers.get("Content-Range", "")
        _, _, total = content_range.rpartition("/")
        try:
            return int(total)
        except ValueError as e:
            raise LedgerError(
                f"HEAD {table} returned no count (Content-Range: {content_range!r})"
            ) from e

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()
