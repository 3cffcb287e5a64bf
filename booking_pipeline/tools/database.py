"""
Row storage for bookings and chat transcripts.

SupabaseRowStore talks to the hosted Postgres through its PostgREST
endpoint; InMemoryRowStore is the offline stand-in used by the console
demo and tests. Both satisfy the RowStore protocol.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

import httpx

from booking_pipeline.config import settings

logger = logging.getLogger(__name__)

# Postgres insufficient_privilege and PostgREST's "no row returned" after a
# policy-filtered insert.
AUTHORIZATION_ERROR_CODES = frozenset({"42501", "PGRST116"})


class RowInsertError(Exception):
    """Raised when a row cannot be written or read."""

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.code = code

    @property
    def is_authorization_error(self) -> bool:
        """True when row-level security refused the request."""
        return self.code in AUTHORIZATION_ERROR_CODES


class RowStore(Protocol):
    async def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        ...

    async def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        ...


class SupabaseRowStore:
    """PostgREST client for a Supabase project."""

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        access_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = (url or settings.database.supabase_url).rstrip("/")
        self._api_key = api_key or settings.database.supabase_key
        self._timeout = timeout or settings.database.request_timeout_sec
        self._access_token = access_token or self._api_key
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._access_token}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=f"{self._base_url}/rest/v1",
            headers=self._headers(),
            timeout=self._timeout,
            transport=self._transport,
        )

    @staticmethod
    def _raise_for_error(response: httpx.Response, table: str) -> None:
        if response.is_success:
            return
        try:
            body = response.json()
        except ValueError:
            body = {}
        code = body.get("code") if isinstance(body, dict) else None
        message = body.get("message") if isinstance(body, dict) else None
        logger.error(
            "Supabase request on %s failed: status=%s code=%s", table, response.status_code, code
        )
        raise RowInsertError(message or f"HTTP {response.status_code}", code=code)

    @staticmethod
    def _decode(response: httpx.Response, table: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            logger.error("Supabase returned a non-JSON body for %s", table)
            raise RowInsertError(f"Invalid response body from {table}", code="PGRST116") from exc

    async def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        if not self._base_url:
            raise RowInsertError("Supabase URL is not configured")
        try:
            async with self._client() as client:
                response = await client.post(f"/{table}", json=record)
        except httpx.HTTPError as exc:
            logger.error("Supabase insert into %s failed: %s", table, exc)
            raise RowInsertError(str(exc)) from exc

        self._raise_for_error(response, table)
        rows = self._decode(response, table)
        if not isinstance(rows, list) or not rows:
            raise RowInsertError("Insert returned no row", code="PGRST116")
        return rows[0]

    async def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        if not self._base_url:
            raise RowInsertError("Supabase URL is not configured")
        params = {"select": "*"}
        for column, value in (filters or {}).items():
            params[column] = f"eq.{value}"
        if order_by:
            params["order"] = f"{order_by}.asc"
        try:
            async with self._client() as client:
                response = await client.get(f"/{table}", params=params)
        except httpx.HTTPError as exc:
            logger.error("Supabase select from %s failed: %s", table, exc)
            raise RowInsertError(str(exc)) from exc

        self._raise_for_error(response, table)
        rows = self._decode(response, table)
        if not isinstance(rows, list):
            raise RowInsertError(f"Unexpected select payload from {table}")
        return rows


class InMemoryRowStore:
    """Dict-backed tables with generated ids and timestamps."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {}

    async def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        row = {
            "id": str(uuid.uuid4()),
            "created_at": datetime.now(timezone.utc).isoformat(),
            **record,
        }
        self.tables.setdefault(table, []).append(row)
        logger.debug("Inserted row %s into %s", row["id"], table)
        return dict(row)

    async def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        rows = [
            dict(row) for row in self.tables.get(table, [])
            if all(row.get(k) == v for k, v in (filters or {}).items())
        ]
        if order_by:
            rows.sort(key=lambda row: row.get(order_by) or "")
        return rows

    def reset(self) -> None:
        self.tables.clear()
