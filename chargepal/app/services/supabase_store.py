"""
Supabase (PostgREST) implementation of the remote store.

Talks to ``{project_url}/rest/v1/{table}`` with ``httpx``. Every request goes
through a circuit breaker; transport errors, HTTP errors and malformed rows all
surface as ``RemoteStoreError``.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Type

import httpx
from pydantic import ValidationError

from chargepal.app.core.config import settings
from chargepal.app.core.reliability import CircuitBreaker, CircuitOpenError
from chargepal.app.schemas.remote import (
    RemoteRow, RemoteTable, TABLE_CONFLICT_KEYS, TABLE_ROW_TYPES, row_columns,
)
from chargepal.app.schemas.sync import SyncConfig
from chargepal.app.services.remote_store import R, RemoteStore, RemoteStoreError

logger = logging.getLogger("chargepal.remote")

PAGE_SIZE = 1000


class SupabaseStore(RemoteStore):
    """
    Remote store backed by a Supabase project.

    Args:
        project_url: Project base URL, e.g. ``https://xyz.supabase.co``
        api_key: Project API key (sent as ``apikey`` and bearer token)
        timeout: Per-request timeout in seconds
        client: Optional pre-built client (tests pass one with a mock transport)
        breaker: Optional circuit breaker shared between stores
    """

    def __init__(
        self,
        project_url: str,
        api_key: str,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self.base_url = f"{project_url.rstrip('/')}/rest/v1"
        self.headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
        }
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self.breaker = breaker or CircuitBreaker("supabase")

    @classmethod
    def from_config(cls, config: SyncConfig, breaker: Optional[CircuitBreaker] = None) -> "SupabaseStore":
        return cls(
            config.project_url,
            config.api_key,
            timeout=settings.remote_timeout_seconds,
            breaker=breaker,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "SupabaseStore":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # RemoteStore
    # ------------------------------------------------------------------

    async def upsert(self, table: RemoteTable, rows: Sequence[RemoteRow], on_conflict: str) -> None:
        if not rows:
            return
        await self._request(
            "POST",
            table,
            params={"on_conflict": on_conflict},
            json=[row.to_payload() for row in rows],
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )
        logger.debug("Upserted %d row(s) into %s", len(rows), table.value)

    async def delete(self, table: RemoteTable, ids: Sequence[str]) -> None:
        if not ids:
            return
        quoted = ",".join(f'"{row_id}"' for row_id in ids)
        await self._request("DELETE", table, params={"id": f"in.({quoted})"})
        logger.debug("Deleted %d row(s) from %s", len(ids), table.value)

    async def select_all(self, table: RemoteTable) -> List[RemoteRow]:
        return await self._select(table, TABLE_ROW_TYPES[table], "*")

    async def select_columns(self, table: RemoteTable, row_type: Type[R]) -> List[R]:
        return await self._select(table, row_type, ",".join(row_columns(row_type)))

    async def ping(self) -> None:
        """Cheapest possible round trip; raises ``RemoteStoreError`` on failure."""
        await self._request(
            "GET",
            RemoteTable.VEHICLES,
            params={"select": TABLE_CONFLICT_KEYS[RemoteTable.VEHICLES], "limit": "1"},
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _select(self, table: RemoteTable, row_type: Type[R], columns: str) -> List[R]:
        """Read a whole table, page by page (PostgREST caps rows per response)."""
        rows: List[R] = []
        offset = 0
        while True:
            response = await self._request(
                "GET",
                table,
                params={
                    "select": columns,
                    "order": f"{TABLE_CONFLICT_KEYS[table]}.asc",
                    "limit": str(PAGE_SIZE),
                    "offset": str(offset),
                },
            )
            page = self._parse_rows(table, row_type, response)
            rows.extend(page)
            if len(page) < PAGE_SIZE:
                return rows
            offset += PAGE_SIZE

    @staticmethod
    def _parse_rows(table: RemoteTable, row_type: Type[R], response: httpx.Response) -> List[R]:
        try:
            payload = response.json()
        except ValueError as exc:
            raise RemoteStoreError(f"{table.value}: response is not JSON") from exc
        if not isinstance(payload, list):
            raise RemoteStoreError(f"{table.value}: expected a list of rows")
        try:
            return [row_type.model_validate(item) for item in payload]
        except ValidationError as exc:
            raise RemoteStoreError(f"{table.value}: malformed row ({exc.error_count()} error(s))") from exc

    async def _request(
        self,
        method: str,
        table: RemoteTable,
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        url = f"{self.base_url}/{table.value}"

        async def send() -> httpx.Response:
            response = await self.client.request(
                method, url, params=params, json=json, headers={**self.headers, **(headers or {})}
            )
            if response.is_error:
                raise RemoteStoreError(f"{response.status_code} {self._error_message(response)}")
            return response

        try:
            return await self.breaker.call(send)
        except CircuitOpenError as exc:
            raise RemoteStoreError(str(exc)) from exc
        except httpx.HTTPError as exc:
            raise RemoteStoreError(f"{method} {table.value}: {exc}") from exc

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason_phrase
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return response.reason_phrase
