"""PostgREST-compatible record store client."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import httpx

from release_orchestrator.config import settings
from release_orchestrator.domain.errors import StoreError
from release_orchestrator.infrastructure.store.base import Query

logger = logging.getLogger(__name__)


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.isoformat()
    if value is None:
        return "null"
    return str(value)


class RestRecordStore:
    """Talks to the record store's REST interface (`/rest/v1/<table>`) over httpx."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self._base_url = (base_url or settings.RECORD_STORE_URL or "").rstrip("/")
        self._api_key = api_key or settings.store_api_key
        self.client = client or httpx.AsyncClient(timeout=timeout or settings.HTTP_TIMEOUT_SECONDS)

    def _get_headers(self, prefer: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "apikey": self._api_key or "",
            "Authorization": f"Bearer {self._api_key or ''}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _table_url(self, table: str) -> str:
        return f"{self._base_url}/rest/v1/{table}"

    @staticmethod
    def _filter_params(query: Query) -> List[Tuple[str, str]]:
        params: List[Tuple[str, str]] = []
        for column, op, value in query.filters:
            if op == "in":
                joined = ",".join(_format_value(item) for item in value)
                params.append((column, f"in.({joined})"))
            else:
                params.append((column, f"{op}.{_format_value(value)}"))
        return params

    async def _make_request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Make HTTP request; transport failures and non-2xx answers become StoreError."""
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"❌ Record store request failed: {method} {url}: {e}")
            raise StoreError(f"Record store unreachable: {e}") from e
        if response.status_code >= 300:
            logger.error(f"❌ Record store error {response.status_code} for {method} {url}: {response.text}")
            raise StoreError(
                f"Record store returned {response.status_code}",
                details={"status_code": response.status_code, "body": response.text},
            )
        return response

    async def select(self, query: Query) -> List[Dict[str, Any]]:
        params = [("select", "*")] + self._filter_params(query)
        if query.order_by:
            direction = "desc" if query.descending else "asc"
            params.append(("order", f"{query.order_by}.{direction}.nullslast"))
        if query.limit is not None:
            params.append(("limit", str(query.limit)))
        response = await self._make_request(
            "GET", self._table_url(query.table), headers=self._get_headers(), params=params
        )
        return response.json() or []

    async def count(self, query: Query) -> int:
        params = [("select", "*")] + self._filter_params(query)
        response = await self._make_request(
            "HEAD", self._table_url(query.table), headers=self._get_headers("count=exact"), params=params
        )
        content_range = response.headers.get("content-range", "*/0")
        total = content_range.rsplit("/", 1)[-1]
        return int(total) if total.isdigit() else 0

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._make_request(
            "POST", self._table_url(table), headers=self._get_headers("return=representation"), json=row
        )
        payload = response.json()
        if isinstance(payload, list):
            return payload[0] if payload else dict(row)
        return payload or dict(row)

    async def update(self, table: str, match: Dict[str, Any], values: Dict[str, Any]) -> List[Dict[str, Any]]:
        params = [(column, f"eq.{_format_value(value)}") for column, value in match.items()]
        response = await self._make_request(
            "PATCH",
            self._table_url(table),
            headers=self._get_headers("return=representation"),
            params=params,
            json=values,
        )
        return response.json() or []

    async def rpc(self, function: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = await self._make_request(
            "POST", f"{self._base_url}/rest/v1/rpc/{function}", headers=self._get_headers(), json=params or {}
        )
        if not response.content:
            return None
        return response.json()

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()
