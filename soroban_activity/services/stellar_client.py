import asyncio
import ssl
from typing import Dict, List, Optional

import aiohttp
import certifi
import structlog

from ..config.settings import settings
from ..errors import SourceUnavailableError

logger = structlog.get_logger()


class _JsonHttpClient:
    """Shared aiohttp session handling for the Horizon and Soroban RPC clients.

    Every request is bounded by ``timeout`` seconds. Transport errors, timeouts,
    HTTP error statuses and undecodable bodies all surface as
    ``SourceUnavailableError`` so callers have a single failure type to absorb.
    """

    def __init__(self, base_url: str, timeout: float = settings.REQUEST_TIMEOUT):
        if not base_url:
            raise ValueError("Base URL is required")
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        # Create SSL context with certifi
        self._ssl_context = ssl.create_default_context(cafile=certifi.where())
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers={"Accept": "application/json"},
                connector=aiohttp.TCPConnector(ssl=self._ssl_context),
            )
        return self._session

    async def close(self):
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _request(self, source: str, method: str, path: str, **kwargs) -> Dict:
        session = await self._get_session()
        url = f"{self.base_url}/{path.lstrip('/')}" if path else self.base_url
        try:
            async with session.request(method, url, **kwargs) as response:
                if response.status >= 400:
                    raise SourceUnavailableError(
                        source, f"HTTP {response.status} {response.reason}")
                return await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise SourceUnavailableError(source, str(e) or type(e).__name__) from e


class HorizonClient(_JsonHttpClient):
    """Ledger transaction feed and operation-detail queries."""

    def __init__(self, base_url: str = settings.HORIZON_URL,
                 timeout: float = settings.REQUEST_TIMEOUT):
        super().__init__(base_url, timeout)

    async def get_transactions(self, limit: int = 200, order: str = "desc",
                               cursor: Optional[str] = None) -> List[Dict]:
        params = {"limit": str(limit), "order": order}
        if cursor:
            params["cursor"] = cursor
        data = await self._request("horizon_transactions", "GET", "/transactions",
                                   params=params)
        return _embedded_records(data)

    async def get_operations(self, tx_hash: str) -> List[Dict]:
        data = await self._request("horizon_operations", "GET",
                                   f"/transactions/{tx_hash}/operations",
                                   params={"limit": "200"})
        return _embedded_records(data)


class SorobanRpcClient(_JsonHttpClient):
    """Soroban JSON-RPC ``getEvents`` endpoint."""

    def __init__(self, base_url: str = settings.SOROBAN_RPC_URL,
                 timeout: float = settings.REQUEST_TIMEOUT):
        super().__init__(base_url, timeout)
        self._request_id = 0

    async def get_events(self, contract_id: str, limit: int = 1000,
                         start_ledger: int = 0) -> List[Dict]:
        self._request_id += 1
        body = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": "getEvents",
            "params": {
                "startLedger": start_ledger,
                "filters": [{"contractIds": [contract_id]}],
                "pagination": {"limit": limit},
            },
        }
        data = await self._request("soroban_events", "POST", "", json=body)
        if not isinstance(data, dict):
            raise SourceUnavailableError("soroban_events", "malformed response")
        if data.get("error"):
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else None
            raise SourceUnavailableError("soroban_events", message or str(error))
        result = data.get("result") or {}
        events = result.get("events") if isinstance(result, dict) else None
        if events is None:
            return []
        if not isinstance(events, list):
            raise SourceUnavailableError("soroban_events", "malformed events list")
        return events


def _embedded_records(data: Dict) -> List[Dict]:
    if not isinstance(data, dict):
        raise SourceUnavailableError("horizon", "malformed response")
    embedded = data.get("_embedded") or {}
    if not isinstance(embedded, dict):
        raise SourceUnavailableError("horizon", "malformed _embedded section")
    records = embedded.get("records") or []
    if not isinstance(records, list):
        raise SourceUnavailableError("horizon", "malformed records list")
    return records
