import asyncio
from typing import Any, Dict, Optional, Tuple

import aiohttp
import structlog

from ..config.settings import settings

logger = structlog.get_logger()

# Client-error statuses that still fall through to the legacy route (5xx always does)
FALLBACK_STATUSES = frozenset({404})


class StatsApiClient:
    """HTTP client for the statistics routes.

    Tries ``/api/stats/{id}`` first and falls back to the legacy
    ``/api/contracts/{id}/stats`` route. Always returns a
    ``{success, stats?, error?}`` envelope instead of raising.
    """

    def __init__(self, base_url: str = settings.API_BASE_URL,
                 timeout: float = settings.CLIENT_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers={"Content-Type": "application/json"},
            )
        return self._session

    async def close(self):
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _get(self, path: str) -> Tuple[int, Any]:
        session = await self._get_session()
        async with session.get(f"{self.base_url}{path}") as response:
            return response.status, await response.json(content_type=None)

    async def get_contract_stats(self, contract_id: str) -> Dict:
        try:
            status, data = await self._get(f"/api/stats/{contract_id}")
            if status < 400 and isinstance(data, dict):
                return data
            if 400 <= status < 500 and status not in FALLBACK_STATUSES:
                return _error_envelope(status, data)
            logger.info("stats_endpoint_unavailable", contract=contract_id, status=status)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.warning("stats_endpoint_failed",
                           contract=contract_id,
                           error=str(e) or type(e).__name__)

        return await self._get_contract_stats_legacy(contract_id)

    async def _get_contract_stats_legacy(self, contract_id: str) -> Dict:
        try:
            status, data = await self._get(f"/api/contracts/{contract_id}/stats")
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            return {
                "success": False,
                "error": str(e) or "Failed to fetch contract statistics",
            }

        if status >= 400 or not isinstance(data, dict):
            return _error_envelope(status, data)

        return data


def _error_envelope(status: int, data: Any) -> Dict:
    error = None
    if isinstance(data, dict):
        error = data.get("error") or data.get("detail")
    return {"success": False, "error": error or f"HTTP {status}"}
