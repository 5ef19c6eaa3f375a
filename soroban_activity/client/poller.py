import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import aiohttp
import structlog

from ..config.settings import settings
from ..services.normalization import normalize_stats, read_field

logger = structlog.get_logger()


class PollerState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    DISPLAYED = "displayed"
    REFRESHING = "refreshing"
    NOT_FOUND = "not_found"


@dataclass
class Notification:
    type: str  # 'success', 'error', 'info'
    message: str


class StatsPoller:
    """Keeps one contract's displayed statistics fresh.

    Foreground refreshes (``refresh_now``) are single-flight: concurrent
    callers share the in-flight request. Background ticks are silent, are
    skipped while any refresh is running, and lose to a foreground refresh
    started while they are in flight. ``stats`` is only replaced at the end
    of a refresh that was not superseded.
    """

    def __init__(self, api, contract_id: str, store=None,
                 timeout: float = settings.CLIENT_TIMEOUT):
        self.api = api
        self.contract_id = contract_id
        self.store = store
        self.timeout = timeout

        self.state = PollerState.IDLE
        self.stats: Optional[Dict[str, Any]] = None
        self.alert: Optional[Notification] = None
        self.refreshing = False
        self.auto_refresh_enabled = False

        self._generation = 0
        self._foreground: Optional[asyncio.Future] = None
        self._background: Optional[asyncio.Future] = None
        self._timer_task: Optional[asyncio.Task] = None

    # Displayed values, read through the canonical/legacy fallback chain

    @property
    def total_transactions(self) -> int:
        return read_field(self.stats, "totalTx")

    @property
    def total_events(self) -> int:
        return read_field(self.stats, "totalEvents")

    @property
    def average_fee(self) -> str:
        return read_field(self.stats, "avgFee")

    @property
    def last_activity(self) -> Optional[str]:
        return read_field(self.stats, "lastActivity")

    @property
    def transactions(self) -> List[Dict]:
        return read_field(self.stats, "transactions")

    @property
    def events(self) -> List[Dict]:
        return read_field(self.stats, "events")

    @property
    def in_flight(self) -> bool:
        return any(task is not None and not task.done()
                   for task in (self._foreground, self._background))

    def dismiss_alert(self):
        self.alert = None

    async def refresh_now(self) -> Optional[Dict[str, Any]]:
        """User-initiated refresh. A second concurrent call joins the first."""
        if self._foreground is not None and not self._foreground.done():
            return await asyncio.shield(self._foreground)

        self._generation += 1
        self._foreground = asyncio.ensure_future(self._foreground_refresh(self._generation))
        return await asyncio.shield(self._foreground)

    async def start_auto_refresh(self, interval_ms: int = settings.AUTO_REFRESH_INTERVAL_MS):
        """Start the background refresh timer"""
        await self.stop_auto_refresh()
        self.auto_refresh_enabled = True
        self._timer_task = asyncio.create_task(self._auto_refresh_loop(interval_ms / 1000))
        logger.info("auto_refresh_started", contract=self.contract_id, interval_ms=interval_ms)

    async def stop_auto_refresh(self):
        """Stop the background refresh timer"""
        self.auto_refresh_enabled = False
        if self._timer_task:
            self._timer_task.cancel()
            try:
                await self._timer_task
            except asyncio.CancelledError:
                pass
            self._timer_task = None
            logger.info("auto_refresh_stopped", contract=self.contract_id)

    async def close(self):
        await self.stop_auto_refresh()
        for task in (self._foreground, self._background):
            if task is not None and not task.done():
                task.cancel()

    async def _auto_refresh_loop(self, interval: float):
        while True:
            await asyncio.sleep(interval)
            try:
                await self._background_refresh()
            except Exception as e:
                logger.error("background_refresh_error",
                             contract=self.contract_id,
                             error=str(e))

    async def _foreground_refresh(self, generation: int) -> Optional[Dict[str, Any]]:
        first_load = self.stats is None
        if first_load:
            self.state = PollerState.LOADING
        else:
            self.state = PollerState.REFRESHING
            self.refreshing = True
        self.alert = None

        try:
            response = await self._fetch()
            if generation != self._generation:
                return self.stats

            if response.get("success") and response.get("stats"):
                self._display(response["stats"])
            else:
                message = response.get("error") or "Failed to load contract statistics"
                self.alert = Notification(type="error", message=message)
                logger.warning("foreground_refresh_failed",
                               contract=self.contract_id,
                               first_load=first_load,
                               error=message)
        finally:
            self.refreshing = False
            if self.state in (PollerState.LOADING, PollerState.REFRESHING):
                self.state = (PollerState.DISPLAYED if self.stats is not None
                              else PollerState.NOT_FOUND)

        return self.stats

    async def _background_refresh(self):
        if self.in_flight:
            logger.debug("background_refresh_skipped", contract=self.contract_id)
            return

        generation = self._generation
        self._background = asyncio.ensure_future(self._fetch())
        response = await self._background

        if generation != self._generation:
            logger.debug("background_refresh_superseded", contract=self.contract_id)
            return

        if response.get("success") and response.get("stats"):
            self._display(response["stats"])
        else:
            logger.debug("background_refresh_failed",
                         contract=self.contract_id,
                         error=response.get("error"))

    async def _fetch(self) -> Dict:
        try:
            return await asyncio.wait_for(
                self.api.get_contract_stats(self.contract_id), timeout=self.timeout)
        except asyncio.TimeoutError:
            return {"success": False,
                    "error": "Request timed out. The server may be taking too long to respond."}
        except aiohttp.ClientError as e:
            return {"success": False, "error": f"Error: {e}"}

    def _display(self, raw_stats: Dict[str, Any]):
        self.stats = normalize_stats(raw_stats)
        self.state = PollerState.DISPLAYED

        if self.store is not None:
            try:
                self.store.update_tx_count(self.contract_id, read_field(raw_stats, "totalTx"))
            except OSError as e:
                logger.error("contract_store_update_failed",
                             contract=self.contract_id,
                             error=str(e))
