import asyncio
import json
from typing import Any, Dict, List

import structlog

from ..config.settings import settings
from ..errors import MalformedRecordError, SourceUnavailableError
from ..models.contract_models import ContractEvent, parse_timestamp
from .metrics import DROPPED_EVENTS, SOURCE_FAILURES

logger = structlog.get_logger()


def _display(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True, default=str)
    return str(value)


def normalize_event(raw: Dict, index: int, contract_id: str) -> ContractEvent:
    """Convert one raw getEvents record into a ContractEvent.

    Raises MalformedRecordError when the record has neither a timestamp nor
    a ledgerClosedAt value that parses.
    """
    if not isinstance(raw, dict):
        raise MalformedRecordError(f"event {index} is not an object")

    topics = raw.get("topic") or []
    if not isinstance(topics, list):
        topics = [topics]
    topic = [_display(t) for t in topics]

    event_type = raw.get("type") or (topic[0] if topic else "contract")

    timestamp = next(
        (t for t in (raw.get("timestamp"), raw.get("ledgerClosedAt"))
         if parse_timestamp(t) is not None),
        None
    )
    if timestamp is None:
        raise MalformedRecordError(f"event {index} has no usable timestamp")

    ledger = int(raw.get("ledger") or 0)
    value = raw.get("value")
    if value is None:
        value = raw.get("data")

    return ContractEvent(
        id=str(raw.get("id") or f"{ledger}-{index}"),
        type=str(event_type),
        ledger=ledger,
        ledger_closed_at=raw.get("ledgerClosedAt") or timestamp,
        contract_id=raw.get("contractId") or contract_id,
        topic=topic,
        value=value,
        tx_hash=raw.get("txHash") or raw.get("transactionHash") or "",
        timestamp=timestamp,
    )


class EventFetcher:
    """Single bulk getEvents query, normalized. Only the first page of up to
    ``limit`` events is read."""

    def __init__(
        self,
        rpc,
        limit: int = settings.EVENTS_LIMIT,
        start_ledger: int = settings.EVENTS_START_LEDGER,
        timeout: float = settings.REQUEST_TIMEOUT,
    ):
        self.rpc = rpc
        self.limit = limit
        self.start_ledger = start_ledger
        self.timeout = timeout

    async def fetch(self, contract_id: str) -> List[ContractEvent]:
        try:
            raw_events = await asyncio.wait_for(
                self.rpc.get_events(contract_id, limit=self.limit,
                                    start_ledger=self.start_ledger),
                timeout=self.timeout
            )
        except (SourceUnavailableError, asyncio.TimeoutError) as e:
            SOURCE_FAILURES.labels(source="soroban_events").inc()
            logger.warning("events_fetch_failed",
                           contract=contract_id,
                           error=str(e) or type(e).__name__)
            return []

        events = []
        for index, raw in enumerate(raw_events):
            try:
                events.append(normalize_event(raw, index, contract_id))
            except (MalformedRecordError, TypeError, ValueError) as e:
                DROPPED_EVENTS.inc()
                logger.warning("malformed_event_dropped",
                               contract=contract_id,
                               index=index,
                               error=str(e))

        logger.info("events_fetched",
                    contract=contract_id,
                    received=len(raw_events),
                    kept=len(events))
        return events

    async def recent(self, contract_id: str, limit: int = 10) -> List[ContractEvent]:
        events = await self.fetch(contract_id)
        return events[:limit]

    async def count(self, contract_id: str) -> int:
        return len(await self.fetch(contract_id))
