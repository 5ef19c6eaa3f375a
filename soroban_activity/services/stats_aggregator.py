import asyncio
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Dict, List, Optional, Tuple

import structlog

from ..config.settings import settings
from ..errors import validate_contract_id
from ..models.contract_models import (
    ContractEvent,
    ContractStats,
    ContractTransaction,
    parse_timestamp,
    timestamp_sort_key,
)
from .metrics import STATS_DURATION, STATS_REQUESTS
from .normalization import to_legacy

logger = structlog.get_logger()

FEE_QUANTUM = Decimal("0.0000001")


def average_fee(transactions: List[ContractTransaction]) -> str:
    """Mean of ``fee_charged`` with exactly 7 decimals, or "0" for no transactions."""
    if not transactions:
        return "0"

    total = Decimal(0)
    for tx in transactions:
        try:
            fee = Decimal(tx.fee_charged or "0")
        except InvalidOperation:
            logger.warning("invalid_fee_ignored", tx_hash=tx.hash, fee=tx.fee_charged)
            continue
        if fee.is_finite():
            total += fee

    avg = total / len(transactions)
    return format(avg.quantize(FEE_QUANTUM, rounding=ROUND_HALF_UP), "f")


def last_activity(transactions: List[ContractTransaction],
                  events: List[ContractEvent]) -> Optional[str]:
    """Latest instant across both sources, None when both are empty.

    Each list is re-sorted by time before taking its head; the sources do
    not share a sort order. On an exact tie the transaction timestamp wins.
    """
    # Values that do not parse are not candidates
    tx_times = [tx.created_at for tx in transactions if parse_timestamp(tx.created_at)]
    event_times = [e.timestamp for e in events if parse_timestamp(e.timestamp)]

    candidates = []
    if tx_times:
        candidates.append(sorted(tx_times, key=timestamp_sort_key, reverse=True)[0])
    if event_times:
        candidates.append(sorted(event_times, key=timestamp_sort_key, reverse=True)[0])

    if not candidates:
        return None
    return max(candidates, key=timestamp_sort_key)


class StatsAggregator:
    def __init__(self, scanner, fetcher, registry=None,
                 recent_limit: int = settings.RECENT_ITEMS_LIMIT,
                 default_network: str = settings.NETWORK):
        self.scanner = scanner
        self.fetcher = fetcher
        self.registry = registry
        self.recent_limit = recent_limit
        self.default_network = default_network

    async def get_contract_statistics(
        self,
        contract_id: str,
        contract_name: Optional[str] = None,
        network: Optional[str] = None,
    ) -> ContractStats:
        """Compute a fresh statistics record for ``contract_id``.

        Source outages degrade to empty partial data and are visible only
        in logs and metrics. Only an invalid contract ID raises.
        """
        contract_id = validate_contract_id(contract_id)

        with STATS_DURATION.time():
            STATS_REQUESTS.inc()
            transactions, events = await self._collect(contract_id)

            total_tx = len(transactions)
            total_events = len(events)
            name, network = await self._resolve_metadata(contract_id, contract_name, network)

            stats = ContractStats(
                contract_id=contract_id,
                contract_name=name,
                network=network,
                total_tx=total_tx,
                total_events=total_events,
                avg_fee=average_fee(transactions),
                last_activity=last_activity(transactions, events),
                transactions=_ledger_descending(transactions)[:self.recent_limit],
                events=_ledger_descending(events)[:self.recent_limit],
            )

        logger.info("stats_computed",
                    contract=contract_id,
                    total_tx=stats.total_tx,
                    total_events=stats.total_events,
                    avg_fee=stats.avg_fee,
                    last_activity=stats.last_activity)
        return stats

    async def get_contract_statistics_legacy(
        self,
        contract_id: str,
        contract_name: Optional[str] = None,
        network: Optional[str] = None,
    ) -> Dict:
        stats = await self.get_contract_statistics(contract_id, contract_name, network)
        return to_legacy(stats.to_dict())

    async def get_contract_transactions(self, contract_id: str) -> List[ContractTransaction]:
        return await self.scanner.scan(validate_contract_id(contract_id))

    async def get_contract_events(self, contract_id: str) -> List[ContractEvent]:
        return await self.fetcher.fetch(validate_contract_id(contract_id))

    async def _collect(self, contract_id: str) -> Tuple[List, List]:
        results = await asyncio.gather(
            self.scanner.scan(contract_id),
            self.fetcher.fetch(contract_id),
            return_exceptions=True
        )

        collected = []
        for source, result in zip(("transactions", "events"), results):
            if isinstance(result, BaseException):
                logger.error("source_collection_failed",
                             contract=contract_id,
                             source=source,
                             error=str(result))
                result = []
            collected.append(list(result))
        return collected[0], collected[1]

    async def _resolve_metadata(self, contract_id: str, contract_name: Optional[str],
                          network: Optional[str]) -> Tuple[str, str]:
        # Registry metadata wins; caller-supplied values cover unregistered contracts
        if self.registry is not None:
            try:
                record = await asyncio.to_thread(self.registry.get_contract_by_id, contract_id)
                return (record.contractName or contract_name or "Unknown",
                        record.network or network or self.default_network)
            except KeyError:
                logger.debug("contract_not_registered", contract=contract_id)
        return contract_name or "Unknown", network or self.default_network


def _ledger_descending(items: List) -> List:
    return sorted(items, key=lambda item: item.ledger, reverse=True)
