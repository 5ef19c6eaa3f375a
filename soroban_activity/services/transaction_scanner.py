import asyncio
import json
from typing import Dict, List, Optional

import structlog

from ..config.settings import settings
from ..errors import SourceUnavailableError
from ..models.contract_models import ContractTransaction, SOROBAN_OPERATION_TYPES
from .metrics import SOURCE_FAILURES

logger = structlog.get_logger()


def involves_contract(operations: List[Dict], contract_id: str) -> bool:
    """Heuristic involvement test over a transaction's operations.

    Soroban operations match when their serialized payload contains the
    contract ID anywhere; any operation matches when an explicit
    contract/source field equals it.
    """
    for op in operations:
        if not isinstance(op, dict):
            continue

        if op.get("type") in SOROBAN_OPERATION_TYPES:
            if contract_id in json.dumps(op, default=str):
                return True

        if op.get("contract_id") == contract_id or op.get("source_account") == contract_id:
            return True

        if op.get("function") and op.get("contract") == contract_id:
            return True

    return False


class TransactionScanner:
    """Depth-bounded backward scan of the Horizon transaction feed.

    Walks pages newest-first and keeps transactions whose operations involve
    the contract. The scan ends at ``max_matches`` hits, after ``max_pages``
    pages, or on a short page. Failures never propagate: a failed operation
    lookup counts as no match, a failed page ends the scan with whatever
    was collected.
    """

    def __init__(
        self,
        horizon,
        page_size: int = settings.SCAN_PAGE_SIZE,
        max_pages: int = settings.SCAN_MAX_PAGES,
        max_matches: int = settings.SCAN_MAX_MATCHES,
        operation_concurrency: int = settings.SCAN_OPERATION_CONCURRENCY,
        timeout: float = settings.REQUEST_TIMEOUT,
    ):
        self.horizon = horizon
        self.page_size = page_size
        self.max_pages = max_pages
        self.max_matches = max_matches
        self.operation_concurrency = max(1, operation_concurrency)
        self.timeout = timeout

    async def scan(self, contract_id: str) -> List[ContractTransaction]:
        matches: List[ContractTransaction] = []
        seen_hashes = set()
        cursor: Optional[str] = None
        pages = 0

        logger.info("transaction_scan_started", contract=contract_id)

        try:
            while len(matches) < self.max_matches and pages < self.max_pages:
                records = await self._fetch_page(contract_id, cursor, pages)
                if records is None:
                    break
                pages += 1

                if not records:
                    break

                await self._collect_matches(records, contract_id, matches, seen_hashes)

                cursor = records[-1].get("paging_token")
                if len(records) < self.page_size or not cursor:
                    break

        except Exception as e:
            logger.error("transaction_scan_failed",
                         contract=contract_id,
                         error=str(e))

        logger.info("transaction_scan_finished",
                    contract=contract_id,
                    pages=pages,
                    matches=len(matches))
        return matches[:self.max_matches]

    async def recent(self, contract_id: str, limit: int = 10) -> List[ContractTransaction]:
        transactions = await self.scan(contract_id)
        return transactions[:limit]

    async def _fetch_page(self, contract_id: str, cursor: Optional[str],
                          page: int) -> Optional[List[Dict]]:
        try:
            return await asyncio.wait_for(
                self.horizon.get_transactions(
                    limit=self.page_size, order="desc", cursor=cursor),
                timeout=self.timeout
            )
        except (SourceUnavailableError, asyncio.TimeoutError) as e:
            SOURCE_FAILURES.labels(source="horizon_transactions").inc()
            logger.warning("transaction_page_failed",
                           contract=contract_id,
                           page=page,
                           error=str(e) or type(e).__name__)
            return None

    async def _collect_matches(self, records: List[Dict], contract_id: str,
                               matches: List[ContractTransaction], seen_hashes: set):
        # Operation lookups run in bounded batches; results are consumed in
        # feed order so matches stay ledger-descending.
        step = self.operation_concurrency
        for start in range(0, len(records), step):
            batch = records[start:start + step]
            flags = await asyncio.gather(
                *[self._involves(record, contract_id) for record in batch]
            )

            for record, involved in zip(batch, flags):
                if not involved:
                    continue
                try:
                    tx = ContractTransaction.from_horizon(record)
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning("malformed_transaction_skipped",
                                   contract=contract_id,
                                   error=str(e))
                    continue
                if tx.hash in seen_hashes:
                    continue
                seen_hashes.add(tx.hash)
                matches.append(tx)
                if len(matches) >= self.max_matches:
                    return

    async def _involves(self, record: Dict, contract_id: str) -> bool:
        tx_hash = record.get("hash")
        if not tx_hash:
            return False
        try:
            operations = await asyncio.wait_for(
                self.horizon.get_operations(tx_hash), timeout=self.timeout)
        except (SourceUnavailableError, asyncio.TimeoutError) as e:
            SOURCE_FAILURES.labels(source="horizon_operations").inc()
            logger.debug("operations_fetch_failed",
                         tx_hash=tx_hash,
                         error=str(e) or type(e).__name__)
            return False
        except Exception as e:
            SOURCE_FAILURES.labels(source="horizon_operations").inc()
            logger.warning("operations_check_failed",
                           tx_hash=tx_hash,
                           error=str(e) or type(e).__name__)
            return False

        try:
            return involves_contract(operations, contract_id)
        except (TypeError, ValueError) as e:
            logger.warning("operations_check_failed",
                           tx_hash=tx_hash,
                           error=str(e))
            return False
