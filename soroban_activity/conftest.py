import asyncio
from typing import Dict, List, Optional

from .errors import SourceUnavailableError
from .models.contract_models import ContractEvent, ContractTransaction

CONTRACT_ID = "CA3D5KRYM6CB7OWQ6TWYRR3Z4T7GNZLKERYNZGGA5SOAOPIH6RTLYF4D"
OTHER_CONTRACT_ID = "C" + "B" * 55


def make_tx(index: int, ledger: Optional[int] = None, fee: str = "100",
            created_at: str = "2024-05-01T12:00:00Z") -> Dict:
    return {
        "id": str(index),
        "hash": f"hash{index}",
        "ledger": ledger if ledger is not None else 100000 - index,
        "created_at": created_at,
        "fee_charged": fee,
        "operation_count": 1,
        "successful": True,
        "paging_token": f"token{index}",
    }


def invoke_op(contract_id: str) -> Dict:
    return {
        "type": "invoke_host_function",
        "function": "HostFunctionTypeHostFunctionTypeInvokeContract",
        "parameters": [
            {"value": "AAAAEgAAAAE=", "type": "Address"},
            {"value": contract_id, "type": "Sym"},
        ],
    }


def make_page(start: int, size: int, matching=(), contract_id: str = CONTRACT_ID):
    """Records ``start .. start+size-1`` and their operations; indices in
    ``matching`` invoke ``contract_id``, the rest invoke another contract."""
    records = [make_tx(i) for i in range(start, start + size)]
    operations = {
        r["hash"]: [invoke_op(contract_id if i in matching else OTHER_CONTRACT_ID)]
        for i, r in zip(range(start, start + size), records)
    }
    return records, operations


class FakeHorizon:
    def __init__(self, pages: List[List[Dict]], operations: Dict[str, List[Dict]],
                 fail_page_at: Optional[int] = None, failing_ops=(), broken_ops=(),
                 delay: float = 0, op_delay: float = 0):
        self.pages = pages
        self.operations = operations
        self.fail_page_at = fail_page_at
        self.failing_ops = set(failing_ops)
        self.broken_ops = set(broken_ops)
        self.delay = delay
        self.op_delay = op_delay
        self.ops_in_flight = 0
        self.peak_ops_in_flight = 0
        self.page_calls: List[Optional[str]] = []
        self.operation_calls: List[str] = []

    async def get_transactions(self, limit=200, order="desc", cursor=None):
        index = len(self.page_calls)
        self.page_calls.append(cursor)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_page_at is not None and index >= self.fail_page_at:
            raise SourceUnavailableError("horizon_transactions", "connection refused")
        if index >= len(self.pages):
            return []
        return self.pages[index]

    async def get_operations(self, tx_hash):
        self.operation_calls.append(tx_hash)
        self.ops_in_flight += 1
        self.peak_ops_in_flight = max(self.peak_ops_in_flight, self.ops_in_flight)
        try:
            if self.op_delay:
                await asyncio.sleep(self.op_delay)
            if tx_hash in self.failing_ops:
                raise SourceUnavailableError("horizon_operations", "HTTP 503")
            if tx_hash in self.broken_ops:
                # an error outside the client failure type
                raise AttributeError("'list' object has no attribute 'get'")
            return self.operations.get(tx_hash, [])
        finally:
            self.ops_in_flight -= 1


def build_horizon(page_specs, **kwargs) -> FakeHorizon:
    """page_specs: list of (size, matching indices) tuples."""
    pages, operations, start = [], {}, 0
    for size, matching in page_specs:
        records, ops = make_page(start, size, matching)
        pages.append(records)
        operations.update(ops)
        start += size
    return FakeHorizon(pages, operations, **kwargs)


class FakeRpc:
    def __init__(self, events=None, error: Optional[Exception] = None):
        self.events = events or []
        self.error = error
        self.calls = []

    async def get_events(self, contract_id, limit=1000, start_ledger=0):
        self.calls.append({"contract_id": contract_id, "limit": limit,
                           "start_ledger": start_ledger})
        if self.error:
            raise self.error
        return self.events


class StaticScanner:
    def __init__(self, transactions=None, error: Optional[Exception] = None,
                 delay: float = 0):
        self.transactions = transactions or []
        self.error = error
        self.delay = delay
        self.calls = 0

    async def scan(self, contract_id):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return list(self.transactions)


class StaticFetcher:
    def __init__(self, events=None, delay: float = 0):
        self.events = events or []
        self.delay = delay
        self.calls = 0

    async def fetch(self, contract_id):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return list(self.events)


def transaction(index, fee="100", created_at="2024-05-01T12:00:00Z", ledger=None):
    return ContractTransaction(
        id=str(index), hash=f"hash{index}",
        ledger=ledger if ledger is not None else 1000 - index,
        created_at=created_at, fee_charged=fee, operation_count=1,
        successful=True, paging_token=f"token{index}")


def event(index, timestamp="2024-05-01T12:00:00Z", ledger=None):
    return ContractEvent(
        id=f"{ledger or index}-{index}", type="contract",
        ledger=ledger if ledger is not None else 500 + index,
        ledger_closed_at=timestamp, contract_id=CONTRACT_ID, topic=["transfer"],
        value=None, tx_hash="", timestamp=timestamp)
