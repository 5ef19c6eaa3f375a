from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class OperationType(str, Enum):
    INVOKE_HOST_FUNCTION = "invoke_host_function"
    EXTEND_TTL = "extend_ttl"
    EXTEND_FOOTPRINT_TTL = "extend_footprint_ttl"
    RESTORE_FOOTPRINT = "restore_footprint"


SOROBAN_OPERATION_TYPES = frozenset(op.value for op in OperationType)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp (Horizon and Soroban RPC both use the
    trailing ``Z`` form). Returns None when the value is missing or unparseable."""
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def timestamp_sort_key(value: Optional[str]) -> datetime:
    return parse_timestamp(value) or _EPOCH


@dataclass(frozen=True)
class ContractTransaction:
    id: str
    hash: str
    ledger: int
    created_at: str
    fee_charged: str
    operation_count: int
    successful: bool
    paging_token: str

    @classmethod
    def from_horizon(cls, record: Dict) -> "ContractTransaction":
        if not record.get("hash"):
            raise ValueError("transaction record has no hash")
        created_at = record.get("created_at")
        if parse_timestamp(created_at) is None:
            raise ValueError(f"invalid created_at: {created_at!r}")

        return cls(
            id=str(record.get("id", "")),
            hash=record["hash"],
            ledger=int(record.get("ledger") or 0),
            created_at=created_at,
            fee_charged=str(record.get("fee_charged") or "0"),
            operation_count=int(record.get("operation_count") or 0),
            successful=bool(record.get("successful", False)),
            paging_token=str(record.get("paging_token", "")),
        )

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "hash": self.hash,
            "ledger": self.ledger,
            "created_at": self.created_at,
            "fee_charged": self.fee_charged,
            "operation_count": self.operation_count,
            "successful": self.successful,
            "paging_token": self.paging_token,
        }


@dataclass(frozen=True)
class ContractEvent:
    id: str
    type: str
    ledger: int
    ledger_closed_at: str
    contract_id: str
    topic: List[str]
    value: Any
    tx_hash: str
    timestamp: str

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "type": self.type,
            "ledger": self.ledger,
            "ledgerClosedAt": self.ledger_closed_at,
            "contractId": self.contract_id,
            "topic": list(self.topic),
            "value": self.value,
            "txHash": self.tx_hash,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ContractStats:
    contract_id: str
    total_tx: int
    total_events: int
    avg_fee: str
    last_activity: Optional[str]
    transactions: List[ContractTransaction] = field(default_factory=list)
    events: List[ContractEvent] = field(default_factory=list)
    contract_name: str = "Unknown"
    network: str = "testnet"

    def to_dict(self) -> Dict:
        """Canonical field names, as served by /api/stats."""
        return {
            "contractId": self.contract_id,
            "contractName": self.contract_name,
            "network": self.network,
            "totalTx": self.total_tx,
            "totalEvents": self.total_events,
            "avgFee": self.avg_fee,
            "lastActivity": self.last_activity,
            "transactions": [tx.to_dict() for tx in self.transactions],
            "events": [event.to_dict() for event in self.events],
        }


@dataclass
class ContractRecord:
    id: int
    contractId: str
    contractName: str
    network: str
    deployedAt: str
    wasmPath: str = ""
    deployerAddress: str = ""
    transactionHash: str = ""


@dataclass
class StoredContract:
    contractId: str
    deployedAt: str
    contractName: Optional[str] = None
    network: Optional[str] = None
    lastSeenTxCount: Optional[int] = None
    lastUpdated: Optional[str] = None
