import json
import os
from dataclasses import asdict, fields
from datetime import datetime, timezone
from typing import List, Optional

import structlog

from ..config.settings import settings
from ..models.contract_models import StoredContract

logger = structlog.get_logger()

_FIELDS = {f.name for f in fields(StoredContract)}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ContractStore:
    """Local list of the user's deployed contracts, kept in a JSON file."""

    def __init__(self, path: str = settings.CLIENT_STORE_PATH):
        self.path = path

    def load_contracts(self) -> List[StoredContract]:
        if not os.path.exists(self.path):
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            logger.error("contract_store_read_failed", path=self.path, error=str(e))
            return []

        # Drop incomplete entries
        return [
            StoredContract(**{k: v for k, v in item.items() if k in _FIELDS})
            for item in raw
            if isinstance(item, dict) and item.get("contractId") and item.get("deployedAt")
        ]

    def _write(self, contracts: List[StoredContract]):
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump([asdict(c) for c in contracts], f, indent=2)

    def save_contract(self, contract_id: str, contract_name: Optional[str] = None,
                      network: Optional[str] = None,
                      last_seen_tx_count: Optional[int] = None) -> StoredContract:
        contracts = self.load_contracts()
        existing = next((c for c in contracts if c.contractId == contract_id), None)

        contract = StoredContract(
            contractId=contract_id,
            contractName=contract_name,
            network=network,
            deployedAt=existing.deployedAt if existing else _now(),
            lastSeenTxCount=(last_seen_tx_count if last_seen_tx_count is not None
                             else existing.lastSeenTxCount if existing else None),
            lastUpdated=_now(),
        )

        if existing:
            contracts[contracts.index(existing)] = contract
        else:
            contracts.append(contract)
        self._write(contracts)
        return contract

    def update_tx_count(self, contract_id: str, tx_count: int) -> bool:
        """Record the last observed transaction count. Unknown contracts are
        left alone; returns whether an entry was updated."""
        contracts = self.load_contracts()
        for contract in contracts:
            if contract.contractId == contract_id:
                contract.lastSeenTxCount = tx_count
                contract.lastUpdated = _now()
                self._write(contracts)
                return True
        return False

    def get_contract(self, contract_id: str) -> Optional[StoredContract]:
        return next((c for c in self.load_contracts() if c.contractId == contract_id), None)

    def remove_contract(self, contract_id: str):
        contracts = [c for c in self.load_contracts() if c.contractId != contract_id]
        self._write(contracts)

    def clear(self):
        if os.path.exists(self.path):
            os.remove(self.path)
