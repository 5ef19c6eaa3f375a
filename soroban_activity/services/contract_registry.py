import json
import os
from dataclasses import asdict, fields
from datetime import datetime, timezone
from typing import Dict, List

import structlog
from cachetools import TTLCache

from ..models.contract_models import ContractRecord, timestamp_sort_key

logger = structlog.get_logger()

_RECORD_FIELDS = {f.name for f in fields(ContractRecord)}


class ContractRegistry:
    """JSON-file registry of deployed contracts.

    Holds deployment metadata only (name, network); statistics are never
    stored here.
    """

    def __init__(self, path: str, cache_ttl: int = 60):
        self.path = path
        self._cache = TTLCache(maxsize=100, ttl=cache_ttl)

    def _read(self) -> Dict:
        if not os.path.exists(self.path):
            return {"contracts": [], "lastId": 0}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.error("registry_read_failed", path=self.path, error=str(e))
            return {"contracts": [], "lastId": 0}

    def _write(self, db: Dict):
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(db, f, indent=2)
        self._cache.clear()

    def insert_contract(self, contract_id: str, contract_name: str, network: str,
                        **extra) -> ContractRecord:
        """Insert a deployment, or update the existing entry for the same contract."""
        db = self._read()
        now = datetime.now(timezone.utc).isoformat()
        data = {
            "contractId": contract_id,
            "contractName": contract_name,
            "network": network,
            **{k: v for k, v in extra.items() if k in _RECORD_FIELDS and k != "id"},
        }

        for index, existing in enumerate(db["contracts"]):
            if existing.get("contractId") == contract_id:
                updated = {**existing, **data}
                updated.setdefault("deployedAt", now)
                db["contracts"][index] = updated
                self._write(db)
                return _to_record(updated)

        db["lastId"] = db.get("lastId", 0) + 1
        record = {"id": db["lastId"], "deployedAt": now, **data}
        db["contracts"].append(record)
        self._write(db)
        logger.info("contract_registered", contract=contract_id, id=record["id"])
        return _to_record(record)

    def get_all_contracts(self) -> List[ContractRecord]:
        contracts = [_to_record(c) for c in self._read()["contracts"]]
        return sorted(contracts, key=lambda c: timestamp_sort_key(c.deployedAt), reverse=True)

    def get_contract_by_id(self, contract_id: str) -> ContractRecord:
        if contract_id in self._cache:
            return self._cache[contract_id]
        for contract in self._read()["contracts"]:
            if contract.get("contractId") == contract_id:
                record = _to_record(contract)
                self._cache[contract_id] = record
                return record
        raise KeyError(f"Contract not found: {contract_id}")


def _to_record(data: Dict) -> ContractRecord:
    return ContractRecord(**{k: v for k, v in data.items() if k in _RECORD_FIELDS})


def record_to_dict(record: ContractRecord) -> Dict:
    return asdict(record)
