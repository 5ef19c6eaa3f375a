"""Canonical <-> legacy statistics field mapping.

The canonical record (``/api/stats``) and the legacy record
(``/api/contracts/{id}/stats``) carry the same values under different names.
Consumers may receive either shape, so every read goes through
``read_field``: canonical name first, then the legacy name, then an empty
default for the field's type.
"""
from typing import Any, Dict, Mapping

CANONICAL_TO_LEGACY = {
    "totalTx": "totalTransactions",
    "avgFee": "averageFee",
    "lastActivity": "lastInteraction",
    "transactions": "recentTransactions",
}
LEGACY_TO_CANONICAL = {legacy: canonical for canonical, legacy in CANONICAL_TO_LEGACY.items()}

FIELD_DEFAULTS = {
    "contractId": "",
    "contractName": "Unknown",
    "network": "testnet",
    "totalTx": 0,
    "totalEvents": 0,
    "avgFee": "0",
    "lastActivity": None,
    "transactions": [],
    "events": [],
}


def _rename(record: Mapping[str, Any], table: Mapping[str, str]) -> Dict[str, Any]:
    return {table.get(key, key): value for key, value in record.items()}


def to_legacy(canonical: Mapping[str, Any]) -> Dict[str, Any]:
    return _rename(canonical, CANONICAL_TO_LEGACY)


def to_canonical(legacy: Mapping[str, Any]) -> Dict[str, Any]:
    return _rename(legacy, LEGACY_TO_CANONICAL)


def read_field(record: Mapping[str, Any], name: str) -> Any:
    """Read a canonical field from a record of either shape."""
    if record is None:
        record = {}
    value = record.get(name)
    if value is None and name in CANONICAL_TO_LEGACY:
        value = record.get(CANONICAL_TO_LEGACY[name])
    if value is None:
        default = FIELD_DEFAULTS.get(name)
        return list(default) if isinstance(default, list) else default
    return value


def normalize_stats(record: Mapping[str, Any]) -> Dict[str, Any]:
    """Full canonical record from a canonical, legacy or partial input."""
    return {name: read_field(record, name) for name in FIELD_DEFAULTS}
