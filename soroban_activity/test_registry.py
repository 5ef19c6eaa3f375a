import pytest

from .client.contract_store import ContractStore
from .conftest import CONTRACT_ID, OTHER_CONTRACT_ID
from .services.contract_registry import ContractRegistry


def test_registry_upserts_by_contract_id(tmp_path):
    registry = ContractRegistry(str(tmp_path / "data" / "db.json"))

    first = registry.insert_contract(CONTRACT_ID, "Counter", "testnet",
                                     deployedAt="2024-01-01T00:00:00+00:00")
    updated = registry.insert_contract(CONTRACT_ID, "Counter v2", "testnet")

    assert updated.id == first.id
    assert updated.deployedAt == "2024-01-01T00:00:00+00:00"
    assert registry.get_contract_by_id(CONTRACT_ID).contractName == "Counter v2"


def test_registry_lists_newest_first(tmp_path):
    registry = ContractRegistry(str(tmp_path / "db.json"))
    registry.insert_contract(CONTRACT_ID, "Old", "testnet", deployedAt="2024-01-01T00:00:00Z")
    registry.insert_contract(OTHER_CONTRACT_ID, "New", "testnet", deployedAt="2024-03-01T00:00:00Z")

    assert [c.contractName for c in registry.get_all_contracts()] == ["New", "Old"]


def test_registry_missing_contract_raises(tmp_path):
    registry = ContractRegistry(str(tmp_path / "db.json"))
    with pytest.raises(KeyError):
        registry.get_contract_by_id(CONTRACT_ID)


def test_store_updates_only_known_contracts(tmp_path):
    store = ContractStore(str(tmp_path / "contracts.json"))
    store.save_contract(CONTRACT_ID, contract_name="Counter", network="testnet")

    assert store.update_tx_count(CONTRACT_ID, 12)
    assert not store.update_tx_count(OTHER_CONTRACT_ID, 3)

    saved = store.get_contract(CONTRACT_ID)
    assert saved.lastSeenTxCount == 12
    assert saved.lastUpdated is not None
    assert store.get_contract(OTHER_CONTRACT_ID) is None


def test_store_save_keeps_deployed_at_and_count(tmp_path):
    store = ContractStore(str(tmp_path / "contracts.json"))
    first = store.save_contract(CONTRACT_ID, last_seen_tx_count=5)
    second = store.save_contract(CONTRACT_ID, contract_name="Renamed")

    assert second.deployedAt == first.deployedAt
    assert second.lastSeenTxCount == 5
    assert len(store.load_contracts()) == 1


def test_store_remove_and_clear(tmp_path):
    store = ContractStore(str(tmp_path / "contracts.json"))
    store.save_contract(CONTRACT_ID)
    store.save_contract(OTHER_CONTRACT_ID)

    store.remove_contract(CONTRACT_ID)
    assert [c.contractId for c in store.load_contracts()] == [OTHER_CONTRACT_ID]

    store.clear()
    assert store.load_contracts() == []


def test_store_ignores_corrupt_file(tmp_path):
    path = tmp_path / "contracts.json"
    path.write_text("{not json")
    assert ContractStore(str(path)).load_contracts() == []
