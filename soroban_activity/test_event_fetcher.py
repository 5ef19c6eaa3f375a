import asyncio

import pytest

from .conftest import CONTRACT_ID, FakeRpc
from .errors import MalformedRecordError, SourceUnavailableError
from .services.event_fetcher import EventFetcher, normalize_event


def raw_event(**overrides):
    event = {
        "type": "contract",
        "ledger": 5120,
        "ledgerClosedAt": "2024-05-01T12:00:00Z",
        "contractId": CONTRACT_ID,
        "id": "0000021990232068096-0000000001",
        "topic": ["transfer", "GABC"],
        "value": {"i128": "100"},
        "txHash": "abc123",
    }
    event.update(overrides)
    return event


def test_explicit_fields_are_kept():
    event = normalize_event(raw_event(), 0, CONTRACT_ID)

    assert event.id == "0000021990232068096-0000000001"
    assert event.type == "contract"
    assert event.topic == ["transfer", "GABC"]
    assert event.tx_hash == "abc123"
    assert event.timestamp == "2024-05-01T12:00:00Z"
    assert event.value == {"i128": "100"}


def test_type_falls_back_to_first_topic_then_contract():
    from_topic = normalize_event(raw_event(type=None), 0, CONTRACT_ID)
    assert from_topic.type == "transfer"

    bare = normalize_event(raw_event(type=None, topic=[]), 0, CONTRACT_ID)
    assert bare.type == "contract"


def test_topics_are_coerced_to_strings():
    event = normalize_event(raw_event(topic=[42, {"sym": "mint"}, True]), 0, CONTRACT_ID)
    assert event.topic == ["42", '{"sym": "mint"}', "True"]


def test_missing_id_is_synthesized_from_ledger_and_position():
    event = normalize_event(raw_event(id=None, ledger=777), 3, CONTRACT_ID)
    assert event.id == "777-3"


def test_timestamp_preferred_over_ledger_closed_at():
    event = normalize_event(
        raw_event(timestamp="2024-05-02T00:00:00Z"), 0, CONTRACT_ID)
    assert event.timestamp == "2024-05-02T00:00:00Z"
    assert event.ledger_closed_at == "2024-05-01T12:00:00Z"


def test_value_and_hash_fallbacks():
    event = normalize_event(
        raw_event(value=None, data="AAAA", txHash=None, transactionHash="def456"),
        0, CONTRACT_ID)
    assert event.value == "AAAA"
    assert event.tx_hash == "def456"

    no_hash = normalize_event(raw_event(txHash=None), 0, CONTRACT_ID)
    assert no_hash.tx_hash == ""


def test_event_without_any_timestamp_is_malformed():
    with pytest.raises(MalformedRecordError):
        normalize_event(raw_event(ledgerClosedAt=None), 0, CONTRACT_ID)


def test_fetch_drops_only_malformed_records():
    rpc = FakeRpc(events=[
        raw_event(id=None, ledger=10),
        raw_event(id=None, ledger=11, ledgerClosedAt=None),
        raw_event(id=None, ledger=12),
    ])
    fetcher = EventFetcher(rpc)

    events = asyncio.run(fetcher.fetch(CONTRACT_ID))

    assert [e.id for e in events] == ["10-0", "12-2"]
    assert asyncio.run(fetcher.count(CONTRACT_ID)) == 2


def test_fetch_issues_single_bounded_query():
    rpc = FakeRpc(events=[raw_event()])
    fetcher = EventFetcher(rpc, start_ledger=100)

    asyncio.run(fetcher.fetch(CONTRACT_ID))

    assert rpc.calls == [{"contract_id": CONTRACT_ID, "limit": 1000, "start_ledger": 100}]


def test_source_error_returns_empty():
    rpc = FakeRpc(error=SourceUnavailableError("soroban_events", "startLedger must be positive"))
    fetcher = EventFetcher(rpc)

    assert asyncio.run(fetcher.fetch(CONTRACT_ID)) == []


def test_slow_source_times_out_to_empty():
    class SlowRpc:
        async def get_events(self, contract_id, limit=1000, start_ledger=0):
            await asyncio.sleep(0.5)
            return [raw_event()]

    fetcher = EventFetcher(SlowRpc(), timeout=0.01)

    assert asyncio.run(fetcher.fetch(CONTRACT_ID)) == []
