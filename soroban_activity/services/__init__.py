from .stellar_client import HorizonClient, SorobanRpcClient
from .transaction_scanner import TransactionScanner, involves_contract
from .event_fetcher import EventFetcher, normalize_event
from .stats_aggregator import StatsAggregator
from .contract_registry import ContractRegistry

__all__ = [
    'HorizonClient',
    'SorobanRpcClient',
    'TransactionScanner',
    'involves_contract',
    'EventFetcher',
    'normalize_event',
    'StatsAggregator',
    'ContractRegistry',
]
