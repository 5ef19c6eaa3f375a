from .services import (
    TransactionScanner,
    EventFetcher,
    StatsAggregator,
    ContractRegistry,
    HorizonClient,
    SorobanRpcClient,
)
from .client import StatsApiClient, StatsPoller, ContractStore
from .models.contract_models import (
    ContractTransaction,
    ContractEvent,
    ContractStats,
    StoredContract,
)
from .config.settings import settings

__all__ = [
    'TransactionScanner',
    'EventFetcher',
    'StatsAggregator',
    'ContractRegistry',
    'HorizonClient',
    'SorobanRpcClient',
    'StatsApiClient',
    'StatsPoller',
    'ContractStore',
    'ContractTransaction',
    'ContractEvent',
    'ContractStats',
    'StoredContract',
    'settings'
]
