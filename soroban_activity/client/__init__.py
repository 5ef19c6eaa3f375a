from .api_client import StatsApiClient
from .contract_store import ContractStore
from .poller import Notification, PollerState, StatsPoller

__all__ = [
    'StatsApiClient',
    'ContractStore',
    'Notification',
    'PollerState',
    'StatsPoller',
]
