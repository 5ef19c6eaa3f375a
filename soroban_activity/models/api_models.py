from pydantic import BaseModel
from typing import Any, Dict, List


class HealthResponse(BaseModel):
    status: str
    version: str


class StatsResponse(BaseModel):
    success: bool
    stats: Dict[str, Any]


class TransactionsResponse(BaseModel):
    success: bool
    count: int
    transactions: List[Dict[str, Any]]


class EventsResponse(BaseModel):
    success: bool
    count: int
    events: List[Dict[str, Any]]


class ContractsResponse(BaseModel):
    success: bool
    count: int
    contracts: List[Dict[str, Any]]
