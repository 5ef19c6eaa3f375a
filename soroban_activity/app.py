import asyncio

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
import structlog
from prometheus_fastapi_instrumentator import Instrumentator
from typing import Optional
import logging
import uvicorn

from .config.settings import settings
from .models.api_models import (
    ContractsResponse,
    EventsResponse,
    HealthResponse,
    StatsResponse,
    TransactionsResponse,
)
from .services import (
    ContractRegistry,
    EventFetcher,
    HorizonClient,
    SorobanRpcClient,
    StatsAggregator,
    TransactionScanner,
)
from .services.contract_registry import record_to_dict

# Configure logging
structlog.configure(
    wrapper_class=structlog.make_filtering_bound_logger(
        logging.getLevelName(settings.LOG_LEVEL))
)
logger = structlog.get_logger()

# Initialize FastAPI app
app = FastAPI(
    title="Soroban Contract Activity",
    description="API for Soroban contract transaction and event statistics",
    version=settings.VERSION
)

# Initialize services
horizon_client = None
rpc_client = None
contract_registry = ContractRegistry(settings.CONTRACTS_DB_PATH)
stats_aggregator = None


@app.on_event("startup")
async def startup_event():
    global horizon_client, rpc_client, stats_aggregator
    horizon_client = HorizonClient(settings.HORIZON_URL)
    rpc_client = SorobanRpcClient(settings.SOROBAN_RPC_URL)
    stats_aggregator = StatsAggregator(
        TransactionScanner(horizon_client),
        EventFetcher(rpc_client),
        registry=contract_registry
    )
    logger.info("services_started",
                horizon=settings.HORIZON_URL,
                soroban_rpc=settings.SOROBAN_RPC_URL)


@app.on_event("shutdown")
async def shutdown_event():
    for client in (horizon_client, rpc_client):
        if client:
            await client.close()

# Configure rate limiting
limiter = Limiter(key_func=get_remote_address)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)

# Add metrics
Instrumentator().instrument(app).expose(app)

# Routes


@app.get("/health", response_model=HealthResponse)
async def health_check():
    return HealthResponse(status="ok", version=settings.VERSION)


@app.get("/api/stats/{contract_id}", response_model=StatsResponse)
@limiter.limit(settings.RATE_LIMIT_STATS)
async def get_stats(request: Request, contract_id: str):
    """
    Full statistics for a contract: totalTx, totalEvents, avgFee,
    lastActivity and the latest 20 transactions and events
    """
    try:
        logger.info("stats_requested", contract=contract_id)
        stats = await stats_aggregator.get_contract_statistics(contract_id)
        return StatsResponse(success=True, stats=stats.to_dict())

    except ValueError as e:
        logger.error("validation_error", error=str(e))
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("stats_error", contract=contract_id, error=str(e))
        raise HTTPException(
            status_code=500,
            detail="Failed to fetch contract statistics"
        )


@app.get("/api/contracts/{contract_id}/stats", response_model=StatsResponse)
@limiter.limit(settings.RATE_LIMIT_STATS)
async def get_stats_legacy(
    request: Request,
    contract_id: str,
    network: Optional[str] = Query(default=None, enum=["testnet", "mainnet"])
):
    """
    Legacy field names (totalTransactions, averageFee, lastInteraction,
    recentTransactions) over the same computation as /api/stats
    """
    try:
        logger.info("legacy_stats_requested", contract=contract_id, network=network)
        stats = await stats_aggregator.get_contract_statistics_legacy(
            contract_id, network=network)
        return StatsResponse(success=True, stats=stats)

    except ValueError as e:
        logger.error("validation_error", error=str(e))
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("stats_error", contract=contract_id, error=str(e))
        raise HTTPException(
            status_code=500,
            detail="Failed to fetch contract statistics"
        )


@app.get("/api/contracts/{contract_id}/transactions", response_model=TransactionsResponse)
@limiter.limit(settings.RATE_LIMIT_STATS)
async def get_transactions(
    request: Request,
    contract_id: str,
    limit: int = Query(default=20, ge=1, le=200)
):
    try:
        transactions = await stats_aggregator.get_contract_transactions(contract_id)
        return TransactionsResponse(
            success=True,
            count=len(transactions),
            transactions=[tx.to_dict() for tx in transactions[:limit]]
        )

    except ValueError as e:
        logger.error("validation_error", error=str(e))
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("transactions_error", contract=contract_id, error=str(e))
        raise HTTPException(status_code=500, detail="Failed to fetch transactions")


@app.get("/api/contracts/{contract_id}/events", response_model=EventsResponse)
@limiter.limit(settings.RATE_LIMIT_STATS)
async def get_events(
    request: Request,
    contract_id: str,
    limit: int = Query(default=20, ge=1, le=1000)
):
    try:
        events = await stats_aggregator.get_contract_events(contract_id)
        return EventsResponse(
            success=True,
            count=len(events),
            events=[event.to_dict() for event in events[:limit]]
        )

    except ValueError as e:
        logger.error("validation_error", error=str(e))
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("events_error", contract=contract_id, error=str(e))
        raise HTTPException(status_code=500, detail="Failed to fetch events")


@app.get("/api/contracts", response_model=ContractsResponse)
@limiter.limit(settings.RATE_LIMIT_LISTING)
async def list_contracts(
    request: Request,
    network: Optional[str] = Query(default=None, enum=["testnet", "mainnet"])
):
    contracts = await asyncio.to_thread(contract_registry.get_all_contracts)
    if network:
        contracts = [c for c in contracts if c.network == network]
    return ContractsResponse(
        success=True,
        count=len(contracts),
        contracts=[record_to_dict(c) for c in contracts]
    )


@app.get("/api/contracts/{contract_id}")
@limiter.limit(settings.RATE_LIMIT_LISTING)
async def get_contract(request: Request, contract_id: str):
    try:
        contract = await asyncio.to_thread(contract_registry.get_contract_by_id, contract_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Contract not found")
    return {"success": True, "contract": record_to_dict(contract)}


def main():
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    main()
