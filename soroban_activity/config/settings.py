import os
from dotenv import load_dotenv

load_dotenv()


def _env(name: str, default: str) -> str:
    # Strip whitespace and trailing comments
    return os.getenv(name, default).strip().split("#")[0].strip()


class Settings:
    HORIZON_URL = _env("HORIZON_URL", "https://horizon-testnet.stellar.org")
    SOROBAN_RPC_URL = _env("SOROBAN_RPC_URL", "https://soroban-testnet.stellar.org")
    NETWORK = _env("NETWORK", "testnet")
    HOST = _env("HOST", "0.0.0.0")
    PORT = int(_env("PORT", "3001"))
    FRONTEND_URL = _env("FRONTEND_URL", "http://localhost:3000")
    LOG_LEVEL = _env("LOG_LEVEL", "INFO").upper()
    VERSION = "0.1.0"

    CONTRACTS_DB_PATH = _env("CONTRACTS_DB_PATH", "data/db.json")

    # Per external call, seconds
    REQUEST_TIMEOUT = float(_env("REQUEST_TIMEOUT", "5"))

    # Transaction scan budget
    SCAN_PAGE_SIZE = 200
    SCAN_MAX_PAGES = int(_env("SCAN_MAX_PAGES", "10"))
    SCAN_MAX_MATCHES = 20
    SCAN_OPERATION_CONCURRENCY = int(_env("SCAN_OPERATION_CONCURRENCY", "10"))

    # Event query
    EVENTS_LIMIT = 1000
    EVENTS_START_LEDGER = int(_env("EVENTS_START_LEDGER", "0"))

    RECENT_ITEMS_LIMIT = 20

    # Rate limiting settings
    RATE_LIMIT_STATS = "30/minute"
    RATE_LIMIT_LISTING = "60/minute"

    # Client poller
    API_BASE_URL = _env("API_BASE_URL", "http://localhost:3001")
    AUTO_REFRESH_INTERVAL_MS = int(_env("AUTO_REFRESH_INTERVAL_MS", "10000"))
    CLIENT_TIMEOUT = float(_env("CLIENT_TIMEOUT", "15"))
    CLIENT_STORE_PATH = _env("CLIENT_STORE_PATH", "data/deployed_contracts.json")


settings = Settings()
