"""
backend/app/config.py

Purpose:
    Central settings loading for the betting ledger service: store connection,
    stake and ticket limits, catalog listing bounds.

Dependencies:
    - pydantic-settings
    - pathlib
"""

from pathlib import Path

from pydantic_settings import BaseSettings

# Prefer backend/.env, fallback to project-root .env.
_BACKEND_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
_ROOT_ENV_FILE = Path(__file__).resolve().parent.parent.parent / ".env"


class Settings(BaseSettings):
    MONGO_URI: str = ""  # Must point at a replica set (transactions)
    MONGO_DB: str = "wagerline"
    BACKEND_CORS_ORIGINS: str = "http://localhost:5173"
    LOG_LEVEL: str = "INFO"

    # Store timeouts (ms). Exceeding them surfaces as a retryable failure.
    STORE_TIMEOUT_MS: int = 5000
    TRANSACTION_MAX_COMMIT_MS: int = 5000

    # Ticket limits, in major currency units (naira)
    MIN_STAKE: float = 100.0
    MAX_STAKE: float = 1_000_000.0
    MAX_SELECTIONS_PER_TICKET: int = 30

    # Catalog listing bounds
    MATCHES_DEFAULT_LIMIT: int = 100
    MATCHES_MAX_LIMIT: int = 200
    MATCHES_PAGE_SIZE: int = 100

    BETS_LIST_MAX_LIMIT: int = 200

    # Trusted identity header set by the upstream auth layer
    USER_ID_HEADER: str = "X-User-Id"

    model_config = {
        "env_file": (str(_BACKEND_ENV_FILE), str(_ROOT_ENV_FILE)),
        "extra": "ignore",
    }


settings = Settings()
