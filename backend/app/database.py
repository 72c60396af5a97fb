"""
backend/app/database.py

Purpose:
    MongoDB connection bootstrap and index management for the match catalog,
    user accounts and the bet ledger.

Dependencies:
    - motor.motor_asyncio
    - pymongo
    - app.config
"""

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from app.config import settings
from app.errors import FatalError

client: AsyncIOMotorClient = None
db: AsyncIOMotorDatabase = None

logger = logging.getLogger("wagerline.database")

# Index names referenced by the catalog reader.
MATCHES_STATUS_INDEX = "status_kickoff"
MATCHES_SPORT_LEAGUE_INDEX = "sport_league_kickoff"


async def connect_db() -> None:
    global client, db
    if not settings.MONGO_URI:
        raise FatalError("MONGO_URI is not configured.")
    client = AsyncIOMotorClient(
        settings.MONGO_URI,
        maxPoolSize=25,
        minPoolSize=5,
        serverSelectionTimeoutMS=settings.STORE_TIMEOUT_MS,
        socketTimeoutMS=settings.STORE_TIMEOUT_MS,
        connectTimeoutMS=settings.STORE_TIMEOUT_MS,
        tz_aware=True,
    )
    db = client[settings.MONGO_DB]
    await _ensure_indexes()


async def close_db() -> None:
    global client
    if client:
        client.close()


async def _ensure_indexes() -> None:
    """Create indexes on startup. Idempotent."""

    # ---- Matches (written by the pricing system, read here) ----

    # Status listing, ascending by kickoff
    await db.matches.create_index(
        [("status", 1), ("match_date", 1), ("_id", 1)],
        name=MATCHES_STATUS_INDEX,
    )
    # Sport/league listing, ascending by kickoff
    await db.matches.create_index(
        [("sport", 1), ("league", 1), ("match_date", 1), ("_id", 1)],
        name=MATCHES_SPORT_LEAGUE_INDEX,
    )

    # ---- Bets (ledger; _id is the bet id, unique by construction) ----

    await db.bets.create_index([("user_id", 1), ("placed_at", -1)])
    await db.bets.create_index([("match_ids", 1), ("status", 1)])
    await db.bets.create_index("status")

    # ---- Accounts (_id is the user id) ----

    await db.accounts.create_index("updated_at")

    logger.info("Indexes ensured for matches, bets, accounts")
