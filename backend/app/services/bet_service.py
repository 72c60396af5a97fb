"""
backend/app/services/bet_service.py

Purpose:
    Bet placement pipeline (validate -> price -> commit) and read access to a
    user's own bets.

Dependencies:
    - app.services.selection_validator
    - app.services.payout_calculator
    - app.services.ledger_service
"""

import logging
from typing import Any, Optional, Sequence

from pymongo.errors import PyMongoError

import app.database as _db
from app.errors import BusinessRejection, ValidationError, classify_store_error
from app.models.bet import SelectionCreate
from app.services.ledger_service import commit_bet, new_bet_id
from app.services.payout_calculator import quote_ticket
from app.services.selection_validator import validate_ticket

logger = logging.getLogger("wagerline.bet_service")


async def place_bet(
    user_id: str,
    selections: Sequence[SelectionCreate],
    stake: Any,
    idempotency_key: Optional[str] = None,
) -> str:
    """Place a ticket for ``user_id``. Returns the new bet id."""
    try:
        ticket = await validate_ticket(user_id, selections, stake)
    except (ValidationError, BusinessRejection) as exc:
        logger.info("Bet rejected: user=%s reason=%s message=%s", user_id, exc.reason, exc.message)
        raise

    quote = quote_ticket(ticket.stake, [s.odd for s in ticket.selections])
    bet_id = new_bet_id(user_id, idempotency_key)
    return await commit_bet(ticket, quote, bet_id=bet_id)


async def get_bet(bet_id: str, user_id: str) -> Optional[dict]:
    """Get a bet by id, only if it belongs to ``user_id``."""
    try:
        return await _db.db.bets.find_one({"_id": bet_id, "user_id": user_id})
    except PyMongoError as exc:
        raise classify_store_error(exc) from exc


async def get_user_bets(user_id: str, limit: int = 50) -> list[dict]:
    try:
        return await _db.db.bets.find(
            {"user_id": user_id},
        ).sort("placed_at", -1).limit(limit).to_list(length=limit)
    except PyMongoError as exc:
        raise classify_store_error(exc) from exc
