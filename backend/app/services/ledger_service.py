"""
backend/app/services/ledger_service.py

Purpose:
    Ledger commit engine. Debits a user's balance and inserts the bet record
    in one MongoDB multi-document transaction, so a debit never exists without
    its bet and vice versa. Both preconditions (sufficient balance, unused bet
    id) are evaluated inside the transaction snapshot the writes apply to.

Dependencies:
    - motor (client sessions / transactions)
    - pymongo
    - app.database
"""

from __future__ import annotations

import asyncio
import functools
import logging
import uuid
from datetime import datetime
from typing import Optional

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError
from pymongo.read_concern import ReadConcern
from pymongo.write_concern import WriteConcern

from app.config import settings
import app.database as _db
from app.errors import InsufficientFunds, classify_store_error
from app.models.bet import BetStatus, ValidatedTicket
from app.services.payout_calculator import TicketQuote
from app.utils import utcnow

logger = logging.getLogger("wagerline.ledger")

BET_ID_PREFIX = "BET-"
# Namespace for bet ids derived from a client idempotency key.
_IDEMPOTENCY_NAMESPACE = uuid.UUID("6f1c2b0e-8d4a-4c55-9a7e-3b2f9d7e1a40")


def new_bet_id(user_id: str, idempotency_key: Optional[str] = None) -> str:
    """Fresh random bet id, or a stable one when the client sent a retry key."""
    if idempotency_key:
        derived = uuid.uuid5(_IDEMPOTENCY_NAMESPACE, f"{user_id}:{idempotency_key}")
        return f"{BET_ID_PREFIX}{derived}"
    return f"{BET_ID_PREFIX}{uuid.uuid4()}"


async def ensure_account(user_id: str) -> bool:
    """Provision a zero-balance account if the user has none.

    Returns True when an account was created. A zero balance means the
    placement that triggered provisioning fails with InsufficientFunds.
    """
    now = utcnow()
    try:
        result = await _db.db.accounts.update_one(
            {"_id": user_id},
            {"$setOnInsert": {"balance_minor": 0, "created_at": now, "updated_at": now}},
            upsert=True,
        )
    except DuplicateKeyError:
        # Lost an upsert race: the account exists now.
        return False
    except PyMongoError as exc:
        logger.warning("Account provisioning failed for user=%s: %s", user_id, exc)
        raise classify_store_error(exc) from exc

    if result.upserted_id is not None:
        logger.info("Account provisioned with zero balance: user=%s", user_id)
        return True
    return False


async def get_account(user_id: str) -> Optional[dict]:
    try:
        return await _db.db.accounts.find_one({"_id": user_id})
    except PyMongoError as exc:
        raise classify_store_error(exc) from exc


def build_bet_doc(
    bet_id: str, ticket: ValidatedTicket, quote: TicketQuote, placed_at: datetime,
) -> dict:
    return {
        "_id": bet_id,
        "user_id": ticket.user_id,
        "selections": [s.to_db() for s in ticket.selections],
        "stake": float(ticket.stake),
        "stake_minor": ticket.stake_minor,
        "total_odds": float(quote.total_odds),
        "potential_payout": float(quote.potential_payout),
        "placed_at": placed_at,
        "status": BetStatus.pending.value,
        "match_ids": list(ticket.match_ids),
        "winnings": 0,
    }


async def commit_bet(
    ticket: ValidatedTicket,
    quote: TicketQuote,
    bet_id: Optional[str] = None,
) -> str:
    """Atomically debit the stake and record the bet. Returns the bet id.

    Raises InsufficientFunds, DuplicateBet, TransientFailure or FatalError.
    Once submitted, the transaction runs to completion even if the caller
    is cancelled; its outcome is then logged by _log_detached_outcome.
    """
    bet_id = bet_id or new_bet_id(ticket.user_id)
    await ensure_account(ticket.user_id)

    placed_at = utcnow()
    bet_doc = build_bet_doc(bet_id, ticket, quote, placed_at)

    commit = asyncio.ensure_future(
        _run_commit(bet_doc, ticket.stake_minor, placed_at)
    )
    try:
        account = await asyncio.shield(commit)
    except asyncio.CancelledError:
        commit.add_done_callback(
            functools.partial(_log_detached_outcome, ticket, quote, bet_id)
        )
        raise
    except InsufficientFunds:
        _log_insufficient_funds(ticket, bet_id)
        raise
    except PyMongoError as exc:
        error = classify_store_error(exc, bet_id=bet_id)
        logger.warning(
            "Bet commit failed: user=%s bet=%s reason=%s (%s)",
            ticket.user_id, bet_id, error.reason, exc,
        )
        raise error from exc

    _log_committed(ticket, quote, bet_id, account)
    return bet_id


def _log_insufficient_funds(ticket: ValidatedTicket, bet_id: str) -> None:
    logger.info(
        "Insufficient funds: user=%s stake=%s bet=%s",
        ticket.user_id, ticket.stake, bet_id,
    )


def _log_committed(
    ticket: ValidatedTicket, quote: TicketQuote, bet_id: str, account: dict,
) -> None:
    logger.info(
        "Bet committed: user=%s bet=%s selections=%d stake=%s total_odds=%s "
        "payout=%s balance_after=%.2f",
        ticket.user_id, bet_id, len(ticket.selections), ticket.stake,
        quote.total_odds, quote.potential_payout,
        account["balance_minor"] / 100,
    )


def _log_detached_outcome(
    ticket: ValidatedTicket, quote: TicketQuote, bet_id: str, commit: asyncio.Future,
) -> None:
    """Done-callback for a commit whose caller went away before it finished."""
    if commit.cancelled():
        logger.error("Detached bet commit was cancelled: user=%s bet=%s", ticket.user_id, bet_id)
        return
    exc = commit.exception()
    if exc is None:
        _log_committed(ticket, quote, bet_id, commit.result())
    elif isinstance(exc, InsufficientFunds):
        _log_insufficient_funds(ticket, bet_id)
    else:
        logger.warning(
            "Detached bet commit failed: user=%s bet=%s (%r)",
            ticket.user_id, bet_id, exc,
        )


async def _run_commit(bet_doc: dict, stake_minor: int, now: datetime) -> dict:
    """Run both ledger legs in one transaction.

    ``with_transaction`` retries write conflicts with concurrent placements,
    so each attempt re-evaluates the balance condition on a fresh snapshot.
    """

    async def _legs(session) -> dict:
        # Uniqueness leg: _id collision raises DuplicateKeyError.
        await _db.db.bets.insert_one(bet_doc, session=session)

        # Balance leg: account must exist and cover the stake.
        account = await _db.db.accounts.find_one_and_update(
            {"_id": bet_doc["user_id"], "balance_minor": {"$gte": stake_minor}},
            {
                "$inc": {"balance_minor": -stake_minor},
                "$set": {"updated_at": now},
            },
            projection={"balance_minor": 1},
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        if account is None:
            raise InsufficientFunds("Insufficient balance. Please deposit funds.")
        return account

    async with await _db.client.start_session() as session:
        return await session.with_transaction(
            _legs,
            read_concern=ReadConcern("snapshot"),
            write_concern=WriteConcern("majority"),
            max_commit_time_ms=settings.TRANSACTION_MAX_COMMIT_MS,
        )
