"""
backend/app/services/selection_validator.py

Purpose:
    Re-validate a client ticket against the live match catalog. Every
    selection is re-resolved to the authoritative odd; the client's odd is
    only compared for diagnostics and never used for pricing.

Dependencies:
    - app.database
    - app.errors
    - app.models.bet
"""

from __future__ import annotations

import asyncio
import logging
import math
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Sequence

from bson.decimal128 import Decimal128
from pymongo.errors import PyMongoError

from app.config import settings
import app.database as _db
from app.errors import (
    InvalidStake,
    MarketNotFound,
    MatchNotFound,
    MatchNotOpen,
    MatchStarted,
    NoSelections,
    SelectionNotFound,
    TooManySelections,
    classify_store_error,
)
from app.models.bet import ResolvedSelection, SelectionCreate, ValidatedTicket
from app.models.match import BETTABLE_STATUSES
from app.services.payout_calculator import CURRENCY_QUANTUM, to_decimal
from app.utils import ensure_utc, utcnow

logger = logging.getLogger("wagerline.selection_validator")

_MATCH_PROJECTION = {
    "home_team": 1,
    "away_team": 1,
    "match_date": 1,
    "status": 1,
    "odds": 1,
}


async def validate_ticket(
    user_id: str,
    selections: Sequence[SelectionCreate],
    stake: Any,
    now: datetime | None = None,
) -> ValidatedTicket:
    """Validate a ticket and substitute authoritative odds.

    Checks run in a fixed order and the first failure raises. Count and
    stake checks happen before any store access.
    """
    check_selection_count(selections)
    stake_amount = check_stake(stake)

    match_ids = list(dict.fromkeys(s.match_id for s in selections))
    matches = await fetch_matches(match_ids)
    for match_id in match_ids:
        if match_id not in matches:
            raise MatchNotFound(f"Match {match_id} not found.", match_id=match_id)

    now = now or utcnow()
    resolved: list[ResolvedSelection] = []
    for sel in selections:
        match = matches[sel.match_id]
        check_match_open(match, now)
        odd = resolve_odd(match, sel)

        if sel.odd is not None and sel.odd != odd:
            logger.warning(
                "Client odd (%s) for match %s, market %s, selection %s differs "
                "from server's (%s). Using server's.",
                sel.odd, sel.match_id, sel.market, sel.selection, odd,
            )

        resolved.append(ResolvedSelection(
            match_id=sel.match_id,
            market=sel.market,
            selection=sel.selection,
            odd=odd,
            client_odd=sel.odd,
        ))

    return ValidatedTicket(
        user_id=user_id,
        selections=resolved,
        stake=stake_amount,
        match_ids=match_ids,
    )


def check_selection_count(selections: Sequence[SelectionCreate]) -> None:
    if not selections:
        raise NoSelections("Bet selections are required and must be a non-empty list.")
    if len(selections) > settings.MAX_SELECTIONS_PER_TICKET:
        raise TooManySelections(
            f"Maximum of {settings.MAX_SELECTIONS_PER_TICKET} selections allowed per ticket.",
        )


def check_stake(stake: Any) -> Decimal:
    """Return the stake as a Decimal, or raise InvalidStake.

    The stake must be finite, inside [MIN_STAKE, MAX_STAKE] and expressible
    in whole kobo.
    """
    out_of_range = InvalidStake(
        f"Stake must be between ₦{settings.MIN_STAKE:,.2f} and ₦{settings.MAX_STAKE:,.2f}."
    )
    if isinstance(stake, bool) or not isinstance(stake, (int, float, Decimal)):
        raise out_of_range
    if isinstance(stake, float) and not math.isfinite(stake):
        raise out_of_range
    try:
        amount = to_decimal(stake)
    except InvalidOperation:
        raise out_of_range
    if not amount.is_finite():
        raise out_of_range
    if amount < to_decimal(settings.MIN_STAKE) or amount > to_decimal(settings.MAX_STAKE):
        raise out_of_range
    if amount != amount.quantize(CURRENCY_QUANTUM):
        raise InvalidStake("Stake cannot have more than two decimal places.")
    return amount


async def fetch_matches(match_ids: list[str]) -> dict[str, dict]:
    """Fetch each distinct match once; lookups run concurrently."""
    try:
        docs = await asyncio.gather(*(
            _db.db.matches.find_one({"_id": match_id}, _MATCH_PROJECTION)
            for match_id in match_ids
        ))
    except PyMongoError as exc:
        logger.warning("Match lookup failed for %s: %s", match_ids, exc)
        raise classify_store_error(exc) from exc
    return {str(doc["_id"]): doc for doc in docs if doc}


def _describe(match: dict) -> str:
    return f"'{match.get('home_team')} vs {match.get('away_team')}' ({match['_id']})"


def check_match_open(match: dict, now: datetime) -> None:
    """Kickoff must be strictly in the future and the status bettable."""
    kickoff = match.get("match_date")
    if not isinstance(kickoff, datetime) or ensure_utc(kickoff) <= now:
        raise MatchStarted(
            f"Match {_describe(match)} has already kicked off.",
            match_id=str(match["_id"]),
        )
    status = match.get("status")
    if status not in BETTABLE_STATUSES:
        raise MatchNotOpen(
            f"Match {_describe(match)} is not open for betting (Status: {status}).",
            match_id=str(match["_id"]),
        )


def resolve_odd(match: dict, sel: SelectionCreate) -> float:
    """Look up the authoritative odd for a market/selection."""
    market_odds = (match.get("odds") or {}).get(sel.market)
    if not isinstance(market_odds, dict) or not market_odds:
        raise MarketNotFound(
            f"Market '{sel.market}' not found for match {sel.match_id}.",
            match_id=sel.match_id, market=sel.market,
        )

    odd = market_odds.get(sel.selection)
    if isinstance(odd, Decimal128):
        odd = float(odd.to_decimal())
    if (
        isinstance(odd, bool)
        or not isinstance(odd, (int, float))
        or not math.isfinite(odd)
        or odd <= 0
    ):
        raise SelectionNotFound(
            f"Selection '{sel.selection}' or its odd is invalid for market "
            f"'{sel.market}' in match {sel.match_id}.",
            match_id=sel.match_id, market=sel.market, selection=sel.selection,
        )
    return float(odd)
