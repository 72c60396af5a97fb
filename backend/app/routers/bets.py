"""Bet placement API and the caller's own bet history."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, status

from app.config import settings
from app.errors import NotFound
from app.models.bet import (
    BetResponse,
    PlaceBetRequest,
    PlaceBetResponse,
    bet_to_response,
)
from app.services.bet_service import get_bet, get_user_bets, place_bet
from app.services.identity_service import get_caller_id

router = APIRouter(prefix="/api/bets", tags=["bets"])


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=PlaceBetResponse)
async def submit_bet(
    body: PlaceBetRequest,
    user_id: str = Depends(get_caller_id),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
):
    """Place a ticket. Odds and payout are always recomputed server-side."""
    bet_id = await place_bet(
        user_id=user_id,
        selections=body.selections,
        stake=body.stake,
        idempotency_key=idempotency_key,
    )
    return PlaceBetResponse(bet_id=bet_id)


@router.get("/mine", response_model=list[BetResponse])
async def my_bets(
    user_id: str = Depends(get_caller_id),
    limit: int = Query(50, ge=1, le=settings.BETS_LIST_MAX_LIMIT),
):
    """Get the caller's bets, newest first."""
    bets = await get_user_bets(user_id, limit=limit)
    return [bet_to_response(b) for b in bets]


@router.get("/{bet_id}", response_model=BetResponse)
async def get_one_bet(
    bet_id: str,
    user_id: str = Depends(get_caller_id),
):
    """Get a single bet (must belong to the caller)."""
    bet = await get_bet(bet_id, user_id=user_id)
    if not bet:
        raise NotFound("Bet not found.")
    return bet_to_response(bet)
