"""
backend/app/routers/matches.py

Purpose:
    Public match catalog: lists matches that are currently open for betting.

Dependencies:
    - app.services.match_catalog_service
    - app.models.match
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query

from app.errors import ValidationError
from app.models.match import MatchListResponse, MatchStatus, db_to_response
from app.services.match_catalog_service import list_bettable_matches

logger = logging.getLogger("wagerline.matches")

router = APIRouter(prefix="/api/matches", tags=["matches"])


@router.get("/", response_model=MatchListResponse)
async def list_matches(
    status_filter: Optional[MatchStatus] = Query(
        None, alias="status", description="Filter by match status"
    ),
    sport: Optional[str] = Query(None, description="Sport (requires league)"),
    league: Optional[str] = Query(None, description="League (requires sport)"),
    limit: Optional[int] = Query(None, ge=1, description="Max results, clamped server-side"),
):
    """Get bettable matches (kickoff in the future, status upcoming/open)."""
    if status_filter is None and bool(sport) != bool(league):
        raise ValidationError("sport and league must be supplied together.")

    matches = await list_bettable_matches(
        status=status_filter.value if status_filter else None,
        sport=sport,
        league=league,
        limit=limit,
    )
    return MatchListResponse(matches=[db_to_response(m) for m in matches])
