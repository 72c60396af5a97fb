from datetime import datetime
from enum import Enum
from typing import Any, Dict

from bson.decimal128 import Decimal128
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from app.utils import as_utc


class MatchStatus(str, Enum):
    upcoming = "upcoming"
    open = "open"
    suspended = "suspended"
    finished = "finished"
    cancelled = "cancelled"


# Statuses that accept new bets (kickoff must still be in the future).
BETTABLE_STATUSES = frozenset({MatchStatus.upcoming.value, MatchStatus.open.value})

# Fields never shown for matches that have not started.
SCORE_FIELDS = ("home_score", "away_score")


# Match documents are written by the pricing system:
#   _id, sport, league, home_team, away_team,
#   match_date (kickoff), status (MatchStatus),
#   odds: {market: {selection label: decimal odd}},
#   home_score / away_score (once in play)


class MatchResponse(BaseModel):
    """Catalog entry returned to clients. Carries no score fields."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    match_id: str
    sport: str
    league: str
    home_team: str
    away_team: str
    match_date: datetime
    status: str
    odds: Dict[str, Dict[str, Any]] = {}

    @field_validator("odds", mode="before")
    @classmethod
    def decode_odds(cls, v: Any) -> Any:
        """Odds may be stored as Decimal128; clients get plain numbers."""
        if not isinstance(v, dict):
            return v
        return {
            market: (
                {
                    label: float(odd.to_decimal()) if isinstance(odd, Decimal128) else odd
                    for label, odd in selections.items()
                }
                if isinstance(selections, dict) else selections
            )
            for market, selections in v.items()
        }


def db_to_response(doc: dict) -> MatchResponse:
    return MatchResponse(
        match_id=str(doc["_id"]),
        sport=doc.get("sport", ""),
        league=doc.get("league", ""),
        home_team=doc.get("home_team", ""),
        away_team=doc.get("away_team", ""),
        match_date=as_utc(doc["match_date"]),
        status=doc.get("status", ""),
        odds=doc.get("odds") or {},
    )


class MatchListResponse(BaseModel):
    success: bool = True
    matches: list[MatchResponse]
