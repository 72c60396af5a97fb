"""Bet ledger models: tickets, validated selections and stored bets."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.utils import as_utc


class BetStatus(str, Enum):
    pending = "pending"    # Only status written by placement
    won = "won"
    lost = "lost"
    void = "void"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------- Request models ----------

class SelectionCreate(_CamelModel):
    """One leg as proposed by the client. ``odd`` is advisory only."""
    match_id: str = Field(min_length=1)
    market: str
    selection: str
    odd: Optional[float] = None


class PlaceBetRequest(_CamelModel):
    """A ticket: selections plus a stake in major currency units."""
    selections: List[SelectionCreate]
    stake: float = Field(strict=True)


# ---------- Validated ticket ----------

class ResolvedSelection(_CamelModel):
    """A leg re-resolved against the catalog. ``odd`` is authoritative."""
    match_id: str
    market: str
    selection: str
    odd: float
    client_odd: Optional[float] = None

    def to_db(self) -> dict:
        return {
            "match_id": self.match_id,
            "market": self.market,
            "selection": self.selection,
            "odd": self.odd,
            "client_odd": self.client_odd,
        }


class ValidatedTicket(BaseModel):
    user_id: str
    selections: List[ResolvedSelection]
    stake: Decimal
    match_ids: List[str]               # distinct, first-seen order

    @property
    def stake_minor(self) -> int:
        """Stake in the smallest currency unit (kobo)."""
        return int(self.stake * 100)


# ---------- Response models ----------

class PlaceBetResponse(_CamelModel):
    success: bool = True
    bet_id: str
    message: str = "Bet placed successfully!"


class BetResponse(_CamelModel):
    """Stored bet returned to its owner."""
    bet_id: str
    user_id: str
    selections: List[ResolvedSelection]
    stake: float
    total_odds: float
    potential_payout: float
    status: str
    placed_at: datetime
    match_ids: List[str]


def bet_to_response(doc: dict) -> BetResponse:
    return BetResponse(
        bet_id=str(doc["_id"]),
        user_id=doc["user_id"],
        selections=[ResolvedSelection(**s) for s in doc.get("selections", [])],
        stake=doc["stake"],
        total_odds=doc["total_odds"],
        potential_payout=doc["potential_payout"],
        status=doc.get("status", BetStatus.pending.value),
        placed_at=as_utc(doc["placed_at"]),
        match_ids=doc.get("match_ids", []),
    )
