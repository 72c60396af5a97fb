"""User account models. Balance is held in the smallest currency unit."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.utils import as_utc


# Account documents:
#   _id (user id), balance_minor (int, kobo, never negative),
#   created_at, updated_at


class AccountResponse(BaseModel):
    """Account data returned to its owner."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str
    balance: float
    balance_minor: int
    updated_at: Optional[datetime] = None


def account_to_response(doc: dict) -> AccountResponse:
    balance_minor = int(doc.get("balance_minor", 0))
    return AccountResponse(
        user_id=str(doc["_id"]),
        balance=balance_minor / 100,
        balance_minor=balance_minor,
        updated_at=as_utc(doc.get("updated_at")),
    )
