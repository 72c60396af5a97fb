"""
backend/app/errors.py

Purpose:
    Error taxonomy for bet placement and catalog reads. Every error carries a
    machine-readable reason code, a human-readable message and the HTTP status
    the boundary renders it with. Store (pymongo) errors are re-classified here
    before they reach a caller.

Dependencies:
    - pymongo
"""

from __future__ import annotations

from typing import Any

from pymongo.errors import ConfigurationError, DuplicateKeyError, PyMongoError


class WagerError(Exception):
    """Base class for every error surfaced by the ledger service."""

    reason = "WAGER_ERROR"
    status_code = 400
    retryable = False

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_payload(self) -> dict:
        payload = {
            "success": False,
            "reason": self.reason,
            "message": self.message,
        }
        if self.retryable:
            payload["retryable"] = True
        return payload


# ---------- Validation (malformed / out-of-range input, never retried) ----------

class ValidationError(WagerError):
    reason = "VALIDATION_ERROR"


class NoSelections(ValidationError):
    reason = "NO_SELECTIONS"


class TooManySelections(ValidationError):
    reason = "TOO_MANY_SELECTIONS"


class InvalidStake(ValidationError):
    reason = "INVALID_STAKE"


class MissingIdentity(ValidationError):
    reason = "MISSING_IDENTITY"


class NotFound(WagerError):
    reason = "NOT_FOUND"
    status_code = 404


# ---------- Business rejections (domain rule failed, surfaced verbatim) ----------

class BusinessRejection(WagerError):
    reason = "BET_REJECTED"


class MatchNotFound(BusinessRejection):
    reason = "MATCH_NOT_FOUND"
    status_code = 404


class MatchStarted(BusinessRejection):
    reason = "MATCH_STARTED"


class MatchNotOpen(BusinessRejection):
    reason = "MATCH_NOT_OPEN"


class MarketNotFound(BusinessRejection):
    reason = "MARKET_NOT_FOUND"


class SelectionNotFound(BusinessRejection):
    reason = "SELECTION_NOT_FOUND"


class InsufficientFunds(BusinessRejection):
    reason = "INSUFFICIENT_FUNDS"


class DuplicateBet(BusinessRejection):
    """The bet id already exists.

    Only happens when a placement is retried after it was already applied, so
    the original bet id is carried along for callers that treat it as success.
    """

    reason = "DUPLICATE_BET"
    status_code = 409

    def __init__(self, message: str, bet_id: str):
        super().__init__(message, bet_id=bet_id)
        self.bet_id = bet_id

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload["betId"] = self.bet_id
        return payload


# ---------- Infrastructure ----------

class TransientFailure(WagerError):
    """Store unavailable or timed out. Safe to retry: nothing was applied."""

    reason = "STORE_UNAVAILABLE"
    status_code = 503
    retryable = True


class FatalError(WagerError):
    """Programming or configuration error. Rendered as an opaque 500."""

    reason = "INTERNAL_ERROR"
    status_code = 500

    def to_payload(self) -> dict:
        return {
            "success": False,
            "reason": self.reason,
            "message": "An internal error occurred.",
        }


def classify_store_error(exc: PyMongoError, *, bet_id: str | None = None) -> WagerError:
    """Map a pymongo error onto the taxonomy.

    Unclassified errors default to TransientFailure so callers' retry logic
    stays on the safe side; the commit is atomic, so a retry never doubles a
    debit.
    """
    if isinstance(exc, DuplicateKeyError) and bet_id is not None:
        return DuplicateBet(f"Bet {bet_id} has already been placed.", bet_id=bet_id)
    if isinstance(exc, ConfigurationError):
        return FatalError(f"Store configuration error: {exc}")
    return TransientFailure(
        "The betting service is temporarily unavailable. Please try again."
    )
