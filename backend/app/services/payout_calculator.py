"""
backend/app/services/payout_calculator.py

Purpose:
    Pure accumulator pricing: aggregate odds are the product of the resolved
    per-selection odds, payout is stake times aggregate odds. Computation runs
    at full Decimal precision; rounding happens once, when a quote is built
    for persistence (4 dp for odds, 2 dp for currency).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from functools import reduce
from operator import mul
from typing import Iterable

ODDS_QUANTUM = Decimal("0.0001")
CURRENCY_QUANTUM = Decimal("0.01")


def to_decimal(value: float | int | str | Decimal) -> Decimal:
    """Convert via str so binary float noise (1.8 -> 1.8000000000000000444) is dropped."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def aggregate_odds(odds: Iterable[float | Decimal]) -> Decimal:
    return reduce(mul, (to_decimal(o) for o in odds), Decimal(1))


def potential_payout(stake: float | Decimal, total_odds: Decimal) -> Decimal:
    return to_decimal(stake) * total_odds


@dataclass(frozen=True)
class TicketQuote:
    total_odds: Decimal          # rounded to 4 dp
    potential_payout: Decimal    # rounded to 2 dp


def quote_ticket(stake: float | Decimal, odds: Iterable[float | Decimal]) -> TicketQuote:
    """Price a ticket and round the results for storage.

    The payout is derived from the unrounded aggregate, so long accumulators
    do not compound rounding error.
    """
    total = aggregate_odds(odds)
    payout = potential_payout(stake, total)
    return TicketQuote(
        total_odds=total.quantize(ODDS_QUANTUM, rounding=ROUND_HALF_UP),
        potential_payout=payout.quantize(CURRENCY_QUANTUM, rounding=ROUND_HALF_UP),
    )
