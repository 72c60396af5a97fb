"""
backend/app/services/match_catalog_service.py

Purpose:
    Read-only listing of bettable matches. Uses the status index or the
    sport/league index when the filter allows it, otherwise falls back to a
    bounded collection scan. Every candidate is re-checked in application code
    because an index can briefly lag the freshest catalog state.

Dependencies:
    - app.database
    - app.errors
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from pymongo.errors import PyMongoError

from app.config import settings
import app.database as _db
from app.errors import classify_store_error
from app.models.match import BETTABLE_STATUSES, SCORE_FIELDS
from app.utils import ensure_utc, utcnow

logger = logging.getLogger("wagerline.match_catalog")

_KICKOFF_ORDER = [("match_date", 1), ("_id", 1)]


def clamp_limit(limit: Optional[int]) -> int:
    if limit is None:
        limit = settings.MATCHES_DEFAULT_LIMIT
    return max(1, min(int(limit), settings.MATCHES_MAX_LIMIT))


def is_bettable(match: dict, now: datetime) -> bool:
    """Kickoff strictly in the future and status upcoming/open."""
    kickoff = match.get("match_date")
    if not isinstance(kickoff, datetime):
        return False
    return ensure_utc(kickoff) > now and match.get("status") in BETTABLE_STATUSES


def strip_scores(match: dict) -> dict:
    return {k: v for k, v in match.items() if k not in SCORE_FIELDS}


async def list_bettable_matches(
    status: Optional[str] = None,
    sport: Optional[str] = None,
    league: Optional[str] = None,
    limit: Optional[int] = None,
    now: Optional[datetime] = None,
) -> list[dict]:
    """List matches open for betting, ascending by kickoff on indexed paths."""
    limit = clamp_limit(limit)
    query_from = now or utcnow()

    try:
        if status:
            candidates = await _query_index(
                {"status": status}, _db.MATCHES_STATUS_INDEX, limit, query_from,
            )
        elif sport and league:
            candidates = await _query_index(
                {"sport": sport, "league": league},
                _db.MATCHES_SPORT_LEAGUE_INDEX, limit, query_from,
            )
        else:
            logger.warning(
                "No index filter given, scanning the match catalog (limit=%d)", limit,
            )
            candidates = await _db.db.matches.find({}).limit(limit).to_list(length=limit)
    except PyMongoError as exc:
        logger.warning("Match catalog read failed: %s", exc)
        raise classify_store_error(exc) from exc

    # Re-read the clock: the freshness check applies at return time.
    check_at = now or utcnow()
    matches = [strip_scores(m) for m in candidates if is_bettable(m, check_at)]
    logger.debug(
        "Catalog listing: status=%s sport=%s league=%s candidates=%d bettable=%d",
        status, sport, league, len(candidates), len(matches),
    )
    return matches


async def _query_index(
    key_filter: dict[str, Any],
    index_name: str,
    limit: int,
    kickoff_after: datetime,
) -> list[dict]:
    """Page through an index with a (match_date, _id) continuation cursor.

    Stops once ``limit`` candidates are collected or the index is exhausted.
    """
    items: list[dict] = []
    last_key: tuple[datetime, Any] | None = None

    while len(items) < limit:
        query: dict[str, Any] = {**key_filter, "match_date": {"$gt": kickoff_after}}
        if last_key is not None:
            last_kickoff, last_id = last_key
            query["$or"] = [
                {"match_date": {"$gt": last_kickoff}},
                {"match_date": last_kickoff, "_id": {"$gt": last_id}},
            ]

        page_size = min(settings.MATCHES_PAGE_SIZE, limit - len(items))
        page = await (
            _db.db.matches.find(query)
            .hint(index_name)
            .sort(_KICKOFF_ORDER)
            .limit(page_size)
            .to_list(length=page_size)
        )
        items.extend(page)
        if len(page) < page_size:
            break
        last_key = (page[-1]["match_date"], page[-1]["_id"])

    return items
