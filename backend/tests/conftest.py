"""
backend/tests/conftest.py

Purpose:
    Shared pytest bootstrap: import paths plus in-memory stand-ins for the
    motor collections, client and transaction sessions the services use.
"""

from __future__ import annotations

import asyncio
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest
from pymongo.errors import DuplicateKeyError

_THIS_FILE = Path(__file__).resolve()
_BACKEND_DIR = _THIS_FILE.parents[1]

if str(_BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(_BACKEND_DIR))

import app.database as _db  # noqa: E402


def _get(doc: dict, key: str):
    node = doc
    for part in key.split("."):
        if not isinstance(node, dict):
            return None
        node = node.get(part)
    return node


def doc_matches(doc: dict, query: dict) -> bool:
    """Tiny subset of the MongoDB query language used by the services."""
    for key, cond in query.items():
        if key == "$or":
            if not any(doc_matches(doc, sub) for sub in cond):
                return False
            continue
        value = _get(doc, key)
        if isinstance(cond, dict) and cond and all(k.startswith("$") for k in cond):
            for op, arg in cond.items():
                if op == "$gt" and not (value is not None and value > arg):
                    return False
                if op == "$gte" and not (value is not None and value >= arg):
                    return False
                if op == "$lt" and not (value is not None and value < arg):
                    return False
                if op == "$in" and value not in arg:
                    return False
                if op == "$ne" and value == arg:
                    return False
        elif value != cond:
            return False
    return True


class FakeCursor:
    def __init__(self, docs: list[dict]):
        self._docs = docs
        self._limit = len(docs)
        self.hinted: str | None = None
        self.sorted_by: list | None = None

    def hint(self, index_name: str):
        self.hinted = index_name
        return self

    def sort(self, key, direction: int | None = None):
        keys = [(key, direction or 1)] if isinstance(key, str) else list(key)
        self.sorted_by = keys
        for field, order in reversed(keys):
            self._docs = sorted(self._docs, key=lambda d: _get(d, field), reverse=order < 0)
        return self

    def limit(self, value: int):
        self._limit = value
        return self

    async def to_list(self, length: int):
        await asyncio.sleep(0)
        return [dict(d) for d in self._docs[: min(self._limit, length)]]


class FakeCollection:
    """Dict-backed collection keyed by ``_id`` with undo support for sessions."""

    def __init__(self, docs: list[dict] | None = None):
        self.docs: dict = {d["_id"]: dict(d) for d in (docs or [])}
        self.fail_with: Exception | None = None
        self.find_calls: list[dict] = []
        self.cursors: list[FakeCursor] = []
        self.find_one_calls = 0
        self.in_flight = 0
        self.max_in_flight = 0

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def find(self, query: dict | None = None, projection: dict | None = None):
        self._maybe_fail()
        query = query or {}
        self.find_calls.append(query)
        cursor = FakeCursor([d for d in self.docs.values() if doc_matches(d, query)])
        self.cursors.append(cursor)
        return cursor

    async def find_one(self, query: dict, projection: dict | None = None, session=None):
        self.find_one_calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            self._maybe_fail()
            for doc in self.docs.values():
                if doc_matches(doc, query):
                    return dict(doc)
            return None
        finally:
            self.in_flight -= 1

    async def insert_one(self, doc: dict, session=None):
        await asyncio.sleep(0)
        self._maybe_fail()
        if doc["_id"] in self.docs:
            raise DuplicateKeyError(f"E11000 duplicate key error _id: {doc['_id']}")
        self.docs[doc["_id"]] = dict(doc)
        if session is not None:
            session.undo.append(lambda: self.docs.pop(doc["_id"], None))
        return SimpleNamespace(inserted_id=doc["_id"])

    async def update_one(self, query: dict, update: dict, upsert: bool = False, session=None):
        await asyncio.sleep(0)
        self._maybe_fail()
        for doc in self.docs.values():
            if doc_matches(doc, query):
                doc.update(update.get("$set") or {})
                return SimpleNamespace(matched_count=1, modified_count=1, upserted_id=None)
        if not upsert:
            return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)
        new_doc = {k: v for k, v in query.items() if not isinstance(v, dict)}
        new_doc.update(update.get("$setOnInsert") or {})
        new_doc.update(update.get("$set") or {})
        self.docs[new_doc["_id"]] = new_doc
        return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=new_doc["_id"])

    async def find_one_and_update(
        self, query: dict, update: dict, projection=None, return_document=None, session=None,
    ):
        await asyncio.sleep(0)
        self._maybe_fail()
        for key, doc in self.docs.items():
            if not doc_matches(doc, query):
                continue
            before = dict(doc)
            for field, delta in (update.get("$inc") or {}).items():
                doc[field] = doc.get(field, 0) + delta
            doc.update(update.get("$set") or {})
            if session is not None:
                session.undo.append(lambda key=key, before=before: self.docs.__setitem__(key, before))
            return dict(doc)
        return None


class FakeSession:
    """Serializes transactions and rolls back recorded writes on failure."""

    def __init__(self, client: "FakeClient"):
        self._client = client
        self.undo: list = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def with_transaction(self, callback, **_kwargs):
        async with self._client.lock:
            self._client.transactions += 1
            self.undo = []
            try:
                return await callback(self)
            except BaseException:
                for revert in reversed(self.undo):
                    revert()
                raise


class FakeClient:
    def __init__(self):
        self.lock = asyncio.Lock()
        self.transactions = 0

    async def start_session(self):
        return FakeSession(self)


class FakeStore:
    def __init__(self, matches: list[dict] | None = None, accounts: list[dict] | None = None):
        self.db = SimpleNamespace(
            matches=FakeCollection(matches),
            accounts=FakeCollection(accounts),
            bets=FakeCollection(),
        )
        self.client = FakeClient()

    def add_matches(self, *docs: dict) -> None:
        for doc in docs:
            self.db.matches.docs[doc["_id"]] = dict(doc)

    def fund(self, user_id: str, balance_minor: int) -> None:
        self.db.accounts.docs[user_id] = {
            "_id": user_id,
            "balance_minor": balance_minor,
            "created_at": NOW,
            "updated_at": NOW,
        }

    def balance_minor(self, user_id: str) -> int | None:
        account = self.db.accounts.docs.get(user_id)
        return None if account is None else account["balance_minor"]


NOW = datetime.now(timezone.utc).replace(microsecond=0)


def make_match(match_id: str, *, kickoff_in: timedelta = timedelta(hours=3), **overrides) -> dict:
    doc = {
        "_id": match_id,
        "sport": "football",
        "league": "NPFL",
        "home_team": f"{match_id}-home",
        "away_team": f"{match_id}-away",
        "match_date": NOW + kickoff_in,
        "status": "upcoming",
        "odds": {"1X2": {"1": 1.8, "X": 3.2, "2": 2.0}},
    }
    doc.update(overrides)
    return doc


@pytest.fixture
def fake_store(monkeypatch):
    store = FakeStore()
    monkeypatch.setattr(_db, "db", store.db, raising=False)
    monkeypatch.setattr(_db, "client", store.client, raising=False)
    return store
