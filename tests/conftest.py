"""Shared fixtures: an in-memory store with the MongoStore contract."""

from __future__ import annotations

import copy
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from service import SyncService


class InMemoryStore:
    def __init__(self):
        self.users: dict[str, dict] = {}
        self.trades: list[dict] = []
        self.connected = True
        self._next_id = 1

    def is_connected(self) -> bool:
        return self.connected

    def find_user(self, telegram_id):
        user = self.users.get(telegram_id)
        return copy.deepcopy(user) if user else None

    def upsert_user(self, telegram_id, fields):
        now = datetime.now(timezone.utc)
        user = self.users.setdefault(telegram_id, {"telegramId": telegram_id, "createdAt": now})
        user.update({k: v for k, v in fields.items() if v is not None})
        user["updatedAt"] = now
        return copy.deepcopy(user)

    def list_trades(self, telegram_id):
        owned = [copy.deepcopy(t) for t in self.trades if t["telegramId"] == telegram_id]
        # Mongo sorts nulls last on a descending sort.
        owned.sort(key=lambda t: (t.get("timestamp") is not None, t.get("timestamp") or 0), reverse=True)
        return owned

    def replace_trades(self, telegram_id, trades):
        self.trades = [t for t in self.trades if t["telegramId"] != telegram_id]
        for t in trades:
            doc = dict(t, telegramId=telegram_id, id=str(self._next_id))
            self._next_id += 1
            self.trades.append(doc)
        return len(trades)

    def delete_trade(self, telegram_id, trade_id):
        for i, t in enumerate(self.trades):
            if t["telegramId"] == telegram_id and t["tradeId"] == trade_id:
                del self.trades[i]
                return True
        return False


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def service(store) -> SyncService:
    return SyncService(store, environment="test")


@pytest.fixture
def client(store):
    from main import app, get_store

    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()
