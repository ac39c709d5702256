"""
Synchronization logic between the client's local journal and the store.

The client owns the complete trade list and pushes a full snapshot on
every sync, so trades are replaced wholesale per owner rather than merged.
Users are upserted by Telegram id: fields that arrive non-empty overwrite
the stored value, ``None`` or ``""`` keep it.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from errors import NotFoundError, StoreError, ValidationError
from schemas import Trade, User, UserOut, trade_documents

logger = logging.getLogger(__name__)


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


class SyncService:
    def __init__(self, store, environment: str = "development"):
        self.store = store
        self.environment = environment

    def _require_store(self) -> None:
        if self.store is None:
            raise StoreError("Database is not connected")

    def health(self) -> Dict[str, Any]:
        connected = self.store is not None and self.store.is_connected()
        return {
            "message": "Trading App API is running!",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": self.environment,
            "database": "connected" if connected else "disconnected",
        }

    def get_trades(self, owner_id: str) -> Tuple[List[Dict[str, Any]], int]:
        if _blank(owner_id):
            raise ValidationError("Telegram ID is required")
        self._require_store()
        trades = self.store.list_trades(owner_id)
        return trades, len(trades)

    def upsert_user(
        self,
        telegram_id: Optional[str],
        first_name: Optional[str] = None,
        username: Optional[str] = None,
        photo_url: Optional[str] = None,
    ) -> UserOut:
        if _blank(telegram_id):
            raise ValidationError("Telegram ID is required")
        self._require_store()

        incoming = {"firstName": first_name, "username": username, "photoUrl": photo_url}
        fields = {k: v for k, v in incoming.items() if v}
        doc = self.store.upsert_user(telegram_id, fields)
        user = User.model_validate(doc)
        logger.info("User %s synced (%d fields updated)", telegram_id, len(fields))
        return UserOut(
            id=user.telegramId,
            firstName=user.firstName,
            username=user.username,
            photoUrl=user.photoUrl,
        )

    def replace_trades(self, owner_id: Optional[str], trades: Optional[List[Trade]]) -> int:
        if _blank(owner_id):
            raise ValidationError("Telegram ID is required")
        if trades is None:
            raise ValidationError("Trades array is required")

        self._require_store()
        count = self.store.replace_trades(owner_id, trade_documents(owner_id, trades))
        logger.info("Synced %d trades for %s", count, owner_id)
        return count

    def delete_trade(self, owner_id: str, trade_id: str) -> None:
        if _blank(owner_id) or _blank(trade_id):
            raise ValidationError("Telegram ID and trade ID are required")
        self._require_store()
        if not self.store.delete_trade(owner_id, trade_id):
            raise NotFoundError("Trade not found")
        logger.info("Deleted trade %s for %s", trade_id, owner_id)
