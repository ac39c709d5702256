"""
MongoDB persistence for users and trades.

A ``MongoStore`` is constructed explicitly at startup and handed to the
service layer; there is no module-level connection.  Two collections are
used:

- ``users``: one document per Telegram id (unique index).
- ``trades``: any number of documents per Telegram id, each carrying the
  client-assigned ``tradeId``.

``replace_trades`` is delete-all then insert-all.  Unless transactions are
enabled, a reader may briefly see zero trades for an owner between the two
phases, and a failed insert leaves the owner with zero trades.
"""
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from errors import StoreError

logger = logging.getLogger(__name__)


def serialize(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Replace Mongo's ``_id`` with a string ``id``."""
    doc = dict(doc)
    if "_id" in doc:
        doc["id"] = str(doc.pop("_id"))
    return doc


@contextmanager
def store_errors(operation: str):
    try:
        yield
    except PyMongoError as e:
        logger.error("MongoDB %s failed: %s", operation, e)
        raise StoreError(str(e)) from e


class MongoStore:
    def __init__(
        self,
        uri: str,
        database_name: str,
        timeout_ms: int = 5000,
        use_transactions: bool = False,
        client: Optional[MongoClient] = None,
    ):
        self.uri = uri
        self.database_name = database_name
        self.timeout_ms = timeout_ms
        self.use_transactions = use_transactions
        self._client = client
        self.db = None
        self.users = None
        self.trades = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """Open the client, check the server answers, and create indexes.

        Raises:
            StoreError: if the server is unreachable or index creation fails.
        """
        with store_errors("connect"):
            if self._client is None:
                self._client = MongoClient(
                    self.uri,
                    serverSelectionTimeoutMS=self.timeout_ms,
                    retryWrites=True,
                    w="majority",
                )
            self._client.admin.command("ping")
            self.db = self._client[self.database_name]
            self.users = self.db["users"]
            self.trades = self.db["trades"]
            self.ensure_indexes()
        logger.info("Connected to MongoDB database %s", self.database_name)

    def ensure_indexes(self) -> None:
        self.users.create_index([("telegramId", ASCENDING)], unique=True)
        self.trades.create_index([("telegramId", ASCENDING), ("timestamp", DESCENDING)])
        self.trades.create_index([("telegramId", ASCENDING), ("tradeId", ASCENDING)])

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            logger.info("MongoDB connection closed")
        self._client = None
        self.db = None
        self.users = None
        self.trades = None

    def is_connected(self) -> bool:
        """Readiness flag for the health check. Never raises."""
        if self._client is None or self.db is None:
            return False
        try:
            self._client.admin.command("ping")
            return True
        except PyMongoError as e:
            logger.warning("MongoDB ping failed: %s", e)
            return False

    def _require(self) -> None:
        if self.db is None:
            raise StoreError("Database is not connected")

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def find_user(self, telegram_id: str) -> Optional[Dict[str, Any]]:
        self._require()
        with store_errors("find_user"):
            return self.users.find_one({"telegramId": telegram_id})

    def upsert_user(self, telegram_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Insert the user if absent, else ``$set`` the non-None ``fields``.

        ``createdAt`` is only written on insert.
        """
        self._require()
        now = datetime.now(timezone.utc)
        to_set = {k: v for k, v in fields.items() if v is not None}
        to_set["updatedAt"] = now
        update = {"$set": to_set, "$setOnInsert": {"createdAt": now}}

        with store_errors("upsert_user"):
            try:
                return self.users.find_one_and_update(
                    {"telegramId": telegram_id},
                    update,
                    upsert=True,
                    return_document=ReturnDocument.AFTER,
                )
            except DuplicateKeyError:
                # Lost an insert race against a concurrent upsert; the
                # document exists now so the retry takes the update path.
                return self.users.find_one_and_update(
                    {"telegramId": telegram_id},
                    update,
                    upsert=True,
                    return_document=ReturnDocument.AFTER,
                )

    # ------------------------------------------------------------------
    # Trades
    # ------------------------------------------------------------------

    def list_trades(self, telegram_id: str) -> List[Dict[str, Any]]:
        self._require()
        with store_errors("list_trades"):
            cursor = self.trades.find({"telegramId": telegram_id}).sort("timestamp", DESCENDING)
            return [serialize(t) for t in cursor]

    def replace_trades(self, telegram_id: str, trades: List[Dict[str, Any]]) -> int:
        """Delete every trade of ``telegram_id`` then insert ``trades``."""
        self._require()
        now = datetime.now(timezone.utc)
        docs = [{**t, "telegramId": telegram_id, "createdAt": now, "updatedAt": now} for t in trades]

        def _replace(session=None) -> int:
            deleted = self.trades.delete_many({"telegramId": telegram_id}, session=session)
            logger.debug("Deleted %d trades for %s", deleted.deleted_count, telegram_id)
            if not docs:
                return 0
            result = self.trades.insert_many(docs, session=session)
            return len(result.inserted_ids)

        with store_errors("replace_trades"):
            if self.use_transactions:
                with self._client.start_session() as session:
                    return session.with_transaction(_replace)
            return _replace()

    def delete_trade(self, telegram_id: str, trade_id: str) -> bool:
        self._require()
        with store_errors("delete_trade"):
            result = self.trades.delete_one({"telegramId": telegram_id, "tradeId": trade_id})
            return result.deleted_count > 0
