"""
Database Schemas for the Trading Journal sync backend

Each Pydantic model maps to a MongoDB collection (users, trades) or to a
request body accepted by the API.
"""
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime


def id_to_str(value: Any) -> Any:
    # Telegram sends numeric ids; they are stored as strings.
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


class User(BaseModel):
    telegramId: str = Field(..., description="Telegram user id, unique")
    firstName: Optional[str] = Field(None, description="Telegram first name")
    username: Optional[str] = Field(None, description="Display name / @username")
    photoUrl: Optional[str] = Field(None, description="Avatar url")
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class UserOut(BaseModel):
    """Public projection of a user. Timestamps are never exposed."""
    id: str
    firstName: Optional[str] = None
    username: Optional[str] = None
    photoUrl: Optional[str] = None


class Trade(BaseModel):
    # Unknown keys sent by the client are dropped, not stored.
    model_config = ConfigDict(extra="ignore")

    telegramId: Optional[str] = Field(None, description="Owner id, always overwritten on sync")
    tradeId: str = Field(..., min_length=1, description="Client-assigned id, unique per owner")
    date: Optional[str] = None
    timestamp: Optional[datetime] = None
    ticker: Optional[str] = None
    entry: Optional[float] = None
    sl: Optional[float] = None
    tp1: Optional[float] = None
    tp2: Optional[float] = None
    tp3: Optional[float] = None
    tp1_size: Optional[float] = None
    tp2_size: Optional[float] = None
    tp3_size: Optional[float] = None
    leverage: Optional[float] = None
    rr: Optional[str] = None
    profitMoney: Optional[str] = None
    profitUsd: Optional[str] = None
    moneyRiskRub: Optional[float] = None
    potentialProfitRub: Optional[float] = None
    closedBy: Optional[str] = None

    @field_validator("telegramId", "tradeId", mode="before")
    @classmethod
    def coerce_ids(cls, v):
        return id_to_str(v)


# Request bodies. Required ids are Optional here so that a missing id is
# reported by the service as a ValidationError with a readable message.

class UserSyncRequest(BaseModel):
    telegramId: Optional[str] = None
    firstName: Optional[str] = None
    username: Optional[str] = None
    photoUrl: Optional[str] = None

    @field_validator("telegramId", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return id_to_str(v)


class TradeSyncRequest(BaseModel):
    telegramId: Optional[str] = None
    trades: Optional[List[Trade]] = None

    @field_validator("telegramId", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return id_to_str(v)


def trade_documents(owner_id: str, trades: List[Trade]) -> List[Dict[str, Any]]:
    """Dump trades for storage, stamping every one with ``owner_id``."""
    docs = []
    for t in trades:
        doc = t.model_dump()
        doc["telegramId"] = owner_id
        docs.append(doc)
    return docs
