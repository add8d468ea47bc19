from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Literal, Optional, List, Dict
from datetime import datetime

from stockbot.core.clock import as_utc

Role = Literal["user", "assistant"]


class ChatSession(BaseModel):
    """
    One conversation. Stored in `chat_sessions`, keyed by `_id`.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    created_at: datetime
    last_active_at: datetime
    expires_at: datetime
    active_symbol: Optional[str] = None
    referenced_symbols: List[str] = Field(default_factory=list)
    last_op: Optional[str] = None
    summary: Optional[str] = None  # reserved for history compaction
    message_seq: int = 0           # last allocated message sequence number
    ttl_seconds: Optional[float] = None  # per-session override of the store ttl

    @field_validator("created_at", "last_active_at", "expires_at")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class ChatMessage(BaseModel):
    """
    One message in a session. Stored in `chat_messages`; ordered by (ts, seq).
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    session_id: str
    seq: int = 0
    role: Role
    content: str
    metadata: Optional[Dict[str, Any]] = None
    ts: datetime

    @field_validator("ts")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class SessionUpdate(BaseModel):
    """
    Partial update of the mutable session fields. Only fields that were
    explicitly set are merged; an explicit None clears the field.
    """
    model_config = ConfigDict(extra="forbid")

    active_symbol: Optional[str] = None
    referenced_symbols: Optional[List[str]] = None
    last_op: Optional[str] = None
    summary: Optional[str] = None

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)
