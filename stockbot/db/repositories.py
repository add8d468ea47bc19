from __future__ import annotations
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, List
import logging

from pymongo import DESCENDING, MongoClient, ReturnDocument
from pymongo.client_session import ClientSession
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from stockbot.app.errors import DatabaseError
from stockbot.db.base import SessionBackend
from stockbot.db.mongo import MongoHandles
from stockbot.db.schemas import ChatMessage, ChatSession

logger = logging.getLogger(__name__)


@contextmanager
def _db_errors(op: str) -> Iterator[None]:
    try:
        yield
    except PyMongoError as e:
        raise DatabaseError(f"{op} failed: {e}") from e


class SessionRepo:
    def __init__(self, sessions: Collection):
        self.sessions = sessions

    def insert(self, doc: Dict[str, Any]) -> str:
        self.sessions.insert_one(doc)
        return doc["_id"]

    def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        return self.sessions.find_one({"_id": session_id})

    def set_fields(self, session_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return self.sessions.find_one_and_update(
            {"_id": session_id},
            {"$set": fields},
            return_document=ReturnDocument.AFTER,
        )

    def next_message_seq(self, session_id: str, fields: Dict[str, Any]) -> Optional[int]:
        doc = self.sessions.find_one_and_update(
            {"_id": session_id},
            {"$inc": {"message_seq": 1}, "$set": fields},
            projection={"message_seq": 1},
            return_document=ReturnDocument.AFTER,
        )
        if not doc:
            return None
        return int(doc["message_seq"])

    def delete(self, session_id: str, *, session: Optional[ClientSession] = None) -> bool:
        res = self.sessions.delete_one({"_id": session_id}, session=session)
        return res.deleted_count > 0

class MessageRepo:
    def __init__(self, messages: Collection):
        self.messages = messages

    def insert(self, doc: Dict[str, Any]) -> str:
        self.messages.insert_one(doc)
        return doc["_id"]

    def list_recent(self, session_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        cur = (
            self.messages.find({"session_id": session_id})
            .sort([("ts", DESCENDING), ("seq", DESCENDING)])
            .limit(limit)
        )
        return list(cur)[::-1]  # oldest→newest

    def delete_for_session(self, session_id: str, *, session: Optional[ClientSession] = None) -> int:
        res = self.messages.delete_many({"session_id": session_id}, session=session)
        return res.deleted_count


class MongoSessionBackend(SessionBackend):
    """
    Durable backend over `chat_sessions` + `chat_messages`.
    Cascade delete runs in a multi-document transaction, so the deployment
    must be a replica set or mongos (Atlas clusters are). On a standalone
    mongod `delete_session` fails with DatabaseError, which makes every
    expiry replacement and DELETE request an internal error; use
    STORE_BACKEND=memory for single-node development.
    """

    def __init__(self, handles: MongoHandles):
        self.client: MongoClient = handles["client"]
        self.session_repo = SessionRepo(handles["sessions"])
        self.message_repo = MessageRepo(handles["messages"])

    def insert_session(self, session: ChatSession) -> None:
        with _db_errors("insert_session"):
            self.session_repo.insert(session.model_dump(by_alias=True))

    def get_session(self, session_id: str) -> Optional[ChatSession]:
        with _db_errors("get_session"):
            doc = self.session_repo.get(session_id)
        return ChatSession.model_validate(doc) if doc else None

    def update_session(self, session_id: str, fields: Dict[str, Any]) -> Optional[ChatSession]:
        with _db_errors("update_session"):
            doc = self.session_repo.set_fields(session_id, fields)
        return ChatSession.model_validate(doc) if doc else None

    def delete_session(self, session_id: str) -> bool:
        def _cascade(s: ClientSession) -> bool:
            self.message_repo.delete_for_session(session_id, session=s)
            return self.session_repo.delete(session_id, session=s)

        with _db_errors("delete_session"):
            with self.client.start_session() as s:
                deleted = s.with_transaction(_cascade)
        logger.debug("cascade delete", extra={"session_id": session_id})
        return bool(deleted)

    def append_message(self, message: ChatMessage, session_fields: Dict[str, Any]) -> Optional[ChatMessage]:
        with _db_errors("append_message"):
            seq = self.session_repo.next_message_seq(message.session_id, session_fields)
            if seq is None:
                return None
            stored = message.model_copy(update={"seq": seq})
            self.message_repo.insert(stored.model_dump(by_alias=True))
        return stored

    def recent_messages(self, session_id: str, limit: int) -> List[ChatMessage]:
        with _db_errors("recent_messages"):
            docs = self.message_repo.list_recent(session_id, limit)
        return [ChatMessage.model_validate(d) for d in docs]
