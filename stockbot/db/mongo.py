from __future__ import annotations
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database
from pymongo.collection import Collection
from typing import TypedDict

class MongoHandles(TypedDict):
    client: MongoClient
    db: Database
    sessions: Collection
    messages: Collection

def connect_mongo(mongo_uri: str, db_name: str) -> MongoHandles:
    client = MongoClient(
        mongo_uri,
        tz_aware=True,
        serverSelectionTimeoutMS=30000,
        connectTimeoutMS=20000,
        socketTimeoutMS=20000,
    )
    db = client[db_name]
    return {
        "client": client,
        "db": db,
        "sessions": db["chat_sessions"],
        "messages": db["chat_messages"],
    }

def ensure_indexes(handles: MongoHandles) -> None:
    sessions = handles["sessions"]
    messages = handles["messages"]

    # No TTL index: expiry must delete messages together with the session,
    # which the store does explicitly.
    sessions.create_index([("expires_at", ASCENDING)])

    messages.create_index([("session_id", ASCENDING), ("seq", ASCENDING)], unique=True)
    messages.create_index([("session_id", ASCENDING), ("ts", DESCENDING), ("seq", DESCENDING)])
