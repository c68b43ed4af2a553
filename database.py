"""
MongoDB access for the SkillSwap API.

A single lazily-connecting client is created at import time. Route handlers
receive the database through the ``get_db`` dependency so tests can swap in
an in-memory database.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Optional, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "skillswap")

client = MongoClient(DATABASE_URL, serverSelectionTimeoutMS=5000)
db = client[DATABASE_NAME]


def get_db() -> Database:
    return db


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what pymongo hands back on reads."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to a naive stored timestamp so it serializes with an offset."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse an id string, returning None when it is not a valid ObjectId."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def create_document(database: Database, collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document stamped with created_at/updated_at and return its id."""
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    now = utcnow()
    doc.setdefault("created_at", now)
    doc["updated_at"] = now
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)


def find_by_id(database: Database, collection_name: str, doc_id: Any) -> Optional[dict]:
    oid = to_object_id(doc_id)
    if oid is None:
        return None
    return database[collection_name].find_one({"_id": oid})


def ensure_indexes(database: Database) -> None:
    database.user.create_index([("email", ASCENDING)], unique=True)
    database.notification.create_index([("recipient", ASCENDING), ("created_at", ASCENDING)])
    database.match.create_index([("requester", ASCENDING), ("status", ASCENDING)])
    database.match.create_index([("recipient", ASCENDING), ("status", ASCENDING)])
    database.conversation.create_index([("participants", ASCENDING)])
    database.message.create_index([("conversation", ASCENDING), ("read", ASCENDING)])
    logger.info("MongoDB indexes ensured on %s", database.name)
