"""MongoDB access for the document collections.

Announcements, submissions, certificates and chat threads live here. They
reference relational rows by integer id only, so writes go through
:class:`hackhub.services.references.ReferenceValidator` first.
"""
import logging
from typing import Any

from bson.objectid import ObjectId
from fastapi import HTTPException
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

from hackhub.core.config import MONGO_DB_NAME, MONGO_URI

logger = logging.getLogger(__name__)

ANNOUNCEMENTS = "announcements"
SUBMISSIONS = "submissions"
CERTIFICATES = "certificates"
CHATS = "chat_threads"

_client: MongoClient | None = None
_indexed: set[str] = set()


def ensure_indexes(db: Database) -> None:
    db[SUBMISSIONS].create_index(
        [("event_id", ASCENDING), ("team_id", ASCENDING), ("round", ASCENDING)],
        unique=True,
        name="uq_submission_event_team_round",
    )
    db[CERTIFICATES].create_index(
        [("event_id", ASCENDING), ("user_id", ASCENDING)],
        unique=True,
        name="uq_certificate_event_user",
    )
    db[ANNOUNCEMENTS].create_index([("event_id", ASCENDING), ("created_at", ASCENDING)])
    db[CHATS].create_index([("event_id", ASCENDING), ("created_at", ASCENDING)])


def get_client() -> MongoClient:
    # MongoClient connects lazily, so creating it never blocks startup
    global _client
    if _client is None:
        logger.info("Creating MongoDB client for %s", MONGO_DB_NAME)
        _client = MongoClient(MONGO_URI, tz_aware=True)
    return _client


def get_docs():
    db = get_client()[MONGO_DB_NAME]
    if db.name not in _indexed:
        ensure_indexes(db)
        _indexed.add(db.name)
    yield db


def close_client() -> None:
    global _client
    if _client is not None:
        _client.close()
        _client = None
        _indexed.clear()


def parse_object_id(value: str, label: str = "Document") -> ObjectId:
    if not ObjectId.is_valid(value):
        raise HTTPException(status_code=400, detail=f"Invalid {label.lower()} ID")
    return ObjectId(value)


def to_str_id(doc: dict[str, Any] | None) -> dict[str, Any] | None:
    if doc is None:
        return None
    out = dict(doc)
    out["id"] = str(out.pop("_id"))
    return out
