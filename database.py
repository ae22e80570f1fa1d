"""
MongoDB access

A `Database` owns the client connection and is opened/closed by the
application lifespan. Request handlers reach the pymongo database through
the `get_db` dependency.
"""

from typing import Any, Callable, Optional

import structlog
from bson import ObjectId
from fastapi import Request
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database as MongoDatabase

from config import DATABASE_NAME, DATABASE_URL

logger = structlog.get_logger(__name__)


class Database:
    def __init__(
        self,
        url: str = DATABASE_URL,
        name: str = DATABASE_NAME,
        client_factory: Callable[..., MongoClient] = MongoClient,
    ):
        self.url = url
        self.name = name
        self._client_factory = client_factory
        self.client: Optional[MongoClient] = None
        self.db: Optional[MongoDatabase] = None

    def connect(self) -> MongoDatabase:
        if self.db is not None:
            return self.db
        self.client = self._client_factory(self.url)
        self.db = self.client[self.name]
        # One account and one cart per email
        self.db["user"].create_index([("email", ASCENDING)], unique=True)
        self.db["cart"].create_index([("email", ASCENDING)], unique=True)
        logger.info("Connected to MongoDB", database=self.name)
        return self.db

    def close(self) -> None:
        if self.client is None:
            return
        self.client.close()
        self.client = None
        self.db = None
        logger.info("Closed MongoDB connection", database=self.name)


def get_db(request: Request) -> MongoDatabase:
    database: Database = request.app.state.database
    if database.db is None:
        raise RuntimeError("Database is not connected")
    return database.db


def to_object_id(value: Any) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def serialize_doc(doc: Any) -> Any:
    """Make a document JSON friendly: `_id` becomes `id` and ObjectIds become strings."""
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, list):
        return [serialize_doc(v) for v in doc]
    if not isinstance(doc, dict):
        return doc
    out = {}
    for k, v in doc.items():
        if k == "_id":
            out["id"] = serialize_doc(v)
        else:
            out[k] = serialize_doc(v)
    return out
