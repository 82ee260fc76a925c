"""
Document store access for the back office.

The connection is an explicit ``Database`` handle created at startup and
handed to request handlers through the ``get_db`` dependency. Collections are
named after the lowercase schema class: ``user``, ``source``, ``product`` and
``order``.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Request
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient

import config

logger = logging.getLogger(__name__)


class Database:
    def __init__(self, url: Optional[str] = None, name: str = config.DATABASE_NAME, client=None):
        self.url = url
        self.name = name
        self._client = client
        self._db = None

    @classmethod
    def from_env(cls) -> "Database":
        return cls(url=config.database_url(), name=config.DATABASE_NAME)

    @property
    def connected(self) -> bool:
        return self._db is not None

    def ensure_connected(self):
        if self._db is not None:
            return self._db
        if self._client is None:
            if not self.url:
                raise config.ConfigurationError("No database URL configured")
            self._client = MongoClient(self.url)
        self._db = self._client[self.name]
        self._db["user"].create_index([("email", ASCENDING)], unique=True)
        logger.info("Connected to document store database=%s", self.name)
        return self._db

    def collection(self, name: str):
        return self.ensure_connected()[name]

    def __getitem__(self, name: str):
        return self.collection(name)

    def ping(self) -> bool:
        self.ensure_connected()
        self._client.admin.command("ping")
        return True

    def list_collection_names(self):
        return self.ensure_connected().list_collection_names()

    def close(self):
        if self._client is not None:
            self._client.close()
        self._client = None
        self._db = None


def get_db(request: Request) -> Database:
    return request.app.state.database


def now() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: Any) -> ObjectId:
    """Parse an id from a request; raises ``InvalidId`` on garbage."""
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str):
        raise InvalidId(f"{value!r} is not a valid id")
    return ObjectId(value)


def serialize(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, list):
        return [serialize(v) for v in value]
    if isinstance(value, dict):
        out = {}
        for key, val in value.items():
            if key == "_id":
                out["id"] = serialize(val)
            else:
                out[key] = serialize(val)
        return out
    return value


def create_document(db: Database, collection_name: str, data) -> dict:
    if isinstance(data, BaseModel):
        data = data.model_dump()
    doc = dict(data)
    doc["created_at"] = now()
    doc["updated_at"] = now()
    result = db[collection_name].insert_one(doc)
    doc["_id"] = result.inserted_id
    return doc


def get_documents(db: Database, collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None):
    cursor = db[collection_name].find(filter_dict or {}).sort("created_at", -1)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)
