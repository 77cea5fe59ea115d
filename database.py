"""
Database helpers

Thin wrapper around a shared pymongo client. Collections are named after the
lowercased model names in schemas.py (User -> "user", Order -> "order", ...).
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from config import settings
from logger import logger

client = MongoClient(settings.DATABASE_URL, serverSelectionTimeoutMS=5000)
db = client[settings.DATABASE_NAME]


def get_db() -> Database:
    """FastAPI dependency returning the shared database handle."""
    return db


def ensure_indexes(database: Database) -> None:
    database["user"].create_index([("email", ASCENDING)], unique=True)
    database["payment_proof"].create_index([("hash", ASCENDING)], unique=True)
    database["order"].create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
    database["order"].create_index([("status", ASCENDING), ("created_at", ASCENDING)])
    database["livestock"].create_index([("created_at", DESCENDING)])
    logger.info("Database indexes ensured")


def create_document(database: Database, collection_name: str, data: Dict[str, Any]) -> str:
    """Insert a document with created/updated timestamps and return its id as a string."""
    now = datetime.utcnow()
    doc = {**data}
    doc.setdefault("created_at", now)
    doc.setdefault("updated_at", now)
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(
    database: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    projection: Optional[Dict[str, Any]] = None,
    sort: Optional[List] = None,
) -> List[Dict[str, Any]]:
    cursor = database[collection_name].find(filter_dict or {}, projection)
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def parse_object_id(value: str) -> Optional[ObjectId]:
    """Return an ObjectId for value, or None when it is not a valid id."""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def to_object_ids(values) -> List[ObjectId]:
    ids = []
    for v in values:
        oid = parse_object_id(v)
        if oid is not None:
            ids.append(oid)
    return ids


def _serialize_value(value):
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {k: _serialize_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_serialize_value(v) for v in value]
    return value


def serialize_document(doc: dict) -> dict:
    if not doc:
        return doc
    doc = {**doc}
    if doc.get("_id") is not None:
        doc["id"] = str(doc.pop("_id"))
    # Nested ObjectIds (user_id, order_id, ...) become strings too
    for k, v in list(doc.items()):
        doc[k] = _serialize_value(v)
    return doc
