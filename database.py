"""
Database Helper Functions

MongoDB helpers shared by the API endpoints and the order core.
Every helper goes through the module-level `db`, which is created from
DATABASE_URL / DATABASE_NAME at import time.
"""

import logging
from datetime import datetime, timezone
from typing import Union, Optional, Dict, Any, List

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument

from config import get_settings

logger = logging.getLogger(__name__)

_client = None
db = None

_settings = get_settings()

if _settings.database_url and _settings.database_name:
    _client = MongoClient(_settings.database_url, tz_aware=True)
    db = _client[_settings.database_name]


def _ensure_db():
    if db is None:
        raise RuntimeError("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")


def _to_dict(data: Union[BaseModel, dict]) -> dict:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    return dict(data)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(_id: Union[str, ObjectId]) -> Optional[ObjectId]:
    """Parse an id, returning None when it is not a valid ObjectId."""
    if isinstance(_id, ObjectId):
        return _id
    try:
        return ObjectId(_id)
    except (InvalidId, TypeError):
        return None


# CRUD helpers

def create_document(collection_name: str, data: Union[BaseModel, dict]) -> str:
    _ensure_db()
    payload = _to_dict(data)
    now = _now()
    payload['created_at'] = now
    payload['updated_at'] = now
    result = db[collection_name].insert_one(payload)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None,
                  sort: Optional[list] = None, projection: Optional[dict] = None) -> List[dict]:
    _ensure_db()
    cursor = db[collection_name].find(filter_dict or {}, projection)
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(int(limit))
    return [serialize_doc(doc) for doc in cursor]


def get_document(collection_name: str, filter_dict: dict, sort: Optional[list] = None) -> Optional[dict]:
    _ensure_db()
    doc = db[collection_name].find_one(filter_dict, sort=sort)
    return serialize_doc(doc)


def get_document_by_id(collection_name: str, _id: str) -> Optional[dict]:
    oid = to_object_id(_id)
    if oid is None:
        return None
    return get_document(collection_name, {"_id": oid})


def update_document(collection_name: str, _id: str, update_data: Union[BaseModel, Dict[str, Any]]) -> bool:
    """Set fields on a document. Returns False when no document matched."""
    _ensure_db()
    oid = to_object_id(_id)
    if oid is None:
        return False
    update = {"$set": _to_dict(update_data)}
    update["$set"]["updated_at"] = _now()
    result = db[collection_name].update_one({"_id": oid}, update)
    return result.matched_count > 0


def find_one_and_update(collection_name: str, filter_dict: dict, update_data: Dict[str, Any],
                        sort: Optional[list] = None) -> Optional[dict]:
    """
    Atomically set fields on the first document matching `filter_dict`.

    The filter is evaluated and the update applied as one store operation,
    so concurrent callers transitioning the same document cannot interleave.
    Returns the updated document, or None when nothing matched.
    """
    _ensure_db()
    update = {"$set": _to_dict(update_data)}
    update["$set"]["updated_at"] = _now()
    doc = db[collection_name].find_one_and_update(
        filter_dict,
        update,
        sort=sort,
        return_document=ReturnDocument.AFTER,
    )
    return serialize_doc(doc)


def delete_document(collection_name: str, _id: str) -> bool:
    _ensure_db()
    oid = to_object_id(_id)
    if oid is None:
        return False
    result = db[collection_name].delete_one({"_id": oid})
    return result.deleted_count > 0


def aggregate(collection_name: str, pipeline: List[dict]) -> List[dict]:
    _ensure_db()
    return list(db[collection_name].aggregate(pipeline))


def count_documents(collection_name: str, filter_dict: Optional[dict] = None) -> int:
    _ensure_db()
    return db[collection_name].count_documents(filter_dict or {})


def ensure_indexes():
    """Create the indexes the API relies on. Safe to call repeatedly."""
    if db is None:
        logger.warning("Database not configured; skipping index creation")
        return
    db["user"].create_index([("email", ASCENDING)], unique=True)
    db["order"].create_index([("user_id", ASCENDING), ("status", ASCENDING), ("created_at", DESCENDING)])
    db["food"].create_index([("tags", ASCENDING)])


# Utility

def serialize_doc(doc: Optional[dict]) -> Optional[dict]:
    if not doc:
        return None
    d = dict(doc)
    if "_id" in d:
        d["_id"] = str(d["_id"])  # convert ObjectId to string
    return d
