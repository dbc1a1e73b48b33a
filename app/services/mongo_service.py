"""
MongoDB Service - shared helpers for the document collections.

Every ledger service extends MongoService so it can be pointed at any
Database handle (the process-wide one by default, mongomock in tests).
"""

import math
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any
from bson import ObjectId
from pymongo.collection import Collection
from pymongo.database import Database

from app.db.mongodb import get_mongo_db
from app.services.exceptions import InvalidInput


# ============================================================
# HELPER: Convert ObjectId to string for JSON serialization
# ============================================================

def serialize_doc(doc: dict) -> dict:
    """Convert MongoDB document to JSON-serializable dict."""
    if doc is None:
        return None
    doc = dict(doc)
    if "_id" in doc:
        doc["id"] = str(doc.pop("_id"))
    for key, value in doc.items():
        if isinstance(value, ObjectId):
            doc[key] = str(value)
    return doc


def serialize_docs(docs: list) -> list:
    """Convert list of MongoDB documents to JSON-serializable list."""
    return [serialize_doc(doc) for doc in docs]


def to_object_id(value: Any, field: str = "id") -> ObjectId:
    """Parse a hex string into an ObjectId, rejecting malformed ids."""
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        raise InvalidInput(f"Invalid {field}: {value!r}")
    return ObjectId(value)


def utc_now() -> datetime:
    """Naive UTC timestamp, matching what pymongo hands back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def page_meta(total: int, page: int, limit: int) -> Dict[str, int]:
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "pages": math.ceil(total / limit) if limit else 0,
    }


# ============================================================
# BASE SERVICE
# ============================================================

class MongoService:
    """
    Base class for collection-backed services.
    Subclasses set `collection_name` and use self.collection / self.db.
    """

    collection_name: str = ""

    def __init__(self, db: Optional[Database] = None):
        self.db: Database = db if db is not None else get_mongo_db()
        self.collection: Collection = self.db[self.collection_name]

    def find_by_id(self, doc_id: Any, field: str = "id") -> Optional[dict]:
        return self.collection.find_one({"_id": to_object_id(doc_id, field)})

    def list_page(self, query: dict, page: int = 1, limit: int = 50,
                  sort: Optional[List[tuple]] = None) -> Dict[str, Any]:
        """Paginate a query, newest first unless told otherwise."""
        skip = (page - 1) * limit
        cursor = self.collection.find(query).sort(sort or [("created_at", -1)]).skip(skip).limit(limit)
        total = self.collection.count_documents(query)
        return {"data": serialize_docs(list(cursor)), "meta": page_meta(total, page, limit)}
