"""
MongoDB Connection Utility

MongoDB stores every ledger document:
- Users and their plan/skills
- Premium quota templates and per-user instances
- Orders, escrows, wallets and wallet transactions
- Skill catalog, jobs and admin audit logs
"""
import logging

from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.database import Database
from pymongo.collection import Collection
from pymongo.errors import PyMongoError
from app.core.config import get_settings

logger = logging.getLogger(__name__)

# Global client (connection pooling handled internally by pymongo)
_client: MongoClient = None
_db: Database = None


def get_mongo_client() -> MongoClient:
    """Get or create MongoDB client (singleton pattern)"""
    global _client
    if _client is None:
        _client = MongoClient(get_settings().mongodb_uri)
    return _client


def get_mongo_db() -> Database:
    """Get the marketplace database"""
    global _db
    if _db is None:
        client = get_mongo_client()
        _db = client[get_settings().mongodb_db]
    return _db


def set_mongo_client(client: MongoClient) -> None:
    """Replace the process-wide client (used by tests and scripts)."""
    global _client, _db
    _client = client
    _db = None


def get_collection(name: str) -> Collection:
    """Get a specific collection by name (see COLLECTIONS)."""
    db = get_mongo_db()
    return db[name]


def test_mongo_connection() -> bool:
    """
    Test if MongoDB is reachable.
    Returns True if connection successful, False otherwise.
    """
    try:
        client = get_mongo_client()
        # ping command checks connection
        client.admin.command('ping')
        return True
    except PyMongoError as e:
        logger.warning("MongoDB connection failed: %s", e)
        return False


# Collection name constants (avoid typos)
COLLECTIONS = {
    "users": "users",
    "premium_quotas": "premium_quotas",
    "quota_consumptions": "quota_consumptions",
    "orders": "orders",
    "escrows": "escrows",
    "wallets": "wallets",
    "wallet_transactions": "wallet_transactions",
    "skills": "skills",
    "jobs": "jobs",
    "audit_logs": "audit_logs",
}


def init_mongo_indexes(db: Database = None):
    """
    Create indexes for uniqueness guarantees and query performance.
    Call this once during app startup.
    """
    db = db if db is not None else get_mongo_db()

    db[COLLECTIONS["users"]].create_index("email", unique=True)

    # One instance per (user, plan, quota type); templates have user_id = None
    db[COLLECTIONS["premium_quotas"]].create_index([
        ("user_id", ASCENDING),
        ("plan", ASCENDING),
        ("quota_type", ASCENDING),
    ], unique=True)
    db[COLLECTIONS["premium_quotas"]].create_index([("plan", ASCENDING), ("is_default", ASCENDING)])
    db[COLLECTIONS["premium_quotas"]].create_index("reset_date")

    db[COLLECTIONS["quota_consumptions"]].create_index([
        ("user_id", ASCENDING),
        ("idempotency_key", ASCENDING),
    ], unique=True)
    db[COLLECTIONS["quota_consumptions"]].create_index(
        "created_at", expireAfterSeconds=get_settings().idempotency_key_ttl_hours * 3600
    )

    db[COLLECTIONS["orders"]].create_index("buyer_id")
    db[COLLECTIONS["orders"]].create_index("seller_id")
    db[COLLECTIONS["orders"]].create_index([("status", ASCENDING), ("auto_confirm_at", ASCENDING)])
    db[COLLECTIONS["escrows"]].create_index("order_id", unique=True)
    db[COLLECTIONS["escrows"]].create_index("status")

    db[COLLECTIONS["wallets"]].create_index("user_id", unique=True)
    db[COLLECTIONS["wallet_transactions"]].create_index("wallet_id")

    # Simple collation: "Python" and "python" are distinct skills
    db[COLLECTIONS["skills"]].create_index("name", unique=True)
    db[COLLECTIONS["skills"]].create_index([("usage_count", DESCENDING)])

    db[COLLECTIONS["audit_logs"]].create_index([("created_at", DESCENDING)])

    logger.info("MongoDB indexes created successfully")
