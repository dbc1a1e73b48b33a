"""
Admin Service - moderation actions, platform stats and the audit trail.

Every action that `perform_action` carries out is written to `audit_logs`.
"""

import logging
from enum import Enum
from typing import Optional, Any, Dict

from app.db.mongodb import COLLECTIONS
from app.services.exceptions import NotFound, Forbidden
from app.services.escrow_service import EscrowService
from app.services.mongo_service import MongoService, to_object_id, utc_now, serialize_doc, page_meta
from app.services.user_service import ADMIN_ROLES

logger = logging.getLogger(__name__)


class AdminAction(str, Enum):
    ban_user = "ban_user"
    approve_job = "approve_job"
    verify_user = "verify_user"
    delete_content = "delete_content"


def public_user(user: dict) -> dict:
    """Serialized user without credentials."""
    doc = serialize_doc(user)
    doc.pop("password_hash", None)
    return doc


class AdminService(MongoService):

    collection_name = COLLECTIONS["audit_logs"]

    def __init__(self, db=None):
        super().__init__(db)
        self.users = self.db[COLLECTIONS["users"]]
        self.jobs = self.db[COLLECTIONS["jobs"]]
        self.orders = self.db[COLLECTIONS["orders"]]
        self.escrows = EscrowService(self.db)

    # --------------------------------------------------------
    # Actions
    # --------------------------------------------------------

    def _ban_user(self, target_oid) -> dict:
        user = self.users.find_one({"_id": target_oid})
        if not user:
            raise NotFound("User not found")
        if user.get("role") in ADMIN_ROLES:
            raise Forbidden("Cannot ban an administrator")
        self.users.update_one({"_id": target_oid}, {"$set": {"is_active": False, "updated_at": utc_now()}})
        return {"user_id": str(target_oid), "is_active": False}

    def _verify_user(self, target_oid) -> dict:
        result = self.users.update_one(
            {"_id": target_oid}, {"$set": {"is_verified": True, "updated_at": utc_now()}}
        )
        if result.matched_count == 0:
            raise NotFound("User not found")
        return {"user_id": str(target_oid), "is_verified": True}

    def _approve_job(self, target_oid) -> dict:
        result = self.jobs.update_one(
            {"_id": target_oid, "deleted": {"$ne": True}},
            {"$set": {"status": "approved", "updated_at": utc_now()}},
        )
        if result.matched_count == 0:
            raise NotFound("Job not found")
        return {"job_id": str(target_oid), "status": "approved"}

    def _delete_content(self, target_oid) -> dict:
        result = self.jobs.update_one(
            {"_id": target_oid, "deleted": {"$ne": True}},
            {"$set": {"deleted": True, "deleted_at": utc_now()}},
        )
        if result.matched_count == 0:
            raise NotFound("Content not found")
        return {"content_id": str(target_oid), "deleted": True}

    def perform_action(self, admin_id: Any, action: str, target_id: str,
                       reason: Optional[str] = None) -> Dict[str, Any]:
        action = AdminAction(action)
        target_oid = to_object_id(target_id, "target_id")
        handlers = {
            AdminAction.ban_user: self._ban_user,
            AdminAction.approve_job: self._approve_job,
            AdminAction.verify_user: self._verify_user,
            AdminAction.delete_content: self._delete_content,
        }
        result = handlers[action](target_oid)

        self.collection.insert_one({
            "admin_id": to_object_id(admin_id, "admin_id"),
            "action": action.value,
            "target_id": target_id,
            "reason": reason,
            "created_at": utc_now(),
        })
        logger.info("Admin %s performed %s on %s", admin_id, action.value, target_id)
        return {"action": action.value, "target_id": target_id, "result": result}

    # --------------------------------------------------------
    # Reporting
    # --------------------------------------------------------

    def get_stats(self) -> Dict[str, Any]:
        return {
            "users": self.users.count_documents({}),
            "escrow_held": self.escrows.total_held(),
            "orders": self.orders.count_documents({}),
            "pending_verifications": self.users.count_documents({"is_verified": False}),
        }

    def list_users(self, page: int = 1, limit: int = 50) -> Dict[str, Any]:
        skip = (page - 1) * limit
        cursor = self.users.find().sort("created_at", -1).skip(skip).limit(limit)
        total = self.users.count_documents({})
        return {"data": [public_user(u) for u in cursor], "meta": page_meta(total, page, limit)}

    def list_audit_logs(self, page: int = 1, limit: int = 50) -> Dict[str, Any]:
        return self.list_page({}, page, limit)


def get_admin_service() -> AdminService:
    return AdminService()
