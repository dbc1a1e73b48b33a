"""
User Service - account storage for authentication.
"""

import logging
from enum import Enum
from typing import Optional, Any

from pymongo.errors import DuplicateKeyError

from app.db.mongodb import COLLECTIONS
from app.services.exceptions import Conflict, NotFound
from app.services.mongo_service import MongoService, utc_now

logger = logging.getLogger(__name__)


class UserRole(str, Enum):
    candidate = "candidate"
    company = "company"
    school = "school"
    admin = "admin"
    super_admin = "super_admin"


ADMIN_ROLES = {UserRole.admin.value, UserRole.super_admin.value}


class UserService(MongoService):

    collection_name = COLLECTIONS["users"]

    def create_user(self, email: str, password_hash: str, role: str) -> dict:
        now = utc_now()
        user = {
            "email": email.lower(),
            "password_hash": password_hash,
            "role": role,
            "plan": None,
            "skills": [],
            "is_active": True,
            "is_verified": False,
            "created_at": now,
            "updated_at": now,
        }
        try:
            self.collection.insert_one(user)
        except DuplicateKeyError:
            raise Conflict("Email already registered")
        logger.info("Registered user %s as %s", user["_id"], role)
        return user

    def get_by_email(self, email: str) -> Optional[dict]:
        return self.collection.find_one({"email": email.lower()})

    def get_by_id(self, user_id: Any) -> dict:
        user = self.find_by_id(user_id, "user_id")
        if user is None:
            raise NotFound("User not found")
        return user


def get_user_service() -> UserService:
    return UserService()
