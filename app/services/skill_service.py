"""
Skill Catalog - deduplicated skill names with a usage counter.

Names are trimmed and unique under case-sensitive exact match ("Python"
and "python" are distinct entries). `usage_count` tracks how many user
profiles reference the skill.
"""

import logging
import re
from typing import Optional, List, Any

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.db.mongodb import COLLECTIONS
from app.services.exceptions import NotFound, InvalidInput
from app.services.mongo_service import MongoService, to_object_id, utc_now

logger = logging.getLogger(__name__)


def clean_skill_name(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise InvalidInput("Skill name must not be empty")
    return cleaned


class SkillService(MongoService):

    collection_name = COLLECTIONS["skills"]

    def __init__(self, db=None):
        super().__init__(db)
        self.users = self.db[COLLECTIONS["users"]]

    def upsert(self, name: str, category: Optional[str] = None) -> dict:
        """Return the catalog entry for `name`, creating it when missing."""
        name = clean_skill_name(name)
        existing = self.collection.find_one({"name": name})
        if existing:
            return existing
        now = utc_now()
        skill = {
            "name": name,
            "category": category,
            "usage_count": 0,
            "created_at": now,
            "updated_at": now,
        }
        try:
            self.collection.insert_one(skill)
        except DuplicateKeyError:
            return self.collection.find_one({"name": name})
        logger.info("Added skill %r to catalog", name)
        return skill

    def add_to_user(self, user_id: Any, name: str) -> dict:
        """Reference a skill from a user profile; counts each user once."""
        user_oid = to_object_id(user_id, "user_id")
        if self.users.count_documents({"_id": user_oid}) == 0:
            raise NotFound("User not found")
        skill = self.upsert(name)
        result = self.users.update_one(
            {"_id": user_oid, "skills": {"$ne": skill["name"]}},
            {"$push": {"skills": skill["name"]}, "$set": {"updated_at": utc_now()}},
        )
        if result.matched_count == 0:
            return skill
        return self.collection.find_one_and_update(
            {"_id": skill["_id"]},
            {"$inc": {"usage_count": 1}, "$set": {"updated_at": utc_now()}},
            return_document=ReturnDocument.AFTER,
        )

    def remove_from_user(self, user_id: Any, name: str) -> Optional[dict]:
        name = clean_skill_name(name)
        result = self.users.update_one(
            {"_id": to_object_id(user_id, "user_id"), "skills": name},
            {"$pull": {"skills": name}, "$set": {"updated_at": utc_now()}},
        )
        if result.modified_count == 0:
            raise NotFound("Skill not on profile")
        return self.collection.find_one_and_update(
            {"name": name, "usage_count": {"$gt": 0}},
            {"$inc": {"usage_count": -1}, "$set": {"updated_at": utc_now()}},
            return_document=ReturnDocument.AFTER,
        )

    def list_popular(self, limit: int = 20) -> List[dict]:
        return list(self.collection.find().sort([("usage_count", -1), ("name", 1)]).limit(limit))

    def search(self, prefix: str, limit: int = 20) -> List[dict]:
        pattern = "^" + re.escape(prefix.strip())
        return list(
            self.collection.find({"name": {"$regex": pattern, "$options": "i"}})
            .sort("usage_count", -1)
            .limit(limit)
        )


def get_skill_service() -> SkillService:
    return SkillService()
