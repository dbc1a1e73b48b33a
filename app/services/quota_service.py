"""
Quota Ledger - per-user, per-period premium entitlements.

Documents in `premium_quotas` come in two flavours:
- templates (is_default=True, user_id=None): the plan-level defaults
- instances (is_default=False): one per (user, plan, quota type)

For finite quotas `used + remaining == total` always holds. A total of
UNLIMITED (-1) means the quota is never exhausted; `used` still counts.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, Tuple

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.db.mongodb import COLLECTIONS
from app.services.exceptions import NotFound, Forbidden, QuotaExceeded, InvalidInput
from app.services.mongo_service import MongoService, to_object_id, utc_now

logger = logging.getLogger(__name__)

UNLIMITED = -1
UNLIMITED_RESET_DATE = datetime(2099, 12, 31)


class QuotaType(str, Enum):
    cv_views = "cv_views"
    job_posts = "job_posts"
    course_uploads = "course_uploads"
    student_slots = "student_slots"
    profile_boosts = "profile_boosts"
    job_boosts = "job_boosts"
    training_boosts = "training_boosts"
    messages = "messages"
    applications = "applications"
    push_notifications = "push_notifications"


class SubscriptionPlan(str, Enum):
    individual_pro = "individual-pro"
    company_biz = "company-biz"
    school_edu = "school-edu"


class QuotaPeriod(str, Enum):
    monthly = "monthly"
    yearly = "yearly"
    unlimited = "unlimited"


# Default quota configurations by plan
DEFAULT_QUOTAS: Dict[SubscriptionPlan, Dict[QuotaType, Dict[str, Any]]] = {
    SubscriptionPlan.individual_pro: {
        QuotaType.profile_boosts: {"total": 5, "period": QuotaPeriod.monthly},
        QuotaType.applications: {"total": 10, "period": QuotaPeriod.monthly},
    },
    SubscriptionPlan.company_biz: {
        QuotaType.job_boosts: {"total": 15, "period": QuotaPeriod.monthly},
        QuotaType.cv_views: {"total": 50, "period": QuotaPeriod.monthly},
        QuotaType.push_notifications: {"total": 500, "period": QuotaPeriod.monthly},
    },
    SubscriptionPlan.school_edu: {
        QuotaType.course_uploads: {"total": UNLIMITED, "period": QuotaPeriod.unlimited},
        QuotaType.student_slots: {"total": UNLIMITED, "period": QuotaPeriod.unlimited},
    },
}


def next_reset_date(period: str, now: Optional[datetime] = None) -> datetime:
    """
    Calculate the next reset boundary for a period.

    monthly  -> first day of next month
    yearly   -> 1 January of next year
    unlimited -> far future
    Unknown periods fall back to monthly.
    """
    now = now or utc_now()
    try:
        period = QuotaPeriod(period)
    except ValueError:
        period = QuotaPeriod.monthly

    if period == QuotaPeriod.unlimited:
        return UNLIMITED_RESET_DATE
    if period == QuotaPeriod.yearly:
        return datetime(now.year + 1, 1, 1)
    if now.month == 12:
        return datetime(now.year + 1, 1, 1)
    return datetime(now.year, now.month + 1, 1)


def is_unlimited(quota: dict) -> bool:
    return quota.get("total") == UNLIMITED


def quota_summary(quota: dict) -> dict:
    """Client-facing view of a quota document."""
    unlimited = is_unlimited(quota)
    return {
        "quota_type": quota["quota_type"],
        "plan": quota["plan"],
        "period": quota["period"],
        "total": quota["total"],
        "used": quota["used"],
        "remaining": None if unlimited else quota["remaining"],
        "unlimited": unlimited,
        "reset_date": quota.get("reset_date"),
    }


class QuotaService(MongoService):
    """
    Enforces consumption and periodic reset of premium quotas.

    Every decrement is a single conditional update on the instance
    (`remaining >= amount`), so concurrent requests never overdraw.
    """

    collection_name = COLLECTIONS["premium_quotas"]

    def __init__(self, db=None):
        super().__init__(db)
        self.users = self.db[COLLECTIONS["users"]]
        self.consumptions = self.db[COLLECTIONS["quota_consumptions"]]

    # --------------------------------------------------------
    # Templates
    # --------------------------------------------------------

    def seed_default_quotas(self, now: Optional[datetime] = None) -> int:
        """Insert plan templates that do not exist yet. Returns the number inserted."""
        now = now or utc_now()
        inserted = 0
        for plan, quotas in DEFAULT_QUOTAS.items():
            for quota_type, config in quotas.items():
                existing = self.collection.find_one({
                    "plan": plan.value,
                    "quota_type": quota_type.value,
                    "is_default": True,
                })
                if existing:
                    logger.debug("Quota %s for %s already exists, skipping", quota_type.value, plan.value)
                    continue

                self.collection.insert_one({
                    "user_id": None,
                    "plan": plan.value,
                    "quota_type": quota_type.value,
                    "total": config["total"],
                    "used": 0,
                    "remaining": config["total"],
                    "period": config["period"].value,
                    "is_default": True,
                    "reset_date": next_reset_date(config["period"].value, now),
                    "created_at": now,
                    "updated_at": now,
                })
                inserted += 1
                logger.info("Seeded quota %s for %s", quota_type.value, plan.value)
        return inserted

    def verify_seeded_quotas(self) -> bool:
        expected = sum(len(quotas) for quotas in DEFAULT_QUOTAS.values())
        found = self.collection.count_documents({"is_default": True})
        if found == expected:
            logger.info("Verification passed: %s/%s quotas seeded", found, expected)
            return True
        logger.warning("Verification warning: %s/%s quotas found", found, expected)
        return False

    def get_template(self, plan: str, quota_type: str) -> Optional[dict]:
        return self.collection.find_one({"plan": plan, "quota_type": quota_type, "is_default": True})

    # --------------------------------------------------------
    # Instances
    # --------------------------------------------------------

    def _user_plan(self, user_oid: ObjectId) -> Optional[str]:
        user = self.users.find_one({"_id": user_oid}, {"plan": 1})
        if user is None:
            raise NotFound("User not found")
        return user.get("plan")

    def _instance_from_template(self, user_oid: Optional[ObjectId], template: dict, now: datetime) -> dict:
        return {
            "user_id": user_oid,
            "plan": template["plan"],
            "quota_type": template["quota_type"],
            "total": template["total"],
            "used": 0,
            "remaining": template["total"],
            "period": template["period"],
            "is_default": False,
            "reset_date": next_reset_date(template["period"], now),
            "created_at": now,
            "updated_at": now,
        }

    def plan_allowance(self, plan: str, quota_type: str, now: Optional[datetime] = None) -> Optional[dict]:
        """Untouched allowance of a plan quota, dated for the current period. Not persisted."""
        template = self.get_template(plan, quota_type)
        if template is None:
            return None
        return self._instance_from_template(None, template, now or utc_now())

    def assign_plan(self, user_id: Any, plan: str, now: Optional[datetime] = None) -> Dict[str, dict]:
        """
        Put a user on a plan and give them a fresh instance of every
        template quota the plan carries.
        """
        now = now or utc_now()
        try:
            plan = SubscriptionPlan(plan).value
        except ValueError:
            raise InvalidInput(f"Unknown plan: {plan}")
        user_oid = to_object_id(user_id, "user_id")

        result = self.users.update_one({"_id": user_oid}, {"$set": {"plan": plan, "updated_at": now}})
        if result.matched_count == 0:
            raise NotFound("User not found")

        self.collection.delete_many({"user_id": user_oid, "is_default": False, "plan": {"$ne": plan}})

        for template in self.collection.find({"plan": plan, "is_default": True}):
            instance = self._instance_from_template(user_oid, template, now)
            self.collection.find_one_and_update(
                {"user_id": user_oid, "plan": plan, "quota_type": template["quota_type"]},
                {"$set": instance},
                upsert=True,
            )

        logger.info("Assigned plan %s to user %s", plan, user_oid)
        return self.get_user_quotas(user_oid, now)

    def _reset_if_due(self, quota: dict, now: datetime) -> dict:
        if quota.get("reset_date") is None or quota["reset_date"] > now:
            return quota
        updated = self.collection.find_one_and_update(
            {"_id": quota["_id"], "reset_date": quota["reset_date"]},
            {"$set": {
                "used": 0,
                "remaining": quota["total"],
                "reset_date": next_reset_date(quota["period"], now),
                "updated_at": now,
            }},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            # Another request reset it first
            return self.collection.find_one({"_id": quota["_id"]})
        logger.info("Reset quota %s for user %s", quota["quota_type"], quota["user_id"])
        return updated

    def get_quota(self, user_id: Any, quota_type: str, now: Optional[datetime] = None) -> Optional[dict]:
        """Per-user instance for the user's current plan, lazily reset when due."""
        now = now or utc_now()
        user_oid = to_object_id(user_id, "user_id")
        plan = self._user_plan(user_oid)
        if plan is None:
            return None
        quota = self.collection.find_one({
            "user_id": user_oid, "plan": plan, "quota_type": quota_type, "is_default": False,
        })
        if quota is None:
            return None
        return self._reset_if_due(quota, now)

    def _get_or_create(self, user_oid: ObjectId, quota_type: str, now: datetime) -> dict:
        plan = self._user_plan(user_oid)
        if plan is None:
            raise Forbidden("Premium subscription required")

        quota = self.get_quota(user_oid, quota_type, now)
        if quota is not None:
            return quota

        template = self.get_template(plan, quota_type)
        if template is None:
            raise NotFound(f"Quota {quota_type} is not included in plan {plan}")

        instance = self._instance_from_template(user_oid, template, now)
        try:
            self.collection.insert_one(instance)
        except DuplicateKeyError:
            return self.get_quota(user_oid, quota_type, now)
        logger.info("Created quota %s for user %s from %s template", quota_type, user_oid, plan)
        return instance

    def has_quota_available(self, user_id: Any, quota_type: str, amount: int = 1) -> bool:
        allowed, _ = self.can_perform(user_id, quota_type, amount)
        return allowed

    def get_remaining(self, user_id: Any, quota_type: str) -> Optional[int]:
        """Remaining units; None for unlimited, 0 when the user has no such quota."""
        quota = self.get_quota(user_id, quota_type)
        if quota is None:
            user_oid = to_object_id(user_id, "user_id")
            plan = self._user_plan(user_oid)
            template = self.get_template(plan, quota_type) if plan else None
            if template is None:
                return 0
            quota = template
        return None if is_unlimited(quota) else quota["remaining"]

    def can_perform(self, user_id: Any, quota_type: str, amount: int = 1) -> Tuple[bool, Optional[str]]:
        """Combined plan + quota check, without consuming."""
        user_oid = to_object_id(user_id, "user_id")
        plan = self._user_plan(user_oid)
        if plan is None:
            return False, "Premium subscription required"

        quota = self.get_quota(user_oid, quota_type) or self.get_template(plan, quota_type)
        if quota is None:
            return False, "Quota not included in plan"
        if not is_unlimited(quota) and quota["remaining"] < amount:
            return False, "Quota limit exceeded"
        return True, None

    # --------------------------------------------------------
    # Consumption
    # --------------------------------------------------------

    def consume(self, user_id: Any, quota_type: str, amount: int = 1,
                idempotency_key: Optional[str] = None, now: Optional[datetime] = None) -> dict:
        """
        Consume `amount` units. Raises QuotaExceeded when not enough remain.
        A repeated idempotency key returns the current state without consuming.
        """
        if amount < 1:
            raise InvalidInput("amount must be at least 1")
        now = now or utc_now()
        user_oid = to_object_id(user_id, "user_id")
        quota = self._get_or_create(user_oid, quota_type, now)

        if idempotency_key:
            try:
                self.consumptions.insert_one({
                    "user_id": user_oid,
                    "idempotency_key": idempotency_key,
                    "quota_type": quota_type,
                    "amount": amount,
                    "created_at": now,
                })
            except DuplicateKeyError:
                logger.info("Duplicate consumption %s for user %s ignored", idempotency_key, user_oid)
                return quota_summary(self.collection.find_one({"_id": quota["_id"]}))

        if is_unlimited(quota):
            query = {"_id": quota["_id"]}
            update = {"$inc": {"used": amount}, "$set": {"updated_at": now}}
        else:
            query = {"_id": quota["_id"], "remaining": {"$gte": amount}}
            update = {"$inc": {"used": amount, "remaining": -amount}, "$set": {"updated_at": now}}

        updated = self.collection.find_one_and_update(query, update, return_document=ReturnDocument.AFTER)
        if updated is None:
            if idempotency_key:
                self.consumptions.delete_one({"user_id": user_oid, "idempotency_key": idempotency_key})
            logger.warning("Quota %s exceeded for user %s (requested %s)", quota_type, user_oid, amount)
            raise QuotaExceeded()

        logger.info("User %s consumed %s %s (remaining=%s)", user_oid, amount, quota_type, updated["remaining"])
        return quota_summary(updated)

    # --------------------------------------------------------
    # Reset
    # --------------------------------------------------------

    def reset_due_quotas(self, now: Optional[datetime] = None) -> int:
        """Reset every per-user instance whose period has ended."""
        now = now or utc_now()
        count = 0
        for quota in self.collection.find({"is_default": False, "reset_date": {"$lte": now}}):
            result = self.collection.update_one(
                {"_id": quota["_id"], "reset_date": quota["reset_date"]},
                {"$set": {
                    "used": 0,
                    "remaining": quota["total"],
                    "reset_date": next_reset_date(quota["period"], now),
                    "updated_at": now,
                }},
            )
            count += result.modified_count
        if count:
            logger.info("Reset %s due quotas", count)
        return count

    def reset_user_quotas(self, user_id: Any, now: Optional[datetime] = None) -> int:
        """Force a reset of every quota a user holds, regardless of period."""
        now = now or utc_now()
        user_oid = to_object_id(user_id, "user_id")
        count = 0
        for quota in self.collection.find({"user_id": user_oid, "is_default": False}):
            self.collection.update_one(
                {"_id": quota["_id"]},
                {"$set": {
                    "used": 0,
                    "remaining": quota["total"],
                    "reset_date": next_reset_date(quota["period"], now),
                    "updated_at": now,
                }},
            )
            count += 1
        return count

    def get_user_quotas(self, user_id: Any, now: Optional[datetime] = None) -> Dict[str, dict]:
        """All quotas of the user's current plan, keyed by quota type."""
        now = now or utc_now()
        user_oid = to_object_id(user_id, "user_id")
        plan = self._user_plan(user_oid)
        if plan is None:
            return {}
        result = {}
        for quota in self.collection.find({"user_id": user_oid, "plan": plan, "is_default": False}):
            quota = self._reset_if_due(quota, now)
            result[quota["quota_type"]] = quota_summary(quota)
        return result


def get_quota_service() -> QuotaService:
    return QuotaService()
