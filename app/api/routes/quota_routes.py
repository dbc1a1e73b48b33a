"""
Premium Quota Routes

GET /premium/quotas - All quotas of the current user's plan
GET /premium/quotas/{quota_type} - One quota (created from the plan template if needed)
POST /premium/quotas/{quota_type}/consume - Consume units of a quota
"""

from typing import Dict

from fastapi import APIRouter, Depends, HTTPException

from app.core.auth import get_current_user
from app.services.quota_service import QuotaType, get_quota_service, quota_summary
from app.schemas.schemas import QuotaResponse, ConsumeQuotaRequest

router = APIRouter(prefix="/premium", tags=["Premium Quotas"])


@router.get("/quotas", response_model=Dict[str, QuotaResponse])
async def list_quotas(user: dict = Depends(get_current_user)):
    """Current usage of every quota on the user's plan."""
    return get_quota_service().get_user_quotas(user["user_id"])


@router.get("/quotas/{quota_type}", response_model=QuotaResponse)
async def get_quota(quota_type: QuotaType, user: dict = Depends(get_current_user)):
    service = get_quota_service()
    quota = service.get_quota(user["user_id"], quota_type.value)
    if quota is not None:
        return quota_summary(quota)

    # Not consumed yet: show the untouched allowance of the plan
    if not user["plan"]:
        raise HTTPException(status_code=404, detail="Premium subscription required")
    allowance = service.plan_allowance(user["plan"], quota_type.value)
    if allowance is None:
        raise HTTPException(status_code=404, detail="Quota not included in plan")
    return quota_summary(allowance)


@router.post("/quotas/{quota_type}/consume", response_model=QuotaResponse)
async def consume_quota(
    quota_type: QuotaType,
    request: ConsumeQuotaRequest,
    user: dict = Depends(get_current_user)
):
    """
    Consume units of a quota.

    Send the same `idempotency_key` when retrying so the units are only
    counted once. Answers 403 when the quota is exhausted.
    """
    return get_quota_service().consume(
        user["user_id"],
        quota_type.value,
        amount=request.amount,
        idempotency_key=request.idempotency_key,
    )
