"""
Admin Routes (admin or super admin only)

GET /admin/stats - Users, orders, held escrow, pending verifications
GET /admin/users - Paginated user list
POST /admin/actions - ban_user | approve_job | verify_user | delete_content
GET /admin/logs - Audit trail
POST /admin/users/{user_id}/plan - Assign a plan and its quotas
GET /admin/finances/escrow - Escrows, optionally filtered by status
POST /admin/finances/escrow/{escrow_id}/resolve - Release or refund
POST /admin/quotas/reset - Reset every quota whose period ended
POST /admin/quotas/seed - Insert missing plan templates
POST /admin/orders/auto-confirm - Release delivered orders past their confirmation window
"""

from typing import Dict, Optional

from fastapi import APIRouter, Depends, Query

from app.core.auth import require_admin
from app.services.admin_service import get_admin_service
from app.services.escrow_service import EscrowStatus, get_escrow_service
from app.services.mongo_service import serialize_doc
from app.services.quota_service import get_quota_service
from app.schemas.schemas import (
    AdminActionRequest, AdminActionResponse, AdminStatsResponse, PagedResponse,
    AssignPlanRequest, QuotaResponse, QuotaResetResponse, QuotaSeedResponse,
    EscrowResolveRequest, EscrowResponse, AutoConfirmResponse
)

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


@router.get("/stats", response_model=AdminStatsResponse)
async def get_stats():
    return get_admin_service().get_stats()


@router.get("/users", response_model=PagedResponse)
async def get_users(page: int = Query(1, ge=1), limit: int = Query(50, ge=1, le=100)):
    return get_admin_service().list_users(page, limit)


@router.post("/actions", response_model=AdminActionResponse)
async def perform_action(request: AdminActionRequest, admin: dict = Depends(require_admin)):
    return get_admin_service().perform_action(
        admin["user_id"], request.action, request.target_id, request.reason
    )


@router.get("/logs", response_model=PagedResponse)
async def get_audit_logs(page: int = Query(1, ge=1), limit: int = Query(50, ge=1, le=100)):
    return get_admin_service().list_audit_logs(page, limit)


@router.post("/users/{user_id}/plan", response_model=Dict[str, QuotaResponse])
async def assign_plan(user_id: str, request: AssignPlanRequest):
    """Put a user on a plan; their quotas start a fresh period."""
    return get_quota_service().assign_plan(user_id, request.plan.value)


@router.get("/finances/escrow", response_model=PagedResponse)
async def get_escrows(
    status: Optional[EscrowStatus] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100)
):
    return get_escrow_service().list_escrows(status.value if status else None, page, limit)


@router.post("/finances/escrow/{escrow_id}/resolve", response_model=EscrowResponse)
async def resolve_escrow(escrow_id: str, request: EscrowResolveRequest):
    return serialize_doc(get_escrow_service().resolve(escrow_id, request.decision.value))


@router.post("/quotas/reset", response_model=QuotaResetResponse)
async def reset_due_quotas():
    return QuotaResetResponse(reset=get_quota_service().reset_due_quotas())


@router.post("/quotas/seed", response_model=QuotaSeedResponse)
async def seed_quotas():
    service = get_quota_service()
    inserted = service.seed_default_quotas()
    return QuotaSeedResponse(inserted=inserted, verified=service.verify_seeded_quotas())


@router.post("/orders/auto-confirm", response_model=AutoConfirmResponse)
async def auto_confirm_orders():
    """Run from a daily cron: buyers who stay silent after delivery accept it."""
    return AutoConfirmResponse(confirmed=get_escrow_service().auto_confirm_due_orders())
