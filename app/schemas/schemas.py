"""
Pydantic Schemas - Request/Response Validation

All API request and response schemas in one file for simplicity.
Validation failures here are rejected with 422 before anything is persisted.
"""

from pydantic import AfterValidator, BaseModel, EmailStr, Field, field_validator
from typing import Annotated, Optional, List, Dict, Any
from datetime import datetime
from bson import ObjectId

from app.services.admin_service import AdminAction
from app.services.escrow_service import EscrowStatus, EscrowDecision
from app.services.quota_service import SubscriptionPlan
from app.services.user_service import UserRole


def _object_id(value: str) -> str:
    if not ObjectId.is_valid(value):
        raise ValueError("must be a valid id")
    return value


def _not_blank(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be empty")
    return value


ObjectIdStr = Annotated[str, AfterValidator(_object_id)]
NonBlankStr = Annotated[str, AfterValidator(_not_blank)]


# ============================================================
# AUTH SCHEMAS
# ============================================================

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    role: UserRole = UserRole.candidate

    @field_validator("role")
    @classmethod
    def no_self_promotion(cls, value: UserRole) -> UserRole:
        if value in (UserRole.admin, UserRole.super_admin):
            raise ValueError("admin accounts cannot self-register")
        return value

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    role: str

class UserResponse(BaseModel):
    id: str
    email: str
    role: str
    plan: Optional[str] = None
    skills: List[str] = []
    is_active: bool
    is_verified: bool = False
    created_at: datetime


# ============================================================
# QUOTA SCHEMAS
# ============================================================

class QuotaResponse(BaseModel):
    quota_type: str
    plan: str
    period: str
    total: int
    used: int
    remaining: Optional[int] = None  # None when unlimited
    unlimited: bool
    reset_date: Optional[datetime] = None

class ConsumeQuotaRequest(BaseModel):
    amount: int = Field(1, ge=1)
    idempotency_key: Optional[str] = Field(None, min_length=1, max_length=128)

class AssignPlanRequest(BaseModel):
    plan: SubscriptionPlan

class QuotaResetResponse(BaseModel):
    reset: int

class QuotaSeedResponse(BaseModel):
    inserted: int
    verified: bool


# ============================================================
# ORDER / ESCROW / WALLET SCHEMAS
# ============================================================

class OrderCreate(BaseModel):
    seller_id: ObjectIdStr
    amount: float = Field(..., ge=0)
    requirements: Optional[str] = None

class OrderResponse(BaseModel):
    id: str
    buyer_id: str
    seller_id: str
    amount: float
    status: str
    requirements: Optional[str] = None
    delivered_at: Optional[datetime] = None
    auto_confirm_at: Optional[datetime] = None
    created_at: datetime

class AutoConfirmResponse(BaseModel):
    confirmed: int

class CreateEscrowRequest(BaseModel):
    order_id: ObjectIdStr
    amount: float = Field(..., ge=0)
    transaction_id: Optional[str] = None

class EscrowResponse(BaseModel):
    id: str
    order_id: str
    transaction_id: Optional[str] = None
    amount: float = Field(..., ge=0)
    status: EscrowStatus
    commission: Optional[float] = None
    seller_earnings: Optional[float] = None
    released_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    created_at: datetime

class EscrowResolveRequest(BaseModel):
    decision: EscrowDecision

class WalletResponse(BaseModel):
    id: str
    user_id: str
    balance: float
    currency: str

class WalletTransactionResponse(BaseModel):
    id: str
    type: str
    amount: float
    description: str
    order_id: Optional[str] = None
    created_at: datetime


# ============================================================
# SKILL SCHEMAS
# ============================================================

class SkillCreate(BaseModel):
    name: NonBlankStr = Field(..., max_length=100)
    category: Optional[str] = None

class SkillAdd(BaseModel):
    name: NonBlankStr = Field(..., max_length=100)

class SkillResponse(BaseModel):
    id: str
    name: str
    category: Optional[str] = None
    usage_count: int


# ============================================================
# ADMIN SCHEMAS
# ============================================================

class AdminActionRequest(BaseModel):
    action: AdminAction
    target_id: NonBlankStr
    reason: Optional[str] = None

class AdminActionResponse(BaseModel):
    action: AdminAction
    target_id: str
    result: Dict[str, Any]

class AdminStatsResponse(BaseModel):
    users: int
    escrow_held: float
    orders: int
    pending_verifications: int

class PageMeta(BaseModel):
    total: int
    page: int
    limit: int
    pages: int

class PagedResponse(BaseModel):
    data: List[Dict[str, Any]]
    meta: PageMeta

class WalletTransactionPage(BaseModel):
    data: List[WalletTransactionResponse]
    meta: PageMeta


# ============================================================
# GENERIC SCHEMAS
# ============================================================

class MessageResponse(BaseModel):
    message: str
    success: bool = True
