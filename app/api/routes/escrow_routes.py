"""
Order, Escrow and Wallet Routes

POST /orders - Place an order with a seller (buyer = current user)
GET /orders/{order_id} - Order details (buyer, seller or admin)
POST /orders/{order_id}/deliver - Seller delivers a funded order
POST /orders/{order_id}/confirm - Buyer confirms delivery, releasing the escrow
POST /orders/{order_id}/cancel - Cancel a pending order (buyer, seller or admin)
POST /escrow - Hold funds for an order (buyer only)
GET /escrow/{escrow_id} - Escrow details (buyer, seller or admin)
POST /escrow/{escrow_id}/dispute - Buyer or seller disputes held funds
POST /escrow/{escrow_id}/release - Release to seller minus commission (admin)
POST /escrow/{escrow_id}/refund - Refund to buyer (admin)
GET /wallet - Current user's wallet
GET /wallet/transactions - Wallet history
"""

from fastapi import APIRouter, HTTPException, Depends, Query

from app.core.auth import get_current_user, require_admin
from app.services.escrow_service import get_escrow_service, get_order_service
from app.services.mongo_service import serialize_doc
from app.services.user_service import ADMIN_ROLES
from app.services.wallet_service import get_wallet_service
from app.schemas.schemas import (
    OrderCreate, OrderResponse, CreateEscrowRequest, EscrowResponse, WalletResponse, WalletTransactionPage
)

router = APIRouter(tags=["Escrow"])


def _ensure_party(order: dict, user: dict) -> None:
    """Only the buyer, the seller or an admin may see or touch an order."""
    if user["role"] in ADMIN_ROLES:
        return
    if user["user_id"] not in (str(order["buyer_id"]), str(order["seller_id"])):
        raise HTTPException(status_code=403, detail="Not a party to this order")


# ============================================================
# ORDERS
# ============================================================

@router.post("/orders", response_model=OrderResponse, status_code=201)
async def create_order(request: OrderCreate, user: dict = Depends(get_current_user)):
    order = get_order_service().create_order(
        user["user_id"], request.seller_id, request.amount, request.requirements
    )
    return serialize_doc(order)


@router.get("/orders/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, user: dict = Depends(get_current_user)):
    order = get_order_service().get_order(order_id)
    _ensure_party(order, user)
    return serialize_doc(order)


@router.post("/orders/{order_id}/deliver", response_model=OrderResponse)
async def deliver_order(order_id: str, user: dict = Depends(get_current_user)):
    """Seller hands over the work. Funds release on confirmation or after 3 days."""
    return serialize_doc(get_order_service().deliver_order(order_id, user["user_id"]))


@router.post("/orders/{order_id}/confirm", response_model=OrderResponse)
async def confirm_order(order_id: str, user: dict = Depends(get_current_user)):
    """Buyer accepts the delivery; the escrow is released to the seller."""
    return serialize_doc(get_escrow_service().confirm_order(order_id, user["user_id"]))


@router.post("/orders/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(order_id: str, user: dict = Depends(get_current_user)):
    order = get_order_service().cancel_order(order_id, user["user_id"], user["role"] in ADMIN_ROLES)
    return serialize_doc(order)


# ============================================================
# ESCROW
# ============================================================

@router.post("/escrow", response_model=EscrowResponse, status_code=201)
async def create_escrow(request: CreateEscrowRequest, user: dict = Depends(get_current_user)):
    """Fund an order: the amount is held until release or refund."""
    service = get_escrow_service()
    order = service.orders.get_order(request.order_id)
    if user["role"] not in ADMIN_ROLES and str(order["buyer_id"]) != user["user_id"]:
        raise HTTPException(status_code=403, detail="Only the buyer can fund this order")
    escrow = service.create_escrow(request.order_id, request.amount, request.transaction_id)
    return serialize_doc(escrow)


@router.get("/escrow/{escrow_id}", response_model=EscrowResponse)
async def get_escrow(escrow_id: str, user: dict = Depends(get_current_user)):
    service = get_escrow_service()
    escrow = service.get_escrow(escrow_id)
    _ensure_party(service.orders.get_order(escrow["order_id"]), user)
    return serialize_doc(escrow)


@router.post("/escrow/{escrow_id}/dispute", response_model=EscrowResponse)
async def dispute_escrow(escrow_id: str, user: dict = Depends(get_current_user)):
    service = get_escrow_service()
    escrow = service.get_escrow(escrow_id)
    _ensure_party(service.orders.get_order(escrow["order_id"]), user)
    return serialize_doc(service.dispute(escrow_id))


@router.post("/escrow/{escrow_id}/release", response_model=EscrowResponse)
async def release_escrow(escrow_id: str, admin: dict = Depends(require_admin)):
    return serialize_doc(get_escrow_service().release(escrow_id))


@router.post("/escrow/{escrow_id}/refund", response_model=EscrowResponse)
async def refund_escrow(escrow_id: str, admin: dict = Depends(require_admin)):
    return serialize_doc(get_escrow_service().refund(escrow_id))


# ============================================================
# WALLET
# ============================================================

@router.get("/wallet", response_model=WalletResponse)
async def get_wallet(user: dict = Depends(get_current_user)):
    return serialize_doc(get_wallet_service().get_or_create(user["user_id"]))


@router.get("/wallet/transactions", response_model=WalletTransactionPage)
async def get_wallet_transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    user: dict = Depends(get_current_user)
):
    return get_wallet_service().list_transactions(user["user_id"], page, limit)
