"""
Escrow Ledger - funds held per order until released or refunded.

Status flow:
    held -> released | refunded | disputed
    disputed -> released | refunded

Transitions are conditional updates on the current status, so an escrow
is released (and its seller credited) at most once.
"""

import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Any, Dict

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.core.config import get_settings
from app.db.mongodb import COLLECTIONS
from app.services.exceptions import (
    LedgerError, NotFound, Conflict, Forbidden, InvalidStateTransition, InvalidInput
)
from app.services.mongo_service import MongoService, to_object_id, utc_now
from app.services.wallet_service import WalletService

logger = logging.getLogger(__name__)

# Delivered orders the buyer neither confirms nor disputes are released after this
AUTO_CONFIRM_AFTER = timedelta(days=3)


class EscrowStatus(str, Enum):
    held = "held"
    released = "released"
    refunded = "refunded"
    disputed = "disputed"


class OrderStatus(str, Enum):
    pending = "pending"
    in_progress = "in_progress"
    delivered = "delivered"
    completed = "completed"
    cancelled = "cancelled"
    disputed = "disputed"


class EscrowDecision(str, Enum):
    release = "release"
    refund = "refund"


OPEN_STATUSES = [EscrowStatus.held.value, EscrowStatus.disputed.value]


class OrderService(MongoService):
    """
    Order workflow:
        pending -> in_progress (escrow funded) -> delivered (seller)
        delivered -> completed (buyer confirms, funds released)
        pending -> cancelled (either party)
    """

    collection_name = COLLECTIONS["orders"]

    def __init__(self, db=None):
        super().__init__(db)
        self.users = self.db[COLLECTIONS["users"]]

    def create_order(self, buyer_id: Any, seller_id: Any, amount: float,
                     requirements: Optional[str] = None) -> dict:
        if amount < 0:
            raise InvalidInput("amount must be non-negative")
        buyer_oid = to_object_id(buyer_id, "buyer_id")
        seller_oid = to_object_id(seller_id, "seller_id")
        if buyer_oid == seller_oid:
            raise InvalidInput("Buyer and seller must differ")
        if self.users.count_documents({"_id": seller_oid}) == 0:
            raise NotFound("Seller not found")
        now = utc_now()
        order = {
            "buyer_id": buyer_oid,
            "seller_id": seller_oid,
            "amount": amount,
            "status": OrderStatus.pending.value,
            "requirements": requirements,
            "created_at": now,
            "updated_at": now,
        }
        self.collection.insert_one(order)
        return order

    def get_order(self, order_id: Any) -> dict:
        order = self.find_by_id(order_id, "order_id")
        if order is None:
            raise NotFound("Order not found")
        return order

    def set_status(self, order_id: Any, status: OrderStatus) -> None:
        self.collection.update_one(
            {"_id": to_object_id(order_id, "order_id")},
            {"$set": {"status": status.value, "updated_at": utc_now()}},
        )

    def deliver_order(self, order_id: Any, seller_id: str, now: Optional[datetime] = None) -> dict:
        """Seller marks a funded order as delivered; the buyer has AUTO_CONFIRM_AFTER to confirm."""
        order = self.get_order(order_id)
        if str(order["seller_id"]) != seller_id:
            raise Forbidden("Only the seller can deliver this order")
        now = now or utc_now()
        updated = self.collection.find_one_and_update(
            {"_id": order["_id"], "status": OrderStatus.in_progress.value},
            {"$set": {
                "status": OrderStatus.delivered.value,
                "delivered_at": now,
                "auto_confirm_at": now + AUTO_CONFIRM_AFTER,
                "updated_at": now,
            }},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            raise InvalidStateTransition(f"Order is {self.get_order(order_id)['status']}, not in_progress")
        logger.info("Order %s delivered by seller %s", order["_id"], seller_id)
        return updated

    def cancel_order(self, order_id: Any, user_id: str, is_admin: bool = False) -> dict:
        order = self.get_order(order_id)
        if not is_admin and user_id not in (str(order["buyer_id"]), str(order["seller_id"])):
            raise Forbidden("You do not have permission to cancel this order")
        updated = self.collection.find_one_and_update(
            {"_id": order["_id"], "status": OrderStatus.pending.value},
            {"$set": {"status": OrderStatus.cancelled.value, "updated_at": utc_now()}},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            raise InvalidStateTransition("Only pending orders can be cancelled")
        logger.info("Order %s cancelled by %s", order["_id"], user_id)
        return updated


class EscrowService(MongoService):

    collection_name = COLLECTIONS["escrows"]

    def __init__(self, db=None, commission_rate: Optional[float] = None):
        super().__init__(db)
        self.orders = OrderService(self.db)
        self.wallets = WalletService(self.db)
        self.commission_rate = (
            commission_rate if commission_rate is not None else get_settings().escrow_commission_rate
        )

    def create_escrow(self, order_id: Any, amount: float, transaction_id: Optional[str] = None) -> dict:
        """Hold funds for an order. One escrow per order."""
        if amount < 0:
            raise InvalidInput("amount must be non-negative")
        order = self.orders.get_order(order_id)
        now = utc_now()
        escrow = {
            "order_id": order["_id"],
            "transaction_id": transaction_id,
            "amount": amount,
            "status": EscrowStatus.held.value,
            "commission": None,
            "seller_earnings": None,
            "released_at": None,
            "refunded_at": None,
            "created_at": now,
            "updated_at": now,
        }
        try:
            self.collection.insert_one(escrow)
        except DuplicateKeyError:
            raise Conflict("Escrow already exists for this order")

        self.orders.set_status(order["_id"], OrderStatus.in_progress)
        logger.info("Escrow %s created for order %s (amount=%s)", escrow["_id"], order["_id"], amount)
        return escrow

    def get_escrow(self, escrow_id: Any) -> dict:
        escrow = self.find_by_id(escrow_id, "escrow_id")
        if escrow is None:
            raise NotFound("Escrow record not found")
        return escrow

    def get_by_order(self, order_id: Any) -> dict:
        escrow = self.collection.find_one({"order_id": to_object_id(order_id, "order_id")})
        if escrow is None:
            raise NotFound("Escrow record not found for this order")
        return escrow

    def _transition(self, escrow: dict, target: EscrowStatus, extra: Dict[str, Any],
                    allowed_from=None) -> Optional[dict]:
        """Move an escrow to `target` if it is still in one of `allowed_from`."""
        return self.collection.find_one_and_update(
            {"_id": escrow["_id"], "status": {"$in": allowed_from or OPEN_STATUSES}},
            {"$set": {"status": target.value, "updated_at": utc_now(), **extra}},
            return_document=ReturnDocument.AFTER,
        )

    def _process_release(self, escrow: dict) -> dict:
        if escrow["status"] == EscrowStatus.released.value:
            return escrow
        if escrow["status"] not in OPEN_STATUSES:
            raise InvalidStateTransition(f"Funds are {escrow['status']}")

        order = self.orders.get_order(escrow["order_id"])
        commission = round(escrow["amount"] * self.commission_rate, 2)
        seller_earnings = round(escrow["amount"] - commission, 2)

        updated = self._transition(escrow, EscrowStatus.released, {
            "commission": commission,
            "seller_earnings": seller_earnings,
            "released_at": utc_now(),
        })
        if updated is None:
            # Lost a race: report whatever state won
            return self._process_release(self.get_escrow(escrow["_id"]))

        self.wallets.credit(
            order["seller_id"],
            seller_earnings,
            f"Earnings for Order #{order['_id']} (Commission: {self.commission_rate:.0%})",
            order["_id"],
        )
        self.orders.set_status(order["_id"], OrderStatus.completed)
        logger.info("Escrow %s released: seller %s earns %s", escrow["_id"], order["seller_id"], seller_earnings)
        return updated

    def release(self, escrow_id: Any) -> dict:
        return self._process_release(self.get_escrow(escrow_id))

    def release_by_order(self, order_id: Any) -> dict:
        return self._process_release(self.get_by_order(order_id))

    def confirm_order(self, order_id: Any, buyer_id: Optional[str] = None) -> dict:
        """
        Buyer accepts a delivered order, which releases its escrow.
        buyer_id=None confirms on the buyer's behalf (auto-confirmation).
        """
        order = self.orders.get_order(order_id)
        if buyer_id is not None and str(order["buyer_id"]) != buyer_id:
            raise Forbidden("Only the buyer can confirm this order")
        if order["status"] != OrderStatus.delivered.value:
            raise InvalidStateTransition("Order must be delivered to be confirmed")
        self.release_by_order(order["_id"])
        return self.orders.get_order(order["_id"])

    def auto_confirm_due_orders(self, now: Optional[datetime] = None) -> int:
        """Confirm delivered orders whose buyer let the confirmation window pass."""
        now = now or utc_now()
        confirmed = 0
        due = self.orders.collection.find({
            "status": OrderStatus.delivered.value,
            "auto_confirm_at": {"$lte": now},
        })
        for order in due:
            try:
                self.confirm_order(order["_id"])
            except LedgerError as e:
                logger.error("Failed to auto-confirm order %s: %s", order["_id"], e.detail)
                continue
            confirmed += 1
            logger.info("Auto-confirmed order %s", order["_id"])
        return confirmed

    def refund(self, escrow_id: Any) -> dict:
        escrow = self.get_escrow(escrow_id)
        if escrow["status"] == EscrowStatus.refunded.value:
            return escrow
        if escrow["status"] not in OPEN_STATUSES:
            raise InvalidStateTransition(f"Funds are {escrow['status']}")

        order = self.orders.get_order(escrow["order_id"])
        updated = self._transition(escrow, EscrowStatus.refunded, {"refunded_at": utc_now()})
        if updated is None:
            return self.refund(escrow_id)

        self.wallets.credit(
            order["buyer_id"],
            escrow["amount"],
            f"Refund for Order #{order['_id']}",
            order["_id"],
        )
        self.orders.set_status(order["_id"], OrderStatus.cancelled)
        logger.info("Escrow %s refunded to buyer %s", escrow["_id"], order["buyer_id"])
        return updated

    def dispute(self, escrow_id: Any) -> dict:
        escrow = self.get_escrow(escrow_id)
        if escrow["status"] == EscrowStatus.disputed.value:
            return escrow
        updated = self._transition(escrow, EscrowStatus.disputed, {}, allowed_from=[EscrowStatus.held.value])
        if updated is None:
            raise InvalidStateTransition(f"Funds are {self.get_escrow(escrow_id)['status']}")
        self.orders.set_status(escrow["order_id"], OrderStatus.disputed)
        logger.warning("Escrow %s disputed", escrow["_id"])
        return updated

    def resolve(self, escrow_id: Any, decision: str) -> dict:
        """Admin resolution of a held or disputed escrow."""
        if decision == EscrowDecision.release.value:
            return self.release(escrow_id)
        if decision == EscrowDecision.refund.value:
            return self.refund(escrow_id)
        raise InvalidInput(f"Unknown decision: {decision}")

    def list_escrows(self, status: Optional[str] = None, page: int = 1, limit: int = 50) -> Dict[str, Any]:
        query = {"status": status} if status else {}
        return self.list_page(query, page, limit)

    def total_held(self) -> float:
        result = list(self.collection.aggregate([
            {"$match": {"status": EscrowStatus.held.value}},
            {"$group": {"_id": None, "total": {"$sum": "$amount"}}},
        ]))
        return result[0]["total"] if result else 0


def get_escrow_service() -> EscrowService:
    return EscrowService()


def get_order_service() -> OrderService:
    return OrderService()
