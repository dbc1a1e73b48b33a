"""
Wallet Service - user balances credited by escrow releases and refunds.
"""

import logging
from enum import Enum
from typing import Optional, Any, Dict

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.core.config import get_settings
from app.db.mongodb import COLLECTIONS
from app.services.exceptions import InsufficientFunds, InvalidInput
from app.services.mongo_service import MongoService, to_object_id, utc_now, serialize_docs, page_meta

logger = logging.getLogger(__name__)


class WalletTransactionType(str, Enum):
    credit = "CREDIT"
    debit = "DEBIT"


class WalletService(MongoService):

    collection_name = COLLECTIONS["wallets"]

    def __init__(self, db=None):
        super().__init__(db)
        self.transactions = self.db[COLLECTIONS["wallet_transactions"]]

    def get_or_create(self, user_id: Any) -> dict:
        user_oid = to_object_id(user_id, "user_id")
        wallet = self.collection.find_one({"user_id": user_oid})
        if wallet:
            return wallet
        now = utc_now()
        wallet = {
            "user_id": user_oid,
            "balance": 0.0,
            "currency": get_settings().wallet_currency,
            "is_active": True,
            "created_at": now,
            "updated_at": now,
        }
        try:
            self.collection.insert_one(wallet)
        except DuplicateKeyError:
            return self.collection.find_one({"user_id": user_oid})
        return wallet

    def _record(self, wallet: dict, tx_type: WalletTransactionType, amount: float,
                description: str, order_id: Optional[ObjectId]) -> None:
        self.transactions.insert_one({
            "wallet_id": wallet["_id"],
            "type": tx_type.value,
            "amount": amount,
            "description": description,
            "order_id": order_id,
            "created_at": utc_now(),
        })

    def credit(self, user_id: Any, amount: float, description: str, order_id: Any = None) -> dict:
        if amount < 0:
            raise InvalidInput("Credit amount must be non-negative")
        wallet = self.get_or_create(user_id)
        updated = self.collection.find_one_and_update(
            {"_id": wallet["_id"]},
            {"$inc": {"balance": amount}, "$set": {"updated_at": utc_now()}},
            return_document=ReturnDocument.AFTER,
        )
        self._record(updated, WalletTransactionType.credit, amount, description,
                     to_object_id(order_id, "order_id") if order_id else None)
        logger.info("Credited %s to wallet of user %s", amount, wallet["user_id"])
        return updated

    def debit(self, user_id: Any, amount: float, description: str) -> dict:
        """Withdraw funds. The balance guard lives in the update filter."""
        if amount < 0:
            raise InvalidInput("Debit amount must be non-negative")
        wallet = self.get_or_create(user_id)
        updated = self.collection.find_one_and_update(
            {"_id": wallet["_id"], "balance": {"$gte": amount}},
            {"$inc": {"balance": -amount}, "$set": {"updated_at": utc_now()}},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            logger.warning("Debit of %s refused for user %s: insufficient funds", amount, wallet["user_id"])
            raise InsufficientFunds()
        self._record(updated, WalletTransactionType.debit, amount, description, None)
        return updated

    def list_transactions(self, user_id: Any, page: int = 1, limit: int = 50) -> Dict[str, Any]:
        wallet = self.get_or_create(user_id)
        query = {"wallet_id": wallet["_id"]}
        skip = (page - 1) * limit
        cursor = self.transactions.find(query).sort("created_at", -1).skip(skip).limit(limit)
        total = self.transactions.count_documents(query)
        return {"data": serialize_docs(list(cursor)), "meta": page_meta(total, page, limit)}


def get_wallet_service() -> WalletService:
    return WalletService()
