# backend/tutorhub/repositories/wallet_repository.py
"""Wallet balance and ledger persistence."""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..models.wallet import Wallet, WalletTransaction
from .base_repository import BaseRepository


class WalletRepository(BaseRepository[Wallet]):
    def __init__(self, db: Session):
        super().__init__(db, Wallet)
        self.logger = logging.getLogger(__name__)

    def get_by_user_id(self, user_id: str) -> Optional[Wallet]:
        return self.find_one_by(user_id=user_id)

    def get_or_create(self, user_id: str, currency: str) -> Wallet:
        wallet = self.get_by_user_id(user_id)
        if wallet is None:
            wallet = self.create(user_id=user_id, currency=currency, balance=0)
        return wallet

    def add_transaction(self, **fields) -> WalletTransaction:
        entry = WalletTransaction(**fields)
        self.db.add(entry)
        self.db.flush()
        return entry

    def get_transactions(self, user_id: str) -> List[WalletTransaction]:
        query = (
            self.db.query(WalletTransaction)
            .filter(WalletTransaction.user_id == user_id)
            .order_by(WalletTransaction.created_at, WalletTransaction.id)
        )
        return self._execute_query(query)
