"""Wallet ledger credits for cancellation refunds."""

from __future__ import annotations

from decimal import Decimal
import logging
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from ..core.exceptions import ValidationException
from ..models.types import utc_now
from ..models.wallet import WalletTransaction
from ..repositories.factory import RepositoryFactory
from ..repositories.wallet_repository import WalletRepository
from .base import BaseService

logger = logging.getLogger(__name__)


class Ledger(Protocol):
    def credit(
        self,
        user_id: str,
        amount: Decimal,
        currency: str,
        reason: str,
        reference_id: Optional[str] = None,
    ) -> Optional[WalletTransaction]:
        ...


class WalletService(BaseService):
    """
    Credits refunds to a user's wallet.

    ``credit`` runs inside the caller's transaction and only flushes, so a
    cancellation and its refund commit or roll back together.
    """

    def __init__(self, db: Session, repository: Optional[WalletRepository] = None):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_wallet_repository(db)

    @BaseService.measure_operation("wallet.credit")
    def credit(
        self,
        user_id: str,
        amount: Decimal,
        currency: str,
        reason: str,
        reference_id: Optional[str] = None,
    ) -> Optional[WalletTransaction]:
        """Append a refund entry and raise the wallet balance. Zero amounts are skipped."""
        amount = Decimal(str(amount))
        if amount < 0:
            raise ValidationException(
                "Credit amount cannot be negative",
                code="INVALID_AMOUNT",
                details={"amount": str(amount)},
            )
        if amount == 0:
            logger.info("Wallet credit skipped: zero amount for user %s", user_id)
            return None

        wallet = self.repository.get_or_create(user_id, currency)
        if wallet.currency != currency:
            raise ValidationException(
                f"Wallet currency {wallet.currency} does not match {currency}",
                code="CURRENCY_MISMATCH",
                details={"wallet_currency": wallet.currency, "currency": currency},
            )
        wallet.balance = Decimal(str(wallet.balance or 0)) + amount
        wallet.last_transaction_at = utc_now()
        entry = self.repository.add_transaction(
            wallet_id=wallet.id,
            user_id=user_id,
            type="refund",
            amount=amount,
            currency=currency,
            reason=reason,
            reference_id=reference_id,
            balance_after=wallet.balance,
        )
        self.log_operation("wallet_credit", user_id=user_id, amount=str(amount), currency=currency)
        return entry

    def get_balance(self, user_id: str) -> Decimal:
        wallet = self.repository.get_by_user_id(user_id)
        return Decimal(str(wallet.balance)) if wallet else Decimal("0")
