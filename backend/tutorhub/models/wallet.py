# backend/tutorhub/models/wallet.py
"""Wallet balances and the append-only ledger of wallet transactions."""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import relationship
import ulid

from ..database import Base
from .types import UTCDateTime, utc_now


class Wallet(Base):
    __tablename__ = "wallets"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    user_id = Column(String(26), ForeignKey("users.id"), nullable=False, unique=True, index=True)
    balance = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")
    last_transaction_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=utc_now)

    transactions = relationship(
        "WalletTransaction", back_populates="wallet", order_by="WalletTransaction.created_at"
    )

    def __repr__(self) -> str:
        return f"<Wallet {self.id}: user={self.user_id}, balance={self.balance} {self.currency}>"


class WalletTransaction(Base):
    __tablename__ = "wallet_transactions"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    wallet_id = Column(String(26), ForeignKey("wallets.id"), nullable=False, index=True)
    user_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(20), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    reason = Column(Text, nullable=True)
    reference_id = Column(String(26), nullable=True)
    balance_after = Column(Numeric(12, 2), nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)

    wallet = relationship("Wallet", back_populates="transactions")

    __table_args__ = (
        CheckConstraint("type IN ('credit', 'debit', 'refund')", name="ck_wallet_transactions_type"),
        CheckConstraint("amount > 0", name="check_amount_positive"),
    )
