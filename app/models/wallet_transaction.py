"""
WalletTransaction model - a balance-affecting or balance-pending operation.

Every deposit into and send out of a wallet creates one row. Key fields:

  - type: DEPOSIT (money in) or WITHDRAWAL (money out to a linked account).
    TRANSFER, FEE and REFUND are reserved for operator-created entries.
  - amount_cents: Always positive; the direction is implied by the type
    (see BALANCE_DIRECTION).
  - status: PENDING on creation. An admin (or the owner, for a cancel)
    moves it to one of the terminal states COMPLETED, CANCELLED or
    REJECTED. No transition leaves a terminal state.
  - account_id: The linked bank account a WITHDRAWAL pays out to. A weak
    reference: deleting the account sets it to NULL.

Balance policy:
  The balance effect is applied when the row is created, so PENDING
  transactions already count towards the visible balance. COMPLETED keeps
  that effect; CANCELLED and REJECTED reverse it.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class WalletTransactionType(str, enum.Enum):
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    TRANSFER = "TRANSFER"
    FEE = "FEE"
    REFUND = "REFUND"


class WalletTransactionStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    REJECTED = "REJECTED"


TERMINAL_STATUSES = frozenset({
    WalletTransactionStatus.COMPLETED,
    WalletTransactionStatus.CANCELLED,
    WalletTransactionStatus.REJECTED,
})

# Statuses that undo the balance effect applied at creation
REVERSING_STATUSES = frozenset({
    WalletTransactionStatus.CANCELLED,
    WalletTransactionStatus.REJECTED,
})

# +1: the transaction credited the wallet when created, -1: it debited it
BALANCE_DIRECTION = {
    WalletTransactionType.DEPOSIT: 1,
    WalletTransactionType.REFUND: 1,
    WalletTransactionType.WITHDRAWAL: -1,
    WalletTransactionType.TRANSFER: -1,
    WalletTransactionType.FEE: -1,
}


class WalletTransaction(Base):
    __tablename__ = "wallet_transactions"

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_wallet_transactions_positive_amount"),
        CheckConstraint("fee_cents >= 0", name="ck_wallet_transactions_non_negative_fee"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    wallet_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("wallets.id"),
        nullable=False,
        index=True,
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )

    # Payout destination for withdrawals
    account_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("accounts.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    amount_cents: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="USD",
    )

    type: Mapped[WalletTransactionType] = mapped_column(
        Enum(WalletTransactionType),
        nullable=False,
    )

    status: Mapped[WalletTransactionStatus] = mapped_column(
        Enum(WalletTransactionStatus),
        nullable=False,
        default=WalletTransactionStatus.PENDING,
        index=True,
    )

    fee_cents: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    description: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Free-form origin of a deposit (e.g. branch or terminal), as reported by the client
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # --- Review ---
    admin_note: Mapped[str | None] = mapped_column(String(500), nullable=True)
    reviewed_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id"),
        nullable=True,
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # --- Relationships ---
    wallet: Mapped["Wallet"] = relationship(back_populates="transactions")
    user: Mapped["User"] = relationship(foreign_keys=[user_id])
    account: Mapped["Account | None"] = relationship()
