"""
Wallet model - a user's stored-value balance.

One-to-one with User (UNIQUE user_id). The wallet row is created lazily the
first time it is read, with a zero balance in the configured currency.

Balance management:
  balance_cents is an integer number of minor units ($10.50 = 1050). It is
  only ever changed by a single UPDATE statement issued from
  wallet_service.apply_balance_delta, inside the same database transaction
  as the WalletTransaction row that explains the change.

  The column is signed. Sends can never overdraw the wallet - the debit
  is conditional on balance >= amount - but cancelling a deposit whose
  funds were already sent on may leave a negative balance.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import BigInteger, DateTime, Enum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class WalletStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    CLOSED = "CLOSED"


class Wallet(Base):
    __tablename__ = "wallets"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # UNIQUE enforces one wallet per user (and backs the lazy-create upsert)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        unique=True,
        nullable=False,
    )

    balance_cents: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="USD",
    )

    status: Mapped[WalletStatus] = mapped_column(
        Enum(WalletStatus),
        nullable=False,
        default=WalletStatus.ACTIVE,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # --- Relationships ---
    user: Mapped["User"] = relationship(
        back_populates="wallet",
    )

    transactions: Mapped[list["WalletTransaction"]] = relationship(
        back_populates="wallet",
    )
