"""
Account model - a bank account a user links as a withdrawal destination.

Each linked account has:
  - Holder name, bank/branch details, IFSC and/or routing code
  - The account number, Fernet-encrypted at rest, plus its last four digits
    in plaintext for display ("ending in 4821")
  - An is_default flag

Default account invariant:
  At most one account per user has is_default=True. The account service
  clears the flag on the user's other accounts in the same database
  transaction that sets it (see account_service.update_account).

Wallet transactions reference an Account weakly (lookup only). Deleting an
account detaches those transactions instead of deleting them.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Boolean, DateTime, ForeignKey, LargeBinary
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )

    account_holder_name: Mapped[str] = mapped_column(String(200), nullable=False)

    # Optional nickname, e.g. "Salary account"
    account_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    bank_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    branch_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Full account number, Fernet-encrypted
    account_number_encrypted: Mapped[bytes] = mapped_column(
        LargeBinary,
        nullable=False,
    )

    account_number_last_four: Mapped[str] = mapped_column(
        String(4),
        nullable=False,
    )

    ifsc_code: Mapped[str] = mapped_column(String(11), nullable=False)
    routing_number: Mapped[str | None] = mapped_column(String(9), nullable=True)

    # "SAVINGS" or "CHECKING"
    account_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="SAVINGS",
    )

    # ISO 4217 currency code
    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="USD",
    )

    is_default: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    # Audit timestamps
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
        back_populates="accounts",
    )
