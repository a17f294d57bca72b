"""
User model - the authentication identity.

Each User is a login credential (username + Argon2 password hash) with a
role. A USER owns at most one Wallet and any number of linked bank
Accounts; an ADMIN reviews wallet transactions and has no wallet of its own.

Roles:
  - USER: Wallet owner - the default role for registration
  - ADMIN: Transaction reviewer - provisioned by an operator, never
    self-service

Email verification:
  Registration stores a six-digit code and its expiry. Verifying the code
  sets email_verified and clears both columns.

Users are never hard-deleted; is_active=False blocks login while keeping
the ledger history intact.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Boolean, DateTime, Enum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class UserRole(str, enum.Enum):
    """
    Defines the role a user holds.

    Inherits from str so the value serializes naturally to JSON.
    """
    USER = "USER"
    ADMIN = "ADMIN"


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # Login identifier
    username: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
    )

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Argon2id hash of the password
    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole),
        default=UserRole.USER,
        nullable=False,
    )

    # --- Email verification ---
    email_verified: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    verify_code: Mapped[str | None] = mapped_column(String(6), nullable=True)
    verify_code_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Soft-disable: deactivated users can't log in but their data is preserved
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    last_login_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
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
    wallet: Mapped["Wallet | None"] = relationship(
        back_populates="user",
        uselist=False,
    )

    accounts: Mapped[list["Account"]] = relationship(
        back_populates="user",
    )
