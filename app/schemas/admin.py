"""
Pydantic schemas for admin endpoints.
"""

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from app.schemas.wallet import WalletTransactionDetail


class ReviewRequest(BaseModel):
    """Request body for POST /admin/wallet/transactions/{id}/review."""
    status: Literal["COMPLETED", "CANCELLED", "REJECTED"]
    note: str | None = Field(None, max_length=500)


class TransactionEditRequest(BaseModel):
    """
    Request body for PATCH /admin/wallet/transactions/{id}.

    Omitted fields are unchanged. Only PENDING transactions can be edited.
    """
    amount_cents: int | None = Field(None, gt=0, description="Corrected amount in cents")
    description: str | None = Field(None, max_length=255)
    location: str | None = Field(None, max_length=255)


class ReviewResponse(BaseModel):
    """
    Review or edit outcome.

    wallet_updated is True when the call moved the wallet balance (a
    reversal, or the difference of an amount edit); new_balance_cents is
    the balance afterwards.
    """
    transaction: WalletTransactionDetail
    wallet_updated: bool
    new_balance_cents: int | None = None


class WalletStatusUpdate(BaseModel):
    """Request body for PATCH /admin/wallets/{user_id}/status."""
    status: Literal["ACTIVE", "SUSPENDED", "CLOSED"]


class AdminDashboardResponse(BaseModel):
    total_users: int
    transaction_counts: dict[str, int]
    pending_count: int
    transaction_volume_cents: int
    total_wallet_balance_cents: int


class AdminUserResponse(BaseModel):
    """A user row in the admin console."""
    id: uuid.UUID
    username: str
    email: str
    first_name: str
    last_name: str
    role: str
    email_verified: bool
    is_active: bool
    created_at: datetime
    last_login_at: datetime | None
    wallet_balance_cents: int | None
    wallet_status: str | None
    account_count: int
    transaction_count: int
