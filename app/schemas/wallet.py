"""
Pydantic schemas for wallet and wallet-transaction endpoints.

All monetary amounts are in integer cents (e.g., $10.50 = 1050).
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class WalletResponse(BaseModel):
    """A user's wallet."""
    id: uuid.UUID
    user_id: uuid.UUID
    balance_cents: int
    currency: str
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class DepositRequest(BaseModel):
    """Request body for POST /wallet/deposit."""
    amount_cents: int = Field(gt=0, description="Amount in cents (must be positive)")
    description: str | None = Field(None, max_length=255)
    location: str | None = Field(None, max_length=255)


class SendRequest(BaseModel):
    """Request body for POST /wallet/send."""
    amount_cents: int = Field(gt=0, description="Amount in cents (must be positive)")
    account_id: uuid.UUID = Field(description="Destination: one of your linked accounts")
    description: str | None = Field(None, max_length=255)


class WalletTransactionResponse(BaseModel):
    """Public representation of a wallet transaction."""
    id: uuid.UUID
    wallet_id: uuid.UUID
    user_id: uuid.UUID
    account_id: uuid.UUID | None
    amount_cents: int
    fee_cents: int
    currency: str
    type: str
    status: str
    description: str | None
    location: str | None
    admin_note: str | None
    reviewed_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AccountSummary(BaseModel):
    """The destination account as embedded in a transaction."""
    id: uuid.UUID
    account_holder_name: str
    bank_name: str | None
    account_number_last_four: str

    model_config = {"from_attributes": True}


class UserSummary(BaseModel):
    """The transaction owner as embedded in a transaction."""
    id: uuid.UUID
    username: str
    first_name: str
    last_name: str
    email: str

    model_config = {"from_attributes": True}


class WalletTransactionDetail(WalletTransactionResponse):
    """Transaction with the referenced account and owner joined in."""
    account: AccountSummary | None = None
    user: UserSummary | None = None


class TransactionEnvelope(BaseModel):
    """Response body for deposit, send and cancel."""
    transaction: WalletTransactionResponse


class DashboardResponse(BaseModel):
    """Response body for GET /wallet/dashboard."""
    wallet: WalletResponse
    recent_transactions: list[WalletTransactionDetail]
    last_updated: datetime
