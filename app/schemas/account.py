"""
Pydantic schemas for linked bank account endpoints.

The full account number is accepted on create/update but only ever
returned by the dedicated details endpoint; list and get responses carry
the last four digits.
"""

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class AccountCreateRequest(BaseModel):
    """Request body for POST /accounts."""
    account_holder_name: str = Field(min_length=1, max_length=200)
    account_number: str = Field(pattern=r"^\d{6,20}$")
    ifsc_code: str = Field(pattern=r"^[A-Z]{4}0[A-Z0-9]{6}$")
    account_name: str | None = Field(None, max_length=100)
    bank_name: str | None = Field(None, max_length=100)
    branch_name: str | None = Field(None, max_length=100)
    routing_number: str | None = Field(None, pattern=r"^\d{9}$")
    account_type: Literal["SAVINGS", "CHECKING"] = "SAVINGS"
    currency: str = Field("USD", min_length=3, max_length=3)
    is_default: bool = False


class AccountUpdateRequest(BaseModel):
    """Request body for PATCH /accounts/{id}. Omitted fields are unchanged."""
    account_holder_name: str | None = Field(None, min_length=1, max_length=200)
    account_number: str | None = Field(None, pattern=r"^\d{6,20}$")
    ifsc_code: str | None = Field(None, pattern=r"^[A-Z]{4}0[A-Z0-9]{6}$")
    account_name: str | None = Field(None, max_length=100)
    bank_name: str | None = Field(None, max_length=100)
    branch_name: str | None = Field(None, max_length=100)
    routing_number: str | None = Field(None, pattern=r"^\d{9}$")
    account_type: Literal["SAVINGS", "CHECKING"] | None = None
    is_default: bool | None = None


class AccountResponse(BaseModel):
    """Public representation of a linked account."""
    id: uuid.UUID
    account_holder_name: str
    account_name: str | None
    bank_name: str | None
    branch_name: str | None
    account_number_last_four: str
    ifsc_code: str
    routing_number: str | None
    account_type: str
    currency: str
    is_default: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AccountDetailsResponse(AccountResponse):
    """AccountResponse plus the decrypted account number."""
    account_number: str
