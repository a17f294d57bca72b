"""
Accounts router - linked bank account endpoints.

All endpoints require a member (USER role) session and are scoped to the
caller's own accounts:

  POST   /accounts                       - Link a new account
  GET    /accounts                       - List own accounts
  GET    /accounts/{account_id}          - Get one account (last four only)
  PATCH  /accounts/{account_id}          - Update an account
  DELETE /accounts/{account_id}          - Remove an account
  GET    /accounts/{account_id}/details  - Get one account with the full number

Another user's account ID returns 404, same as a nonexistent one.
"""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_member
from app.models.user import User
from app.schemas.account import (
    AccountCreateRequest,
    AccountDetailsResponse,
    AccountResponse,
    AccountUpdateRequest,
)
from app.services import account_service

router = APIRouter()


@router.post(
    "",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Link a bank account",
)
async def create_account(
    request: AccountCreateRequest,
    user: User = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """
    Link a bank account as a destination for wallet sends.

    The account number is encrypted at rest. The first account you link
    becomes your default; linking another with is_default=true moves the
    default to it.
    """
    return await account_service.create_account(
        db=db,
        user_id=user.id,
        **request.model_dump(),
    )


@router.get(
    "",
    response_model=list[AccountResponse],
    summary="List your linked accounts",
)
async def list_accounts(
    user: User = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    return await account_service.list_accounts(db, user.id)


@router.get(
    "/{account_id}",
    response_model=AccountResponse,
    summary="Get a linked account",
)
async def get_account(
    account_id: uuid.UUID,
    user: User = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    return await account_service.get_account(db, account_id, user.id)


@router.patch(
    "/{account_id}",
    response_model=AccountResponse,
    summary="Update a linked account",
)
async def update_account(
    account_id: uuid.UUID,
    request: AccountUpdateRequest,
    user: User = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """
    Partially update an account. Setting is_default=true clears the
    default flag on your other accounts.
    """
    updates = request.model_dump(exclude_unset=True, exclude_none=True)
    return await account_service.update_account(db, account_id, user.id, updates)


@router.delete(
    "/{account_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a linked account",
)
async def delete_account(
    account_id: uuid.UUID,
    user: User = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """
    Remove an account. Past sends to it stay in your history without the
    account reference.
    """
    await account_service.delete_account(db, account_id, user.id)


@router.get(
    "/{account_id}/details",
    response_model=AccountDetailsResponse,
    summary="Get a linked account with its full number",
)
async def get_account_details(
    account_id: uuid.UUID,
    user: User = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    account, account_number = await account_service.get_account_details(
        db, account_id, user.id
    )
    return AccountDetailsResponse(
        **AccountResponse.model_validate(account).model_dump(),
        account_number=account_number,
    )
