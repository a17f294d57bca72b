"""
Wallet router - the member-facing ledger endpoints.

All endpoints require a member (USER role) session and operate on the
caller's own wallet:

  GET  /wallet                                 - Wallet (opened on first access)
  GET  /wallet/dashboard                       - Wallet + recent activity
  POST /wallet/deposit                         - Deposit into the wallet
  POST /wallet/send                            - Send to a linked bank account
  GET  /wallet/transactions                    - List own transactions
  GET  /wallet/transactions/{transaction_id}   - Get one transaction
  POST /wallet/transactions/{transaction_id}/cancel - Cancel a pending one

Deposits and sends are created PENDING and change the balance
immediately; an admin later completes or reverses them.
"""

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_member
from app.models.user import User
from app.models.wallet_transaction import WalletTransactionStatus, WalletTransactionType
from app.schemas.wallet import (
    DashboardResponse,
    DepositRequest,
    SendRequest,
    TransactionEnvelope,
    WalletResponse,
    WalletTransactionDetail,
)
from app.services import review_service, wallet_service

router = APIRouter()


@router.get(
    "",
    response_model=WalletResponse,
    summary="Get your wallet",
)
async def get_wallet(
    user: User = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Returns your wallet, opening one with a zero balance on first access."""
    return await wallet_service.get_wallet(db, user.id)


@router.get(
    "/dashboard",
    response_model=DashboardResponse,
    summary="Wallet dashboard",
)
async def get_dashboard(
    user: User = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """
    Wallet balance and the most recent transactions. Clients poll this
    endpoint to stay current.
    """
    return await wallet_service.get_dashboard(db, user.id)


@router.post(
    "/deposit",
    response_model=TransactionEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Deposit into your wallet",
)
async def deposit(
    request: DepositRequest,
    user: User = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """
    Deposit money into the wallet.

    The deposit is recorded as PENDING and credited to the balance right
    away. If an admin later rejects it, the credit is reversed.
    """
    txn = await wallet_service.deposit(
        db,
        user_id=user.id,
        amount_cents=request.amount_cents,
        description=request.description,
        location=request.location,
    )
    return {"transaction": txn}


@router.post(
    "/send",
    response_model=TransactionEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Send to a linked bank account",
)
async def send(
    request: SendRequest,
    user: User = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """
    Send money from the wallet to one of your linked accounts.

    Returns 422 (insufficient_balance) if the wallet doesn't cover the
    amount; the balance is left unchanged in that case.
    """
    txn = await wallet_service.send(
        db,
        user_id=user.id,
        amount_cents=request.amount_cents,
        account_id=request.account_id,
        description=request.description,
    )
    return {"transaction": txn}


@router.get(
    "/transactions",
    response_model=list[WalletTransactionDetail],
    summary="List your wallet transactions",
)
async def list_transactions(
    status_filter: WalletTransactionStatus | None = Query(None, alias="status"),
    type_filter: WalletTransactionType | None = Query(None, alias="type"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    return await wallet_service.list_transactions(
        db,
        user.id,
        status_filter=status_filter,
        type_filter=type_filter,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/transactions/{transaction_id}",
    response_model=WalletTransactionDetail,
    summary="Get a wallet transaction",
)
async def get_transaction(
    transaction_id: uuid.UUID,
    user: User = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    return await wallet_service.get_transaction(db, user.id, transaction_id)


@router.post(
    "/transactions/{transaction_id}/cancel",
    response_model=TransactionEnvelope,
    summary="Cancel a pending transaction",
)
async def cancel_transaction(
    transaction_id: uuid.UUID,
    user: User = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """
    Cancel one of your PENDING transactions and reverse its balance
    effect. Returns 409 if it has already been reviewed.
    """
    txn, _, _ = await review_service.cancel_own(db, user.id, transaction_id)
    return {"transaction": txn}
