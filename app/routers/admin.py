"""
Admin router - transaction review and oversight.

All endpoints require the ADMIN role:

  GET   /admin/dashboard                                   - Counters
  GET   /admin/users                                       - Users with wallet summary
  GET   /admin/wallet/transactions                         - All wallet transactions
  GET   /admin/wallet/transactions/{transaction_id}        - Any transaction
  PATCH /admin/wallet/transactions/{transaction_id}        - Edit a pending transaction
  POST  /admin/wallet/transactions/{transaction_id}/review - Complete/cancel/reject
  PATCH /admin/wallets/{user_id}/status                    - Suspend/close/reactivate

Admins never move money directly. Their only balance effects are the
reversal that follows cancelling or rejecting a PENDING transaction, and
the difference applied when they correct a pending amount.
"""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import require_admin
from app.models.user import User
from app.models.wallet import WalletStatus
from app.models.wallet_transaction import WalletTransactionStatus, WalletTransactionType
from app.schemas.admin import (
    AdminDashboardResponse,
    AdminUserResponse,
    ReviewRequest,
    ReviewResponse,
    TransactionEditRequest,
    WalletStatusUpdate,
)
from app.schemas.wallet import WalletResponse, WalletTransactionDetail
from app.services import auth_service, review_service, wallet_service

router = APIRouter()


@router.get(
    "/dashboard",
    response_model=AdminDashboardResponse,
    summary="[Admin] Dashboard counters",
)
async def admin_dashboard(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await wallet_service.admin_get_dashboard_stats(db)


@router.get(
    "/users",
    response_model=list[AdminUserResponse],
    summary="[Admin] List users",
)
async def admin_list_users(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Users with their wallet balance, linked-account and transaction counts."""
    rows = await auth_service.admin_list_users(db, limit=limit, offset=offset)
    return [
        AdminUserResponse(
            id=user.id,
            username=user.username,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role=user.role.value,
            email_verified=user.email_verified,
            is_active=user.is_active,
            created_at=user.created_at,
            last_login_at=user.last_login_at,
            wallet_balance_cents=user.wallet.balance_cents if user.wallet else None,
            wallet_status=user.wallet.status.value if user.wallet else None,
            account_count=account_count,
            transaction_count=transaction_count,
        )
        for user, account_count, transaction_count in rows
    ]


@router.get(
    "/wallet/transactions",
    response_model=list[WalletTransactionDetail],
    summary="[Admin] List all wallet transactions",
)
async def admin_list_transactions(
    status_filter: WalletTransactionStatus | None = Query(None, alias="status"),
    type_filter: WalletTransactionType | None = Query(None, alias="type"),
    user_id: uuid.UUID | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Filter with ?status=PENDING to get the review queue."""
    return await wallet_service.admin_list_transactions(
        db,
        status_filter=status_filter,
        type_filter=type_filter,
        user_id=user_id,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/wallet/transactions/{transaction_id}",
    response_model=WalletTransactionDetail,
    summary="[Admin] Get any wallet transaction",
)
async def admin_get_transaction(
    transaction_id: uuid.UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await wallet_service.admin_get_transaction(db, transaction_id)


@router.post(
    "/wallet/transactions/{transaction_id}/review",
    response_model=ReviewResponse,
    summary="[Admin] Review a pending transaction",
)
async def admin_review_transaction(
    transaction_id: uuid.UUID,
    request: ReviewRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Move a PENDING transaction to COMPLETED, CANCELLED or REJECTED.

    All three are terminal states of the transaction lifecycle (see
    app/models/wallet_transaction.py). An owner can only cancel; REJECTED
    is the admin's refusal of a request.

    CANCELLED and REJECTED reverse the balance effect applied at creation.
    Reviewing a transaction that is no longer PENDING returns 409.
    """
    txn, wallet_updated, new_balance = await review_service.set_status(
        db,
        transaction_id,
        WalletTransactionStatus(request.status),
        note=request.note,
        reviewer_id=admin.id,
    )
    return {
        "transaction": txn,
        "wallet_updated": wallet_updated,
        "new_balance_cents": new_balance,
    }


@router.patch(
    "/wallet/transactions/{transaction_id}",
    response_model=ReviewResponse,
    summary="[Admin] Edit a pending transaction",
)
async def admin_edit_transaction(
    transaction_id: uuid.UUID,
    request: TransactionEditRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Correct the amount, description or location of a PENDING transaction.

    An amount change moves the wallet balance by the difference. A larger
    withdrawal must be covered by the balance (422 otherwise). Editing a
    transaction that is no longer PENDING returns 409.
    """
    txn, wallet_updated, new_balance = await review_service.edit_pending(
        db,
        transaction_id,
        request.model_dump(exclude_unset=True, exclude_none=True),
        editor_id=admin.id,
    )
    return {
        "transaction": txn,
        "wallet_updated": wallet_updated,
        "new_balance_cents": new_balance,
    }


@router.patch(
    "/wallets/{user_id}/status",
    response_model=WalletResponse,
    summary="[Admin] Change a wallet's status",
)
async def admin_set_wallet_status(
    user_id: uuid.UUID,
    request: WalletStatusUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Suspended and closed wallets refuse deposits and sends."""
    return await wallet_service.admin_set_wallet_status(
        db, user_id, WalletStatus(request.status)
    )
