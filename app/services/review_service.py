"""
Review service - moves wallet transactions out of PENDING.

State machine:

    PENDING ──► COMPLETED
       │
       ├──────► CANCELLED
       │
       └──────► REJECTED

PENDING is the only non-terminal state. Anything else, including a second
review of an already-reviewed transaction, raises InvalidTransitionError.

Balance effects:
  The ledger applies a transaction's balance effect at creation time, so:
    - COMPLETED changes nothing
    - CANCELLED / REJECTED reverse it: a withdrawal is credited back, a
      deposit is debited back

  The status change is a conditional UPDATE ... WHERE status = 'PENDING'.
  Only the request whose UPDATE matches goes on to reverse the balance, so
  two concurrent reviews of the same transaction can't both reverse it.
  Status change and reversal share one database transaction.

Who may call what:
  set_status() backs the admin review endpoint (require_admin). cancel_own()
  lets the owner withdraw their own pending request. edit_pending() lets an
  admin correct a pending transaction's amount, description or location
  before reviewing it; an amount change moves the balance by the difference.
"""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

from app.exceptions import (
    InsufficientBalanceError,
    InvalidTransitionError,
    StorageFailureError,
    TransactionNotEditableError,
    TransactionNotFoundError,
)
from app.models.wallet import Wallet
from app.models.wallet_transaction import (
    BALANCE_DIRECTION,
    REVERSING_STATUSES,
    TERMINAL_STATUSES,
    WalletTransaction,
    WalletTransactionStatus,
    WalletTransactionType,
)
from app.services.wallet_service import _require_positive, apply_balance_delta

logger = logging.getLogger(__name__)


async def _load_transaction(
    db: AsyncSession,
    transaction_id: uuid.UUID,
    user_id: uuid.UUID | None = None,
) -> WalletTransaction:
    query = (
        select(WalletTransaction)
        .where(WalletTransaction.id == transaction_id)
        .options(
            selectinload(WalletTransaction.account),
            selectinload(WalletTransaction.user),
        )
    )
    if user_id is not None:
        query = query.where(WalletTransaction.user_id == user_id)

    result = await db.execute(query)
    txn = result.scalar_one_or_none()
    if txn is None:
        raise TransactionNotFoundError(transaction_id)
    return txn


async def _transition(
    db: AsyncSession,
    txn: WalletTransaction,
    new_status: WalletTransactionStatus,
    note: str | None,
    actor_id: uuid.UUID | None,
) -> tuple[WalletTransaction, bool, int | None]:
    if new_status not in TERMINAL_STATUSES or txn.status != WalletTransactionStatus.PENDING:
        raise InvalidTransitionError(txn.status.value, new_status.value)

    values = {
        "status": new_status,
        "reviewed_by_id": actor_id,
        "reviewed_at": datetime.now(timezone.utc),
    }
    if note is not None:
        values["admin_note"] = note

    try:
        result = await db.execute(
            update(WalletTransaction)
            .where(
                WalletTransaction.id == txn.id,
                WalletTransaction.status == WalletTransactionStatus.PENDING,
            )
            .values(**values)
            .returning(WalletTransaction.updated_at)
            .execution_options(synchronize_session=False)
        )
        updated_at = result.scalar_one_or_none()
    except SQLAlchemyError as exc:
        logger.exception("Status change of transaction %s failed", txn.id)
        raise StorageFailureError("status change") from exc

    if updated_at is None:
        # Another request reviewed it between our read and our update
        current = (
            await db.execute(
                select(WalletTransaction.status).where(WalletTransaction.id == txn.id)
            )
        ).scalar_one()
        logger.warning(
            "Transaction %s already moved to %s; refusing %s",
            txn.id, current.value, new_status.value,
        )
        raise InvalidTransitionError(current.value, new_status.value)

    wallet_updated = False
    new_balance = None
    if new_status in REVERSING_STATUSES:
        wallet = await db.get(Wallet, txn.wallet_id)
        delta = -BALANCE_DIRECTION[txn.type] * txn.amount_cents
        try:
            new_balance = await apply_balance_delta(db, wallet, delta)
        except SQLAlchemyError as exc:
            logger.exception("Reversal for transaction %s failed", txn.id)
            raise StorageFailureError("balance reversal") from exc
        wallet_updated = True
        if new_balance < 0:
            logger.warning(
                "Reversing transaction %s left wallet %s at %d cents",
                txn.id, wallet.id, new_balance,
            )

    for key, value in values.items():
        set_committed_value(txn, key, value)
    set_committed_value(txn, "updated_at", updated_at)

    logger.info(
        "Transaction %s %s -> %s (wallet updated: %s, balance: %s)",
        txn.id, WalletTransactionStatus.PENDING.value, new_status.value,
        wallet_updated, new_balance,
    )
    return txn, wallet_updated, new_balance


async def set_status(
    db: AsyncSession,
    transaction_id: uuid.UUID,
    new_status: WalletTransactionStatus,
    note: str | None = None,
    reviewer_id: uuid.UUID | None = None,
) -> tuple[WalletTransaction, bool, int | None]:
    """
    [ADMIN ONLY] Review a pending wallet transaction.

    Args:
        db: Database session.
        transaction_id: The transaction to review.
        new_status: COMPLETED, CANCELLED or REJECTED.
        note: Optional reviewer note stored on the transaction.
        reviewer_id: The admin performing the review.

    Returns:
        Tuple of (transaction, wallet_updated, new_balance_cents). The
        balance is None when the wallet was not touched.

    Raises:
        TransactionNotFoundError: If the transaction doesn't exist.
        InvalidTransitionError: If it is not PENDING or new_status is not terminal.
        StorageFailureError: If the database rejects the update.
    """
    txn = await _load_transaction(db, transaction_id)
    return await _transition(db, txn, new_status, note, reviewer_id)


async def cancel_own(
    db: AsyncSession,
    user_id: uuid.UUID,
    transaction_id: uuid.UUID,
) -> tuple[WalletTransaction, bool, int | None]:
    """
    Cancel one of the user's own PENDING transactions.

    Same transition and reversal as an admin cancellation. Another user's
    transaction is reported as not found.
    """
    txn = await _load_transaction(db, transaction_id, user_id=user_id)
    return await _transition(
        db, txn, WalletTransactionStatus.CANCELLED, "Cancelled by owner", user_id
    )


EDITABLE_FIELDS = frozenset({"amount_cents", "description", "location"})


async def edit_pending(
    db: AsyncSession,
    transaction_id: uuid.UUID,
    updates: dict,
    editor_id: uuid.UUID | None = None,
) -> tuple[WalletTransaction, bool, int | None]:
    """
    [ADMIN ONLY] Correct the amount, description or location of a PENDING
    transaction.

    The balance effect of a pending transaction was applied at creation, so
    an amount change applies the difference to the wallet in the same unit
    as the row update. A withdrawal that grows must be covered by the
    balance; a deposit that shrinks may leave it negative, as a deposit
    reversal can.

    Args:
        db: Database session.
        transaction_id: The transaction to edit.
        updates: Any of amount_cents, description, location.
        editor_id: The admin making the change (logged only).

    Returns:
        Tuple of (transaction, wallet_updated, new_balance_cents), shaped
        like a review outcome.

    Raises:
        TransactionNotFoundError: If the transaction doesn't exist.
        TransactionNotEditableError: If it is no longer PENDING.
        InvalidAmountError: If amount_cents is not a positive integer.
        InsufficientBalanceError: If a larger withdrawal isn't covered.
        StorageFailureError: If the database rejects either write.
    """
    unknown = set(updates) - EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields not editable: {sorted(unknown)}")

    txn = await _load_transaction(db, transaction_id)
    if txn.status != WalletTransactionStatus.PENDING:
        raise TransactionNotEditableError(txn.id, txn.status.value)

    old_amount = txn.amount_cents
    new_amount = updates.get("amount_cents", old_amount)
    _require_positive(new_amount)

    values = dict(updates)
    values["updated_at"] = datetime.now(timezone.utc)

    try:
        # The difference below is computed from old_amount
        result = await db.execute(
            update(WalletTransaction)
            .where(
                WalletTransaction.id == txn.id,
                WalletTransaction.status == WalletTransactionStatus.PENDING,
                WalletTransaction.amount_cents == old_amount,
            )
            .values(**values)
            .returning(WalletTransaction.updated_at)
            .execution_options(synchronize_session=False)
        )
        updated_at = result.scalar_one_or_none()
    except SQLAlchemyError as exc:
        logger.exception("Edit of transaction %s failed", txn.id)
        raise StorageFailureError("transaction edit") from exc

    if updated_at is None:
        current = (
            await db.execute(
                select(WalletTransaction.status).where(WalletTransaction.id == txn.id)
            )
        ).scalar_one()
        logger.warning("Transaction %s changed under edit (now %s)", txn.id, current.value)
        raise TransactionNotEditableError(txn.id, current.value)

    wallet_updated = False
    new_balance = None
    delta = BALANCE_DIRECTION[txn.type] * (new_amount - old_amount)
    if delta:
        wallet = await db.get(Wallet, txn.wallet_id)
        try:
            new_balance = await apply_balance_delta(
                db,
                wallet,
                delta,
                require_funds=txn.type == WalletTransactionType.WITHDRAWAL,
            )
        except SQLAlchemyError as exc:
            logger.exception("Balance adjustment for transaction %s failed", txn.id)
            raise StorageFailureError("transaction edit") from exc

        if new_balance is None:
            available = (
                await db.execute(
                    select(Wallet.balance_cents).where(Wallet.id == wallet.id)
                )
            ).scalar_one()
            logger.warning(
                "Edit of transaction %s refused: needs %d more cents, available %d",
                txn.id, -delta, available,
            )
            raise InsufficientBalanceError(
                wallet_id=wallet.id,
                requested_cents=-delta,
                available_cents=available,
            )
        wallet_updated = True

    for key, value in values.items():
        set_committed_value(txn, key, value)
    set_committed_value(txn, "updated_at", updated_at)

    logger.info(
        "Transaction %s edited by %s: fields %s, amount %d -> %d (balance: %s)",
        txn.id, editor_id, sorted(updates), old_amount, new_amount, new_balance,
    )
    return txn, wallet_updated, new_balance
