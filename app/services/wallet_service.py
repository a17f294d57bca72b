"""
Wallet service - the ledger.

THIS IS THE MOST CRITICAL FILE IN THE PROJECT. It handles:
  - Lazy, idempotent wallet creation
  - Deposits and sends (withdrawals to a linked bank account)
  - The single balance-mutation primitive, apply_balance_delta(), which the
    review workflow reuses for reversals
  - Read models for the member dashboard and the admin console

Atomicity:
  A wallet transaction row and the balance change it implies are written
  through the same AsyncSession, inside the same database transaction.
  Service functions never commit; the request-scoped session (get_db)
  commits when the handler returns and rolls back on any exception. A
  StorageFailureError therefore never leaves one side applied without the
  other.

Overdraft protection:
  The send debit is one conditional statement,

      UPDATE wallets SET balance_cents = balance_cents - :amount
      WHERE id = :wallet_id AND balance_cents >= :amount
      RETURNING balance_cents

  so the funds check and the decrement happen atomically inside the
  database. There is no read-then-write window for two concurrent sends
  to both pass the check.

Balance policy:
  Balances are applied optimistically when a transaction is created. A
  PENDING deposit is spendable immediately; a PENDING send has already left
  the balance. Cancelling or rejecting the transaction reverses the effect
  (see review_service).

Admin read-only functions:
  Functions prefixed with `admin_` are not scoped to a user. They are called
  from admin-only endpoints.
"""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

from app.config import settings
from app.exceptions import (
    AccountNotFoundError,
    InsufficientBalanceError,
    InvalidAmountError,
    StorageFailureError,
    TransactionNotFoundError,
    WalletInactiveError,
    WalletNotFoundError,
)
from app.models.account import Account
from app.models.user import User
from app.models.wallet import Wallet, WalletStatus
from app.models.wallet_transaction import (
    WalletTransaction,
    WalletTransactionStatus,
    WalletTransactionType,
)

logger = logging.getLogger(__name__)

# Number of transactions shown on the member dashboard
RECENT_TRANSACTIONS_LIMIT = 15


def _require_positive(amount_cents) -> None:
    # bool is an int subclass; True must not pass as one cent
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
        raise InvalidAmountError(amount_cents)


def _require_active(wallet: Wallet) -> None:
    if wallet.status != WalletStatus.ACTIVE:
        raise WalletInactiveError(wallet.id, wallet.status.value)


def _insert_for(db: AsyncSession):
    """Dialect-specific insert() that supports ON CONFLICT DO NOTHING."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise RuntimeError(f"Unsupported database dialect for wallet upsert: {dialect}")


async def _find_wallet(db: AsyncSession, user_id: uuid.UUID) -> Wallet | None:
    result = await db.execute(select(Wallet).where(Wallet.user_id == user_id))
    return result.scalar_one_or_none()


async def _current_balance(db: AsyncSession, wallet_id: uuid.UUID) -> int:
    result = await db.execute(
        select(Wallet.balance_cents).where(Wallet.id == wallet_id)
    )
    return result.scalar_one()


def _with_relations(query):
    return query.options(
        selectinload(WalletTransaction.account),
        selectinload(WalletTransaction.user),
    )


# ---------------------------------------------------------------------------
# Balance primitive
# ---------------------------------------------------------------------------

async def apply_balance_delta(
    db: AsyncSession,
    wallet: Wallet,
    delta_cents: int,
    require_funds: bool = False,
) -> int | None:
    """
    Atomically add delta_cents (may be negative) to a wallet's balance.

    The change is a single UPDATE ... RETURNING statement. When
    require_funds is set, the statement only matches if the balance covers
    the debit, and None is returned when it does not - nothing is written
    in that case.

    On success the in-session Wallet instance is brought up to date without
    marking it dirty, so no second UPDATE is flushed later.

    Returns:
        The new balance in cents, or None if require_funds rejected the debit.
    """
    stmt = (
        update(Wallet)
        .where(Wallet.id == wallet.id)
        .values(balance_cents=Wallet.balance_cents + delta_cents)
        .returning(Wallet.balance_cents)
        .execution_options(synchronize_session=False)
    )
    if require_funds and delta_cents < 0:
        stmt = stmt.where(Wallet.balance_cents >= -delta_cents)

    result = await db.execute(stmt)
    new_balance = result.scalar_one_or_none()
    if new_balance is not None:
        set_committed_value(wallet, "balance_cents", new_balance)
    return new_balance


# ---------------------------------------------------------------------------
# Member operations
# ---------------------------------------------------------------------------

async def get_wallet(db: AsyncSession, user_id: uuid.UUID) -> Wallet:
    """
    Return the user's wallet, creating it with a zero balance if absent.

    The create is an INSERT ... ON CONFLICT (user_id) DO NOTHING followed by
    a select, so two first requests racing each other both end up with the
    same single wallet row.
    """
    wallet = await _find_wallet(db, user_id)
    if wallet is not None:
        return wallet

    insert = _insert_for(db)
    stmt = (
        insert(Wallet.__table__)
        .values(
            id=uuid.uuid4(),
            user_id=user_id,
            balance_cents=0,
            currency=settings.DEFAULT_CURRENCY,
            status=WalletStatus.ACTIVE,
        )
        .on_conflict_do_nothing(index_elements=["user_id"])
    )
    try:
        await db.execute(stmt)
    except SQLAlchemyError as exc:
        logger.exception("Creating wallet for user %s failed", user_id)
        raise StorageFailureError("wallet creation") from exc

    wallet = await _find_wallet(db, user_id)
    logger.info("Opened wallet %s for user %s", wallet.id, user_id)
    return wallet


async def deposit(
    db: AsyncSession,
    user_id: uuid.UUID,
    amount_cents: int,
    description: str | None = None,
    location: str | None = None,
) -> WalletTransaction:
    """
    Deposit into the user's wallet.

    Creates a PENDING DEPOSIT transaction and increments the balance by
    amount_cents in the same database transaction.

    Raises:
        InvalidAmountError: If amount_cents is not a positive integer.
        WalletInactiveError: If the wallet is suspended or closed.
        StorageFailureError: If the database rejects either write.
    """
    _require_positive(amount_cents)

    wallet = await get_wallet(db, user_id)
    _require_active(wallet)

    txn = WalletTransaction(
        wallet_id=wallet.id,
        user_id=user_id,
        amount_cents=amount_cents,
        currency=wallet.currency,
        type=WalletTransactionType.DEPOSIT,
        status=WalletTransactionStatus.PENDING,
        description=description or "Wallet deposit",
        location=location,
    )
    try:
        db.add(txn)
        await db.flush()
        new_balance = await apply_balance_delta(db, wallet, amount_cents)
    except SQLAlchemyError as exc:
        logger.exception("Deposit of %d cents for user %s failed", amount_cents, user_id)
        raise StorageFailureError("deposit") from exc

    logger.info(
        "Deposit %s: +%d cents to wallet %s, balance now %d",
        txn.id, amount_cents, wallet.id, new_balance,
    )
    return txn


async def send(
    db: AsyncSession,
    user_id: uuid.UUID,
    amount_cents: int,
    account_id: uuid.UUID,
    description: str | None = None,
) -> WalletTransaction:
    """
    Send money from the wallet to one of the user's linked bank accounts.

    The conditional debit runs first; the PENDING WITHDRAWAL row is only
    created once the debit has matched. Both live in the same database
    transaction.

    Raises:
        InvalidAmountError: If amount_cents is not a positive integer.
        WalletNotFoundError: If the user has no wallet yet.
        WalletInactiveError: If the wallet is suspended or closed.
        AccountNotFoundError: If the account doesn't exist or isn't the user's.
        InsufficientBalanceError: If the balance doesn't cover amount_cents.
        StorageFailureError: If the database rejects either write.
    """
    _require_positive(amount_cents)

    wallet = await _find_wallet(db, user_id)
    if wallet is None:
        raise WalletNotFoundError(user_id)
    _require_active(wallet)

    result = await db.execute(
        select(Account).where(Account.id == account_id, Account.user_id == user_id)
    )
    if result.scalar_one_or_none() is None:
        raise AccountNotFoundError(account_id)

    try:
        new_balance = await apply_balance_delta(
            db, wallet, -amount_cents, require_funds=True
        )
    except SQLAlchemyError as exc:
        logger.exception("Debit of %d cents from wallet %s failed", amount_cents, wallet.id)
        raise StorageFailureError("send") from exc

    if new_balance is None:
        available = await _current_balance(db, wallet.id)
        logger.warning(
            "Send refused for wallet %s: requested %d cents, available %d",
            wallet.id, amount_cents, available,
        )
        raise InsufficientBalanceError(
            wallet_id=wallet.id,
            requested_cents=amount_cents,
            available_cents=available,
        )

    txn = WalletTransaction(
        wallet_id=wallet.id,
        user_id=user_id,
        account_id=account_id,
        amount_cents=amount_cents,
        currency=wallet.currency,
        type=WalletTransactionType.WITHDRAWAL,
        status=WalletTransactionStatus.PENDING,
        description=description or "Send to bank account",
    )
    try:
        db.add(txn)
        await db.flush()
    except SQLAlchemyError as exc:
        logger.exception("Recording send from wallet %s failed", wallet.id)
        raise StorageFailureError("send") from exc

    logger.info(
        "Send %s: -%d cents from wallet %s to account %s, balance now %d",
        txn.id, amount_cents, wallet.id, account_id, new_balance,
    )
    return txn


async def list_transactions(
    db: AsyncSession,
    user_id: uuid.UUID,
    status_filter: WalletTransactionStatus | None = None,
    type_filter: WalletTransactionType | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[WalletTransaction]:
    """
    List the user's wallet transactions, newest first.

    The referenced bank account and the owner are eager-loaded so the
    response can embed them without further queries.
    """
    query = _with_relations(
        select(WalletTransaction).where(WalletTransaction.user_id == user_id)
    )
    if status_filter:
        query = query.where(WalletTransaction.status == status_filter)
    if type_filter:
        query = query.where(WalletTransaction.type == type_filter)

    query = (
        query.order_by(WalletTransaction.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_transaction(
    db: AsyncSession,
    user_id: uuid.UUID,
    transaction_id: uuid.UUID,
) -> WalletTransaction:
    """
    Get one of the user's wallet transactions.

    Another user's transaction is reported as not found.
    """
    result = await db.execute(
        _with_relations(
            select(WalletTransaction).where(
                WalletTransaction.id == transaction_id,
                WalletTransaction.user_id == user_id,
            )
        )
    )
    txn = result.scalar_one_or_none()
    if txn is None:
        raise TransactionNotFoundError(transaction_id)
    return txn


async def get_dashboard(db: AsyncSession, user_id: uuid.UUID) -> dict:
    """Wallet plus recent activity; the client re-fetches this on a fixed interval."""
    wallet = await get_wallet(db, user_id)
    recent = await list_transactions(db, user_id, limit=RECENT_TRANSACTIONS_LIMIT)
    return {
        "wallet": wallet,
        "recent_transactions": recent,
        "last_updated": datetime.now(timezone.utc),
    }


# ---------------------------------------------------------------------------
# Admin functions
# ---------------------------------------------------------------------------

async def admin_list_transactions(
    db: AsyncSession,
    status_filter: WalletTransactionStatus | None = None,
    type_filter: WalletTransactionType | None = None,
    user_id: uuid.UUID | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[WalletTransaction]:
    """[ADMIN ONLY] List wallet transactions across all users, newest first."""
    query = _with_relations(select(WalletTransaction))
    if status_filter:
        query = query.where(WalletTransaction.status == status_filter)
    if type_filter:
        query = query.where(WalletTransaction.type == type_filter)
    if user_id:
        query = query.where(WalletTransaction.user_id == user_id)

    query = (
        query.order_by(WalletTransaction.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    result = await db.execute(query)
    return list(result.scalars().all())


async def admin_get_transaction(
    db: AsyncSession,
    transaction_id: uuid.UUID,
) -> WalletTransaction:
    """[ADMIN ONLY] Get any wallet transaction by ID."""
    result = await db.execute(
        _with_relations(
            select(WalletTransaction).where(WalletTransaction.id == transaction_id)
        )
    )
    txn = result.scalar_one_or_none()
    if txn is None:
        raise TransactionNotFoundError(transaction_id)
    return txn


async def admin_set_wallet_status(
    db: AsyncSession,
    user_id: uuid.UUID,
    status: WalletStatus,
) -> Wallet:
    """
    [ADMIN ONLY] Suspend, close or reactivate a user's wallet.

    Only ACTIVE wallets accept deposits and sends. Pending transactions can
    still be reviewed whatever the wallet status.
    """
    wallet = await _find_wallet(db, user_id)
    if wallet is None:
        raise WalletNotFoundError(user_id)

    previous = wallet.status
    wallet.status = status
    await db.flush()
    logger.info("Wallet %s status %s -> %s", wallet.id, previous.value, status.value)
    return wallet


async def admin_get_dashboard_stats(db: AsyncSession) -> dict:
    """
    [ADMIN ONLY] Organization-wide counters for the admin dashboard.

    Returns:
        Dict with total_users, transaction_counts (per status),
        pending_count, transaction_volume_cents and total_wallet_balance_cents.
    """
    total_users = (await db.execute(select(func.count(User.id)))).scalar_one()

    status_rows = await db.execute(
        select(WalletTransaction.status, func.count(WalletTransaction.id))
        .group_by(WalletTransaction.status)
    )
    counts = {status.value: 0 for status in WalletTransactionStatus}
    for status, count in status_rows.all():
        counts[status.value] = count

    volume = (
        await db.execute(
            select(func.coalesce(func.sum(WalletTransaction.amount_cents), 0))
        )
    ).scalar_one()

    total_balance = (
        await db.execute(select(func.coalesce(func.sum(Wallet.balance_cents), 0)))
    ).scalar_one()

    return {
        "total_users": total_users,
        "transaction_counts": counts,
        "pending_count": counts[WalletTransactionStatus.PENDING.value],
        "transaction_volume_cents": volume,
        "total_wallet_balance_cents": total_balance,
    }
