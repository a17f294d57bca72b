"""
Account service - business logic for linked bank accounts.

This module handles:
  - Linking an account (number encrypted at rest, last four kept for display)
  - Listing, reading, updating and deleting a user's accounts
  - The default-account invariant

Ownership enforcement:
  Every function takes the authenticated user's ID and scopes its queries
  by it. An account that belongs to someone else is indistinguishable from
  one that doesn't exist (AccountNotFoundError), so IDs can't be probed.

Default account invariant:
  At most one account per user has is_default=True. Whenever an account is
  made default, an UPDATE clears the flag on the user's other accounts in
  the same database transaction. A user's first linked account becomes the
  default automatically.
"""

import logging
import uuid

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import AccountNotFoundError
from app.models.account import Account
from app.models.wallet_transaction import WalletTransaction
from app.security import decrypt_value, encrypt_value

logger = logging.getLogger(__name__)


async def _clear_other_defaults(
    db: AsyncSession,
    user_id: uuid.UUID,
    keep_account_id: uuid.UUID,
) -> None:
    await db.execute(
        update(Account)
        .where(
            Account.user_id == user_id,
            Account.id != keep_account_id,
            Account.is_default.is_(True),
        )
        .values(is_default=False)
        # Keep in-session Account objects in step with the UPDATE
        .execution_options(synchronize_session="evaluate")
    )


async def create_account(
    db: AsyncSession,
    user_id: uuid.UUID,
    account_holder_name: str,
    account_number: str,
    ifsc_code: str,
    account_name: str | None = None,
    bank_name: str | None = None,
    branch_name: str | None = None,
    routing_number: str | None = None,
    account_type: str = "SAVINGS",
    currency: str = "USD",
    is_default: bool = False,
) -> Account:
    """
    Link a new bank account for a user.

    Args:
        db: Database session.
        user_id: The owner.
        account_number: Plaintext number; stored Fernet-encrypted.
        is_default: Make this the user's default account. Forced to True
                    for the user's first account.

    Returns:
        The newly created Account instance.
    """
    existing = await db.execute(
        select(func.count(Account.id)).where(Account.user_id == user_id)
    )
    if existing.scalar_one() == 0:
        is_default = True

    account = Account(
        user_id=user_id,
        account_holder_name=account_holder_name,
        account_name=account_name,
        bank_name=bank_name,
        branch_name=branch_name,
        account_number_encrypted=encrypt_value(account_number),
        account_number_last_four=account_number[-4:],
        ifsc_code=ifsc_code,
        routing_number=routing_number,
        account_type=account_type,
        currency=currency,
        is_default=is_default,
    )
    db.add(account)
    await db.flush()

    if is_default:
        await _clear_other_defaults(db, user_id, account.id)

    logger.info("Linked account %s (****%s) for user %s", account.id, account.account_number_last_four, user_id)
    return account


async def list_accounts(
    db: AsyncSession,
    user_id: uuid.UUID,
) -> list[Account]:
    """List the user's linked accounts, newest first."""
    result = await db.execute(
        select(Account)
        .where(Account.user_id == user_id)
        .order_by(Account.created_at.desc())
    )
    return list(result.scalars().all())


async def get_account(
    db: AsyncSession,
    account_id: uuid.UUID,
    user_id: uuid.UUID,
) -> Account:
    """
    Get a single account owned by the user.

    Raises:
        AccountNotFoundError: If the account doesn't exist or isn't the user's.
    """
    result = await db.execute(
        select(Account).where(Account.id == account_id, Account.user_id == user_id)
    )
    account = result.scalar_one_or_none()

    if account is None:
        raise AccountNotFoundError(account_id)

    return account


async def get_account_details(
    db: AsyncSession,
    account_id: uuid.UUID,
    user_id: uuid.UUID,
) -> tuple[Account, str]:
    """Return the account together with its decrypted account number."""
    account = await get_account(db, account_id, user_id)
    return account, decrypt_value(account.account_number_encrypted)


async def update_account(
    db: AsyncSession,
    account_id: uuid.UUID,
    user_id: uuid.UUID,
    updates: dict,
) -> Account:
    """
    Apply a partial update to one of the user's accounts.

    Only keys present in `updates` are changed. A new account_number is
    re-encrypted. Setting is_default=True clears the flag on every other
    account of the user in the same database transaction.
    """
    account = await get_account(db, account_id, user_id)

    updates = dict(updates)
    account_number = updates.pop("account_number", None)
    if account_number is not None:
        account.account_number_encrypted = encrypt_value(account_number)
        account.account_number_last_four = account_number[-4:]

    for field, value in updates.items():
        setattr(account, field, value)

    if updates.get("is_default") is True:
        await _clear_other_defaults(db, user_id, account.id)

    await db.flush()
    return account


async def delete_account(
    db: AsyncSession,
    account_id: uuid.UUID,
    user_id: uuid.UUID,
) -> None:
    """
    Delete one of the user's accounts.

    Wallet transactions that paid out to it keep their history but lose the
    reference (account_id set to NULL).
    """
    account = await get_account(db, account_id, user_id)

    await db.execute(
        update(WalletTransaction)
        .where(WalletTransaction.account_id == account.id)
        .values(account_id=None)
        .execution_options(synchronize_session=False)
    )
    await db.delete(account)
    await db.flush()
    logger.info("Deleted account %s for user %s", account_id, user_id)
