"""
Authentication service - registration, login, email verification, profile.

This module contains the credential logic, separated from HTTP concerns.
Routers call these functions and translate the results into responses.

Registration flow:
  1. Reject a username or email that is already taken
  2. Hash the password with Argon2id
  3. Store the user with a six-digit verification code (24 h expiry)
  4. Return a JWT so the user is immediately logged in

Login flow:
  1. Look up user by username
  2. Verify password against stored hash
  3. Record the login time and return a JWT

Security notes:
  - The same InvalidCredentialsError is raised for an unknown username, a
    wrong password and a deactivated user, so usernames can't be enumerated
  - Passwords and tokens are never logged
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.exceptions import (
    DuplicateUserError,
    InvalidCredentialsError,
    InvalidVerificationCodeError,
)
from app.models.account import Account
from app.models.user import User, UserRole
from app.models.wallet_transaction import WalletTransaction
from app.security import (
    create_access_token,
    generate_verification_code,
    hash_password,
    verify_password,
)

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _issue_verification_code(user: User) -> None:
    user.verify_code = generate_verification_code()
    user.verify_code_expires_at = datetime.now(timezone.utc) + timedelta(
        hours=settings.VERIFY_CODE_EXPIRE_HOURS
    )


async def _identity_taken(
    db: AsyncSession,
    username: str | None,
    email: str | None,
    exclude_user_id: uuid.UUID | None = None,
) -> bool:
    conditions = []
    if username:
        conditions.append(User.username == username)
    if email:
        conditions.append(User.email == email)
    if not conditions:
        return False

    query = select(User.id).where(or_(*conditions))
    if exclude_user_id is not None:
        query = query.where(User.id != exclude_user_id)
    result = await db.execute(query.limit(1))
    return result.first() is not None


async def register(
    db: AsyncSession,
    username: str,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
) -> tuple[User, str]:
    """
    Register a new wallet user.

    Returns:
        Tuple of (User instance, JWT token string).

    Raises:
        DuplicateUserError: If the username or email is already registered.
    """
    if await _identity_taken(db, username, email):
        raise DuplicateUserError()

    user = User(
        username=username,
        email=email,
        first_name=first_name,
        last_name=last_name,
        hashed_password=hash_password(password),
        role=UserRole.USER,
    )
    _issue_verification_code(user)
    db.add(user)
    await db.flush()

    token = create_access_token(data={"sub": str(user.id)})
    logger.info("Registered user %s (%s)", user.id, user.username)
    return user, token


async def login(
    db: AsyncSession,
    username: str,
    password: str,
) -> tuple[User, str]:
    """
    Authenticate a user and return a JWT token.

    Raises:
        InvalidCredentialsError: Unknown username, wrong password, or
            deactivated user (one error for all three).
    """
    result = await db.execute(select(User).where(User.username == username))
    user = result.scalar_one_or_none()

    if not user or not verify_password(password, user.hashed_password):
        logger.warning("Failed login for username %r", username)
        raise InvalidCredentialsError()

    if not user.is_active:
        logger.warning("Login attempt for deactivated user %s", user.id)
        raise InvalidCredentialsError()

    user.last_login_at = datetime.now(timezone.utc)
    await db.flush()

    token = create_access_token(data={"sub": str(user.id)})
    return user, token


async def verify_email(db: AsyncSession, user: User, code: str) -> User:
    """
    Confirm the user's email with the code issued at registration.

    Raises:
        InvalidVerificationCodeError: Wrong code, expired code, or no code
            outstanding.
    """
    if (
        user.verify_code is None
        or user.verify_code_expires_at is None
        or user.verify_code != code
        or _as_utc(user.verify_code_expires_at) <= datetime.now(timezone.utc)
    ):
        raise InvalidVerificationCodeError()

    user.email_verified = True
    user.verify_code = None
    user.verify_code_expires_at = None
    await db.flush()
    logger.info("Email verified for user %s", user.id)
    return user


async def update_profile(db: AsyncSession, user: User, updates: dict) -> User:
    """
    Apply a partial profile update.

    A changed email clears the verified flag and replaces any outstanding
    code with a fresh one for the new address.

    Raises:
        DuplicateUserError: If the new username or email belongs to someone else.
    """
    if await _identity_taken(
        db, updates.get("username"), updates.get("email"), exclude_user_id=user.id
    ):
        raise DuplicateUserError()

    if "email" in updates and updates["email"] != user.email:
        user.email_verified = False
        _issue_verification_code(user)
        logger.info("Email changed for user %s; new verification code issued", user.id)

    for field, value in updates.items():
        setattr(user, field, value)

    await db.flush()
    return user


# ---------------------------------------------------------------------------
# Admin read-only functions
# ---------------------------------------------------------------------------

async def admin_list_users(
    db: AsyncSession,
    limit: int = 50,
    offset: int = 0,
) -> list[tuple[User, int, int]]:
    """
    [ADMIN ONLY] List users with their linked-account and transaction counts.

    Returns:
        List of (User, account_count, transaction_count), newest users first.
        Each User has its wallet eager-loaded (None if never opened).
    """
    account_count = (
        select(func.count(Account.id))
        .where(Account.user_id == User.id)
        .correlate(User)
        .scalar_subquery()
    )
    transaction_count = (
        select(func.count(WalletTransaction.id))
        .where(WalletTransaction.user_id == User.id)
        .correlate(User)
        .scalar_subquery()
    )

    result = await db.execute(
        select(User, account_count, transaction_count)
        .options(selectinload(User.wallet))
        .order_by(User.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return [(user, accounts, transactions) for user, accounts, transactions in result.all()]
