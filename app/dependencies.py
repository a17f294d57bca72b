"""
FastAPI dependencies for authentication and authorization.

Dependencies are reusable functions that FastAPI injects into route handlers.
They form a dependency chain that enforces both authentication and
role-based access control:

  get_current_user (session token -> User)
      ├── get_current_member (User -> User)  [USER role]
      └── require_admin (User -> User)       [ADMIN role]

Session token:
  Read from the "Authorization: Bearer <token>" header, falling back to the
  HttpOnly cookie set at login (settings.AUTH_COOKIE_NAME). Browsers use the
  cookie; API clients and the test suite use the header.

Role-based access control:
  - USER: Owns a wallet and linked accounts. Member endpoints use
    get_current_member and scope every query to the caller's user ID.
  - ADMIN: Reviews wallet transactions and can suspend wallets, but has no
    wallet of its own and cannot deposit or send.

Every protected endpoint declares one of these as a parameter. If it fails
(missing token, wrong role), the request is rejected before the route
handler runs.
"""

import uuid

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.exceptions import UnauthenticatedError, UnauthorizedError
from app.models.user import User, UserRole
from app.security import subject_from_token


# auto_error=False: a missing header is not an error yet, the cookie may
# carry the token instead. tokenUrl is used by Swagger UI's "Authorize" button.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


async def get_current_user(
    request: Request,
    bearer_token: str | None = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the session token to an active User.

    Raises:
        UnauthenticatedError: If the token is missing, expired, tampered
            with, or names a user that no longer exists or is deactivated.
    """
    token = bearer_token or request.cookies.get(settings.AUTH_COOKIE_NAME)
    if not token:
        raise UnauthenticatedError()

    subject = subject_from_token(token)
    if subject is None:
        raise UnauthenticatedError()

    try:
        user_id = uuid.UUID(subject)
    except ValueError:
        raise UnauthenticatedError()

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None or not user.is_active:
        raise UnauthenticatedError()

    return user


async def get_current_member(
    user: User = Depends(get_current_user),
) -> User:
    """
    Require a wallet-owning (USER role) caller.

    Admin users are explicitly blocked from member endpoints. Admins review
    transactions through /admin/* and never move money themselves.

    Raises:
        UnauthorizedError: If the user is an admin.
    """
    if user.role == UserRole.ADMIN:
        raise UnauthorizedError(
            "Admin accounts cannot access member wallet endpoints. "
            "Use /admin/* endpoints instead."
        )
    return user


async def require_admin(
    user: User = Depends(get_current_user),
) -> User:
    """
    Require the authenticated user to have the ADMIN role.

    Raises:
        UnauthorizedError: If the user is not an admin.
    """
    if user.role != UserRole.ADMIN:
        raise UnauthorizedError("Admin access required")
    return user
