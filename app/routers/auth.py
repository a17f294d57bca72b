"""
Authentication router - registration, login, logout, verification, profile.

Endpoints:
  POST  /auth/register  - Register a new user and get a token
  POST  /auth/login     - Authenticate; token in the body and an HttpOnly cookie
  POST  /auth/logout    - Clear the session cookie
  POST  /auth/verify    - Confirm the email verification code
  GET   /auth/profile   - Current user's profile
  PATCH /auth/profile   - Update the current user's profile

Security audit notes:
  - Plaintext passwords exist only in memory during request processing;
    they are hashed before any database operation and never logged.
  - JWT tokens appear only in response bodies and the Set-Cookie header,
    neither of which uvicorn logs.
  - No request body logging middleware is installed, so POST bodies
    containing passwords are not written to any log file.
"""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.dependencies import get_current_user
from app.models.user import User
from app.schemas.auth import (
    LoginRequest,
    ProfileResponse,
    ProfileUpdateResponse,
    ProfileUpdateRequest,
    RegisterRequest,
    RegisterResponse,
    TokenResponse,
    VerifyRequest,
)
from app.services import auth_service

router = APIRouter()


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=not settings.DEBUG,
        samesite="lax",
        path="/",
    )


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
)
async def register(
    request: RegisterRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """
    Register a new wallet user.

    Returns a JWT token so the user is immediately logged in. The wallet
    itself is opened lazily on first use.

    - **username**: 3-50 characters, letters, digits and `_.-`
    - **email**: Must be a valid email format and not already registered
    - **password** / **confirm_password**: Minimum 8 characters, must match
    - **accept_terms**: Must be true
    """
    user, token = await auth_service.register(
        db=db,
        username=request.username,
        email=request.email,
        password=request.password,
        first_name=request.first_name,
        last_name=request.last_name,
    )
    _set_session_cookie(response, token)

    return RegisterResponse(
        user_id=user.id,
        username=user.username,
        email=user.email,
        role=user.role.value,
        token=token,
        verification_code=user.verify_code if settings.RETURN_VERIFICATION_CODE else None,
    )


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Authenticate and get a token",
)
async def login(
    request: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """
    Authenticate with username and password.

    The token is returned in the body and set as an HttpOnly cookie. API
    clients send it back as:

        Authorization: Bearer <token>
    """
    user, token = await auth_service.login(
        db=db,
        username=request.username,
        password=request.password,
    )
    _set_session_cookie(response, token)

    return TokenResponse(
        token=token,
        user_id=user.id,
        username=user.username,
        role=user.role.value,
    )


@router.post(
    "/logout",
    summary="Clear the session cookie",
)
async def logout(response: Response):
    """Tokens are stateless; logging out only drops the cookie."""
    response.delete_cookie(key=settings.AUTH_COOKIE_NAME, path="/")
    return {"message": "Logged out"}


@router.post(
    "/verify",
    response_model=ProfileResponse,
    summary="Verify your email address",
)
async def verify(
    request: VerifyRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await auth_service.verify_email(db, user, request.code)


@router.get(
    "/profile",
    response_model=ProfileResponse,
    summary="Get your profile",
)
async def get_profile(user: User = Depends(get_current_user)):
    return user


@router.patch(
    "/profile",
    response_model=ProfileUpdateResponse,
    summary="Update your profile",
)
async def update_profile(
    request: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Update username, email or name. Changing the email clears the
    verified flag and issues a new verification code for the new address.
    """
    previous_email = user.email
    updates = request.model_dump(exclude_unset=True, exclude_none=True)
    user = await auth_service.update_profile(db, user, updates)

    response = ProfileUpdateResponse.model_validate(user)
    if user.email != previous_email and settings.RETURN_VERIFICATION_CODE:
        response.verification_code = user.verify_code
    return response
