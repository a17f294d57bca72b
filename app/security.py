"""
Security utilities: password hashing, session tokens, and Fernet encryption.

This module centralizes all cryptographic operations so they're easy to
audit and update:

1. PASSWORD HASHING (Argon2)
   - Passwords are never stored in plaintext
   - passlib's CryptContext with the argon2 scheme; deprecated="auto" lets
     a future scheme take over while old hashes still verify

2. SESSION TOKENS (JWT)
   - After login, the user receives a signed JWT containing their user ID
   - Signed with SECRET_KEY using HS256; expires after
     ACCESS_TOKEN_EXPIRE_MINUTES
   - Nothing outside this module parses the token format

3. FERNET ENCRYPTION (AES-128-CBC + HMAC-SHA256)
   - Linked bank account numbers are encrypted at rest; only the last four
     digits are stored in plaintext for display
"""

import secrets
from datetime import datetime, timedelta, timezone

from cryptography.fernet import Fernet
from jose import JWTError, jwt
from passlib.context import CryptContext

from app.config import settings


# ---------------------------------------------------------------------------
# 1. Password Hashing (Argon2)
# ---------------------------------------------------------------------------

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(plain_password: str) -> str:
    """
    Hash a plaintext password using Argon2id.

    Args:
        plain_password: The password from the registration form.

    Returns:
        An Argon2 hash string (e.g., "$argon2id$v=19$m=65536,t=3,p=4$...").
    """
    return pwd_context.hash(plain_password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plaintext password against a stored Argon2 hash.

    The comparison runs in constant time.

    Args:
        plain_password: The password submitted at login.
        hashed_password: The hash stored on the User row.

    Returns:
        True if the password matches, False otherwise.
    """
    return pwd_context.verify(plain_password, hashed_password)


# ---------------------------------------------------------------------------
# 2. Session Tokens (JWT)
# ---------------------------------------------------------------------------


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """
    Create a signed JWT access token.

    The token payload contains:
      - "sub": The subject (user ID as string) - standard JWT claim
      - "iat": Issued-at timestamp
      - "exp": Expiration timestamp - after this, the token is rejected

    Args:
        data: Dictionary of claims to encode (must include "sub").
        expires_delta: Optional custom lifetime. Defaults to
                       ACCESS_TOKEN_EXPIRE_MINUTES from settings.

    Returns:
        An encoded JWT string.
    """
    to_encode = data.copy()
    now = datetime.now(timezone.utc)

    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"iat": now, "exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Decode and verify a JWT access token.

    Raises:
        JWTError: If the token is expired, tampered with, or invalid.
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])


def subject_from_token(token: str) -> str | None:
    """
    Extract the subject (user ID string) from a session token.

    Args:
        token: The raw JWT from the Authorization header or session cookie.

    Returns:
        The "sub" claim, or None if the token is expired, tampered with,
        or otherwise invalid.
    """
    try:
        payload = decode_access_token(token)
    except JWTError:
        return None
    return payload.get("sub")


# ---------------------------------------------------------------------------
# 3. Fernet Encryption (linked account numbers at rest)
# ---------------------------------------------------------------------------

_fernet = Fernet(settings.ACCOUNT_ENCRYPTION_KEY.encode())


def encrypt_value(plaintext: str) -> bytes:
    """
    Encrypt a string value using Fernet (AES-128-CBC + HMAC-SHA256).

    Used for linked bank account numbers before they are stored.

    Args:
        plaintext: The sensitive value to encrypt (e.g., "123456784821").

    Returns:
        Encrypted bytes suitable for storing in a LargeBinary column.
    """
    return _fernet.encrypt(plaintext.encode())


def decrypt_value(ciphertext: bytes) -> str:
    """
    Decrypt a Fernet-encrypted value back to plaintext.

    Args:
        ciphertext: The encrypted bytes from the database.

    Returns:
        The original plaintext string.

    Raises:
        cryptography.fernet.InvalidToken: If the data is corrupted or
            the encryption key doesn't match.
    """
    return _fernet.decrypt(ciphertext).decode()


# ---------------------------------------------------------------------------
# Email verification codes
# ---------------------------------------------------------------------------


def generate_verification_code() -> str:
    """Six-digit numeric code, drawn from a CSPRNG."""
    return f"{secrets.randbelow(900_000) + 100_000}"
