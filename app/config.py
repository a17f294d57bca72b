"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables, with an optional .env file
as a fallback. This keeps secrets out of source code - the .env file is
gitignored, and .env.example provides a safe template for developers.

Pydantic Settings automatically:
  1. Reads from environment variables (highest priority)
  2. Falls back to .env file values
  3. Uses defaults defined here (lowest priority)

Usage:
    from app.config import settings
    print(settings.SECRET_KEY)
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the Wallet API.

    Required fields (no defaults) MUST be set in .env or environment:
      - SECRET_KEY: Used to sign session tokens (JWT)
      - ACCOUNT_ENCRYPTION_KEY: Fernet key for encrypting linked bank
        account numbers at rest
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "Wallet API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # --- Database ---
    # SQLite for local development; use a postgresql+asyncpg URL in production
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/wallet.db"

    # --- Authentication ---
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    # Name of the HttpOnly cookie set at login (alternative to the Bearer header)
    AUTH_COOKIE_NAME: str = "auth_token"

    # --- Email verification ---
    VERIFY_CODE_EXPIRE_HOURS: int = 24
    # Email delivery is not wired up; when enabled, the registration response
    # carries the verification code so the flow can be completed by hand.
    RETURN_VERIFICATION_CODE: bool = False

    # --- Linked account encryption ---
    # Generate with: python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"
    ACCOUNT_ENCRYPTION_KEY: str

    # --- Wallet ---
    DEFAULT_CURRENCY: str = "USD"

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    # Optional path for a rotating log file; console only when unset
    LOG_FILE: str | None = None

    # --- CORS ---
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
