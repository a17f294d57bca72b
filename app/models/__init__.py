"""
SQLAlchemy ORM models package.

All models are imported here so that:
  1. Base.metadata knows every table before create_all() runs
  2. String-based relationship targets ("Wallet", "Account", ...) resolve
"""

from app.models.user import User, UserRole  # noqa: F401
from app.models.account import Account  # noqa: F401
from app.models.wallet import Wallet, WalletStatus  # noqa: F401
from app.models.wallet_transaction import (  # noqa: F401
    WalletTransaction,
    WalletTransactionStatus,
    WalletTransactionType,
)
