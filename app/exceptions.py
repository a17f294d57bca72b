"""
Custom exception classes and FastAPI exception handlers.

Service code raises domain-specific errors (like InsufficientBalanceError)
without importing HTTP concepts. The handlers registered here translate
them into consistent JSON responses:

    {"detail": "<message>", "error_type": "<machine-readable tag>", ...}

Exception hierarchy:
    WalletAPIError (base)
    ├── UnauthenticatedError         - missing/invalid session token
    ├── UnauthorizedError            - authenticated but wrong role/owner
    ├── InvalidAmountError           - non-positive amount
    ├── InsufficientBalanceError     - send larger than the wallet balance
    ├── AccountNotFoundError         - linked account missing or not owned
    ├── WalletNotFoundError          - no wallet row for the user
    ├── WalletInactiveError          - wallet SUSPENDED or CLOSED
    ├── TransactionNotFoundError     - wallet transaction missing
    ├── InvalidTransitionError       - status change not allowed
    ├── TransactionNotEditableError  - edit of a non-PENDING transaction
    ├── StorageFailureError          - atomic write failed in the database
    ├── DuplicateUserError           - username/email already registered
    ├── InvalidCredentialsError      - bad login
    └── InvalidVerificationCodeError - wrong or expired email code
"""

import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class WalletAPIError(Exception):
    """Base exception for all Wallet API domain errors."""

    status_code: int = 400
    error_type: str = "error"

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)

    def extra(self) -> dict:
        """Additional fields merged into the JSON error body."""
        return {}


# ---------------------------------------------------------------------------
# Identity errors
# ---------------------------------------------------------------------------

class UnauthenticatedError(WalletAPIError):
    """Raised when no valid session token accompanies the request."""

    status_code = 401
    error_type = "unauthenticated"

    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(detail)


class UnauthorizedError(WalletAPIError):
    """Raised when the caller's role does not permit the operation."""

    status_code = 403
    error_type = "unauthorized"

    def __init__(self, detail: str = "You do not have access to this resource"):
        super().__init__(detail)


class DuplicateUserError(WalletAPIError):
    """Raised when a username or email is already taken."""

    status_code = 409
    error_type = "duplicate_user"

    def __init__(self):
        super().__init__("User with this email or username already exists")


class InvalidCredentialsError(WalletAPIError):
    """Raised when login credentials are incorrect."""

    status_code = 401
    error_type = "invalid_credentials"

    def __init__(self):
        super().__init__("Invalid username or password")


class InvalidVerificationCodeError(WalletAPIError):
    status_code = 400
    error_type = "invalid_verification_code"

    def __init__(self):
        super().__init__("Invalid or expired verification code")


# ---------------------------------------------------------------------------
# Ledger errors
# ---------------------------------------------------------------------------

class InvalidAmountError(WalletAPIError):
    """Raised when an amount is not a positive integer number of cents."""

    status_code = 422
    error_type = "invalid_amount"

    def __init__(self, amount_cents):
        self.amount_cents = amount_cents
        super().__init__(f"Invalid amount: {amount_cents!r} (must be a positive number of cents)")


class InsufficientBalanceError(WalletAPIError):
    """
    Raised when a send would take the wallet balance below zero.

    Attributes:
        wallet_id: The wallet that lacks sufficient balance.
        requested_cents: The amount the user tried to send.
        available_cents: The balance observed when the debit was refused.
    """

    status_code = 422
    error_type = "insufficient_balance"

    def __init__(
        self,
        wallet_id: uuid.UUID,
        requested_cents: int,
        available_cents: int,
    ):
        self.wallet_id = wallet_id
        self.requested_cents = requested_cents
        self.available_cents = available_cents
        super().__init__(
            f"Insufficient balance: requested {requested_cents} cents, "
            f"available {available_cents} cents"
        )

    def extra(self) -> dict:
        return {
            "requested_cents": self.requested_cents,
            "available_cents": self.available_cents,
        }


class AccountNotFoundError(WalletAPIError):
    """Raised when a linked account does not exist or belongs to someone else."""

    status_code = 404
    error_type = "account_not_found"

    def __init__(self, account_id: uuid.UUID):
        self.account_id = account_id
        super().__init__(f"Account {account_id} not found")


class WalletNotFoundError(WalletAPIError):
    status_code = 404
    error_type = "wallet_not_found"

    def __init__(self, user_id: uuid.UUID):
        self.user_id = user_id
        super().__init__("Wallet not found")


class WalletInactiveError(WalletAPIError):
    """Raised when a deposit or send targets a SUSPENDED or CLOSED wallet."""

    status_code = 409
    error_type = "wallet_inactive"

    def __init__(self, wallet_id: uuid.UUID, status: str):
        self.wallet_id = wallet_id
        self.status = status
        super().__init__(f"Wallet is {status.lower()}")


class TransactionNotFoundError(WalletAPIError):
    status_code = 404
    error_type = "transaction_not_found"

    def __init__(self, transaction_id: uuid.UUID):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction {transaction_id} not found")


class InvalidTransitionError(WalletAPIError):
    """Raised when a transaction status change is not permitted."""

    status_code = 409
    error_type = "invalid_transition"

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot change transaction status from {current} to {requested}")

    def extra(self) -> dict:
        return {"current_status": self.current, "requested_status": self.requested}


class TransactionNotEditableError(WalletAPIError):
    """Raised when an edit targets a transaction that has left PENDING."""

    status_code = 409
    error_type = "transaction_not_editable"

    def __init__(self, transaction_id: uuid.UUID, current: str):
        self.transaction_id = transaction_id
        self.current = current
        super().__init__(f"Only PENDING transactions can be edited (this one is {current})")

    def extra(self) -> dict:
        return {"current_status": self.current}


class StorageFailureError(WalletAPIError):
    """
    Raised when the database rejects part of an atomic ledger write.

    Nothing from the failed unit is persisted; the caller may resubmit.
    """

    status_code = 503
    error_type = "storage_failure"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Storage failure during {operation}; no changes were applied")


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register the domain exception handler with the FastAPI application.

    Every WalletAPIError subclass carries its own status code and
    error_type, so a single handler covers the whole hierarchy.
    """

    @app.exception_handler(WalletAPIError)
    async def wallet_api_error_handler(
        request: Request, exc: WalletAPIError
    ) -> JSONResponse:
        headers = None
        if isinstance(exc, UnauthenticatedError):
            headers = {"WWW-Authenticate": "Bearer"}
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "error_type": exc.error_type, **exc.extra()},
            headers=headers,
        )
