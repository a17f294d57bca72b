"""
Pydantic schemas for authentication and profile endpoints.

These schemas define the request/response contracts for the auth API.
Pydantic validates incoming data automatically - if a required field is
missing or the wrong type, FastAPI returns a 422 error before our code
even runs.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, model_validator


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register."""
    username: str = Field(min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.-]+$")
    email: EmailStr                                # Validates email format
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=8)            # Minimum 8 characters
    confirm_password: str
    accept_terms: bool

    @model_validator(mode="after")
    def check_confirmation(self):
        """Passwords must match and the terms must be accepted."""
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        if not self.accept_terms:
            raise ValueError("You must accept the terms and conditions")
        return self


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""
    username: str
    password: str


class TokenResponse(BaseModel):
    """Response body for successful login - contains the JWT."""
    token: str
    token_type: str = "bearer"
    user_id: uuid.UUID
    username: str
    role: str


class RegisterResponse(BaseModel):
    """Response body for successful registration - user info + JWT."""
    user_id: uuid.UUID
    username: str
    email: str
    role: str
    token: str
    token_type: str = "bearer"
    # Only populated when RETURN_VERIFICATION_CODE is enabled
    verification_code: str | None = None


class VerifyRequest(BaseModel):
    """Request body for POST /auth/verify."""
    code: str = Field(pattern=r"^\d{6}$")


class ProfileResponse(BaseModel):
    """Public representation of a User (never includes password hash)."""
    id: uuid.UUID
    username: str
    email: EmailStr
    first_name: str
    last_name: str
    role: str
    email_verified: bool
    is_active: bool
    last_login_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ProfileUpdateRequest(BaseModel):
    """Request body for PATCH /auth/profile. Omitted fields are unchanged."""
    username: str | None = Field(None, min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.-]+$")
    email: EmailStr | None = None
    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, min_length=1, max_length=100)


class ProfileUpdateResponse(ProfileResponse):
    """Profile after an update; carries the new code when the email changed."""
    # Only populated when RETURN_VERIFICATION_CODE is enabled
    verification_code: str | None = None
