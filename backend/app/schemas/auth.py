"""Schemas for authentication endpoints."""

from pydantic import BaseModel, Field, constr

from .users import UserRead


class Credentials(BaseModel):
    """Username and password, used for registration, login and first-run setup."""

    username: constr(strip_whitespace=True, min_length=3, max_length=64) = Field(
        ..., description="Unique username consisting of 3-64 characters"
    )
    password: constr(min_length=6, max_length=128) = Field(
        ..., description="Plain text password that will be hashed before storing"
    )


class AuthResponse(BaseModel):
    """Access token returned after successful authentication."""

    user: UserRead
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type, always 'bearer'")
    expires_in: int = Field(..., description="Access token lifetime in seconds")


class SetupStatus(BaseModel):
    needs_setup: bool
