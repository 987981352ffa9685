"""Authentication models."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class AuthUser(BaseModel):
    """The signed-in user as resolved from a verified credential."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Firebase uid")
    email: Optional[str] = None


class SignInResult(BaseModel):
    """Outcome of a password sign-in against the Identity Toolkit."""

    user: AuthUser
    id_token: str = Field(..., description="Short-lived ID token to exchange for a session")
    refresh_token: Optional[str] = None
    expires_in_seconds: int = 3600
