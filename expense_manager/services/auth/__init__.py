"""Identity services package."""

from expense_manager.services.auth.firebase import (
    AuthenticationError,
    FirebaseIdentityProvider,
    IdentityServiceError,
    InvalidCredentialsError,
)

__all__ = [
    "AuthenticationError",
    "FirebaseIdentityProvider",
    "IdentityServiceError",
    "InvalidCredentialsError",
]
