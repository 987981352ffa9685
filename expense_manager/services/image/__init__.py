"""Avatar image services package."""

from expense_manager.services.image.cloudinary_service import (
    AvatarError,
    AvatarUploadError,
    CloudinaryAvatarService,
    InvalidAvatarError,
)

__all__ = [
    "AvatarError",
    "AvatarUploadError",
    "CloudinaryAvatarService",
    "InvalidAvatarError",
]
