"""
Avatar Storage Service using Cloudinary

DESIGN DECISION: Family member avatars live in Cloudinary because:
1. Images are served from a CDN with a stable HTTPS URL
2. No binary data in the spreadsheet
3. Free tier sufficient for personal use

Each member has exactly one avatar, stored at
    {root_folder}/{user_id}/family_members/{member_id}/avatar
so uploading again simply replaces it.

The bytes are opened with PIL before upload; anything that is not a
decodable image is rejected locally without an API call.
"""

from io import BytesIO
from uuid import UUID

import cloudinary
import cloudinary.uploader
import structlog
from PIL import Image, UnidentifiedImageError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from expense_manager.config import get_settings
from expense_manager.models.expense import AvatarUpload


logger = structlog.get_logger(__name__)


class AvatarError(Exception):
    """Base exception for avatar errors."""
    pass


class InvalidAvatarError(AvatarError):
    """The file is not an acceptable image."""
    pass


class AvatarUploadError(AvatarError):
    """Failed to upload the avatar to Cloudinary."""
    pass


class CloudinaryAvatarService:
    """
    Service for storing family member avatars in Cloudinary.

    Flow:
    1. Receive raw image bytes plus upload metadata
    2. Check size, extension and that PIL can read the image
    3. Upload to the member's avatar path (overwriting any previous one)
    4. Return the public HTTPS URL
    """

    def __init__(self):
        self._settings = get_settings().cloudinary
        self._app_settings = get_settings().app
        self._configured = False

    def _configure(self):
        """Configure Cloudinary SDK."""
        if not self._configured:
            cloudinary.config(
                cloud_name=self._settings.cloud_name,
                api_key=self._settings.api_key,
                api_secret=self._settings.api_secret,
                secure=True,
            )
            self._configured = True

    def avatar_public_id(self, user_id: str, member_id: UUID) -> str:
        """
        Cloudinary public ID for a member's avatar.

        Format: {root_folder}/{user_id}/family_members/{member_id}/avatar
        """
        return (
            f"{self._settings.root_folder}/{user_id}"
            f"/family_members/{member_id}/avatar"
        )

    def check_image(self, image_bytes: bytes, upload: AvatarUpload) -> None:
        """
        Reject files that are too large, of an unsupported format, or unreadable.

        Raises:
            InvalidAvatarError: With a message suitable for the user
        """
        max_bytes = self._app_settings.max_avatar_size_bytes
        if len(image_bytes) > max_bytes:
            raise InvalidAvatarError(
                f"Avatar is too large ({len(image_bytes) // 1024} KB). "
                f"Maximum is {self._app_settings.max_avatar_size_mb} MB."
            )

        if upload.extension not in self._app_settings.supported_formats_list:
            raise InvalidAvatarError(
                f"Unsupported avatar format: {upload.extension}"
            )

        try:
            img = Image.open(BytesIO(image_bytes))
            img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise InvalidAvatarError(f"Could not read image: {e}")

    @retry(
        retry=retry_if_exception_type(AvatarUploadError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def upload_avatar(
        self,
        image_bytes: bytes,
        upload: AvatarUpload,
        user_id: str,
        member_id: UUID,
    ) -> str:
        """
        Upload a member's avatar.

        Args:
            image_bytes: Raw image bytes
            upload: AvatarUpload metadata
            user_id: Owning user
            member_id: Family member the avatar belongs to

        Returns:
            Public HTTPS URL of the stored avatar

        Raises:
            InvalidAvatarError: If the image fails the local checks
            AvatarUploadError: If upload fails
        """
        self.check_image(image_bytes, upload)
        self._configure()

        public_id = self.avatar_public_id(user_id, member_id)

        try:
            result = cloudinary.uploader.upload(
                image_bytes,
                public_id=public_id,
                resource_type="image",
                format=upload.extension,
                overwrite=True,
                invalidate=True,
            )
        except cloudinary.exceptions.Error as e:
            raise AvatarUploadError(f"Cloudinary error: {e}")
        except Exception as e:
            raise AvatarUploadError(f"Failed to upload avatar: {e}")

        url = result.get("secure_url", result.get("url", ""))
        if not url:
            raise AvatarUploadError("No URL returned from Cloudinary")

        logger.info(
            "avatar_stored",
            user_id=user_id,
            member_id=str(member_id),
            public_id=public_id,
        )
        return url
