"""
Identity Service using Firebase Authentication

DESIGN DECISION: Identity is delegated entirely to Firebase.
- Password sign-in goes through the Identity Toolkit REST API and yields
  a short-lived ID token.
- The ID token is exchanged (admin SDK) for a signed session cookie that
  the server can verify on every request, including a revocation check.
- Admin operations (create user, confirm email, delete user) back the CLI.

We never see or store password hashes.

The SDK and REST calls block on the network, so the methods used while
serving requests run them in a worker thread via asyncio.to_thread.
"""

import asyncio
from datetime import timedelta
from typing import Optional

import firebase_admin
import requests
import structlog
from firebase_admin import auth, credentials
from firebase_admin.exceptions import FirebaseError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from expense_manager.config import FirebaseSettings, get_settings
from expense_manager.models.auth import AuthUser, SignInResult


logger = structlog.get_logger(__name__)

SIGN_IN_URL = "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"
TOKEN_URI = "https://oauth2.googleapis.com/token"
APP_NAME = "expense_manager"

# Identity Toolkit error codes we translate for the user
_SIGN_IN_MESSAGES = {
    "EMAIL_NOT_FOUND": "Invalid email or password",
    "INVALID_PASSWORD": "Invalid email or password",
    "INVALID_LOGIN_CREDENTIALS": "Invalid email or password",
    "USER_DISABLED": "This account has been disabled",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "Too many attempts. Please try again later",
}


class AuthenticationError(Exception):
    """Base exception for identity operations."""
    pass


class InvalidCredentialsError(AuthenticationError):
    """Email/password rejected or token/cookie failed verification."""
    pass


class IdentityServiceError(AuthenticationError):
    """Firebase could not be reached or returned an unexpected error."""
    pass


class FirebaseIdentityProvider:
    """
    Wrapper around the Firebase admin SDK and the Identity Toolkit.

    The admin app is created on first use so the module can be imported
    (and the UI rendered) without credentials present.
    """

    def __init__(self, settings: Optional[FirebaseSettings] = None):
        self._settings = settings
        self._app: Optional[firebase_admin.App] = None

    @property
    def settings(self) -> FirebaseSettings:
        if self._settings is None:
            self._settings = get_settings().firebase
        return self._settings

    def _get_app(self) -> firebase_admin.App:
        """Return the process-wide admin app, initializing it once."""
        if self._app is not None:
            return self._app

        try:
            self._app = firebase_admin.get_app(APP_NAME)
            return self._app
        except ValueError:
            pass

        settings = self.settings
        if settings.has_service_account:
            credential = credentials.Certificate({
                "type": "service_account",
                "project_id": settings.project_id,
                "client_email": settings.client_email,
                "private_key": settings.private_key,
                "token_uri": TOKEN_URI,
            })
        else:
            # Falls back to Application Default Credentials
            credential = None

        self._app = firebase_admin.initialize_app(
            credential,
            {"projectId": settings.project_id},
            name=APP_NAME,
        )
        logger.info(
            "firebase_app_initialized",
            project_id=settings.project_id,
            service_account=settings.has_service_account,
        )
        return self._app

    # =========================================================================
    # SESSIONS
    # =========================================================================

    async def create_session_cookie(
        self,
        id_token: str,
        expires_in: timedelta,
    ) -> str:
        """
        Exchange an ID token for a signed session cookie.

        Raises:
            InvalidCredentialsError: If Firebase rejects the token
        """
        try:
            return await asyncio.to_thread(
                auth.create_session_cookie,
                id_token,
                expires_in=expires_in,
                app=self._get_app(),
            )
        except (FirebaseError, ValueError) as e:
            raise InvalidCredentialsError(f"Could not create session: {e}")

    async def verify_session_cookie(
        self,
        session_cookie: str,
        check_revoked: bool = True,
    ) -> AuthUser:
        """
        Verify a session cookie and return the user it belongs to.

        Raises:
            InvalidCredentialsError: If the cookie is malformed, expired or revoked
        """
        try:
            claims = await asyncio.to_thread(
                auth.verify_session_cookie,
                session_cookie,
                check_revoked=check_revoked,
                app=self._get_app(),
            )
        except (FirebaseError, ValueError) as e:
            raise InvalidCredentialsError(f"Invalid session: {e}")

        return AuthUser(id=claims["uid"], email=claims.get("email"))

    async def revoke_sessions(self, user_id: str) -> None:
        """Invalidate every session issued to the user so far."""
        try:
            await asyncio.to_thread(auth.revoke_refresh_tokens, user_id, app=self._get_app())
        except FirebaseError as e:
            raise IdentityServiceError(f"Could not revoke sessions: {e}")

    # =========================================================================
    # PASSWORD SIGN-IN (Identity Toolkit REST)
    # =========================================================================

    @retry(
        retry=retry_if_exception_type(requests.ConnectionError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _post_sign_in(self, email: str, password: str) -> requests.Response:
        return requests.post(
            SIGN_IN_URL,
            params={"key": self.settings.web_api_key},
            json={"email": email, "password": password, "returnSecureToken": True},
            timeout=20,
        )

    async def sign_in_with_password(self, email: str, password: str) -> SignInResult:
        """
        Sign in with email and password.

        Raises:
            InvalidCredentialsError: Wrong email/password or disabled account
            IdentityServiceError: Missing web API key or network failure
        """
        if not self.settings.web_api_key:
            raise IdentityServiceError("FIREBASE_WEB_API_KEY is not configured")

        try:
            response = await asyncio.to_thread(self._post_sign_in, email, password)
        except requests.RequestException as e:
            raise IdentityServiceError(f"Sign-in request failed: {e}")

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code != 200:
            code = data.get("error", {}).get("message", "")
            # Codes may carry a suffix, e.g. "TOO_MANY_ATTEMPTS_TRY_LATER : ..."
            code = code.split(":")[0].strip()
            logger.info("sign_in_rejected", code=code, status=response.status_code)
            raise InvalidCredentialsError(_SIGN_IN_MESSAGES.get(code, "Sign in failed"))

        return SignInResult(
            user=AuthUser(id=data["localId"], email=data.get("email", email)),
            id_token=data["idToken"],
            refresh_token=data.get("refreshToken"),
            expires_in_seconds=int(data.get("expiresIn", 3600)),
        )

    # =========================================================================
    # ADMIN
    # =========================================================================

    async def create_or_get_user(
        self,
        email: str,
        password: str,
    ) -> tuple[AuthUser, bool]:
        """
        Create a user with a verified email, or return the existing one.

        Returns:
            (user, created)
        """
        app = self._get_app()
        try:
            record = auth.create_user(
                email=email,
                password=password,
                email_verified=True,
                display_name=email.split("@")[0],
                app=app,
            )
            created = True
        except auth.EmailAlreadyExistsError:
            record = auth.get_user_by_email(email, app=app)
            created = False
        except (FirebaseError, ValueError) as e:
            raise IdentityServiceError(f"Could not create user: {e}")

        return AuthUser(id=record.uid, email=record.email), created

    async def confirm_email(self, email: str) -> AuthUser:
        """
        Mark the user's email as verified.

        Raises:
            InvalidCredentialsError: If no user has that email
        """
        app = self._get_app()
        try:
            record = auth.get_user_by_email(email, app=app)
            record = auth.update_user(record.uid, email_verified=True, app=app)
        except auth.UserNotFoundError:
            raise InvalidCredentialsError(f"No user with email {email}")
        except FirebaseError as e:
            raise IdentityServiceError(f"Could not confirm email: {e}")

        return AuthUser(id=record.uid, email=record.email)

    async def delete_user(self, email: str) -> bool:
        """Delete the user with that email. Returns False if none existed."""
        app = self._get_app()
        try:
            record = auth.get_user_by_email(email, app=app)
        except auth.UserNotFoundError:
            return False

        try:
            auth.delete_user(record.uid, app=app)
        except FirebaseError as e:
            raise IdentityServiceError(f"Could not delete user: {e}")
        return True
