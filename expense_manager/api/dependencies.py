"""
Request-scoped helpers shared by the HTTP routes and middleware.

The identity provider, flows and audit logger are attached to
`app.state` by `create_app`, so tests can hand in fakes.
"""

from typing import Optional

import structlog
from fastapi import HTTPException, Request, status

from expense_manager.audit import AuditLogger
from expense_manager.config import SessionSettings, get_settings
from expense_manager.models.auth import AuthUser


logger = structlog.get_logger(__name__)


def session_settings(request: Request) -> SessionSettings:
    settings = getattr(request.app.state, "session_settings", None)
    return settings or get_settings().session


def audit_logger(request: Request) -> Optional[AuditLogger]:
    return getattr(request.app.state, "audit_logger", None)


async def get_current_user(request: Request) -> Optional[AuthUser]:
    """
    The user owning the request's session cookie, or None.

    Verification includes the revocation check. Any failure (no cookie,
    bad signature, expired, revoked, provider unreachable) yields None.
    """
    cookie = request.cookies.get(session_settings(request).cookie_name)
    if not cookie:
        return None

    provider = request.app.state.identity_provider
    try:
        return await provider.verify_session_cookie(cookie, check_revoked=True)
    except Exception as e:
        logger.info("session_verification_failed", error=str(e))
        return None


async def require_user(request: Request) -> AuthUser:
    """Route dependency: the signed-in user, or 401."""
    user = getattr(request.state, "user", None) or await get_current_user(request)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not signed in")
    return user
