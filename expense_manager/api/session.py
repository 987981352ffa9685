"""
Session cookie routes.

POST exchanges a Firebase ID token for a signed session cookie;
DELETE clears it.
"""

from datetime import timedelta

import structlog
from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from expense_manager.api.dependencies import audit_logger, session_settings
from expense_manager.config import get_settings


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _is_production(request: Request) -> bool:
    production = getattr(request.app.state, "is_production", None)
    if production is None:
        production = get_settings().app.is_production
    return production


@router.post("/session")
async def create_session(request: Request) -> JSONResponse:
    try:
        payload = await request.json()
    except ValueError:
        payload = None

    id_token = payload.get("idToken") if isinstance(payload, dict) else None
    if not id_token or not isinstance(id_token, str):
        return JSONResponse(
            {"error": "Missing idToken"},
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    settings = session_settings(request)
    provider = request.app.state.identity_provider
    audit = audit_logger(request)

    try:
        cookie = await provider.create_session_cookie(
            id_token,
            expires_in=timedelta(seconds=settings.max_age_seconds),
        )
        user = await provider.verify_session_cookie(cookie, check_revoked=False)
    except Exception as e:
        logger.warning("session_create_failed", error=str(e))
        if audit:
            await audit.log_session_rejected(str(e))
        return JSONResponse(
            {"error": "Failed to create session"},
            status_code=status.HTTP_401_UNAUTHORIZED,
        )

    if audit:
        await audit.log_session_created(user.id)

    response = JSONResponse({"success": True})
    response.set_cookie(
        key=settings.cookie_name,
        value=cookie,
        max_age=settings.max_age_seconds,
        path="/",
        httponly=True,
        secure=_is_production(request),
        samesite="lax",
    )
    return response


@router.delete("/session")
async def clear_session(request: Request) -> JSONResponse:
    settings = session_settings(request)

    audit = audit_logger(request)
    if audit:
        await audit.log_session_cleared()

    response = JSONResponse({"success": True})
    response.delete_cookie(
        key=settings.cookie_name,
        path="/",
        httponly=True,
        secure=_is_production(request),
        samesite="lax",
    )
    return response
