"""
FastAPI application.

Here we only:
- create the FastAPI app
- attach the identity provider, flows and audit logger to app.state
- redirect unauthenticated requests for protected pages
- include route modules
"""

from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import RedirectResponse

from expense_manager.api import routes, session
from expense_manager.api.dependencies import get_current_user, session_settings
from expense_manager.audit import AuditLogger
from expense_manager.config import SessionSettings


logger = structlog.get_logger(__name__)


def _is_protected(path: str, prefixes: list[str]) -> bool:
    return any(path == p or path.startswith(p.rstrip("/") + "/") for p in prefixes)


def create_app(
    identity_provider=None,
    expense_flow=None,
    family_flow=None,
    dashboard_flow=None,
    audit_logger: Optional[AuditLogger] = None,
    settings: Optional[SessionSettings] = None,
    is_production: Optional[bool] = None,
) -> FastAPI:
    """
    Build the HTTP app.

    Anything not passed in is created from configuration: the Firebase
    identity provider and the flows from create_app_components().
    """
    if identity_provider is None:
        from expense_manager.services.auth import FirebaseIdentityProvider
        identity_provider = FirebaseIdentityProvider()

    if expense_flow is None or family_flow is None or dashboard_flow is None:
        from expense_manager.orchestrator import create_app_components
        default_expense, default_family, default_dashboard, _ = create_app_components()
        expense_flow = expense_flow or default_expense
        family_flow = family_flow or default_family
        dashboard_flow = dashboard_flow or default_dashboard

    app = FastAPI(title="Expense Manager")
    app.state.identity_provider = identity_provider
    app.state.expense_flow = expense_flow
    app.state.family_flow = family_flow
    app.state.dashboard_flow = dashboard_flow
    app.state.audit_logger = audit_logger
    app.state.session_settings = settings
    app.state.is_production = is_production

    @app.middleware("http")
    async def protect_pages(request: Request, call_next):
        config = session_settings(request)
        if _is_protected(request.url.path, config.protected_paths_list):
            if not request.cookies.get(config.cookie_name):
                return RedirectResponse(config.login_path)

            user = await get_current_user(request)
            if user is None:
                return RedirectResponse(f"{config.login_path}?error=session_expired")
            request.state.user = user

        return await call_next(request)

    @app.get("/healthz", tags=["health"])
    async def healthz() -> dict:
        return {"status": "ok"}

    app.include_router(session.router)
    app.include_router(routes.router)

    return app
