"""
Read-only JSON views behind the protected paths.

These mirror the Streamlit pages for clients that prefer HTTP:
the month's summary, the month's expenses and the family list.
"""

from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status

from expense_manager.api.dependencies import require_user
from expense_manager.models.auth import AuthUser


router = APIRouter(tags=["data"])


def parse_month(month: Optional[str]) -> date:
    """'YYYY-MM' to the first of that month; today's month when omitted."""
    if not month:
        return date.today().replace(day=1)
    try:
        return datetime.strptime(month, "%Y-%m").date()
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="month must look like YYYY-MM",
        )


@router.get("/dashboard")
async def dashboard(
    request: Request,
    month: Optional[str] = None,
    user: AuthUser = Depends(require_user),
) -> dict:
    summary = await request.app.state.dashboard_flow.monthly_summary(user.id, parse_month(month))
    return summary.model_dump(mode="json")


@router.get("/expenses")
async def expenses(
    request: Request,
    month: Optional[str] = None,
    user: AuthUser = Depends(require_user),
) -> list[dict]:
    items = await request.app.state.expense_flow.list_month(user.id, parse_month(month))
    return [e.model_dump(mode="json") for e in items]


@router.get("/family")
async def family(
    request: Request,
    user: AuthUser = Depends(require_user),
) -> list[dict]:
    members = await request.app.state.family_flow.list_members(user.id)
    return [m.model_dump(mode="json") for m in members]
