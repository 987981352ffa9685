"""
Shared fixtures.

No test talks to Firebase, Google Sheets or Cloudinary: storage is the
in-memory implementation and the identity / avatar services are fakes.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional
from uuid import UUID

import pytest

from expense_manager.audit import AuditLogger
from expense_manager.models.auth import AuthUser, SignInResult
from expense_manager.models.expense import AvatarUpload, Expense, ExpenseCategory
from expense_manager.orchestrator import DashboardFlow, ExpenseFlow, FamilyFlow
from expense_manager.services.auth import InvalidCredentialsError
from expense_manager.services.image import AvatarUploadError
from expense_manager.services.storage import (
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    InMemoryFamilyMemberStorage,
)


USER_ID = "user-1"
OTHER_USER_ID = "user-2"


def make_expense(
    amount: str,
    category: ExpenseCategory = ExpenseCategory.FOOD,
    on: date = date(2024, 1, 1),
    description: str = "Something",
    user_id: str = USER_ID,
    family_member_id: Optional[UUID] = None,
) -> Expense:
    return Expense(
        user_id=user_id,
        amount=Decimal(amount),
        description=description,
        category=category,
        date=on,
        family_member_id=family_member_id,
    )


class FakeIdentityProvider:
    """Accepts the ID token "good-token" and issues one cookie per user."""

    def __init__(self):
        self.sessions: dict[str, AuthUser] = {}
        self.last_expires_in: Optional[timedelta] = None

    async def create_session_cookie(self, id_token: str, expires_in: timedelta) -> str:
        if id_token != "good-token":
            raise InvalidCredentialsError("Could not create session: bad token")
        self.last_expires_in = expires_in
        cookie = f"cookie-{USER_ID}"
        self.sessions[cookie] = AuthUser(id=USER_ID, email="user@example.com")
        return cookie

    async def verify_session_cookie(self, session_cookie: str, check_revoked: bool = True) -> AuthUser:
        user = self.sessions.get(session_cookie)
        if user is None:
            raise InvalidCredentialsError("Invalid session")
        return user

    async def sign_in_with_password(self, email: str, password: str) -> SignInResult:
        if password != "secret":
            raise InvalidCredentialsError("Invalid email or password")
        return SignInResult(user=AuthUser(id=USER_ID, email=email), id_token="good-token")


class FakeAvatarService:
    """Records uploads and returns a predictable URL."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.uploads: list[tuple[str, UUID, AvatarUpload]] = []

    async def upload_avatar(
        self,
        image_bytes: bytes,
        upload: AvatarUpload,
        user_id: str,
        member_id: UUID,
    ) -> str:
        if self.fail:
            raise AvatarUploadError("Cloudinary error: service unavailable")
        self.uploads.append((user_id, member_id, upload))
        return (
            f"https://res.cloudinary.com/demo/image/upload/expense_manager/"
            f"{user_id}/family_members/{member_id}/avatar.{upload.extension}"
        )


@pytest.fixture
def expense_storage():
    return InMemoryExpenseStorage()


@pytest.fixture
def family_storage():
    return InMemoryFamilyMemberStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def avatar_service():
    return FakeAvatarService()


@pytest.fixture
def expense_flow(expense_storage, family_storage, audit_logger):
    return ExpenseFlow(
        expense_storage,
        family_storage=family_storage,
        audit_logger=audit_logger,
    )


@pytest.fixture
def family_flow(family_storage, avatar_service, audit_logger):
    return FamilyFlow(
        family_storage,
        avatar_service=avatar_service,
        audit_logger=audit_logger,
    )


@pytest.fixture
def dashboard_flow(expense_storage, family_storage):
    return DashboardFlow(expense_storage, family_storage)


@pytest.fixture
def identity_provider():
    return FakeIdentityProvider()
