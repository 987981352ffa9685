"""
Core Data Models for Expense Manager

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging
4. Support the audit trail

DESIGN DECISION: Every persisted record carries the id of the user who owns it.
Storage is scoped by that id, so a record can never be read or referenced
across users.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ExpenseCategory(str, Enum):
    """
    Supported expense categories.

    New categories are added here; stored values are the display names.
    """
    FOOD = "Food"
    TRANSPORT = "Transport"
    SHOPPING = "Shopping"
    BILLS = "Bills"
    ENTERTAINMENT = "Entertainment"
    HEALTHCARE = "Healthcare"
    EDUCATION = "Education"
    OTHER = "Other"


# =============================================================================
# EXPENSE MODELS
# =============================================================================

class ExpenseDraft(BaseModel):
    """
    The user-editable fields of an expense.

    This is what the add/edit form produces. Updates always carry the
    full set of fields.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal = Field(
        ...,
        ge=0,
        max_digits=12,
        decimal_places=2,
        description="Amount spent"
    )
    description: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="What the money was spent on"
    )
    category: ExpenseCategory = Field(
        default=ExpenseCategory.FOOD,
        description="Expense category"
    )
    date: dt.date = Field(
        ...,
        description="Calendar date of the expense"
    )
    tags: Optional[list[str]] = Field(
        default=None,
        description="Free-form labels"
    )
    family_member_id: Optional[UUID] = Field(
        default=None,
        description="Family member this expense is for"
    )

    @field_validator('tags')
    @classmethod
    def normalize_tags(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        """Strip, drop blanks and de-duplicate while keeping order."""
        if v is None:
            return None
        seen: list[str] = []
        for tag in v:
            tag = tag.strip()
            if tag and tag not in seen:
                seen.append(tag)
        return seen or None


class Expense(ExpenseDraft):
    """
    A stored expense.

    Owned by exactly one user; only that user may edit or delete it.
    """

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique expense ID"
    )
    user_id: str = Field(
        ...,
        min_length=1,
        description="Owning user"
    )
    created_at: dt.datetime = Field(
        default_factory=dt.datetime.utcnow,
        description="When the expense was recorded"
    )
    updated_at: dt.datetime = Field(
        default_factory=dt.datetime.utcnow,
        description="Last update timestamp"
    )

    def apply(self, draft: ExpenseDraft) -> "Expense":
        """Return a copy with every editable field replaced by the draft's."""
        return self.model_copy(
            update={
                **draft.model_dump(),
                "updated_at": dt.datetime.utcnow(),
            }
        )


# =============================================================================
# FAMILY MEMBER MODELS
# =============================================================================

class FamilyMemberDraft(BaseModel):
    """User-editable fields of a family member."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    relation: Optional[str] = Field(
        default=None,
        max_length=50,
        description="Relation label (e.g., Spouse, Son)"
    )

    @field_validator('relation')
    @classmethod
    def blank_relation_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class FamilyMember(FamilyMemberDraft):
    """
    A household member that expenses can be tagged to.

    Referenced, never owned, by expenses.
    """

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique family member ID"
    )
    user_id: str = Field(
        ...,
        min_length=1,
        description="Owning user"
    )
    avatar_url: Optional[str] = Field(
        default=None,
        description="Public URL of the uploaded avatar"
    )
    created_at: dt.datetime = Field(
        default_factory=dt.datetime.utcnow
    )
    updated_at: dt.datetime = Field(
        default_factory=dt.datetime.utcnow
    )


# =============================================================================
# AVATAR UPLOAD
# =============================================================================

SAFE_AVATAR_EXTENSIONS = ("jpg", "jpeg", "png", "webp", "gif")


class AvatarUpload(BaseModel):
    """Represents an avatar image before it is sent to object storage."""

    upload_id: UUID = Field(
        default_factory=uuid4,
        description="Unique upload identifier"
    )
    uploaded_at: dt.datetime = Field(
        default_factory=dt.datetime.utcnow
    )
    original_filename: str
    file_size_bytes: int = Field(ge=0)
    mime_type: str

    @field_validator('mime_type')
    @classmethod
    def validate_mime_type(cls, v: str) -> str:
        """Only allow image types."""
        if not v.lower().startswith("image/"):
            raise ValueError(f"Unsupported file type: {v}. Please upload an image.")
        return v.lower()

    @property
    def extension(self) -> str:
        """File extension to store under; anything unexpected becomes jpg."""
        ext = self.original_filename.rsplit(".", 1)[-1].lower() if "." in self.original_filename else ""
        return ext if ext in SAFE_AVATAR_EXTENSIONS else "jpg"


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage validation.

    Stage 1: Schema validation (required fields, ranges)
    Stage 2: Semantic validation (dates, amounts, ownership)
    """

    validated_at: dt.datetime = Field(
        default_factory=dt.datetime.utcnow
    )

    schema_valid: bool
    semantic_valid: bool
    is_valid: bool

    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    # Warnings don't block but should be shown
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def error_messages(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "error"]
