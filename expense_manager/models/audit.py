"""
Audit Models for Expense Manager

Every significant action in the system is logged for audit purposes.
This provides:
1. Complete traceability of all writes
2. Debugging information when things go wrong
3. Ability to reconstruct history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Expenses
    EXPENSE_CREATED = "expense_created"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"
    EXPENSE_VALIDATION_FAILED = "expense_validation_failed"
    SAVE_FAILED = "save_failed"

    # Family members
    FAMILY_MEMBER_CREATED = "family_member_created"
    FAMILY_MEMBER_UPDATED = "family_member_updated"
    FAMILY_MEMBER_DELETED = "family_member_deleted"
    AVATAR_UPLOADED = "avatar_uploaded"

    # Sessions
    SESSION_CREATED = "session_created"
    SESSION_REJECTED = "session_rejected"
    SESSION_CLEARED = "session_cleared"

    # Bulk operations
    IMPORT_COMPLETED = "import_completed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Who and what
    user_id: Optional[str] = Field(
        default=None,
        description="User the action was performed for"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'family_member', 'session')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one member save plus its avatar upload)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Columns follow AUDIT_COLUMNS.
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.user_id or "",
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_created(user_id, expense_id, ...)
        event = AuditEventBuilder.session_created(user_id)
    """

    @staticmethod
    def expense_created(
        user_id: str,
        expense_id: UUID,
        category: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_CREATED,
            user_id=user_id,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense added: {category} - {amount}",
            details={"category": category, "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def expense_updated(
        user_id: str,
        expense_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_UPDATED,
            user_id=user_id,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description="Expense updated",
            is_user_action=True,
        )

    @staticmethod
    def expense_deleted(
        user_id: str,
        expense_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            user_id=user_id,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description="Expense deleted",
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        user_id: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="expense",
            correlation_id=correlation_id,
            description=f"Expense validation failed with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def save_failed(
        user_id: str,
        entity_type: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            entity_type=entity_type,
            correlation_id=correlation_id,
            description=f"Failed to save {entity_type}",
            error_message=error_message,
        )

    @staticmethod
    def family_member_saved(
        user_id: str,
        member_id: UUID,
        name: str,
        created: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        event_type = (
            AuditEventType.FAMILY_MEMBER_CREATED
            if created
            else AuditEventType.FAMILY_MEMBER_UPDATED
        )
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            entity_type="family_member",
            entity_id=member_id,
            correlation_id=correlation_id,
            description=f"Family member {'added' if created else 'updated'}: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def family_member_deleted(
        user_id: str,
        member_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FAMILY_MEMBER_DELETED,
            user_id=user_id,
            entity_type="family_member",
            entity_id=member_id,
            correlation_id=correlation_id,
            description="Family member removed",
            is_user_action=True,
        )

    @staticmethod
    def avatar_uploaded(
        user_id: str,
        member_id: UUID,
        url: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AVATAR_UPLOADED,
            user_id=user_id,
            entity_type="family_member",
            entity_id=member_id,
            correlation_id=correlation_id,
            description="Avatar uploaded",
            details={"url": url},
        )

    @staticmethod
    def session_created(user_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_CREATED,
            user_id=user_id,
            entity_type="session",
            description="Session cookie issued",
            is_user_action=True,
        )

    @staticmethod
    def session_rejected(reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="session",
            description="Session creation rejected",
            error_message=reason,
        )

    @staticmethod
    def session_cleared() -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_CLEARED,
            entity_type="session",
            description="Session cookie cleared",
            is_user_action=True,
        )

    @staticmethod
    def import_completed(
        user_id: str,
        imported: int,
        failed: int,
        source: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_COMPLETED,
            severity=AuditSeverity.WARNING if failed else AuditSeverity.INFO,
            user_id=user_id,
            entity_type="import",
            description=f"Imported {imported} expenses ({failed} failed)",
            details={"imported": imported, "failed": failed, "source": source},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
