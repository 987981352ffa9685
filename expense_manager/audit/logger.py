"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Complete traceability
2. Debugging capability
3. User can see history of their changes

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
import sys
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from expense_manager.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from expense_manager.services.storage import AuditStorageInterface


def configure_logging(level: str = "INFO") -> None:
    """
    Configure structlog on top of the stdlib logging module.

    Safe to call again (e.g. once settings are loaded) to change the level.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
        force=True,
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


# Configure structlog for local logging
configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("expense_manager.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        # Always log locally
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        # Persist to storage if available
        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_expense_created(
        self,
        user_id: str,
        expense_id: UUID,
        category: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a new expense."""
        event = AuditEventBuilder.expense_created(
            user_id=user_id,
            expense_id=expense_id,
            category=category,
            amount=str(amount),
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_expense_updated(
        self,
        user_id: str,
        expense_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.expense_updated(
            user_id=user_id,
            expense_id=expense_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_expense_deleted(
        self,
        user_id: str,
        expense_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.expense_deleted(
            user_id=user_id,
            expense_id=expense_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_validation_failed(
        self,
        user_id: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log validation failure."""
        event = AuditEventBuilder.validation_failed(
            user_id=user_id,
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_save_failed(
        self,
        user_id: str,
        entity_type: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a storage write that did not go through."""
        event = AuditEventBuilder.save_failed(
            user_id=user_id,
            entity_type=entity_type,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_family_member_saved(
        self,
        user_id: str,
        member_id: UUID,
        name: str,
        created: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.family_member_saved(
            user_id=user_id,
            member_id=member_id,
            name=name,
            created=created,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_family_member_deleted(
        self,
        user_id: str,
        member_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.family_member_deleted(
            user_id=user_id,
            member_id=member_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_avatar_uploaded(
        self,
        user_id: str,
        member_id: UUID,
        url: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.avatar_uploaded(
            user_id=user_id,
            member_id=member_id,
            url=url,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_session_created(self, user_id: str) -> None:
        await self.log(AuditEventBuilder.session_created(user_id))

    async def log_session_rejected(self, reason: str) -> None:
        await self.log(AuditEventBuilder.session_rejected(reason))

    async def log_session_cleared(self) -> None:
        await self.log(AuditEventBuilder.session_cleared())

    async def log_import_completed(
        self,
        user_id: str,
        imported: int,
        failed: int,
        source: str,
    ) -> None:
        """Log the outcome of a bulk CSV import."""
        event = AuditEventBuilder.import_completed(
            user_id=user_id,
            imported=imported,
            failed=failed,
            source=source,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., saving a family
    member together with its avatar). Pass it through all subsequent
    operations.
    """
    return uuid4()
