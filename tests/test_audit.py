"""Tests for the audit logger."""

import asyncio
from decimal import Decimal
from uuid import uuid4

import pytest

from expense_manager.audit import AuditLogger, create_correlation_id
from expense_manager.models.audit import AuditEventBuilder, AuditEventType, AuditSeverity
from expense_manager.services.storage import InMemoryAuditStorage

from conftest import USER_ID


class BrokenAuditStorage(InMemoryAuditStorage):
    async def append_event(self, event):
        raise RuntimeError("sheet is read-only")


class TestAuditLogger:
    """Events are logged locally and persisted when storage is present."""

    def test_without_storage(self):
        """Without storage the event is only logged locally."""
        logger = AuditLogger()

        assert asyncio.run(logger.log(AuditEventBuilder.system_error("Boom", "boom"))) is True

    def test_persists_events(self, audit_logger, audit_storage):
        correlation_id = create_correlation_id()
        expense_id = uuid4()

        asyncio.run(audit_logger.log_expense_created(
            user_id=USER_ID,
            expense_id=expense_id,
            category="Food",
            amount=Decimal("12.50"),
            correlation_id=correlation_id,
        ))

        event = audit_storage.events[0]
        assert event.event_type == AuditEventType.EXPENSE_CREATED
        assert event.details == {"category": "Food", "amount": "12.50"}
        assert event.correlation_id == correlation_id

    def test_storage_failure_is_swallowed(self):
        logger = AuditLogger(BrokenAuditStorage())
        # Must not raise
        asyncio.run(logger.log_session_cleared())

    def test_log_returns_storage_result(self, audit_storage):
        ok = asyncio.run(AuditLogger(audit_storage).log(AuditEventBuilder.session_created(USER_ID)))
        failed = asyncio.run(AuditLogger(BrokenAuditStorage()).log(AuditEventBuilder.session_created(USER_ID)))

        assert ok is True
        assert failed is False

    def test_session_rejection_is_a_warning(self, audit_logger, audit_storage):
        asyncio.run(audit_logger.log_session_rejected("expired token"))

        event = audit_storage.events[0]
        assert event.event_type == AuditEventType.SESSION_REJECTED
        assert event.severity == AuditSeverity.WARNING

    def test_external_service_error(self, audit_logger, audit_storage):
        asyncio.run(audit_logger.log_external_service_error(
            service="cloudinary",
            error_message="timeout",
            user_id=USER_ID,
        ))

        event = audit_storage.events[0]
        assert event.event_type == AuditEventType.EXTERNAL_SERVICE_ERROR
        assert event.error_message == "timeout"

    def test_correlation_ids_are_unique(self):
        assert create_correlation_id() != create_correlation_id()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
