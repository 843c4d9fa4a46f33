"""
Unit tests for audit batching.
"""

from datetime import datetime

import pytest

from ai_route_guard.core.audit import AuditQueue, new_audit_entry
from ai_route_guard.storage.models import AuditEntry, AuditOutcome, RiskLevel


class RecordingSink:
    """Sink that stores batches and can be told to fail."""

    def __init__(self, failures=0):
        self.batches = []
        self.failures = failures

    def __call__(self, entries):
        if self.failures:
            self.failures -= 1
            raise OSError("audit store unavailable")
        self.batches.append(list(entries))


def _entry(operation="ai_request"):
    return new_audit_entry(operation, "gemini-pro", AuditOutcome.SUCCESS)


class TestNewAuditEntry:
    def test_unique_ids(self):
        ids = {_entry().audit_id for _ in range(50)}
        assert len(ids) == 50

    def test_fields(self):
        timestamp = datetime(2024, 1, 1)
        entry = new_audit_entry(
            "ai_request",
            "session_1",
            AuditOutcome.FAILURE,
            risk_level=RiskLevel.HIGH,
            compliance_flags=["aws_access_key_id"],
            timestamp=timestamp,
        )
        assert entry.audit_id.startswith("audit_")
        assert entry.compliance_flags == ("aws_access_key_id",)
        assert entry.timestamp == timestamp

    def test_empty_operation_rejected(self):
        with pytest.raises(ValueError, match="operation cannot be empty"):
            AuditEntry(
                audit_id="a",
                operation="",
                resource="r",
                outcome=AuditOutcome.SUCCESS,
                risk_level=RiskLevel.LOW,
                timestamp=datetime(2024, 1, 1),
            )


class TestAuditQueue:
    """Test batching and at-least-once delivery."""

    def test_flushes_at_batch_size(self):
        sink = RecordingSink()
        queue = AuditQueue(sink, batch_size=5)

        for _ in range(4):
            queue.append(_entry())
        assert sink.batches == []
        assert len(queue) == 4

        queue.append(_entry())
        assert len(sink.batches) == 1
        assert len(sink.batches[0]) == 5
        assert len(queue) == 0

    def test_failed_flush_keeps_entries(self):
        sink = RecordingSink(failures=1)
        queue = AuditQueue(sink, batch_size=2)

        queue.append(_entry())
        queue.append(_entry())  # flush fails, nothing raised
        assert len(queue) == 2
        assert sink.batches == []

        queue.append(_entry())  # retried with the new entry included
        assert len(queue) == 0
        assert len(sink.batches[0]) == 3

    def test_manual_flush(self):
        sink = RecordingSink()
        queue = AuditQueue(sink, batch_size=10)
        first = _entry()
        queue.append(first)

        assert queue.flush() is True
        assert sink.batches == [[first]]
        assert queue.pending() == []

    def test_flush_empty_queue_skips_sink(self):
        sink = RecordingSink()
        assert AuditQueue(sink).flush() is True
        assert sink.batches == []

    def test_flush_reports_failure(self):
        queue = AuditQueue(RecordingSink(failures=1))
        queue.append(_entry())
        assert queue.flush() is False
        assert len(queue) == 1

    def test_invalid_batch_size(self):
        with pytest.raises(ValueError, match="batch_size must be > 0"):
            AuditQueue(RecordingSink(), batch_size=0)
