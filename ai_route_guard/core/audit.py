"""
Audit trail batching.

Entries are queued in memory and handed to an external sink in batches.
Delivery is at-least-once: a failed flush keeps the whole queue, so a batch
may be delivered twice if the sink stored part of it before failing.
"""

import threading
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Sequence

from .models import new_id
from ai_route_guard.storage.models import AuditEntry, AuditOutcome, RiskLevel
from ai_route_guard.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 5

AuditSink = Callable[[Sequence[AuditEntry]], None]


def new_audit_entry(
    operation: str,
    resource: str,
    outcome: AuditOutcome,
    risk_level: RiskLevel = RiskLevel.LOW,
    compliance_flags: Iterable[str] = (),
    timestamp: Optional[datetime] = None,
) -> AuditEntry:
    """Build an entry with a fresh unique audit id."""
    return AuditEntry(
        audit_id=new_id("audit"),
        operation=operation,
        resource=resource,
        outcome=outcome,
        risk_level=risk_level,
        timestamp=timestamp or datetime.now(),
        compliance_flags=tuple(compliance_flags),
    )


class AuditQueue:
    """Queue of audit entries flushed to ``sink`` once ``batch_size`` is reached."""

    def __init__(self, sink: AuditSink, batch_size: int = DEFAULT_BATCH_SIZE):
        if batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        self.sink = sink
        self.batch_size = batch_size
        self._pending: List[AuditEntry] = []
        self._lock = threading.Lock()

    def append(self, entry: AuditEntry) -> None:
        with self._lock:
            self._pending.append(entry)
            should_flush = len(self._pending) >= self.batch_size
        if should_flush:
            self.flush()

    def flush(self) -> bool:
        """Send all pending entries to the sink.

        Failures are logged and swallowed; the entries stay queued for the
        next attempt.

        Returns:
            True if the queue was delivered (or empty), False on sink failure
        """
        with self._lock:
            batch = list(self._pending)
        if not batch:
            return True

        try:
            self.sink(batch)
        except Exception as e:
            logger.error("Audit flush of %d entries failed: %s", len(batch), e)
            return False

        with self._lock:
            delivered = {entry.audit_id for entry in batch}
            self._pending = [e for e in self._pending if e.audit_id not in delivered]
        logger.debug("Flushed %d audit entries", len(batch))
        return True

    def pending(self) -> List[AuditEntry]:
        with self._lock:
            return list(self._pending)

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)
