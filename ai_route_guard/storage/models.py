"""
Data models for storage layer.

Defines the audit trail entities persisted by the audit sink.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Tuple


class AuditOutcome(Enum):
    """Result of an audited operation."""
    SUCCESS = "success"
    FAILURE = "failure"


class RiskLevel(Enum):
    """Risk classification attached to an audited operation."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class AuditEntry:
    """Immutable record of a security- or compliance-relevant operation.

    Append-only entries that form the audit trail of the routing engine.
    Once written, these records must never be modified.
    """
    audit_id: str
    operation: str
    resource: str
    outcome: AuditOutcome
    risk_level: RiskLevel
    timestamp: datetime
    compliance_flags: Tuple[str, ...] = ()

    def __post_init__(self):
        if not self.audit_id:
            raise ValueError("audit_id cannot be empty")
        if not self.operation:
            raise ValueError("operation cannot be empty")
        object.__setattr__(self, "compliance_flags", tuple(self.compliance_flags))
