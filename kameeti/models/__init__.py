"""
Data Models Package

This package contains all Pydantic models used by the committee ledger.
All data held or returned by the engine conforms to these schemas.
"""

from kameeti.models.committee import (
    Committee,
    CommitteeInput,
    CommitteeSummary,
    Draw,
    DrawInput,
    LedgerSnapshot,
    Member,
    MemberInput,
    PayerRow,
    Payment,
    PaymentGrid,
    PaymentInput,
    ShareType,
    new_entity_id,
)
from kameeti.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Committee",
    "CommitteeInput",
    "CommitteeSummary",
    "Draw",
    "DrawInput",
    "LedgerSnapshot",
    "Member",
    "MemberInput",
    "PayerRow",
    "Payment",
    "PaymentGrid",
    "PaymentInput",
    "ShareType",
    "new_entity_id",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
