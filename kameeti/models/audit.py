"""
Audit Models for Kameeti

Every applied or rejected ledger mutation is logged for audit purposes.
This provides:
1. Complete traceability of who-paid-what changes
2. Debugging information when a mutation is rejected
3. A record of persistence failures the user never sees

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every mutation operation of the ledger has its own event type.
    """
    # Committees
    COMMITTEE_CREATED = "committee_created"
    COMMITTEE_UPDATED = "committee_updated"
    COMMITTEE_DELETED = "committee_deleted"

    # Members
    MEMBER_ADDED = "member_added"
    MEMBER_UPDATED = "member_updated"
    MEMBER_DELETED = "member_deleted"

    # Payments
    PAYMENT_RECORDED = "payment_recorded"
    PAYMENT_UPDATED = "payment_updated"
    PAYMENT_DELETED = "payment_deleted"

    # Draws
    DRAW_RECORDED = "draw_recorded"
    DRAW_UPDATED = "draw_updated"
    DRAW_DELETED = "draw_deleted"

    # History
    MUTATION_REJECTED = "mutation_rejected"
    UNDO_APPLIED = "undo_applied"

    # Persistence
    SNAPSHOT_LOADED = "snapshot_loaded"
    SNAPSHOT_LOAD_FAILED = "snapshot_load_failed"
    SNAPSHOT_SAVED = "snapshot_saved"
    PERSISTENCE_FAILED = "persistence_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


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
        default_factory=_utcnow,
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

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'committee', 'member', 'payment')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one user session)"
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
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


_CREATED = {
    "committee": AuditEventType.COMMITTEE_CREATED,
    "member": AuditEventType.MEMBER_ADDED,
    "payment": AuditEventType.PAYMENT_RECORDED,
    "draw": AuditEventType.DRAW_RECORDED,
}
_UPDATED = {
    "committee": AuditEventType.COMMITTEE_UPDATED,
    "member": AuditEventType.MEMBER_UPDATED,
    "payment": AuditEventType.PAYMENT_UPDATED,
    "draw": AuditEventType.DRAW_UPDATED,
}
_DELETED = {
    "committee": AuditEventType.COMMITTEE_DELETED,
    "member": AuditEventType.MEMBER_DELETED,
    "payment": AuditEventType.PAYMENT_DELETED,
    "draw": AuditEventType.DRAW_DELETED,
}


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.entity_created("member", member.id, details)
        event = AuditEventBuilder.mutation_rejected("delete_member", reason, message)
    """

    @staticmethod
    def entity_created(
        entity_type: str,
        entity_id: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=_CREATED[entity_type],
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"{entity_type.capitalize()} created",
            details=details or {},
        )

    @staticmethod
    def entity_updated(
        entity_type: str,
        entity_id: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=_UPDATED[entity_type],
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"{entity_type.capitalize()} updated",
            details=details or {},
        )

    @staticmethod
    def entity_deleted(
        entity_type: str,
        entity_id: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=_DELETED[entity_type],
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"{entity_type.capitalize()} deleted",
            details=details or {},
        )

    @staticmethod
    def mutation_rejected(
        operation: str,
        reason: str,
        message: str,
        entity_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Rejected {operation}: {reason}",
            error_code=reason,
            error_message=message,
            details={"operation": operation},
        )

    @staticmethod
    def undo_applied(
        remaining_history: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UNDO_APPLIED,
            correlation_id=correlation_id,
            description="Reverted to previous snapshot",
            details={"remaining_history": remaining_history},
        )

    @staticmethod
    def snapshot_loaded(counts: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_LOADED,
            entity_type="snapshot",
            description="Ledger snapshot loaded",
            details=counts,
        )

    @staticmethod
    def snapshot_load_failed(error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_LOAD_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="snapshot",
            description="Stored snapshot unusable, starting empty",
            error_message=error_message,
        )

    @staticmethod
    def snapshot_saved(counts: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_SAVED,
            severity=AuditSeverity.DEBUG,
            entity_type="snapshot",
            description="Ledger snapshot saved",
            details=counts,
        )

    @staticmethod
    def persistence_failed(
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSISTENCE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="snapshot",
            correlation_id=correlation_id,
            description="Snapshot could not be persisted",
            error_message=error_message,
        )
