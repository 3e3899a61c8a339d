"""
Audit Logger

DESIGN DECISION: Every applied or rejected ledger mutation is logged.
This provides:
1. Complete traceability
2. Debugging capability
3. A place where persistence failures surface without crashing

The audit logger:
- Is synchronous, like the ledger engine it serves
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from kameeti.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from kameeti.services.storage import AuditStorageInterface


# Configure structlog for local logging
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


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit storage backend, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
        correlation_id: Optional[UUID] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
            correlation_id: Attached to every event that doesn't carry one.
        """
        self._storage = storage
        self._correlation_id = correlation_id
        self._logger = structlog.get_logger("kameeti.audit")

    @property
    def correlation_id(self) -> Optional[UUID]:
        return self._correlation_id

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        if event.correlation_id is None and self._correlation_id is not None:
            event = event.model_copy(update={"correlation_id": self._correlation_id})

        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    def log_created(self, entity_type: str, entity_id: str, **details) -> None:
        """Log creation of a committee, member, payment or draw."""
        self.log(AuditEventBuilder.entity_created(entity_type, entity_id, details))

    def log_updated(self, entity_type: str, entity_id: str, **details) -> None:
        """Log an update."""
        self.log(AuditEventBuilder.entity_updated(entity_type, entity_id, details))

    def log_deleted(self, entity_type: str, entity_id: str, **details) -> None:
        """Log a deletion."""
        self.log(AuditEventBuilder.entity_deleted(entity_type, entity_id, details))

    def log_rejected(
        self,
        operation: str,
        reason: str,
        message: str,
        entity_id: Optional[str] = None,
    ) -> None:
        """Log a rejected mutation."""
        self.log(
            AuditEventBuilder.mutation_rejected(
                operation=operation,
                reason=reason,
                message=message,
                entity_id=entity_id,
            )
        )

    def log_undo(self, remaining_history: int) -> None:
        self.log(AuditEventBuilder.undo_applied(remaining_history))

    def log_snapshot_loaded(self, counts: dict[str, int]) -> None:
        self.log(AuditEventBuilder.snapshot_loaded(counts))

    def log_snapshot_load_failed(self, error_message: str) -> None:
        self.log(AuditEventBuilder.snapshot_load_failed(error_message))

    def log_snapshot_saved(self, counts: dict[str, int]) -> None:
        self.log(AuditEventBuilder.snapshot_saved(counts))

    def log_persistence_failed(self, error_message: str) -> None:
        """Log a failed snapshot write. The in-memory state stays authoritative."""
        self.log(AuditEventBuilder.persistence_failed(error_message))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use one per user session and hand it to the AuditLogger.
    """
    return uuid4()
