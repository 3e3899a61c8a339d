"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap the JSON file for a database later
2. Use in-memory storage for testing
3. Keep the ledger engine decoupled from where snapshots live

The ledger persists one document holding all four collections,
so the interface is just load and save.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from kameeti.models.audit import AuditEvent


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger snapshot storage.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    def load(self) -> Optional[dict]:
        """
        Load the persisted snapshot document.

        Returns:
            The raw document, or None if nothing has been saved yet

        Raises:
            CorruptDataError: If stored data cannot be decoded
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def save(self, document: dict) -> None:
        """
        Replace the persisted snapshot document.

        Args:
            document: JSON-ready {committees, members, payments, draws}

        Raises:
            StorageError: If the write fails
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a correlation ID in chronological order."""
        pass

    @abstractmethod
    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get all events for a specific entity in chronological order."""
        pass

    @abstractmethod
    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class CorruptDataError(StorageError):
    """Stored data exists but cannot be decoded."""
    pass
