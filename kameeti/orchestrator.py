"""
Application Wiring for Kameeti

This module ties together settings, storage, audit logging and the
ledger engine. A presentation layer (desktop form, web view, CLI) calls
create_ledger_engine() once at startup and keeps the returned engine
for the lifetime of the process.

DESIGN DECISION: There is no module-level engine.
Whoever needs the ledger receives the instance explicitly.
"""

from typing import Optional

import structlog

from kameeti.audit import AuditLogger, create_correlation_id
from kameeti.config import LedgerSettings, StorageSettings, get_settings
from kameeti.ledger import LedgerEngine, load_snapshot
from kameeti.services.storage import (
    AuditStorageInterface,
    JsonFileLedgerStorage,
    LedgerStorageInterface,
)


logger = structlog.get_logger("kameeti.orchestrator")


def create_storage(
    settings: Optional[StorageSettings] = None,
) -> Optional[LedgerStorageInterface]:
    """Build the configured snapshot storage, or None when persistence is disabled."""
    settings = settings or get_settings().storage
    if not settings.enabled:
        return None
    return JsonFileLedgerStorage(
        settings.data_path,
        write_attempts=settings.write_attempts,
    )


def create_ledger_engine(
    storage: Optional[LedgerStorageInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
    ledger_settings: Optional[LedgerSettings] = None,
    use_storage: bool = True,
) -> LedgerEngine:
    """
    Factory function to create a ready-to-use ledger engine.

    Args:
        storage: Snapshot storage. Defaults to the configured JSON file.
        audit_storage: Optional audit trail backend.
        ledger_settings: Policy overrides. Defaults to environment settings.
        use_storage: Set to False to run purely in memory.

    Returns:
        An engine holding the persisted snapshot (or an empty one).
    """
    audit_logger = AuditLogger(audit_storage, correlation_id=create_correlation_id())

    if use_storage and storage is None:
        try:
            storage = create_storage()
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            storage = None
    elif not use_storage:
        storage = None

    snapshot = load_snapshot(storage, audit_logger)

    return LedgerEngine(
        snapshot=snapshot,
        storage=storage,
        audit_logger=audit_logger,
        settings=ledger_settings,
    )
