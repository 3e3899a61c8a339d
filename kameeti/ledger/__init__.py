"""
Committee Ledger Package

The snapshot engine, its pure calculations, the bounded undo history
and the read-only projections presentation layers render.
"""

from kameeti.ledger import calculations, projection
from kameeti.ledger.errors import (
    DuplicatePaymentError,
    DurationBelowDrawsError,
    EntityNotFoundError,
    HalfShareNotAllowedError,
    LedgerRejectedError,
    LedgerValidationError,
    RejectionReason,
)
from kameeti.ledger.history import SnapshotHistory
from kameeti.ledger.engine import LedgerEngine, load_snapshot, snapshot_counts

__all__ = [
    "calculations",
    "projection",
    # Engine
    "LedgerEngine",
    "SnapshotHistory",
    "load_snapshot",
    "snapshot_counts",
    # Rejections
    "DuplicatePaymentError",
    "DurationBelowDrawsError",
    "EntityNotFoundError",
    "HalfShareNotAllowedError",
    "LedgerRejectedError",
    "LedgerValidationError",
    "RejectionReason",
]
