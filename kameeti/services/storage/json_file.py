"""
JSON File Storage Implementation

DESIGN DECISION: A single JSON document is the storage backend because:
1. The ledger is small (a handful of committees per household)
2. The document is human-readable and easy to back up
3. The layout matches what browser-based versions kept in local storage

TRADEOFFS:
- Whole-document rewrite on every change (fine at this scale)
- No concurrent writers (the engine is single-threaded anyway)

Writes go to a temporary file that replaces the target, so a crash
mid-write never leaves a half-written document behind.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional, Union
from uuid import UUID

from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from kameeti.models.audit import AuditEvent
from kameeti.services.storage.interface import (
    AuditStorageInterface,
    CorruptDataError,
    LedgerStorageInterface,
    StorageError,
)


class JsonFileLedgerStorage(LedgerStorageInterface):
    """
    Ledger snapshot stored as one JSON file.

    Transient OS errors on write are retried with exponential backoff.
    """

    def __init__(
        self,
        path: Union[str, Path],
        write_attempts: int = 3,
        max_wait_seconds: float = 2.0,
    ):
        self._path = Path(path)
        self._write_attempts = write_attempts
        self._max_wait_seconds = max_wait_seconds

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Optional[dict]:
        if not self._path.exists():
            return None
        try:
            with self._path.open("r", encoding="utf-8") as fh:
                return json.load(fh)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CorruptDataError(f"Invalid JSON in {self._path}: {e}") from e
        except OSError as e:
            raise StorageError(f"Could not read {self._path}: {e}") from e

    def save(self, document: dict) -> None:
        retrying = Retrying(
            stop=stop_after_attempt(self._write_attempts),
            wait=wait_exponential(multiplier=0.1, max=self._max_wait_seconds),
            retry=retry_if_exception_type(OSError),
        )
        try:
            for attempt in retrying:
                with attempt:
                    self._write(document)
        except RetryError as e:
            cause = e.last_attempt.exception()
            raise StorageError(f"Could not write {self._path}: {cause}") from cause
        except (TypeError, ValueError) as e:
            raise StorageError(f"Snapshot is not JSON serializable: {e}") from e

    def _write(self, document: dict) -> None:
        """Write to a sibling temp file, then atomically replace the target."""
        directory = self._path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=directory
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self._path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Keeps the last saved document in memory. Useful for tests and embedding."""

    def __init__(self, document: Optional[dict] = None):
        self._document = document
        self.save_count = 0

    @property
    def document(self) -> Optional[dict]:
        return self._document

    def load(self) -> Optional[dict]:
        return self._document

    def save(self, document: dict) -> None:
        # Round-trip through JSON so callers never share structure with us
        self._document = json.loads(json.dumps(document))
        self.save_count += 1


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only in-process audit trail."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        return [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self._events[-limit:])) if limit > 0 else []
