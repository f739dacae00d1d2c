from __future__ import annotations

import copy
import logging
import threading
from typing import Any, Optional

from engine.persistence.interfaces import (
    ABSENT,
    LedgerDocument,
    LedgerDocumentStore,
    ModifyFn,
    StoreConflictError,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5


class InMemoryLedgerStore(LedgerDocumentStore):
    """Process-local store with optimistic concurrency.

    Each document carries a version. A read-modify-write snapshots the document
    and its version, runs the callback without holding the lock, then commits
    only if the version is unchanged; otherwise the callback is re-run against
    the fresh document, up to ``max_attempts`` times.
    """

    def __init__(self, *, max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self._documents: dict[str, tuple[int, LedgerDocument]] = {}
        self._lock = threading.Lock()

    def _snapshot(self, key: str) -> tuple[int, Any]:
        with self._lock:
            entry = self._documents.get(key)
            if entry is None:
                return 0, ABSENT
            version, document = entry
            return version, copy.deepcopy(document)

    def atomic_read_modify_write(self, key: str, fn: ModifyFn) -> LedgerDocument:
        for attempt in range(1, self.max_attempts + 1):
            version, current = self._snapshot(key)
            updated = fn(current)
            if not isinstance(updated, dict):
                raise TypeError("read-modify-write callback must return a dict document")

            with self._lock:
                entry = self._documents.get(key)
                stored_version = 0 if entry is None else entry[0]
                if stored_version == version:
                    self._documents[key] = (version + 1, copy.deepcopy(updated))
                    return copy.deepcopy(updated)

            logger.debug(f"Write conflict on {key} (attempt {attempt}/{self.max_attempts})")

        raise StoreConflictError(f"Gave up on {key} after {self.max_attempts} conflicting attempts")

    def get_document(self, key: str) -> Optional[LedgerDocument]:
        _, document = self._snapshot(key)
        return None if document is ABSENT else document

    def put_document(self, key: str, document: LedgerDocument) -> None:
        """Overwrite a document unconditionally (seeding, tests)."""
        with self._lock:
            entry = self._documents.get(key)
            version = 0 if entry is None else entry[0]
            self._documents[key] = (version + 1, copy.deepcopy(document))

    def version(self, key: str) -> int:
        with self._lock:
            entry = self._documents.get(key)
            return 0 if entry is None else entry[0]

    def ping(self) -> bool:
        return True
