from __future__ import annotations

from typing import Any, Callable, Mapping, Optional, Protocol


class _Absent:
    """Marker handed to read-modify-write callbacks when no document exists."""

    _instance: "_Absent | None" = None

    def __new__(cls) -> "_Absent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()

LedgerDocument = dict[str, Any]
ModifyFn = Callable[["Mapping[str, Any] | _Absent"], LedgerDocument]


class LedgerStoreError(RuntimeError):
    """Store failure (transport, serialization, backend error)."""


class StoreConflictError(LedgerStoreError):
    """A concurrent writer won; nothing was written."""


class LedgerDocumentStore(Protocol):
    def atomic_read_modify_write(self, key: str, fn: ModifyFn) -> LedgerDocument:
        """Read the document for ``key``, pass it (or ABSENT) to ``fn`` and persist the result.

        All-or-nothing: either ``fn``'s document is stored as a whole or nothing is.
        Returns the persisted document.
        """

    def get_document(self, key: str) -> Optional[LedgerDocument]:
        """Fetch the current document for ``key`` (None when absent)."""

    def ping(self) -> bool:
        """Return True when the backing store is reachable."""
