"""Persistence boundary for ledger documents.

A store holds one JSON-like document per account and must offer an atomic
read-modify-write. Implementations live in ``engine.storage``.
"""

from .interfaces import (
    ABSENT,
    LedgerDocument,
    LedgerDocumentStore,
    LedgerStoreError,
    ModifyFn,
    StoreConflictError,
)
