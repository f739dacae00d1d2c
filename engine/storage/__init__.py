"""Storage implementations of the ledger persistence interface.

- InMemoryLedgerStore: process-local, optimistic versioning (tests, local runs)
- PostgresLedgerStore: SQLAlchemy + row locks
"""

from .memory_store import InMemoryLedgerStore
from .postgres import PostgresConfig, PostgresLedgerStore
