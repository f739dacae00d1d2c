"""PostgreSQL ledger storage.

Notes
- We avoid logging connection URLs to prevent accidental secret leakage.
- The schema lives in db/schema.sql (apply with `python -m db.init_db`).
"""

from .config import PostgresConfig
from .stores import PostgresLedgerStore
