from __future__ import annotations

import json
import logging
from typing import Any, Optional

from engine.persistence.interfaces import (
    ABSENT,
    LedgerDocument,
    LedgerDocumentStore,
    LedgerStoreError,
    ModifyFn,
    StoreConflictError,
)
from engine.storage.postgres.config import PostgresConfig

logger = logging.getLogger(__name__)


def _decode_document(raw: Any) -> LedgerDocument:
    # psycopg2 decodes JSONB to dict; other drivers may hand back text
    if isinstance(raw, (str, bytes)):
        raw = json.loads(raw)
    if not isinstance(raw, dict):
        return {}
    return raw


class PostgresLedgerStore(LedgerDocumentStore):
    """PostgreSQL-backed ledger documents.

    One row per account in ``ledger_documents``. A read-modify-write runs in a
    single transaction holding a row lock (``SELECT ... FOR UPDATE``), so
    concurrent writers for the same account are serialized by the database.
    A missing row is created with ``ON CONFLICT DO NOTHING``; losing that race
    raises ``StoreConflictError`` and nothing is written.
    """

    def __init__(self, *, config: PostgresConfig) -> None:
        self._config = config
        self._engine: Any | None = None

    def _require_sqlalchemy(self) -> tuple[Any, Any]:
        try:
            from sqlalchemy import create_engine, text  # type: ignore[import-not-found]
        except Exception as exc:  # pragma: no cover
            raise RuntimeError("SQLAlchemy is required for PostgresLedgerStore. Install the project dependencies.") from exc

        return create_engine, text

    def _get_engine(self) -> Any:
        if self._engine is None:
            create_engine, _ = self._require_sqlalchemy()
            # Do not log the URL (it may contain secrets).
            self._engine = create_engine(self._config.database_url, echo=False, pool_pre_ping=True)
        return self._engine

    def _engine_and_text(self) -> tuple[Any, Any]:
        # A bad URL or a missing driver surfaces here, before any connection.
        try:
            engine = self._get_engine()
            _, text = self._require_sqlalchemy()
        except Exception as exc:
            raise LedgerStoreError(f"Ledger store unavailable: {type(exc).__name__}") from exc
        return engine, text

    def atomic_read_modify_write(self, key: str, fn: ModifyFn) -> LedgerDocument:
        engine, text = self._engine_and_text()

        select_stmt = text(
            """
            SELECT document
            FROM ledger_documents
            WHERE account_key = :key
            FOR UPDATE
            """
        )
        insert_stmt = text(
            """
            INSERT INTO ledger_documents (account_key, document, version, updated_at)
            VALUES (:key, CAST(:document AS JSONB), 1, NOW())
            ON CONFLICT (account_key) DO NOTHING
            """
        )
        update_stmt = text(
            """
            UPDATE ledger_documents
            SET document = CAST(:document AS JSONB),
                version = version + 1,
                updated_at = NOW()
            WHERE account_key = :key
            """
        )

        try:
            with engine.begin() as conn:
                row = conn.execute(select_stmt, {"key": key}).fetchone()
                current = ABSENT if row is None else _decode_document(row[0])

                updated = fn(current)
                if not isinstance(updated, dict):
                    raise TypeError("read-modify-write callback must return a dict document")
                payload = {"key": key, "document": json.dumps(updated)}

                if row is None:
                    result = conn.execute(insert_stmt, payload)
                    if result.rowcount == 0:
                        # Raising inside begin() rolls the transaction back.
                        raise StoreConflictError(f"Concurrent create for ledger {key}")
                else:
                    conn.execute(update_stmt, payload)
        except (LedgerStoreError, TypeError):
            raise
        except Exception as exc:
            raise LedgerStoreError(f"Ledger write failed for {key}: {type(exc).__name__}") from exc

        return updated

    def get_document(self, key: str) -> Optional[LedgerDocument]:
        engine, text = self._engine_and_text()

        stmt = text(
            """
            SELECT document
            FROM ledger_documents
            WHERE account_key = :key
            """
        )

        try:
            with engine.begin() as conn:
                row = conn.execute(stmt, {"key": key}).fetchone()
        except Exception as exc:
            raise LedgerStoreError(f"Ledger read failed for {key}: {type(exc).__name__}") from exc

        return None if row is None else _decode_document(row[0])

    def ping(self) -> bool:
        try:
            engine, text = self._engine_and_text()
            with engine.begin() as conn:
                conn.execute(text("SELECT 1"))
        except Exception as exc:
            logger.warning(f"Ledger store ping failed: {type(exc).__name__}")
            return False
        return True
