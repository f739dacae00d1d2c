#!/usr/bin/env python3
"""Create the ledger tables.

Runs db/schema.sql against the database pointed to by DATABASE_URL.

Usage:
  python -m db.init_db

Requirements:
  - DATABASE_URL must be set
  - SQLAlchemy and a PostgreSQL driver installed
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Iterable

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"


def iter_sql_statements(sql: str) -> Iterable[str]:
    """Split a SQL script on top-level semicolons.

    Skips `--` comments and ignores semicolons inside single-quoted literals.
    Enough for schema.sql; dollar quoting is not supported.
    """
    statement: list[str] = []
    in_literal = False
    lines = sql.splitlines()

    for line in lines:
        i = 0
        while i < len(line):
            ch = line[i]
            if not in_literal and line.startswith("--", i):
                break
            if ch == "'":
                in_literal = not in_literal
            if ch == ";" and not in_literal:
                text = "".join(statement).strip()
                statement = []
                if text:
                    yield text
            else:
                statement.append(ch)
            i += 1
        statement.append("\n")

    tail = "".join(statement).strip()
    if tail:
        yield tail


def apply_schema(engine: Any, sql: str | None = None) -> int:
    """Execute every schema statement in one transaction. Returns the statement count."""
    from sqlalchemy import text

    script = SCHEMA_PATH.read_text(encoding="utf-8") if sql is None else sql
    statements = list(iter_sql_statements(script))
    with engine.begin() as conn:
        for stmt in statements:
            conn.execute(text(stmt))
    return len(statements)


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise SystemExit("DATABASE_URL is not set")

    try:
        from sqlalchemy import create_engine
    except Exception as exc:  # pragma: no cover
        raise SystemExit("SQLAlchemy is required to run db init: pip install SQLAlchemy psycopg2-binary") from exc

    engine = create_engine(database_url, echo=False)
    count = apply_schema(engine)
    logger.info(f"Ledger schema applied ({count} statements)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
