from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Iterable, Mapping

from .connection import DatabaseConnection, DBConfig

logger = logging.getLogger(__name__)

_CREATE_DB = re.compile(r"(?im)^\s*CREATE\s+DATABASE\b.*?;\s*$")
_USE_DB = re.compile(r"(?im)^\s*USE\b.*?;\s*$")


def _factory(db_config: Mapping[str, Any]) -> DatabaseConnection:
    # Not the shared instance: bootstrap may run before the app's container exists.
    return DatabaseConnection(DBConfig.from_dict(db_config))


def iter_sql_statements(sql: str) -> Iterable[str]:
    """Split a schema file on ';' outside quotes; '--' comment lines are dropped."""
    buf: list[str] = []
    quote: str | None = None
    escape = False

    for line in sql.splitlines(keepends=True):
        if quote is None and line.lstrip().startswith("--"):
            continue
        for ch in line:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch in ("'", '"'):
                if quote is None:
                    quote = ch
                elif quote == ch:
                    quote = None
            elif ch == ";" and quote is None:
                stmt = "".join(buf).strip()
                buf.clear()
                if stmt:
                    yield stmt
                continue
            buf.append(ch)

    tail = "".join(buf).strip()
    if tail:
        yield tail


def ensure_database_exists(db_config: Mapping[str, Any]) -> None:
    factory = _factory(db_config)
    conn = factory.connect(with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(
            f"CREATE DATABASE IF NOT EXISTS `{factory.config.database}` "
            "CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
        conn.commit()
    finally:
        conn.close()


def apply_schema(db_config: Mapping[str, Any], *, schema_path: str | Path) -> None:
    """Create the database if needed and run every statement of ``schema_path``.

    The file's own CREATE DATABASE / USE lines are ignored so the configured
    database name always wins.
    """
    ensure_database_exists(db_config)
    sql = Path(schema_path).read_text(encoding="utf-8")
    sql = _USE_DB.sub("", _CREATE_DB.sub("", sql))

    factory = _factory(db_config)
    conn = factory.connect()
    try:
        cur = conn.cursor()
        for stmt in iter_sql_statements(sql):
            cur.execute(stmt)
        conn.commit()
    finally:
        conn.close()
    logger.info("schema applied to %s@%s/%s", factory.config.user, factory.config.host, factory.config.database)


def list_tables(db_config: Mapping[str, Any]) -> list[str]:
    conn = _factory(db_config).connect()
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
    finally:
        conn.close()
