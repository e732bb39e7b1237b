from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Dict, List, Optional

import mysql.connector
from mysql.connector import errorcode

from ..core.exceptions import DuplicateRecord, StoreUnavailable
from .connection import DatabaseConnection

logger = logging.getLogger(__name__)


def is_duplicate_key(exc: mysql.connector.Error) -> bool:
    return getattr(exc, "errno", None) == errorcode.ER_DUP_ENTRY


@contextmanager
def db_cursor(
    conn_factory: DatabaseConnection,
    *,
    operation: str,
    entity: Optional[str] = None,
    entity_id: Any = None,
    dictionary: bool = True,
):
    """Open a short-lived connection, commit on success, roll back on error.

    Connector failures are translated into ``StoreUnavailable`` (or
    ``DuplicateRecord`` for unique-key violations) carrying the operation and
    entity so callers can decide on retry/backoff.
    """
    try:
        conn = conn_factory.connect()
    except mysql.connector.Error as exc:
        logger.error("store connect failed op=%s entity=%s id=%s: %s", operation, entity, entity_id, exc)
        raise StoreUnavailable(str(exc), operation=operation, entity=entity, entity_id=entity_id) from exc

    try:
        cur = conn.cursor(dictionary=dictionary)
        try:
            yield conn, cur
            conn.commit()
        finally:
            cur.close()
    except mysql.connector.IntegrityError as exc:
        conn.rollback()
        if is_duplicate_key(exc):
            raise DuplicateRecord(str(exc), entity=entity, entity_id=entity_id) from exc
        raise StoreUnavailable(str(exc), operation=operation, entity=entity, entity_id=entity_id) from exc
    except mysql.connector.Error as exc:
        try:
            conn.rollback()
        except mysql.connector.Error:
            logger.warning("rollback failed op=%s entity=%s id=%s", operation, entity, entity_id)
        logger.error("store call failed op=%s entity=%s id=%s: %s", operation, entity, entity_id, exc)
        raise StoreUnavailable(str(exc), operation=operation, entity=entity, entity_id=entity_id) from exc
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def fetchone(cur) -> Optional[Dict[str, Any]]:
    row = cur.fetchone()
    return row if row else None


def fetchall(cur) -> List[Dict[str, Any]]:
    rows = cur.fetchall()
    return list(rows or [])


def load_json(value: Any, default: Any) -> Any:
    """Normalize JSON columns across connector implementations.

    mysql-connector can return JSON as:
    - str / bytes (pure python connector)
    - already decoded list/dict
    """

    if value is None:
        return default
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    if isinstance(value, str):
        value = value.strip()
        return json.loads(value) if value else default
    return value


def as_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))
