from __future__ import annotations

import json
from typing import Any, Dict, Optional

from ..core.constants import SETTINGS_ROW_ID
from ..core.exceptions import ConcurrencyConflict
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchone, load_json
from .model import SystemDefaults
from .repository import SettingsRepository

TABLE = "system_defaults"

_COLUMNS = (
    "grace_period_months",
    "grace_fee",
    "batch_format",
    "course_list",
    "notif_fee",
    "notif_attendance",
    "notif_system",
    "min_payment",
    "attendance_threshold",
    "currency",
    "version",
)


def _params(defaults: SystemDefaults) -> tuple:
    return (
        defaults.grace_period_months,
        defaults.grace_fee,
        defaults.batch_format,
        json.dumps(list(defaults.course_list)),
        int(defaults.notif_fee),
        int(defaults.notif_attendance),
        int(defaults.notif_system),
        defaults.min_payment,
        defaults.attendance_threshold,
        defaults.currency,
        defaults.version,
    )


class MySQLSettingsRepository(SettingsRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def fetch_row(self, table: str = TABLE) -> Optional[Dict[str, Any]]:
        """Raw row with decoded JSON, as delivered to change-feed handlers."""
        with db_cursor(self._conn_factory, operation="settings.fetch_row", entity=table, entity_id=SETTINGS_ROW_ID) as (_, cur):
            cur.execute(f"SELECT {', '.join(_COLUMNS)} FROM {TABLE} WHERE id=%s", (SETTINGS_ROW_ID,))
            r = fetchone(cur)
            if not r:
                return None
            r = dict(r)
            r["course_list"] = load_json(r.get("course_list"), [])
            return r

    def load(self) -> Optional[SystemDefaults]:
        row = self.fetch_row()
        return SystemDefaults.from_row(row) if row else None

    def insert(self, defaults: SystemDefaults) -> SystemDefaults:
        with db_cursor(self._conn_factory, operation="settings.insert", entity=TABLE, entity_id=SETTINGS_ROW_ID) as (_, cur):
            cur.execute(
                f"INSERT INTO {TABLE}(id, {', '.join(_COLUMNS)}) VALUES(%s, {', '.join(['%s'] * len(_COLUMNS))})",
                (SETTINGS_ROW_ID, *_params(defaults)),
            )
        return defaults

    def save(self, defaults: SystemDefaults, *, expected_version: int) -> SystemDefaults:
        assignments = ", ".join(f"{c}=%s" for c in _COLUMNS)
        with db_cursor(self._conn_factory, operation="settings.save", entity=TABLE, entity_id=SETTINGS_ROW_ID) as (_, cur):
            cur.execute(
                f"UPDATE {TABLE} SET {assignments} WHERE id=%s AND version=%s",
                (*_params(defaults), SETTINGS_ROW_ID, int(expected_version)),
            )
            if cur.rowcount == 0:
                raise ConcurrencyConflict(
                    "System defaults were changed by another process",
                    entity=TABLE,
                    entity_id=SETTINGS_ROW_ID,
                    expected_version=int(expected_version),
                )
        return defaults
