from __future__ import annotations

import json
from datetime import date
from typing import Any, Dict, Mapping, Optional, Sequence

from ..core.enums import AttendanceStatus
from ..core.exceptions import ConcurrencyConflict, DuplicateRecord
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, load_json
from .model import DailyAttendanceRecord, HourlyAttendanceEntry
from .repository import AttendanceRepository, SlotSelectionRepository

_SELECT = "SELECT student_id, work_date, hourly_status, version FROM daily_attendance"


def _to_record(r: Dict[str, Any]) -> DailyAttendanceRecord:
    entries = [
        HourlyAttendanceEntry(
            hour=int(h["hour"]),
            status=AttendanceStatus(h["status"]),
            time=h.get("time"),
            reason=h.get("reason"),
        )
        for h in load_json(r.get("hourly_status"), [])
    ]
    return DailyAttendanceRecord(
        student_id=str(r["student_id"]),
        work_date=r["work_date"],
        hourly_status=tuple(sorted(entries, key=lambda e: e.hour)),
        version=int(r["version"]),
    )


def _dump_entries(record: DailyAttendanceRecord) -> str:
    return json.dumps([e.to_dict() for e in record.hourly_status])


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, student_id: str, work_date: date) -> Optional[DailyAttendanceRecord]:
        with db_cursor(self._conn_factory, operation="attendance.get", entity="daily_attendance", entity_id=student_id) as (_, cur):
            cur.execute(f"{_SELECT} WHERE student_id=%s AND work_date=%s", (student_id, work_date))
            r = fetchone(cur)
            return _to_record(r) if r else None

    def save(self, record: DailyAttendanceRecord, *, expected_version: int) -> DailyAttendanceRecord:
        entity_id = f"{record.student_id}:{record.work_date.isoformat()}"
        try:
            with db_cursor(self._conn_factory, operation="attendance.save", entity="daily_attendance", entity_id=entity_id) as (_, cur):
                if expected_version == 0:
                    cur.execute(
                        """
                        INSERT INTO daily_attendance(student_id, work_date, hourly_status, version)
                        VALUES(%s,%s,%s,%s)
                        """,
                        (record.student_id, record.work_date, _dump_entries(record), record.version),
                    )
                    return record

                cur.execute(
                    """
                    UPDATE daily_attendance
                    SET hourly_status=%s, version=%s
                    WHERE student_id=%s AND work_date=%s AND version=%s
                    """,
                    (_dump_entries(record), record.version, record.student_id, record.work_date, int(expected_version)),
                )
                if cur.rowcount > 0:
                    return record

                cur.execute(
                    "SELECT version FROM daily_attendance WHERE student_id=%s AND work_date=%s",
                    (record.student_id, record.work_date),
                )
                current = fetchone(cur)
                raise ConcurrencyConflict(
                    "Attendance record was modified by someone else",
                    entity="daily_attendance",
                    entity_id=entity_id,
                    expected_version=int(expected_version),
                    actual_version=int(current["version"]) if current else 0,
                )
        except DuplicateRecord as exc:
            # Another writer created the row between our read and insert.
            raise ConcurrencyConflict(
                "Attendance record was created by someone else",
                entity="daily_attendance",
                entity_id=entity_id,
                expected_version=0,
            ) from exc

    def list_for_student(self, student_id: str, *, start: date, end: date) -> Sequence[DailyAttendanceRecord]:
        with db_cursor(self._conn_factory, operation="attendance.list_for_student", entity="daily_attendance", entity_id=student_id) as (_, cur):
            cur.execute(
                f"{_SELECT} WHERE student_id=%s AND work_date BETWEEN %s AND %s ORDER BY work_date",
                (student_id, start, end),
            )
            return [_to_record(r) for r in fetchall(cur)]

    def list_for_date(self, work_date: date) -> Sequence[DailyAttendanceRecord]:
        with db_cursor(self._conn_factory, operation="attendance.list_for_date", entity="daily_attendance") as (_, cur):
            cur.execute(f"{_SELECT} WHERE work_date=%s ORDER BY student_id", (work_date,))
            return [_to_record(r) for r in fetchall(cur)]

    def list_between(self, *, start: date, end: date) -> Sequence[DailyAttendanceRecord]:
        with db_cursor(self._conn_factory, operation="attendance.list_between", entity="daily_attendance") as (_, cur):
            cur.execute(
                f"{_SELECT} WHERE work_date BETWEEN %s AND %s ORDER BY student_id, work_date",
                (start, end),
            )
            return [_to_record(r) for r in fetchall(cur)]

    def has_any_for_student(self, student_id: str) -> bool:
        with db_cursor(self._conn_factory, operation="attendance.has_any", entity="daily_attendance", entity_id=student_id) as (_, cur):
            cur.execute("SELECT 1 AS found FROM daily_attendance WHERE student_id=%s LIMIT 1", (student_id,))
            return fetchone(cur) is not None


class MySQLSlotSelectionRepository(SlotSelectionRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_selected_hours(self, student_id: str, work_date: date) -> Optional[tuple[int, ...]]:
        with db_cursor(self._conn_factory, operation="slots.get", entity="selected_slots", entity_id=student_id) as (_, cur):
            cur.execute(
                "SELECT selected_hours FROM selected_slots WHERE student_id=%s AND work_date=%s",
                (student_id, work_date),
            )
            r = fetchone(cur)
            if not r:
                return None
            return tuple(sorted(int(h) for h in load_json(r["selected_hours"], [])))

    def set_selected_hours(self, student_id: str, work_date: date, hours: tuple[int, ...]) -> None:
        with db_cursor(self._conn_factory, operation="slots.set", entity="selected_slots", entity_id=student_id) as (_, cur):
            cur.execute(
                """
                INSERT INTO selected_slots(student_id, work_date, selected_hours)
                VALUES(%s,%s,%s)
                ON DUPLICATE KEY UPDATE selected_hours=VALUES(selected_hours)
                """,
                (student_id, work_date, json.dumps(list(hours))),
            )

    def list_for_student(self, student_id: str, *, start: date, end: date) -> Mapping[date, tuple[int, ...]]:
        with db_cursor(self._conn_factory, operation="slots.list_for_student", entity="selected_slots", entity_id=student_id) as (_, cur):
            cur.execute(
                """
                SELECT work_date, selected_hours FROM selected_slots
                WHERE student_id=%s AND work_date BETWEEN %s AND %s
                """,
                (student_id, start, end),
            )
            return {
                r["work_date"]: tuple(sorted(int(h) for h in load_json(r["selected_hours"], [])))
                for r in fetchall(cur)
            }
