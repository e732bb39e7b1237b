from __future__ import annotations

import logging
from collections import Counter
from datetime import date
from typing import Iterable, Mapping, Optional, Sequence

from ..common.datetime_utils import month_bounds
from ..common.validators import optional_text, require_int_range
from ..core.constants import MAX_HOUR, MAX_PRESENT_HOURS_PER_DAY, MIN_HOUR
from ..core.enums import REASON_REQUIRED_STATUSES, AttendanceStatus
from ..core.exceptions import ConcurrencyConflict, RecordNotFound, ValidationError
from .model import DailyAttendanceRecord, HourlyAttendanceEntry, LeaveReason, MonthlyAttendanceSummary
from .repository import AttendanceRepository, SlotSelectionRepository

logger = logging.getLogger(__name__)

ALL_HOURS: tuple[int, ...] = tuple(range(MIN_HOUR, MAX_HOUR + 1))


def _record_id(student_id: str, work_date: date) -> str:
    return f"{student_id}:{work_date.isoformat()}"


def fold_summary(
    student_id: str,
    year: int,
    month: int,
    records: Iterable[DailyAttendanceRecord],
    selections: Optional[Mapping[date, tuple[int, ...]]] = None,
) -> MonthlyAttendanceSummary:
    """Count statuses over all recorded hours that fall in the day's selection.

    Pure counting, so the result does not depend on record or write order.
    Hours without an entry never reach the counter and do not add to
    ``total_hours``. A day without a stored selection counts all hours; a
    stored empty selection counts none.
    """
    selections = selections or {}
    counts: Counter[AttendanceStatus] = Counter()
    for record in records:
        selected = set(selections[record.work_date] if record.work_date in selections else ALL_HOURS)
        for entry in record.hourly_status:
            if entry.hour in selected:
                counts[entry.status] += 1

    total = sum(counts.values())
    present = counts[AttendanceStatus.PRESENT]
    return MonthlyAttendanceSummary(
        student_id=student_id,
        year=int(year),
        month=int(month),
        present=present,
        absent=counts[AttendanceStatus.ABSENT],
        late=counts[AttendanceStatus.LATE],
        leave=counts[AttendanceStatus.LEAVE],
        check_in=counts[AttendanceStatus.IN],
        check_out=counts[AttendanceStatus.OUT],
        exam=counts[AttendanceStatus.EXAM],
        medical=counts[AttendanceStatus.MEDICAL],
        total_hours=total,
        attendance_percentage=round(present * 100 / total, 2) if total else 0.0,
    )


class AttendanceLedger:
    """Use case: per-day hourly attendance with optimistic concurrency."""

    def __init__(
        self,
        attendance: AttendanceRepository,
        slots: SlotSelectionRepository | None = None,
        *,
        max_present_hours: int = MAX_PRESENT_HOURS_PER_DAY,
    ):
        self._attendance = attendance
        self._slots = slots
        self._max_present_hours = int(max_present_hours)

    @staticmethod
    def validate_entry(entry: HourlyAttendanceEntry) -> HourlyAttendanceEntry:
        hour = require_int_range(entry.hour, "hour", MIN_HOUR, MAX_HOUR)
        try:
            status = AttendanceStatus(entry.status)
        except ValueError:
            raise ValidationError(f"Unknown attendance status: {entry.status!r}", entity="hourly_attendance")

        reason = optional_text(entry.reason)
        if status in REASON_REQUIRED_STATUSES and not reason:
            raise ValidationError(f"A reason is required for {status.value}", entity="hourly_attendance", entity_id=hour)

        return HourlyAttendanceEntry(hour=hour, status=status, time=optional_text(entry.time), reason=reason)

    def get_record(self, student_id: str, work_date: date) -> Optional[DailyAttendanceRecord]:
        return self._attendance.get(student_id, work_date)

    def _load_for_write(self, student_id: str, work_date: date, expected_version: int) -> DailyAttendanceRecord:
        if isinstance(expected_version, bool) or int(expected_version) < 0:
            raise ValidationError("expected_version must be >= 0", entity="daily_attendance")

        current = self._attendance.get(student_id, work_date)
        actual = current.version if current else 0
        if actual != int(expected_version):
            logger.warning(
                "attendance conflict student=%s date=%s expected=%s actual=%s",
                student_id, work_date, expected_version, actual,
            )
            raise ConcurrencyConflict(
                "Attendance record was modified by someone else",
                entity="daily_attendance",
                entity_id=_record_id(student_id, work_date),
                expected_version=int(expected_version),
                actual_version=actual,
            )
        return current or DailyAttendanceRecord(student_id=student_id, work_date=work_date)

    def _store(self, record: DailyAttendanceRecord, expected_version: int) -> DailyAttendanceRecord:
        saved = self._attendance.save(record, expected_version=int(expected_version))
        logger.info(
            "attendance saved student=%s date=%s version=%s hours=%s",
            saved.student_id, saved.work_date, saved.version, len(saved.hourly_status),
        )
        return saved

    def upsert_hour(
        self,
        student_id: str,
        work_date: date,
        entry: HourlyAttendanceEntry,
        expected_version: int,
    ) -> DailyAttendanceRecord:
        entry = self.validate_entry(entry)
        current = self._load_for_write(student_id, work_date, expected_version)

        updated = current.with_entry(entry)
        if updated.count(AttendanceStatus.PRESENT) > self._max_present_hours:
            raise ValidationError(
                f"Cannot mark more than {self._max_present_hours} hours as present in one day",
                entity="daily_attendance",
                entity_id=_record_id(student_id, work_date),
            )
        return self._store(updated, expected_version)

    def clear_hour(self, student_id: str, work_date: date, hour: int, expected_version: int) -> DailyAttendanceRecord:
        hour = require_int_range(hour, "hour", MIN_HOUR, MAX_HOUR)
        current = self._load_for_write(student_id, work_date, expected_version)
        if current.version == 0:
            raise RecordNotFound("No attendance record for this day", entity="daily_attendance", entity_id=_record_id(student_id, work_date))
        return self._store(current.without_hour(hour), expected_version)

    def clear_day(self, student_id: str, work_date: date, expected_version: int) -> DailyAttendanceRecord:
        current = self._load_for_write(student_id, work_date, expected_version)
        if current.version == 0:
            raise RecordNotFound("No attendance record for this day", entity="daily_attendance", entity_id=_record_id(student_id, work_date))
        return self._store(current.cleared(), expected_version)

    def reset_hour_for_date(self, work_date: date, hour: int) -> int:
        """Clear one hour for every student on ``work_date``.

        Each record is written with its own version check; a conflict on one
        record stops the sweep and propagates, earlier records stay cleared.
        """
        hour = require_int_range(hour, "hour", MIN_HOUR, MAX_HOUR)
        touched = 0
        for record in self._attendance.list_for_date(work_date):
            if record.entry_for(hour) is None:
                continue
            self._store(record.without_hour(hour), record.version)
            touched += 1
        return touched

    def set_selected_hours(self, student_id: str, work_date: date, hours: Sequence[int]) -> tuple[int, ...]:
        if self._slots is None:
            raise ValidationError("Slot selection is not configured")
        selected = tuple(sorted({require_int_range(h, "hour", MIN_HOUR, MAX_HOUR) for h in hours}))
        self._slots.set_selected_hours(student_id, work_date, selected)
        return selected

    def get_selected_hours(self, student_id: str, work_date: date) -> tuple[int, ...]:
        if self._slots is None:
            return ALL_HOURS
        selected = self._slots.get_selected_hours(student_id, work_date)
        return ALL_HOURS if selected is None else selected

    def _selections(self, student_id: str, start: date, end: date) -> Mapping[date, tuple[int, ...]]:
        if self._slots is None:
            return {}
        return self._slots.list_for_student(student_id, start=start, end=end)

    def get_monthly_summary(self, student_id: str, year: int, month: int) -> MonthlyAttendanceSummary:
        start, end = month_bounds(year, month)
        records = self._attendance.list_for_student(student_id, start=start, end=end)
        return fold_summary(student_id, year, month, records, self._selections(student_id, start, end))

    def get_monthly_summaries(self, year: int, month: int) -> list[MonthlyAttendanceSummary]:
        start, end = month_bounds(year, month)
        by_student: dict[str, list[DailyAttendanceRecord]] = {}
        for record in self._attendance.list_between(start=start, end=end):
            by_student.setdefault(record.student_id, []).append(record)

        return [
            fold_summary(student_id, year, month, records, self._selections(student_id, start, end))
            for student_id, records in sorted(by_student.items())
        ]

    def list_leave_reasons(self, student_id: str, year: int, month: int) -> list[LeaveReason]:
        start, end = month_bounds(year, month)
        reasons = [
            LeaveReason(work_date=record.work_date, hour=entry.hour, reason=entry.reason.strip())
            for record in self._attendance.list_for_student(student_id, start=start, end=end)
            for entry in record.hourly_status
            if entry.status == AttendanceStatus.LEAVE and entry.reason and entry.reason.strip()
        ]
        reasons.sort(key=lambda r: (r.work_date, r.hour))
        return reasons

    def has_records(self, student_id: str) -> bool:
        return self._attendance.has_any_for_student(student_id)
