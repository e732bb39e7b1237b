from __future__ import annotations

from datetime import date
from typing import Mapping, Optional, Protocol, Sequence

from .model import DailyAttendanceRecord


class AttendanceRepository(Protocol):
    def get(self, student_id: str, work_date: date) -> Optional[DailyAttendanceRecord]:
        raise NotImplementedError

    def save(self, record: DailyAttendanceRecord, *, expected_version: int) -> DailyAttendanceRecord:
        """Store ``record`` only if the stored version equals ``expected_version``.

        A missing row counts as version 0. Raises ``ConcurrencyConflict``
        otherwise, leaving the stored row untouched.
        """

        raise NotImplementedError

    def list_for_student(self, student_id: str, *, start: date, end: date) -> Sequence[DailyAttendanceRecord]:
        raise NotImplementedError

    def list_for_date(self, work_date: date) -> Sequence[DailyAttendanceRecord]:
        raise NotImplementedError

    def list_between(self, *, start: date, end: date) -> Sequence[DailyAttendanceRecord]:
        raise NotImplementedError

    def has_any_for_student(self, student_id: str) -> bool:
        raise NotImplementedError


class SlotSelectionRepository(Protocol):
    """Which class-hours count toward a student's expected hours on a day."""

    def get_selected_hours(self, student_id: str, work_date: date) -> Optional[tuple[int, ...]]:
        raise NotImplementedError

    def set_selected_hours(self, student_id: str, work_date: date, hours: tuple[int, ...]) -> None:
        raise NotImplementedError

    def list_for_student(self, student_id: str, *, start: date, end: date) -> Mapping[date, tuple[int, ...]]:
        raise NotImplementedError
