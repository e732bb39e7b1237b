from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Mapping, Optional

from ..core.enums import AttendanceStatus
from ..core.exceptions import ValidationError


@dataclass(frozen=True)
class HourlyAttendanceEntry:
    """One class-hour of a student's day."""

    hour: int
    status: AttendanceStatus
    time: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "HourlyAttendanceEntry":
        try:
            status = AttendanceStatus(data["status"])
        except KeyError:
            raise ValidationError("status is required", entity="hourly_attendance")
        except ValueError:
            raise ValidationError(f"Unknown attendance status: {data.get('status')!r}", entity="hourly_attendance")
        if "hour" not in data:
            raise ValidationError("hour is required", entity="hourly_attendance")
        return cls(hour=data["hour"], status=status, time=data.get("time") or None, reason=data.get("reason") or None)

    def to_dict(self) -> dict:
        return {"hour": self.hour, "status": self.status.value, "time": self.time, "reason": self.reason}


@dataclass(frozen=True)
class DailyAttendanceRecord:
    """Domain entity: hourly attendance of one student on one day.

    Identity is (student_id, work_date); ``version`` is the optimistic
    concurrency token and grows by one on every accepted write.
    """

    student_id: str
    work_date: date
    hourly_status: tuple[HourlyAttendanceEntry, ...] = ()
    version: int = 0

    def entry_for(self, hour: int) -> Optional[HourlyAttendanceEntry]:
        for entry in self.hourly_status:
            if entry.hour == hour:
                return entry
        return None

    def with_entry(self, entry: HourlyAttendanceEntry) -> "DailyAttendanceRecord":
        others = [e for e in self.hourly_status if e.hour != entry.hour]
        entries = tuple(sorted([*others, entry], key=lambda e: e.hour))
        return replace(self, hourly_status=entries, version=self.version + 1)

    def without_hour(self, hour: int) -> "DailyAttendanceRecord":
        entries = tuple(e for e in self.hourly_status if e.hour != hour)
        return replace(self, hourly_status=entries, version=self.version + 1)

    def cleared(self) -> "DailyAttendanceRecord":
        return replace(self, hourly_status=(), version=self.version + 1)

    def count(self, status: AttendanceStatus) -> int:
        return sum(1 for e in self.hourly_status if e.status == status)

    def to_dict(self) -> dict:
        return {
            "student_id": self.student_id,
            "date": self.work_date.isoformat(),
            "hourly_status": [e.to_dict() for e in self.hourly_status],
            "version": self.version,
        }


@dataclass(frozen=True)
class MonthlyAttendanceSummary:
    """Read-model folded from daily records; never stored."""

    student_id: str
    year: int
    month: int
    present: int = 0
    absent: int = 0
    late: int = 0
    leave: int = 0
    check_in: int = 0
    check_out: int = 0
    exam: int = 0
    medical: int = 0
    total_hours: int = 0
    attendance_percentage: float = 0.0

    def count(self, status: AttendanceStatus) -> int:
        return self.counts()[status.value]

    def counts(self) -> dict[str, int]:
        return {
            AttendanceStatus.PRESENT.value: self.present,
            AttendanceStatus.ABSENT.value: self.absent,
            AttendanceStatus.LATE.value: self.late,
            AttendanceStatus.LEAVE.value: self.leave,
            AttendanceStatus.IN.value: self.check_in,
            AttendanceStatus.OUT.value: self.check_out,
            AttendanceStatus.EXAM.value: self.exam,
            AttendanceStatus.MEDICAL.value: self.medical,
        }

    def to_dict(self) -> dict:
        return {
            "student_id": self.student_id,
            "year": self.year,
            "month": self.month,
            "counts": self.counts(),
            "total_hours": self.total_hours,
            "attendance_percentage": self.attendance_percentage,
        }


@dataclass(frozen=True)
class LeaveReason:
    work_date: date
    hour: int
    reason: str

    def to_dict(self) -> dict:
        return {"date": self.work_date.isoformat(), "hour": self.hour, "reason": self.reason}
