from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from ..attendance.model import LeaveReason, MonthlyAttendanceSummary
from ..fees.model import FeeRecord


@dataclass(frozen=True)
class MonthlyReportRequest:
    """Which student and month a report is for; passed explicitly by callers."""

    student_id: str
    year: int
    month: int


@dataclass(frozen=True)
class MonthlyReport:
    request: MonthlyReportRequest
    attendance: MonthlyAttendanceSummary
    fee: Optional[FeeRecord]
    leave_reasons: tuple[LeaveReason, ...]
    attendance_threshold: int
    meets_attendance_threshold: bool

    def to_dict(self) -> dict:
        return {
            "student_id": self.request.student_id,
            "year": self.request.year,
            "month": self.request.month,
            "attendance": self.attendance.to_dict(),
            "fee": self.fee.to_dict() if self.fee else None,
            "leave_reasons": [r.to_dict() for r in self.leave_reasons],
            "attendance_threshold": self.attendance_threshold,
            "meets_attendance_threshold": self.meets_attendance_threshold,
        }


@dataclass(frozen=True)
class FeeOverview:
    """Read-model for the dashboard fee tiles."""

    as_of: date
    total_fee_amount: Decimal
    total_collected: Decimal
    total_due: Decimal
    collection_percentage: int
    students_with_dues: int
    upcoming_payments: int

    def to_dict(self) -> dict:
        return {
            "as_of": self.as_of.isoformat(),
            "total_fee_amount": str(self.total_fee_amount),
            "total_collected": str(self.total_collected),
            "total_due": str(self.total_due),
            "collection_percentage": self.collection_percentage,
            "students_with_dues": self.students_with_dues,
            "upcoming_payments": self.upcoming_payments,
        }
