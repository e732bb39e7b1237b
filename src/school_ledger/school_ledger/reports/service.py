from __future__ import annotations

from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from ..attendance.service import AttendanceLedger
from ..common.datetime_utils import Clock, SystemClock, days_in_month
from ..common.validators import require_int_range
from ..core.constants import UPCOMING_PAYMENT_WINDOW_DAYS
from ..core.enums import FeeStatus
from ..core.exceptions import StudentNotFound, ValidationError
from ..fees.model import ZERO
from ..fees.service import FeeLedger
from ..settings.service import ConfigSync
from .model import FeeOverview, MonthlyReport, MonthlyReportRequest


class ReportAssembler:
    """Builds report-ready aggregates from both ledgers; rendering happens elsewhere."""

    def __init__(
        self,
        attendance: AttendanceLedger,
        fees: FeeLedger,
        settings: ConfigSync,
        *,
        clock: Optional[Clock] = None,
    ):
        self._attendance = attendance
        self._fees = fees
        self._settings = settings
        self._clock = clock or SystemClock()

    def build_monthly_report(self, request: MonthlyReportRequest) -> MonthlyReport:
        if not request.student_id:
            raise ValidationError("student_id is required", entity="report")
        require_int_range(request.month, "month", 1, 12)
        days_in_month(request.year, request.month)

        fee = self._fees.get_for_student(request.student_id)
        if fee is None and not self._attendance.has_records(request.student_id):
            raise StudentNotFound("No attendance or fee records for student", entity="student", entity_id=request.student_id)

        summary = self._attendance.get_monthly_summary(request.student_id, request.year, request.month)
        threshold = self._settings.current.attendance_threshold
        return MonthlyReport(
            request=request,
            attendance=summary,
            fee=fee,
            leave_reasons=tuple(self._attendance.list_leave_reasons(request.student_id, request.year, request.month)),
            attendance_threshold=threshold,
            meets_attendance_threshold=summary.total_hours > 0 and summary.attendance_percentage >= threshold,
        )

    def build_fee_overview(self, as_of: Optional[date] = None) -> FeeOverview:
        as_of = as_of or self._clock.today()
        window_end = as_of + timedelta(days=UPCOMING_PAYMENT_WINDOW_DAYS)
        records = self._fees.list_records()

        total = sum((r.total_amount for r in records), ZERO)
        collected = sum((r.paid_amount for r in records), ZERO)
        open_records = [r for r in records if r.status != FeeStatus.PAID]
        due = sum((r.due_amount for r in open_records), ZERO)

        percentage = 0
        if total > 0:
            percentage = int((collected * 100 / total).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

        return FeeOverview(
            as_of=as_of,
            total_fee_amount=total,
            total_collected=collected,
            total_due=due,
            collection_percentage=percentage,
            students_with_dues=len({r.student_id for r in open_records}),
            upcoming_payments=sum(1 for r in open_records if as_of <= r.due_date <= window_end),
        )
