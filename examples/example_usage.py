"""Example: drive the ledgers through the service layer (no Flask).

Controllers are a thin layer; the rules live in the services.
"""

import importlib
from datetime import date

from config import get_settings_module

from school_ledger.attendance.model import HourlyAttendanceEntry
from school_ledger.container import build_container
from school_ledger.core.enums import AttendanceStatus
from school_ledger.reports.model import MonthlyReportRequest


def main():
    settings = importlib.import_module(get_settings_module())
    container = build_container(db_config=settings.DB_CONFIG)
    container.config_sync.start()

    ledger = container.attendance_ledger
    today = date.today()
    record = ledger.get_record("student-1", today)
    ledger.upsert_hour(
        "student-1",
        today,
        HourlyAttendanceEntry(hour=1, status=AttendanceStatus.PRESENT),
        expected_version=record.version if record else 0,
    )

    try:
        report = container.report_assembler.build_monthly_report(
            MonthlyReportRequest(student_id="student-1", year=today.year, month=today.month)
        )
        print(report.to_dict())
    finally:
        container.config_sync.close()


if __name__ == "__main__":
    main()
