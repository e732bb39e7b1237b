from __future__ import annotations

from datetime import date
from itertools import permutations

import pytest

from school_ledger.attendance.model import HourlyAttendanceEntry
from school_ledger.core.enums import AttendanceStatus
from school_ledger.core.exceptions import ConcurrencyConflict, RecordNotFound, ValidationError

DAY = date(2024, 3, 5)


def entry(hour, status=AttendanceStatus.PRESENT, **kw):
    return HourlyAttendanceEntry(hour=hour, status=status, **kw)


def test_get_record_does_not_create_on_read(attendance_ledger, attendance_repo):
    assert attendance_ledger.get_record("s1", DAY) is None
    assert attendance_ledger.get_record("s1", DAY) is None
    assert attendance_repo.saves == 0


def test_first_write_creates_record_with_version_one(attendance_ledger):
    record = attendance_ledger.upsert_hour("s1", DAY, entry(1), expected_version=0)

    assert record.version == 1
    assert record.student_id == "s1"
    assert [e.hour for e in record.hourly_status] == [1]


def test_first_write_requires_expected_version_zero(attendance_ledger, attendance_repo):
    with pytest.raises(ConcurrencyConflict):
        attendance_ledger.upsert_hour("s1", DAY, entry(1), expected_version=1)
    assert attendance_repo.saves == 0


def test_upsert_replaces_entry_for_same_hour(attendance_ledger):
    attendance_ledger.upsert_hour("s1", DAY, entry(2), expected_version=0)
    record = attendance_ledger.upsert_hour("s1", DAY, entry(2, AttendanceStatus.ABSENT), expected_version=1)

    assert record.version == 2
    assert len(record.hourly_status) == 1
    assert record.entry_for(2).status == AttendanceStatus.ABSENT


def test_entries_are_kept_in_hour_order(attendance_ledger):
    version = 0
    for hour in (7, 2, 5):
        version = attendance_ledger.upsert_hour("s1", DAY, entry(hour), expected_version=version).version

    assert [e.hour for e in attendance_ledger.get_record("s1", DAY).hourly_status] == [2, 5, 7]


def test_stale_version_fails_without_partial_apply(attendance_ledger):
    attendance_ledger.upsert_hour("s1", DAY, entry(1), expected_version=0)
    attendance_ledger.upsert_hour("s1", DAY, entry(2), expected_version=1)

    with pytest.raises(ConcurrencyConflict) as info:
        attendance_ledger.upsert_hour("s1", DAY, entry(3, AttendanceStatus.ABSENT), expected_version=1)

    assert info.value.retryable is True
    assert info.value.actual_version == 2
    stored = attendance_ledger.get_record("s1", DAY)
    assert stored.version == 2
    assert stored.entry_for(3) is None


@pytest.mark.parametrize("hour", [0, 16, -1])
def test_hour_out_of_range_is_validation_error(attendance_ledger, hour):
    with pytest.raises(ValidationError) as info:
        attendance_ledger.upsert_hour("s1", DAY, entry(hour), expected_version=0)
    assert info.value.retryable is False


@pytest.mark.parametrize("status", [AttendanceStatus.LEAVE, AttendanceStatus.MEDICAL])
def test_reason_required_for_leave_and_medical(attendance_ledger, status):
    with pytest.raises(ValidationError):
        attendance_ledger.upsert_hour("s1", DAY, entry(1, status, reason="  "), expected_version=0)

    record = attendance_ledger.upsert_hour("s1", DAY, entry(1, status, reason="Family event"), expected_version=0)
    assert record.entry_for(1).reason == "Family event"


def test_at_most_twelve_present_hours_per_day(attendance_ledger):
    version = 0
    for hour in range(1, 13):
        version = attendance_ledger.upsert_hour("s1", DAY, entry(hour), expected_version=version).version

    with pytest.raises(ValidationError):
        attendance_ledger.upsert_hour("s1", DAY, entry(13), expected_version=version)

    record = attendance_ledger.upsert_hour("s1", DAY, entry(13, AttendanceStatus.EXAM), expected_version=version)
    assert record.version == 13


def test_monthly_summary_counts_and_percentage(attendance_ledger):
    v = attendance_ledger.upsert_hour("s1", date(2024, 3, 1), entry(1), expected_version=0).version
    v = attendance_ledger.upsert_hour("s1", date(2024, 3, 1), entry(2), expected_version=v).version
    attendance_ledger.upsert_hour("s1", date(2024, 3, 1), entry(3, AttendanceStatus.ABSENT), expected_version=v)
    attendance_ledger.upsert_hour("s1", date(2024, 3, 2), entry(1, AttendanceStatus.LATE, time="09:10"), expected_version=0)
    attendance_ledger.upsert_hour("s1", date(2024, 4, 1), entry(1), expected_version=0)

    summary = attendance_ledger.get_monthly_summary("s1", 2024, 3)

    assert summary.present == 2
    assert summary.absent == 1
    assert summary.late == 1
    assert summary.total_hours == 4
    assert summary.attendance_percentage == 50.0


def test_unrecorded_hours_do_not_count(attendance_ledger):
    attendance_ledger.upsert_hour("s1", DAY, entry(1), expected_version=0)

    summary = attendance_ledger.get_monthly_summary("s1", 2024, 3)

    assert summary.total_hours == 1
    assert summary.absent == 0
    assert summary.attendance_percentage == 100.0


def test_empty_month_summary(attendance_ledger):
    summary = attendance_ledger.get_monthly_summary("nobody", 2024, 3)
    assert summary.total_hours == 0
    assert summary.attendance_percentage == 0.0


def test_summary_is_independent_of_write_order(make_attendance_ledger):
    writes = [
        (date(2024, 3, 1), entry(1)),
        (date(2024, 3, 1), entry(2, AttendanceStatus.ABSENT)),
        (date(2024, 3, 4), entry(1, AttendanceStatus.LEAVE, reason="Sick")),
        (date(2024, 3, 4), entry(3)),
    ]
    results = set()
    for order in permutations(writes):
        ledger = make_attendance_ledger()
        for day, e in order:
            current = ledger.get_record("s1", day)
            ledger.upsert_hour("s1", day, e, expected_version=current.version if current else 0)
        results.add(ledger.get_monthly_summary("s1", 2024, 3))

    assert len(results) == 1


def test_selected_slots_limit_counted_hours(attendance_ledger):
    v = attendance_ledger.upsert_hour("s1", DAY, entry(1), expected_version=0).version
    attendance_ledger.upsert_hour("s1", DAY, entry(9, AttendanceStatus.ABSENT), expected_version=v)
    attendance_ledger.set_selected_hours("s1", DAY, [1, 2, 3])

    summary = attendance_ledger.get_monthly_summary("s1", 2024, 3)

    assert summary.total_hours == 1
    assert summary.absent == 0
    assert attendance_ledger.get_selected_hours("s1", DAY) == (1, 2, 3)
    assert len(attendance_ledger.get_selected_hours("s1", date(2024, 3, 6))) == 15


def test_empty_selection_counts_no_hours(attendance_ledger):
    attendance_ledger.upsert_hour("s1", DAY, entry(1, AttendanceStatus.ABSENT), expected_version=0)
    attendance_ledger.set_selected_hours("s1", DAY, [])

    summary = attendance_ledger.get_monthly_summary("s1", 2024, 3)

    assert attendance_ledger.get_selected_hours("s1", DAY) == ()
    assert summary.total_hours == 0
    assert summary.absent == 0


def test_leave_reasons_in_hour_order(attendance_ledger):
    version = 0
    for hour, reason in ((5, "Doctor"), (1, "Family"), (3, "Travel")):
        version = attendance_ledger.upsert_hour(
            "s1", DAY, entry(hour, AttendanceStatus.LEAVE, reason=reason), expected_version=version
        ).version
    attendance_ledger.upsert_hour("s1", DAY, entry(2, AttendanceStatus.MEDICAL, reason="Flu"), expected_version=version)

    reasons = attendance_ledger.list_leave_reasons("s1", 2024, 3)

    assert [r.hour for r in reasons] == [1, 3, 5]
    assert [r.reason for r in reasons] == ["Family", "Travel", "Doctor"]
    assert all(r.work_date == DAY for r in reasons)


def test_leave_reasons_ordered_by_date_then_hour(attendance_ledger):
    attendance_ledger.upsert_hour("s1", date(2024, 3, 9), entry(1, AttendanceStatus.LEAVE, reason="b"), expected_version=0)
    attendance_ledger.upsert_hour("s1", date(2024, 3, 2), entry(4, AttendanceStatus.LEAVE, reason="a"), expected_version=0)

    reasons = attendance_ledger.list_leave_reasons("s1", 2024, 3)

    assert [(r.work_date.day, r.hour) for r in reasons] == [(2, 4), (9, 1)]


def test_leave_reasons_empty_when_none(attendance_ledger):
    assert attendance_ledger.list_leave_reasons("s1", 2024, 3) == []


def test_clear_hour_keeps_record_and_bumps_version(attendance_ledger):
    v = attendance_ledger.upsert_hour("s1", DAY, entry(1), expected_version=0).version
    v = attendance_ledger.upsert_hour("s1", DAY, entry(2), expected_version=v).version

    record = attendance_ledger.clear_hour("s1", DAY, 1, expected_version=v)

    assert record.version == 3
    assert [e.hour for e in record.hourly_status] == [2]


def test_clear_day_empties_entries(attendance_ledger):
    v = attendance_ledger.upsert_hour("s1", DAY, entry(1), expected_version=0).version

    record = attendance_ledger.clear_day("s1", DAY, expected_version=v)

    assert record.hourly_status == ()
    assert attendance_ledger.get_record("s1", DAY).version == 2


def test_clear_missing_record_is_not_found(attendance_ledger):
    with pytest.raises(RecordNotFound):
        attendance_ledger.clear_day("s1", DAY, expected_version=0)


def test_reset_hour_for_date_touches_only_records_with_that_hour(attendance_ledger):
    attendance_ledger.upsert_hour("s1", DAY, entry(4), expected_version=0)
    attendance_ledger.upsert_hour("s2", DAY, entry(4, AttendanceStatus.ABSENT), expected_version=0)
    attendance_ledger.upsert_hour("s3", DAY, entry(1), expected_version=0)

    assert attendance_ledger.reset_hour_for_date(DAY, 4) == 2
    assert attendance_ledger.get_record("s1", DAY).hourly_status == ()
    assert attendance_ledger.get_record("s3", DAY).version == 1


def test_monthly_summaries_one_per_student(attendance_ledger):
    attendance_ledger.upsert_hour("b", DAY, entry(1), expected_version=0)
    attendance_ledger.upsert_hour("a", DAY, entry(1, AttendanceStatus.ABSENT), expected_version=0)

    summaries = attendance_ledger.get_monthly_summaries(2024, 3)

    assert [s.student_id for s in summaries] == ["a", "b"]
    assert summaries[1].attendance_percentage == 100.0


def test_entry_from_dict_rejects_unknown_status():
    with pytest.raises(ValidationError):
        HourlyAttendanceEntry.from_dict({"hour": 1, "status": "sleeping"})
