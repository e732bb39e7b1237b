from __future__ import annotations

from dataclasses import asdict, replace
from datetime import date
from typing import Optional

import pytest

from school_ledger.attendance.model import DailyAttendanceRecord
from school_ledger.attendance.service import AttendanceLedger
from school_ledger.common.datetime_utils import FixedClock
from school_ledger.core.exceptions import ConcurrencyConflict, DuplicateRecord
from school_ledger.fees.model import FeeRecord, Payment
from school_ledger.fees.service import FeeLedger
from school_ledger.reports.service import ReportAssembler
from school_ledger.settings.model import ChangeEvent, SystemDefaults
from school_ledger.settings.service import ConfigSync


class InMemoryAttendance:
    def __init__(self):
        self._by_key: dict[tuple[str, date], DailyAttendanceRecord] = {}
        self.saves = 0

    def get(self, student_id: str, work_date: date) -> Optional[DailyAttendanceRecord]:
        return self._by_key.get((student_id, work_date))

    def save(self, record: DailyAttendanceRecord, *, expected_version: int) -> DailyAttendanceRecord:
        current = self._by_key.get((record.student_id, record.work_date))
        actual = current.version if current else 0
        if actual != expected_version:
            raise ConcurrencyConflict(
                "stale",
                entity="daily_attendance",
                expected_version=expected_version,
                actual_version=actual,
            )
        self._by_key[(record.student_id, record.work_date)] = record
        self.saves += 1
        return record

    def list_for_student(self, student_id: str, *, start: date, end: date):
        return [r for (s, d), r in self._by_key.items() if s == student_id and start <= d <= end]

    def list_for_date(self, work_date: date):
        return [r for (_, d), r in sorted(self._by_key.items()) if d == work_date]

    def list_between(self, *, start: date, end: date):
        return [r for (_, d), r in self._by_key.items() if start <= d <= end]

    def has_any_for_student(self, student_id: str) -> bool:
        return any(s == student_id for s, _ in self._by_key)


class InMemorySlots:
    def __init__(self):
        self._by_key: dict[tuple[str, date], tuple[int, ...]] = {}

    def get_selected_hours(self, student_id, work_date):
        return self._by_key.get((student_id, work_date))

    def set_selected_hours(self, student_id, work_date, hours):
        self._by_key[(student_id, work_date)] = tuple(hours)

    def list_for_student(self, student_id, *, start, end):
        return {d: h for (s, d), h in self._by_key.items() if s == student_id and start <= d <= end}


class InMemoryFees:
    def __init__(self):
        self._by_id: dict[str, FeeRecord] = {}
        self.payment_rows: list[Payment] = []

    def get(self, fee_id: str) -> Optional[FeeRecord]:
        return self._by_id.get(fee_id)

    def get_by_student(self, student_id: str) -> Optional[FeeRecord]:
        return next((r for r in self._by_id.values() if r.student_id == student_id), None)

    def create(self, record: FeeRecord) -> FeeRecord:
        if self.get_by_student(record.student_id):
            raise DuplicateRecord("exists", entity="fee", entity_id=record.student_id)
        self._by_id[record.fee_id] = record
        return record

    def _check(self, record: FeeRecord, expected_version: int) -> None:
        current = self._by_id[record.fee_id]
        if current.version != expected_version:
            raise ConcurrencyConflict("stale", entity="fee", entity_id=record.fee_id, expected_version=expected_version)

    def append_payment(self, record: FeeRecord, payment: Payment, *, expected_version: int) -> FeeRecord:
        self._check(record, expected_version)
        self.payment_rows.append(payment)
        self._by_id[record.fee_id] = record
        return record

    def save_grace_fee(self, record: FeeRecord, *, expected_version: int) -> FeeRecord:
        self._check(record, expected_version)
        self._by_id[record.fee_id] = record
        return record

    def list_all(self):
        return list(self._by_id.values())


class InMemorySettings:
    def __init__(self, initial: Optional[SystemDefaults] = None):
        self.row = initial
        self.saves = 0

    def load(self) -> Optional[SystemDefaults]:
        return self.row

    def insert(self, defaults: SystemDefaults) -> SystemDefaults:
        if self.row is not None:
            raise DuplicateRecord("exists", entity="system_defaults", entity_id=1)
        self.row = defaults
        return defaults

    def save(self, defaults: SystemDefaults, *, expected_version: int) -> SystemDefaults:
        if self.row is None or self.row.version != expected_version:
            raise ConcurrencyConflict("stale", entity="system_defaults", entity_id=1, expected_version=expected_version)
        self.row = defaults
        self.saves += 1
        return defaults

    def external_update(self, **changes) -> SystemDefaults:
        """Simulate another process writing the row."""
        self.row = replace(self.row, **changes, version=self.row.version + 1)
        return self.row

    def as_row(self) -> dict:
        return asdict(self.row)


class FakeChangeFeed:
    def __init__(self):
        self.handlers: dict[str, list] = {}

    def subscribe(self, table, handler):
        self.handlers.setdefault(table, []).append(handler)

        def unsubscribe():
            self.handlers[table].remove(handler)

        return unsubscribe

    def emit(self, table: str, row: dict, event: str = "UPDATE") -> None:
        for handler in list(self.handlers.get(table, [])):
            handler(ChangeEvent(table=table, event=event, new_row=row))


class SequentialIds:
    def __init__(self, prefix: str = "id"):
        self._prefix = prefix
        self._n = 0

    def __call__(self) -> str:
        self._n += 1
        return f"{self._prefix}-{self._n}"


@pytest.fixture
def clock():
    return FixedClock(date(2024, 1, 20))


@pytest.fixture
def attendance_repo():
    return InMemoryAttendance()


@pytest.fixture
def slots_repo():
    return InMemorySlots()


@pytest.fixture
def attendance_ledger(attendance_repo, slots_repo):
    return AttendanceLedger(attendance_repo, slots_repo)


@pytest.fixture
def fees_repo():
    return InMemoryFees()


@pytest.fixture
def settings_repo():
    return InMemorySettings()


@pytest.fixture
def change_feed():
    return FakeChangeFeed()


@pytest.fixture
def config_sync(settings_repo, change_feed):
    sync = ConfigSync(settings_repo, feed=change_feed)
    sync.start()
    yield sync
    sync.close()


@pytest.fixture
def fee_ledger(fees_repo, config_sync, clock):
    return FeeLedger(fees_repo, defaults_provider=lambda: config_sync.current, clock=clock, id_factory=SequentialIds("fee"))


@pytest.fixture
def report_assembler(attendance_ledger, fee_ledger, config_sync, clock):
    return ReportAssembler(attendance_ledger, fee_ledger, config_sync, clock=clock)


@pytest.fixture
def make_attendance_ledger():
    return lambda: AttendanceLedger(InMemoryAttendance(), InMemorySlots())
