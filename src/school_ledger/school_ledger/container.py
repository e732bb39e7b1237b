from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .attendance.mysql_attendance_repository import MySQLAttendanceRepository, MySQLSlotSelectionRepository
from .attendance.service import AttendanceLedger
from .common.datetime_utils import Clock, SystemClock
from .core.constants import DEFAULT_CHANGE_FEED_INTERVAL
from .database.connection import DatabaseConnection
from .fees.factory import PaymentRuleFactory
from .fees.mysql_fee_repository import MySQLFeeRepository
from .fees.service import FeeLedger
from .reports.service import ReportAssembler
from .settings.change_feed import PollingChangeFeed
from .settings.mysql_settings_repository import MySQLSettingsRepository
from .settings.service import ConfigSync


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection

    attendance_repo: MySQLAttendanceRepository
    slots_repo: MySQLSlotSelectionRepository
    fees_repo: MySQLFeeRepository
    settings_repo: MySQLSettingsRepository
    change_feed: PollingChangeFeed

    config_sync: ConfigSync
    attendance_ledger: AttendanceLedger
    fee_ledger: FeeLedger
    report_assembler: ReportAssembler


def build_container(
    *,
    db_config: dict,
    change_feed_interval: float = DEFAULT_CHANGE_FEED_INTERVAL,
    clock: Optional[Clock] = None,
) -> Container:
    conn = DatabaseConnection.from_dict(db_config)
    clock = clock or SystemClock()

    attendance_repo = MySQLAttendanceRepository(conn)
    slots_repo = MySQLSlotSelectionRepository(conn)
    fees_repo = MySQLFeeRepository(conn)
    settings_repo = MySQLSettingsRepository(conn)
    change_feed = PollingChangeFeed(settings_repo.fetch_row, interval=change_feed_interval)

    config_sync = ConfigSync(settings_repo, feed=change_feed)
    attendance_ledger = AttendanceLedger(attendance_repo, slots_repo)
    fee_ledger = FeeLedger(
        fees_repo,
        defaults_provider=lambda: config_sync.current,
        clock=clock,
        rule_factory=PaymentRuleFactory(),
    )
    report_assembler = ReportAssembler(attendance_ledger, fee_ledger, config_sync, clock=clock)

    return Container(
        conn=conn,
        attendance_repo=attendance_repo,
        slots_repo=slots_repo,
        fees_repo=fees_repo,
        settings_repo=settings_repo,
        change_feed=change_feed,
        config_sync=config_sync,
        attendance_ledger=attendance_ledger,
        fee_ledger=fee_ledger,
        report_assembler=report_assembler,
    )
