from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from ..core.enums import PaymentMethod, PaymentType
from ..core.exceptions import ConcurrencyConflict, DuplicateRecord
from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_decimal, db_cursor, fetchall, fetchone
from .model import FeeRecord, Payment
from .repository import FeeRepository

_FEE_COLUMNS = """
    fee_id, student_id, total_amount, due_date, grace_month, grace_fee_amount,
    grace_until_date, is_late_fee_applied, version
"""

_PAYMENT_COLUMNS = """
    payment_id, fee_id, amount, payment_date, payment_method, reference_number,
    slip_url, payment_type, remaining_due_amount
"""


def _to_payment(r: Dict[str, Any]) -> Payment:
    return Payment(
        payment_id=str(r["payment_id"]),
        amount=as_decimal(r["amount"]),
        paid_on=r["payment_date"],
        method=PaymentMethod(r["payment_method"]),
        reference=r.get("reference_number") or "",
        slip_url=r.get("slip_url") or "",
        payment_type=PaymentType(r.get("payment_type") or PaymentType.REGULAR.value),
        remaining_due_amount=as_decimal(r["remaining_due_amount"]),
    )


def _to_record(r: Dict[str, Any], payments: List[Payment]) -> FeeRecord:
    return FeeRecord(
        fee_id=str(r["fee_id"]),
        student_id=str(r["student_id"]),
        total_amount=as_decimal(r["total_amount"]),
        due_date=r["due_date"],
        payments=tuple(payments),
        grace_month=None if r.get("grace_month") is None else int(r["grace_month"]),
        grace_fee_amount=as_decimal(r.get("grace_fee_amount")),
        grace_until_date=r.get("grace_until_date"),
        is_late_fee_applied=bool(r.get("is_late_fee_applied")),
        version=int(r["version"]),
    )


class MySQLFeeRepository(FeeRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _payments_for(self, cur, fee_ids: Sequence[str]) -> Dict[str, List[Payment]]:
        out: Dict[str, List[Payment]] = {fee_id: [] for fee_id in fee_ids}
        if not fee_ids:
            return out
        placeholders = ",".join(["%s"] * len(fee_ids))
        cur.execute(
            f"SELECT {_PAYMENT_COLUMNS} FROM payments WHERE fee_id IN ({placeholders}) ORDER BY fee_id, seq",
            tuple(fee_ids),
        )
        for r in fetchall(cur):
            out[str(r["fee_id"])].append(_to_payment(r))
        return out

    def _get_where(self, clause: str, value: str, *, operation: str) -> Optional[FeeRecord]:
        with db_cursor(self._conn_factory, operation=operation, entity="fee", entity_id=value) as (_, cur):
            cur.execute(f"SELECT {_FEE_COLUMNS} FROM fees WHERE {clause}=%s", (value,))
            r = fetchone(cur)
            if not r:
                return None
            payments = self._payments_for(cur, [str(r["fee_id"])])
            return _to_record(r, payments[str(r["fee_id"])])

    def get(self, fee_id: str) -> Optional[FeeRecord]:
        return self._get_where("fee_id", fee_id, operation="fees.get")

    def get_by_student(self, student_id: str) -> Optional[FeeRecord]:
        return self._get_where("student_id", student_id, operation="fees.get_by_student")

    def create(self, record: FeeRecord) -> FeeRecord:
        try:
            with db_cursor(self._conn_factory, operation="fees.create", entity="fee", entity_id=record.student_id) as (_, cur):
                cur.execute(
                    """
                    INSERT INTO fees(fee_id, student_id, total_amount, paid_amount, due_date,
                                     grace_month, grace_fee_amount, grace_until_date, is_late_fee_applied, version)
                    VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                    """,
                    (
                        record.fee_id,
                        record.student_id,
                        record.total_amount,
                        record.paid_amount,
                        record.due_date,
                        record.grace_month,
                        record.grace_fee_amount,
                        record.grace_until_date,
                        int(record.is_late_fee_applied),
                        record.version,
                    ),
                )
        except DuplicateRecord as exc:
            raise DuplicateRecord("Student already has a fee record", entity="fee", entity_id=record.student_id) from exc
        return record

    def _bump(self, cur, record: FeeRecord, expected_version: int) -> None:
        cur.execute(
            """
            UPDATE fees
            SET total_amount=%s, paid_amount=%s, grace_until_date=%s, is_late_fee_applied=%s, version=%s
            WHERE fee_id=%s AND version=%s
            """,
            (
                record.total_amount,
                record.paid_amount,
                record.grace_until_date,
                int(record.is_late_fee_applied),
                record.version,
                record.fee_id,
                int(expected_version),
            ),
        )
        if cur.rowcount == 0:
            raise ConcurrencyConflict(
                "Fee record was modified by someone else",
                entity="fee",
                entity_id=record.fee_id,
                expected_version=int(expected_version),
            )

    def append_payment(self, record: FeeRecord, payment: Payment, *, expected_version: int) -> FeeRecord:
        # Version check runs first so a stale writer never inserts a payment row.
        with db_cursor(self._conn_factory, operation="fees.append_payment", entity="fee", entity_id=record.fee_id) as (_, cur):
            self._bump(cur, record, expected_version)
            cur.execute(
                f"""
                INSERT INTO payments(seq, {_PAYMENT_COLUMNS})
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    len(record.payments),
                    payment.payment_id,
                    record.fee_id,
                    payment.amount,
                    payment.paid_on,
                    payment.method.value,
                    payment.reference or None,
                    payment.slip_url or None,
                    payment.payment_type.value,
                    payment.remaining_due_amount,
                ),
            )
        return record

    def save_grace_fee(self, record: FeeRecord, *, expected_version: int) -> FeeRecord:
        with db_cursor(self._conn_factory, operation="fees.save_grace_fee", entity="fee", entity_id=record.fee_id) as (_, cur):
            self._bump(cur, record, expected_version)
        return record

    def list_all(self) -> Sequence[FeeRecord]:
        with db_cursor(self._conn_factory, operation="fees.list_all", entity="fee") as (_, cur):
            cur.execute(f"SELECT {_FEE_COLUMNS} FROM fees ORDER BY created_at")
            rows = fetchall(cur)
            payments = self._payments_for(cur, [str(r["fee_id"]) for r in rows])
            return [_to_record(r, payments[str(r["fee_id"])]) for r in rows]
