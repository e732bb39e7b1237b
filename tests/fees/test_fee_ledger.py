from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from school_ledger.core.enums import FeeStatus, PaymentMethod, PaymentType
from school_ledger.core.exceptions import (
    ConcurrencyConflict,
    DuplicateRecord,
    InvalidAmount,
    RecordNotFound,
    ValidationError,
)


def test_create_record_starts_unpaid(fee_ledger):
    record = fee_ledger.create_record("s1", 10000, date(2024, 1, 15))

    assert record.fee_id == "fee-1"
    assert record.total_amount == Decimal("10000")
    assert record.paid_amount == Decimal("0")
    assert record.due_amount == Decimal("10000")
    assert record.status == FeeStatus.UNPAID
    assert record.payments == ()
    assert record.version == 1


def test_partial_then_full_payment(fee_ledger):
    record = fee_ledger.create_record("s1", 10000, date(2024, 1, 15))

    record = fee_ledger.record_payment(record.fee_id, 4000, "cash", paid_on=date(2024, 1, 20))
    assert record.paid_amount == Decimal("4000")
    assert record.due_amount == Decimal("6000")
    assert record.status == FeeStatus.PARTIALLY_PAID
    assert record.payments[-1].remaining_due_amount == Decimal("6000")

    record = fee_ledger.record_payment(record.fee_id, 6000, PaymentMethod.CASH, paid_on=date(2024, 2, 1))
    assert record.paid_amount == Decimal("10000")
    assert record.due_amount == Decimal("0")
    assert record.status == FeeStatus.PAID
    assert [p.amount for p in record.payments] == [Decimal("4000"), Decimal("6000")]
    assert record.version == 3


def test_due_always_equals_total_minus_paid(fee_ledger):
    record = fee_ledger.create_record("s1", "1000.50", date(2024, 1, 15))
    for amount in ("0.25", "100", "300.25"):
        record = fee_ledger.record_payment(record.fee_id, amount, "cash")
        assert record.due_amount == record.total_amount - sum(p.amount for p in record.payments)
    assert record.due_amount == Decimal("600.00")


def test_payment_date_defaults_to_clock(fee_ledger, clock):
    record = fee_ledger.create_record("s1", 1000, date(2024, 1, 15))
    record = fee_ledger.record_payment(record.fee_id, 100, "cash")
    assert record.payments[0].paid_on == clock.today()


@pytest.mark.parametrize("amount", [0, -5, 6001])
def test_invalid_regular_amount_leaves_record_untouched(fee_ledger, fees_repo, amount):
    record = fee_ledger.create_record("s1", 10000, date(2024, 1, 15))
    fee_ledger.record_payment(record.fee_id, 4000, "cash")

    with pytest.raises(InvalidAmount):
        fee_ledger.record_payment(record.fee_id, amount, "cash")

    stored = fee_ledger.get_record(record.fee_id)
    assert stored.due_amount == Decimal("6000")
    assert stored.version == 2
    assert len(fees_repo.payment_rows) == 1


def test_payment_on_paid_record_is_rejected(fee_ledger):
    record = fee_ledger.create_record("s1", 500, date(2024, 1, 15))
    fee_ledger.record_payment(record.fee_id, 500, "cash")

    with pytest.raises(InvalidAmount):
        fee_ledger.record_payment(record.fee_id, 1, "cash")


def test_grace_fee_payment_is_not_capped_by_due(fee_ledger):
    record = fee_ledger.create_record("s1", 1000, date(2024, 1, 15))
    fee_ledger.record_payment(record.fee_id, 1000, "cash")

    record = fee_ledger.record_payment(record.fee_id, 500, "cash", payment_type=PaymentType.GRACE_FEE)

    assert record.paid_amount == Decimal("1500")
    assert record.due_amount == Decimal("-500")
    assert record.status == FeeStatus.PAID
    assert record.payments[-1].payment_type == PaymentType.GRACE_FEE


def test_grace_fee_payment_must_be_positive(fee_ledger):
    record = fee_ledger.create_record("s1", 1000, date(2024, 1, 15))
    with pytest.raises(InvalidAmount):
        fee_ledger.record_payment(record.fee_id, 0, "cash", payment_type="grace_fee")


@pytest.mark.parametrize("method", ["online", "bank_transfer", "check"])
def test_reference_required_for_traceable_methods(fee_ledger, method):
    record = fee_ledger.create_record("s1", 1000, date(2024, 1, 15))

    with pytest.raises(ValidationError):
        fee_ledger.record_payment(record.fee_id, 100, method, reference="  ")

    record = fee_ledger.record_payment(record.fee_id, 100, method, reference="TXN-42")
    assert record.payments[0].reference == "TXN-42"


def test_unknown_method_is_validation_error(fee_ledger):
    record = fee_ledger.create_record("s1", 1000, date(2024, 1, 15))
    with pytest.raises(ValidationError):
        fee_ledger.record_payment(record.fee_id, 100, "barter")


def test_duplicate_record_for_student(fee_ledger):
    fee_ledger.create_record("s1", 1000, date(2024, 1, 15))
    with pytest.raises(DuplicateRecord):
        fee_ledger.create_record("s1", 2000, date(2024, 2, 15))


def test_create_record_validation(fee_ledger):
    with pytest.raises(ValidationError):
        fee_ledger.create_record("", 1000, date(2024, 1, 15))
    with pytest.raises(ValidationError):
        fee_ledger.create_record("s1", -1, date(2024, 1, 15))
    with pytest.raises(ValidationError):
        fee_ledger.create_record("s1", 1000, date(2024, 1, 15), grace_month=13)


def test_initial_payment_is_recorded_as_cash(fee_ledger):
    record = fee_ledger.create_record("s1", 1000, date(2024, 1, 15), initial_payment=250)

    assert record.paid_amount == Decimal("250")
    assert record.payments[0].method == PaymentMethod.CASH
    assert record.status == FeeStatus.PARTIALLY_PAID


def test_unknown_fee_is_not_found(fee_ledger):
    with pytest.raises(RecordNotFound):
        fee_ledger.record_payment("missing", 100, "cash")
    with pytest.raises(RecordNotFound):
        fee_ledger.get_status("missing")


def test_stale_write_is_conflict(fee_ledger, fees_repo):
    record = fee_ledger.create_record("s1", 1000, date(2024, 1, 15))
    fee_ledger.record_payment(record.fee_id, 100, "cash")
    stale = record.with_grace_fee(Decimal("50"), date(2024, 2, 15))

    with pytest.raises(ConcurrencyConflict):
        fees_repo.save_grace_fee(stale, expected_version=record.version)


def test_grace_fee_applied_once_after_grace_period(fee_ledger, config_sync):
    config_sync.update({"grace_period_months": 2, "grace_fee": 500})
    record = fee_ledger.create_record("s1", 10000, date(2024, 1, 1))

    first = fee_ledger.apply_grace_fee(record.fee_id, date(2024, 4, 1))
    second = fee_ledger.apply_grace_fee(record.fee_id, date(2024, 4, 1))
    later = fee_ledger.apply_grace_fee(record.fee_id, date(2025, 1, 1))

    assert first.total_amount == Decimal("10500")
    assert first.is_late_fee_applied is True
    assert first.grace_until_date == date(2024, 3, 1)
    assert first.due_amount == Decimal("10500")
    assert second == first
    assert later == first
    assert later.total_amount == Decimal("10500")


def test_grace_fee_not_applied_within_grace_period(fee_ledger, config_sync):
    config_sync.update({"grace_period_months": 2, "grace_fee": 500})
    record = fee_ledger.create_record("s1", 10000, date(2024, 1, 1))

    unchanged = fee_ledger.apply_grace_fee(record.fee_id, date(2024, 3, 1))

    assert unchanged.total_amount == Decimal("10000")
    assert unchanged.is_late_fee_applied is False
    assert unchanged.version == record.version


def test_grace_fee_skipped_for_paid_records(fee_ledger):
    record = fee_ledger.create_record("s1", 1000, date(2023, 1, 1))
    fee_ledger.record_payment(record.fee_id, 1000, "cash")

    unchanged = fee_ledger.apply_grace_fee(record.fee_id, date(2024, 1, 1))

    assert unchanged.total_amount == Decimal("1000")
    assert unchanged.is_late_fee_applied is False


def test_per_record_grace_values_override_defaults(fee_ledger, config_sync):
    config_sync.update({"grace_period_months": 6, "grace_fee": 900})
    record = fee_ledger.create_record("s1", 1000, date(2024, 1, 1), grace_month=1, grace_fee_amount=200)

    updated = fee_ledger.apply_grace_fee(record.fee_id, date(2024, 3, 1))

    assert updated.total_amount == Decimal("1200")
    assert updated.grace_until_date == date(2024, 2, 1)


def test_zero_per_record_grace_fee_disables_surcharge(fee_ledger):
    record = fee_ledger.create_record("s1", 1000, date(2023, 1, 1), grace_fee_amount=0)

    unchanged = fee_ledger.apply_grace_fee(record.fee_id, date(2024, 1, 1))

    assert unchanged.total_amount == Decimal("1000")


def test_grace_fee_can_be_paid_after_surcharge(fee_ledger, config_sync):
    config_sync.update({"grace_period_months": 1, "grace_fee": 500})
    record = fee_ledger.create_record("s2", 1000, date(2024, 1, 1))
    record = fee_ledger.apply_grace_fee(record.fee_id, date(2024, 3, 1))

    record = fee_ledger.record_payment(record.fee_id, 1500, "cash")

    assert record.status == FeeStatus.PAID
    assert record.due_amount == Decimal("0")


def test_apply_grace_fees_sweeps_all_records(fee_ledger, config_sync):
    config_sync.update({"grace_period_months": 1, "grace_fee": 300})
    overdue = fee_ledger.create_record("s1", 1000, date(2024, 1, 1))
    fee_ledger.create_record("s2", 1000, date(2024, 3, 1))
    paid = fee_ledger.create_record("s3", 1000, date(2024, 1, 1))
    fee_ledger.record_payment(paid.fee_id, 1000, "cash")

    changed = fee_ledger.apply_grace_fees(date(2024, 3, 15))

    assert [r.fee_id for r in changed] == [overdue.fee_id]
    assert fee_ledger.apply_grace_fees(date(2024, 3, 15)) == []
