from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Any, Callable, Optional

from ..common.datetime_utils import Clock, SystemClock, add_months, months_elapsed
from ..common.validators import optional_text, require_int_range, require_non_negative, to_decimal
from ..core.enums import REFERENCE_REQUIRED_METHODS, FeeStatus, PaymentMethod, PaymentType
from ..core.exceptions import DuplicateRecord, RecordNotFound, ValidationError
from ..settings.model import FALLBACK_DEFAULTS, SystemDefaults
from .factory import PaymentRuleFactory, resolve_grace_policy
from .model import FeeRecord, Payment
from .repository import FeeRepository

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return str(uuid.uuid4())


class FeeLedger:
    """Use case: a student's fee account, payments and grace surcharge."""

    def __init__(
        self,
        fees: FeeRepository,
        *,
        defaults_provider: Optional[Callable[[], SystemDefaults]] = None,
        clock: Optional[Clock] = None,
        rule_factory: Optional[PaymentRuleFactory] = None,
        id_factory: Callable[[], str] = _new_id,
    ):
        self._fees = fees
        self._defaults_provider = defaults_provider or (lambda: FALLBACK_DEFAULTS)
        self._clock = clock or SystemClock()
        self._rules = rule_factory or PaymentRuleFactory()
        self._new_id = id_factory

    def _require(self, fee_id: str) -> FeeRecord:
        record = self._fees.get(fee_id)
        if not record:
            raise RecordNotFound("Fee record not found", entity="fee", entity_id=fee_id)
        return record

    def get_record(self, fee_id: str) -> FeeRecord:
        return self._require(fee_id)

    def get_for_student(self, student_id: str) -> Optional[FeeRecord]:
        return self._fees.get_by_student(student_id)

    def create_record(
        self,
        student_id: str,
        total_amount: Any,
        due_date: date,
        *,
        grace_month: Optional[int] = None,
        grace_fee_amount: Any = None,
        initial_payment: Any = None,
    ) -> FeeRecord:
        if not student_id:
            raise ValidationError("Student ID is required", entity="fee")
        total = require_non_negative(total_amount, "total_amount")
        months = None if grace_month is None else require_int_range(grace_month, "grace_month", 0, 12)
        grace_fee = None if grace_fee_amount is None else require_non_negative(grace_fee_amount, "grace_fee_amount")

        if self._fees.get_by_student(student_id):
            raise DuplicateRecord("Student already has a fee record", entity="fee", entity_id=student_id)

        record = self._fees.create(
            FeeRecord(
                fee_id=self._new_id(),
                student_id=student_id,
                total_amount=total,
                due_date=due_date,
                grace_month=months,
                grace_fee_amount=grace_fee,
                version=1,
            )
        )
        logger.info("fee record created fee=%s student=%s total=%s", record.fee_id, student_id, total)

        if initial_payment is not None and to_decimal(initial_payment, "initial_payment") > 0:
            record = self.record_payment(record.fee_id, initial_payment, PaymentMethod.CASH, "", "")
        return record

    def record_payment(
        self,
        fee_id: str,
        amount: Any,
        method: PaymentMethod | str,
        reference: Optional[str] = "",
        slip_url: Optional[str] = "",
        payment_type: PaymentType | str = PaymentType.REGULAR,
        *,
        paid_on: Optional[date] = None,
    ) -> FeeRecord:
        try:
            method = PaymentMethod(method)
            payment_type = PaymentType(payment_type)
        except ValueError as exc:
            raise ValidationError(str(exc), entity="fee", entity_id=fee_id)

        reference = optional_text(reference) or ""
        if method in REFERENCE_REQUIRED_METHODS and not reference:
            raise ValidationError(f"Reference number is required for {method.value} payments", entity="fee", entity_id=fee_id)

        value = to_decimal(amount, "amount")
        record = self._require(fee_id)
        self._rules.for_type(payment_type).check(record, value)

        payment = Payment(
            payment_id=self._new_id(),
            amount=value,
            paid_on=paid_on or self._clock.today(),
            method=method,
            reference=reference,
            slip_url=optional_text(slip_url) or "",
            payment_type=payment_type,
        )
        updated = record.with_payment(payment)
        saved = self._fees.append_payment(updated, updated.payments[-1], expected_version=record.version)
        logger.info(
            "payment recorded fee=%s amount=%s type=%s due=%s status=%s",
            fee_id, value, payment_type.value, saved.due_amount, saved.status.value,
        )
        return saved

    def apply_grace_fee(
        self,
        fee_id: str,
        as_of: Optional[date] = None,
        defaults: Optional[SystemDefaults] = None,
    ) -> FeeRecord:
        """Add the grace surcharge once the grace period has passed unpaid.

        Calling it again after the surcharge was applied returns the record
        unchanged, so a recurring check can run it freely.
        """
        record = self._require(fee_id)
        if record.is_late_fee_applied or record.status == FeeStatus.PAID:
            return record

        as_of = as_of or self._clock.today()
        policy = resolve_grace_policy(record, defaults or self._defaults_provider())
        if months_elapsed(record.due_date, as_of) <= policy.months or policy.fee <= 0:
            return record

        updated = record.with_grace_fee(policy.fee, add_months(record.due_date, policy.months))
        saved = self._fees.save_grace_fee(updated, expected_version=record.version)
        logger.info("grace fee applied fee=%s amount=%s as_of=%s", fee_id, policy.fee, as_of)
        return saved

    def apply_grace_fees(self, as_of: Optional[date] = None, defaults: Optional[SystemDefaults] = None) -> list[FeeRecord]:
        """Run ``apply_grace_fee`` over every record; returns the ones that changed."""
        as_of = as_of or self._clock.today()
        defaults = defaults or self._defaults_provider()
        changed: list[FeeRecord] = []
        for record in self._fees.list_all():
            updated = self.apply_grace_fee(record.fee_id, as_of, defaults)
            if updated.version != record.version:
                changed.append(updated)
        return changed

    def get_status(self, fee_id: str) -> FeeStatus:
        return self._require(fee_id).status

    def list_records(self) -> list[FeeRecord]:
        return list(self._fees.list_all())

    def has_record(self, student_id: str) -> bool:
        return self._fees.get_by_student(student_id) is not None
