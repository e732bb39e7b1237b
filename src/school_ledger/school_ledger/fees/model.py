from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Optional

from ..core.enums import FeeStatus, PaymentMethod, PaymentType

ZERO = Decimal("0")


def derive_status(due_amount: Decimal, paid_amount: Decimal) -> FeeStatus:
    if due_amount <= 0:
        return FeeStatus.PAID
    if paid_amount == 0:
        return FeeStatus.UNPAID
    return FeeStatus.PARTIALLY_PAID


@dataclass(frozen=True)
class Payment:
    payment_id: str
    amount: Decimal
    paid_on: date
    method: PaymentMethod
    reference: str = ""
    slip_url: str = ""
    payment_type: PaymentType = PaymentType.REGULAR
    remaining_due_amount: Decimal = ZERO

    def to_dict(self) -> dict:
        return {
            "id": self.payment_id,
            "amount": str(self.amount),
            "date": self.paid_on.isoformat(),
            "method": self.method.value,
            "reference": self.reference,
            "slip_url": self.slip_url,
            "type": self.payment_type.value,
            "remaining_due_amount": str(self.remaining_due_amount),
        }


@dataclass(frozen=True)
class FeeRecord:
    """Domain entity: a student's fee account.

    ``paid_amount``, ``due_amount`` and ``status`` are computed from the
    payment list and ``total_amount`` on every access, so they cannot drift
    from the history they summarize.
    """

    fee_id: str
    student_id: str
    total_amount: Decimal
    due_date: date
    payments: tuple[Payment, ...] = ()
    grace_month: Optional[int] = None
    grace_fee_amount: Optional[Decimal] = None
    grace_until_date: Optional[date] = None
    is_late_fee_applied: bool = False
    version: int = 0

    @property
    def paid_amount(self) -> Decimal:
        return sum((p.amount for p in self.payments), ZERO)

    @property
    def due_amount(self) -> Decimal:
        return self.total_amount - self.paid_amount

    @property
    def status(self) -> FeeStatus:
        return derive_status(self.due_amount, self.paid_amount)

    def with_payment(self, payment: Payment) -> "FeeRecord":
        """Append ``payment`` with its running-balance snapshot filled in."""
        due_after = self.due_amount - payment.amount
        snapshot = replace(payment, remaining_due_amount=due_after)
        return replace(self, payments=(*self.payments, snapshot), version=self.version + 1)

    def with_grace_fee(self, amount: Decimal, grace_until: date) -> "FeeRecord":
        return replace(
            self,
            total_amount=self.total_amount + amount,
            grace_until_date=grace_until,
            is_late_fee_applied=True,
            version=self.version + 1,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.fee_id,
            "student_id": self.student_id,
            "total_amount": str(self.total_amount),
            "paid_amount": str(self.paid_amount),
            "due_amount": str(self.due_amount),
            "due_date": self.due_date.isoformat(),
            "status": self.status.value,
            "payments": [p.to_dict() for p in self.payments],
            "grace_month": self.grace_month,
            "grace_fee_amount": None if self.grace_fee_amount is None else str(self.grace_fee_amount),
            "grace_until_date": self.grace_until_date.isoformat() if self.grace_until_date else None,
            "is_late_fee_applied": self.is_late_fee_applied,
            "version": self.version,
        }


@dataclass(frozen=True)
class GracePolicy:
    """Effective grace months and surcharge for one fee record."""

    months: int
    fee: Decimal
