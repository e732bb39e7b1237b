from __future__ import annotations

from decimal import Decimal

from ...core.exceptions import InvalidAmount
from ..model import FeeRecord
from .base import PaymentRule


class RegularPaymentRule(PaymentRule):
    """Tuition payment: positive and never above the outstanding due amount."""

    def check(self, record: FeeRecord, amount: Decimal) -> None:
        if amount <= 0:
            raise InvalidAmount("Payment amount must be greater than 0", entity="fee", entity_id=record.fee_id)
        if amount > record.due_amount:
            raise InvalidAmount(
                f"Payment amount {amount} exceeds due amount {record.due_amount}",
                entity="fee",
                entity_id=record.fee_id,
            )
