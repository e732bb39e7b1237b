from __future__ import annotations

from decimal import Decimal

from ...core.exceptions import InvalidAmount
from ..model import FeeRecord
from .base import PaymentRule


class GraceFeePaymentRule(PaymentRule):
    """Surcharge payment: only needs to be positive, no due-amount ceiling."""

    def check(self, record: FeeRecord, amount: Decimal) -> None:
        if amount <= 0:
            raise InvalidAmount("Payment amount must be greater than 0", entity="fee", entity_id=record.fee_id)
