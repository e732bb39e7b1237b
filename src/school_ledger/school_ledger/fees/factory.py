from __future__ import annotations

from dataclasses import dataclass

from ..core.enums import PaymentType
from ..settings.model import SystemDefaults
from .model import FeeRecord, GracePolicy
from .rules.base import PaymentRule
from .rules.grace_fee_rule import GraceFeePaymentRule
from .rules.regular_rule import RegularPaymentRule


@dataclass
class PaymentRuleFactory:
    """Factory Pattern: choose the payment rule for a payment type."""

    def for_type(self, payment_type: PaymentType) -> PaymentRule:
        if payment_type == PaymentType.GRACE_FEE:
            return GraceFeePaymentRule()
        return RegularPaymentRule()


def resolve_grace_policy(record: FeeRecord, defaults: SystemDefaults) -> GracePolicy:
    """Per-record grace values win when set; unset (None) falls back to system defaults."""
    months = record.grace_month if record.grace_month is not None else defaults.grace_period_months
    fee = record.grace_fee_amount if record.grace_fee_amount is not None else defaults.grace_fee
    return GracePolicy(months=int(months), fee=fee)
