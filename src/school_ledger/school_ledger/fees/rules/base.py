from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal

from ..model import FeeRecord


class PaymentRule(ABC):
    """Strategy Pattern: encapsulate which amounts a payment type accepts."""

    @abstractmethod
    def check(self, record: FeeRecord, amount: Decimal) -> None:
        """Raise ``InvalidAmount`` when ``amount`` is not acceptable."""

        raise NotImplementedError
