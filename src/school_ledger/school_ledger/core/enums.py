from __future__ import annotations

from enum import Enum


class AttendanceStatus(str, Enum):
    """Hourly attendance status as stored in the daily record."""

    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    LEAVE = "leave"
    IN = "in"
    OUT = "out"
    EXAM = "exam"
    MEDICAL = "medical"


class FeeStatus(str, Enum):
    PAID = "paid"
    PARTIALLY_PAID = "partially_paid"
    UNPAID = "unpaid"


class PaymentMethod(str, Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    ONLINE = "online"
    CHECK = "check"


class PaymentType(str, Enum):
    """Regular tuition payment or payment of the grace-period surcharge."""

    REGULAR = "regular"
    GRACE_FEE = "grace_fee"


REASON_REQUIRED_STATUSES = frozenset({AttendanceStatus.LEAVE, AttendanceStatus.MEDICAL})
REFERENCE_REQUIRED_METHODS = frozenset({PaymentMethod.BANK_TRANSFER, PaymentMethod.ONLINE, PaymentMethod.CHECK})
