from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from decimal import Decimal
from typing import Any, Mapping, Optional

DEFAULT_COURSE_LIST = ("BCA", "BBA", "MCA", "MBA", "BSc", "MSc", "BA", "MA")


@dataclass(frozen=True)
class SystemDefaults:
    """Process-wide policy values; replaced wholesale on every update."""

    grace_period_months: int = 5
    grace_fee: Decimal = Decimal("500")
    batch_format: str = "YYYY-BATCH"
    course_list: tuple[str, ...] = field(default=DEFAULT_COURSE_LIST)
    notif_fee: bool = True
    notif_attendance: bool = True
    notif_system: bool = True
    min_payment: Decimal = Decimal("500")
    attendance_threshold: int = 80
    currency: str = "INR"
    version: int = 1

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "SystemDefaults":
        """Build from a store row; missing or null columns fall back to defaults."""
        base = asdict(FALLBACK_DEFAULTS)
        for name in cls.field_names():
            if row.get(name) is not None:
                base[name] = row[name]
        return cls(
            grace_period_months=int(base["grace_period_months"]),
            grace_fee=Decimal(str(base["grace_fee"])),
            batch_format=str(base["batch_format"]),
            course_list=tuple(str(c) for c in base["course_list"]),
            notif_fee=bool(base["notif_fee"]),
            notif_attendance=bool(base["notif_attendance"]),
            notif_system=bool(base["notif_system"]),
            min_payment=Decimal(str(base["min_payment"])),
            attendance_threshold=int(base["attendance_threshold"]),
            currency=str(base["currency"]),
            version=int(base["version"]),
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["grace_fee"] = str(self.grace_fee)
        data["min_payment"] = str(self.min_payment)
        data["course_list"] = list(self.course_list)
        return data


FALLBACK_DEFAULTS = SystemDefaults()


def fallback_value(key: str) -> Any:
    return getattr(FALLBACK_DEFAULTS, key)


@dataclass(frozen=True)
class ChangeEvent:
    """Row change delivered by a store's change feed."""

    table: str
    event: str
    new_row: Optional[Mapping[str, Any]] = None
