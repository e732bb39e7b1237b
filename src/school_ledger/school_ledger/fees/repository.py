from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import FeeRecord, Payment


class FeeRepository(Protocol):
    def get(self, fee_id: str) -> Optional[FeeRecord]:
        raise NotImplementedError

    def get_by_student(self, student_id: str) -> Optional[FeeRecord]:
        raise NotImplementedError

    def create(self, record: FeeRecord) -> FeeRecord:
        """Insert a new record; ``DuplicateRecord`` if the student already has one."""

        raise NotImplementedError

    def append_payment(self, record: FeeRecord, payment: Payment, *, expected_version: int) -> FeeRecord:
        """Insert ``payment`` and store ``record`` in one transaction.

        ``record`` already contains ``payment`` as its last element. Raises
        ``ConcurrencyConflict`` when the stored version is not ``expected_version``.
        """

        raise NotImplementedError

    def save_grace_fee(self, record: FeeRecord, *, expected_version: int) -> FeeRecord:
        raise NotImplementedError

    def list_all(self) -> Sequence[FeeRecord]:
        raise NotImplementedError
