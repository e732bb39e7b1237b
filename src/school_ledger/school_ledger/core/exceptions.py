from __future__ import annotations

from typing import Any, Optional


class DomainError(Exception):
    """Base exception for business rule violations.

    Every error carries a machine readable ``kind`` plus the identity of the
    entity involved so callers can branch without parsing messages.
    """

    kind = "domain_error"
    retryable = False

    def __init__(self, message: str, *, entity: Optional[str] = None, entity_id: Any = None):
        super().__init__(message)
        self.message = message
        self.entity = entity
        self.entity_id = entity_id

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "entity": self.entity,
            "entity_id": None if self.entity_id is None else str(self.entity_id),
            "message": self.message,
            "retryable": self.retryable,
        }


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    kind = "validation_error"


class InvalidAmount(ValidationError):
    kind = "invalid_amount"


class ConcurrencyConflict(DomainError):
    """The stored version moved; re-read and reapply."""

    kind = "concurrency_conflict"
    retryable = True

    def __init__(
        self,
        message: str,
        *,
        entity: Optional[str] = None,
        entity_id: Any = None,
        expected_version: Optional[int] = None,
        actual_version: Optional[int] = None,
    ):
        super().__init__(message, entity=entity, entity_id=entity_id)
        self.expected_version = expected_version
        self.actual_version = actual_version

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["expected_version"] = self.expected_version
        data["actual_version"] = self.actual_version
        return data


class DuplicateRecord(DomainError):
    kind = "duplicate_record"


class RecordNotFound(DomainError):
    kind = "record_not_found"


class StudentNotFound(DomainError):
    kind = "student_not_found"


class StoreUnavailable(DomainError):
    """Transient backing-store failure (timeout, lost connection)."""

    kind = "store_unavailable"

    def __init__(self, message: str, *, operation: str, entity: Optional[str] = None, entity_id: Any = None):
        super().__init__(message, entity=entity, entity_id=entity_id)
        self.operation = operation

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["operation"] = self.operation
        return data
