from __future__ import annotations

from typing import Callable, Optional, Protocol

from .model import ChangeEvent, SystemDefaults

ChangeHandler = Callable[[ChangeEvent], None]


class SettingsRepository(Protocol):
    def load(self) -> Optional[SystemDefaults]:
        raise NotImplementedError

    def insert(self, defaults: SystemDefaults) -> SystemDefaults:
        """First-run bootstrap; ``DuplicateRecord`` if the row already exists."""

        raise NotImplementedError

    def save(self, defaults: SystemDefaults, *, expected_version: int) -> SystemDefaults:
        """Replace the row only if its version is ``expected_version``; else ``ConcurrencyConflict``."""

        raise NotImplementedError


class ChangeFeed(Protocol):
    def subscribe(self, table: str, handler: ChangeHandler) -> Callable[[], None]:
        """Deliver row changes of ``table``; returns an unsubscribe callable."""

        raise NotImplementedError
