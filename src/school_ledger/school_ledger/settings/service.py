from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Any, Callable, List, Mapping, Optional

from ..common.validators import require_int_range, require_non_empty, require_non_negative
from ..core.constants import SETTINGS_UPDATE_ATTEMPTS
from ..core.exceptions import ConcurrencyConflict, DuplicateRecord, ValidationError
from .model import FALLBACK_DEFAULTS, ChangeEvent, SystemDefaults, fallback_value
from .repository import ChangeFeed, SettingsRepository

logger = logging.getLogger(__name__)

TABLE = "system_defaults"

Subscriber = Callable[[SystemDefaults], None]


def _require_bool(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise ValidationError(f"{field_name} must be true or false", entity=TABLE)
    return value


def _require_courses(value: Any, field_name: str) -> tuple[str, ...]:
    if isinstance(value, str) or not hasattr(value, "__iter__"):
        raise ValidationError(f"{field_name} must be a list of course names", entity=TABLE)
    return tuple(require_non_empty(str(c), field_name) for c in value)


_COERCE: dict[str, Callable[[Any, str], Any]] = {
    "grace_period_months": lambda v, n: require_int_range(v, n, 0, 12),
    "grace_fee": require_non_negative,
    "batch_format": lambda v, n: require_non_empty(v if isinstance(v, str) else None, n),
    "course_list": _require_courses,
    "notif_fee": _require_bool,
    "notif_attendance": _require_bool,
    "notif_system": _require_bool,
    "min_payment": require_non_negative,
    "attendance_threshold": lambda v, n: require_int_range(v, n, 0, 100),
    "currency": lambda v, n: require_non_empty(v if isinstance(v, str) else None, n).upper(),
}


def validate_patch(patch: Mapping[str, Any]) -> dict[str, Any]:
    """Coerce a partial update; ``version`` and unknown keys are rejected."""
    changes: dict[str, Any] = {}
    for key, value in patch.items():
        coerce = _COERCE.get(key)
        if coerce is None:
            raise ValidationError(f"Unknown or read-only setting: {key}", entity=TABLE, entity_id=key)
        changes[key] = coerce(value, key)
    return changes


class ConfigSync:
    """Owns the process-wide ``SystemDefaults``.

    All mutation goes through ``update``; one writer at a time (a second
    caller waits for the first). Subscribers get the full new state once per
    accepted change, whether it came from this process or from the store's
    change feed.
    """

    def __init__(
        self,
        store: SettingsRepository,
        *,
        feed: Optional[ChangeFeed] = None,
        fallback: SystemDefaults = FALLBACK_DEFAULTS,
        max_attempts: int = SETTINGS_UPDATE_ATTEMPTS,
    ):
        self._store = store
        self._feed = feed
        self._fallback = fallback
        self._max_attempts = int(max_attempts)
        self._writer = threading.RLock()
        self._current: Optional[SystemDefaults] = None
        self._subscribers: List[Subscriber] = []
        self._detach_feed: Optional[Callable[[], None]] = None

    def start(self) -> SystemDefaults:
        with self._writer:
            if self._current is not None:
                return self._current

            loaded = self._store.load()
            if loaded is None:
                try:
                    loaded = self._store.insert(self._fallback)
                    logger.info("system defaults bootstrapped with fallback values")
                except DuplicateRecord:
                    # Another process bootstrapped first.
                    loaded = self._store.load() or self._fallback
            self._current = loaded

            if self._feed is not None and self._detach_feed is None:
                self._detach_feed = self._feed.subscribe(TABLE, self._on_change)
            return loaded

    def close(self) -> None:
        with self._writer:
            if self._detach_feed is not None:
                self._detach_feed()
                self._detach_feed = None

    @property
    def current(self) -> SystemDefaults:
        return self._current if self._current is not None else self.start()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        with self._writer:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._writer:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def update(self, patch: Mapping[str, Any]) -> SystemDefaults:
        changes = validate_patch(patch)
        with self._writer:
            base = self.current
            for attempt in range(1, self._max_attempts + 1):
                candidate = replace(base, **changes, version=base.version + 1)
                try:
                    saved = self._store.save(candidate, expected_version=base.version)
                except ConcurrencyConflict:
                    logger.warning("system defaults moved in store (attempt %s), refetching", attempt)
                    base = self._store.load() or base
                    continue

                self._current = saved
                logger.info("system defaults updated to version %s: %s", saved.version, sorted(changes))
                self._notify(saved)
                return saved

        raise ConcurrencyConflict(
            "System defaults kept changing; update not applied",
            entity=TABLE,
            entity_id=1,
            expected_version=base.version,
        )

    def reset_field(self, key: str) -> SystemDefaults:
        if key not in _COERCE:
            raise ValidationError(f"Unknown or read-only setting: {key}", entity=TABLE, entity_id=key)
        return self.update({key: fallback_value(key)})

    def _on_change(self, event: ChangeEvent) -> None:
        if not event.new_row:
            return
        incoming = SystemDefaults.from_row(event.new_row)
        with self._writer:
            if self._current is not None and incoming.version <= self._current.version:
                return
            self._current = incoming
            logger.info("system defaults changed externally, now version %s", incoming.version)
            self._notify(incoming)

    def _notify(self, state: SystemDefaults) -> None:
        for callback in list(self._subscribers):
            try:
                callback(state)
            except Exception:
                logger.exception("system defaults subscriber failed")
