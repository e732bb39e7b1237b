from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..core.constants import DEFAULT_CHANGE_FEED_INTERVAL
from ..core.exceptions import StoreUnavailable
from .model import ChangeEvent
from .repository import ChangeFeed, ChangeHandler

logger = logging.getLogger(__name__)

RowFetcher = Callable[[str], Optional[Mapping[str, Any]]]


class PollingChangeFeed(ChangeFeed):
    """Change feed for stores without push notifications.

    One daemon thread polls every subscribed table and emits an ``UPDATE``
    event whenever the row's ``version`` moves. The thread starts with the
    first subscriber and stops when the last one leaves.
    """

    def __init__(self, fetch_row: RowFetcher, *, interval: float = DEFAULT_CHANGE_FEED_INTERVAL):
        self._fetch_row = fetch_row
        self._interval = float(interval)
        self._handlers: Dict[str, List[ChangeHandler]] = {}
        self._last_version: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def subscribe(self, table: str, handler: ChangeHandler) -> Callable[[], None]:
        with self._lock:
            if table not in self._handlers:
                self._handlers[table] = []
                self._last_version[table] = self._current_version(table)
            self._handlers[table].append(handler)
            self._ensure_running()

        def unsubscribe() -> None:
            with self._lock:
                handlers = self._handlers.get(table, [])
                if handler in handlers:
                    handlers.remove(handler)
                if not handlers:
                    self._handlers.pop(table, None)
                    self._last_version.pop(table, None)
                if not self._handlers:
                    self._stop.set()

        return unsubscribe

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self._interval + 1)

    def _ensure_running(self) -> None:
        if self.running and not self._stop.is_set():
            return
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._worker, args=(self._stop,), name="change-feed", daemon=True)
        self._thread.start()

    def _current_version(self, table: str) -> Any:
        try:
            row = self._fetch_row(table)
        except StoreUnavailable:
            logger.warning("change feed could not read %s", table)
            return None
        except Exception:
            logger.exception("change feed could not read %s", table)
            return None
        return row.get("version") if row else None

    def poll_once(self) -> int:
        """Check every table once; returns the number of events delivered."""
        with self._lock:
            tables = {t: list(h) for t, h in self._handlers.items()}

        delivered = 0
        for table, handlers in tables.items():
            try:
                row = self._fetch_row(table)
            except StoreUnavailable:
                logger.warning("change feed poll failed for %s", table)
                continue
            except Exception:
                # Keeps the worker alive; the next poll retries.
                logger.exception("change feed poll failed for %s", table)
                continue
            version = row.get("version") if row else None
            with self._lock:
                if version == self._last_version.get(table):
                    continue
                event = "INSERT" if self._last_version.get(table) is None else "UPDATE"
                self._last_version[table] = version

            change = ChangeEvent(table=table, event=event, new_row=row)
            for handler in handlers:
                try:
                    handler(change)
                    delivered += 1
                except Exception:
                    logger.exception("change feed handler failed for %s", table)
        return delivered

    def _worker(self, stop: threading.Event) -> None:
        while not stop.wait(self._interval):
            self.poll_once()
