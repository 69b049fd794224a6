"""
Sequential upload queue.

Items move ``pending -> uploading -> success | error``. ``start()`` drains
pending items one at a time in enqueue order, so items finish in the
order they were queued. Successful items are evicted after a short delay;
failed items stay until removed.
"""

import logging
import secrets
import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

logger = logging.getLogger(__name__)

SUCCESS_EVICT_DELAY = 2.0


class TransferStatus(str, Enum):
    PENDING = "pending"
    UPLOADING = "uploading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class TransferItem:
    id: str
    path: Path
    name: str
    size_bytes: int
    status: TransferStatus = TransferStatus.PENDING
    progress: int = 0
    error: Optional[str] = None
    result: Any = None


class TransferBusyError(Exception):
    """Raised when the queue is changed in a way an active upload forbids."""


UploadFn = Callable[[TransferItem, Callable[[int], None]], Any]
ChangeListener = Callable[[TransferItem], None]


def _new_item_id(name: str) -> str:
    return f"{name}-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


class TransferCoordinator:
    """
    Queue of pending uploads processed one at a time.

    Args:
        upload: Called as ``upload(item, report_progress)`` for each item;
            its return value is stored on the item, an exception marks the
            item as failed.
        evict_after: Seconds a successful item stays visible.
        on_change: Receives a snapshot of an item after each transition.
        timer_factory: Builds the eviction timer, ``threading.Timer`` by default.
    """

    def __init__(
        self,
        upload: UploadFn,
        *,
        evict_after: float = SUCCESS_EVICT_DELAY,
        on_change: Optional[ChangeListener] = None,
        timer_factory: Callable[..., Any] = threading.Timer,
    ):
        self._upload = upload
        self._evict_after = evict_after
        self._on_change = on_change
        self._timer_factory = timer_factory
        self._items: list[TransferItem] = []
        self._lock = threading.RLock()
        self._running = False

    @property
    def items(self) -> list[TransferItem]:
        with self._lock:
            return [replace(item) for item in self._items]

    @property
    def is_running(self) -> bool:
        return self._running

    def get(self, item_id: str) -> Optional[TransferItem]:
        with self._lock:
            item = self._find(item_id)
            return replace(item) if item else None

    def enqueue(self, files: Iterable[str | Path]) -> list[TransferItem]:
        added = []
        for file in files:
            path = Path(file)
            added.append(
                TransferItem(
                    id=_new_item_id(path.name),
                    path=path,
                    name=path.name,
                    size_bytes=path.stat().st_size,
                )
            )
        with self._lock:
            self._items.extend(added)
        for item in added:
            self._notify(item)
        return [replace(item) for item in added]

    def start(self) -> bool:
        """
        Upload every pending item. Returns False without doing anything when
        a run is already active or nothing is pending.
        """
        with self._lock:
            if self._running or not self._has_pending():
                return False
            self._running = True

        try:
            while True:
                with self._lock:
                    item = self._next_pending()
                    if item is None:
                        break
                    self._set(item, status=TransferStatus.UPLOADING, progress=0)
                self._run_one(item)
        finally:
            with self._lock:
                self._running = False
        return True

    def remove(self, item_id: str) -> bool:
        with self._lock:
            item = self._find(item_id)
            if item is None:
                return False
            if item.status is TransferStatus.UPLOADING:
                raise TransferBusyError(f"{item.name} is uploading and cannot be removed")
            self._items.remove(item)
        return True

    def clear(self) -> None:
        with self._lock:
            if self._running:
                raise TransferBusyError("Cannot clear the queue while uploads are in progress")
            self._items.clear()

    # ---- internals ----

    def _run_one(self, item: TransferItem) -> None:
        def report_progress(percent: int) -> None:
            with self._lock:
                self._set(item, progress=max(0, min(100, int(percent))))

        try:
            result = self._upload(replace(item), report_progress)
        except Exception as e:
            logger.warning("Upload of %s failed: %s", item.name, e)
            with self._lock:
                self._set(item, status=TransferStatus.ERROR, error=str(e) or "Upload failed")
            return

        with self._lock:
            self._set(item, status=TransferStatus.SUCCESS, progress=100, result=result)
        logger.info("Uploaded %s", item.name)
        self._schedule_eviction(item.id)

    def _schedule_eviction(self, item_id: str) -> None:
        timer = self._timer_factory(self._evict_after, self._evict, args=(item_id,))
        timer.daemon = True
        timer.start()

    def _evict(self, item_id: str) -> None:
        with self._lock:
            item = self._find(item_id)
            if item is not None and item.status is TransferStatus.SUCCESS:
                self._items.remove(item)

    def _set(self, item: TransferItem, **changes) -> None:
        for key, value in changes.items():
            setattr(item, key, value)
        self._notify(item)

    def _notify(self, item: TransferItem) -> None:
        if self._on_change is not None:
            self._on_change(replace(item))

    def _find(self, item_id: str) -> Optional[TransferItem]:
        return next((item for item in self._items if item.id == item_id), None)

    def _has_pending(self) -> bool:
        return any(item.status is TransferStatus.PENDING for item in self._items)

    def _next_pending(self) -> Optional[TransferItem]:
        return next((item for item in self._items if item.status is TransferStatus.PENDING), None)
