"""Single-consumer channel carrying progress events out of a run."""

from __future__ import annotations

import inspect
import logging
import threading
import weakref
from dataclasses import dataclass
from typing import Callable


logger = logging.getLogger(__name__)


ProgressCallback = Callable[[str, str], None]


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    """The document built so far and a human-readable status label."""

    document_snapshot: str
    status_label: str


class ProgressChannel:
    """Deliver progress events to one consumer until the channel closes.

    Events are delivered synchronously on the emitting thread. Only the last
    event is remembered. A consumer that raises is detached and the run
    carries on. With ``weak=True`` only a weak reference to the callback is
    held and the channel closes itself once the consumer drops it.
    """

    def __init__(self, callback: ProgressCallback | None = None, *, weak: bool = False) -> None:
        self._lock = threading.Lock()
        self._closed = False
        self._last: ProgressEvent | None = None
        self._emitted = 0
        self._callback: Callable[[], ProgressCallback | None] | None = None
        if callback is not None:
            if weak:
                if inspect.ismethod(callback):
                    self._callback = weakref.WeakMethod(callback)
                else:
                    self._callback = weakref.ref(callback)
            else:
                self._callback = lambda: callback

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def last_event(self) -> ProgressEvent | None:
        return self._last

    @property
    def emitted_count(self) -> int:
        return self._emitted

    def emit(self, document_snapshot: str, status_label: str) -> bool:
        """Send an event; returns ``False`` when nobody received it."""

        with self._lock:
            if self._closed:
                return False
            event = ProgressEvent(document_snapshot, status_label)
            self._last = event
            callback = self._callback() if self._callback is not None else None
            if self._callback is not None and callback is None:
                logger.debug("Progress consumer released; closing channel")
                self._closed = True
                return False
        if callback is None:
            return False
        self._emitted += 1
        try:
            callback(event.document_snapshot, event.status_label)
        except Exception:
            logger.exception(
                "Progress consumer raised; detaching it",
                extra={"status": status_label},
            )
            self.close()
            return False
        return True

    def close(self) -> None:
        """Stop delivering events. Safe to call more than once."""

        with self._lock:
            self._closed = True
            self._callback = None


__all__ = ["ProgressCallback", "ProgressChannel", "ProgressEvent"]
