"""Qt bridge that republishes generation progress as signals."""

from __future__ import annotations

import logging
from concurrent.futures import Future

from PyQt6.QtCore import QObject, pyqtSignal

from ..logging import log_call
from .progress import ProgressEvent


logger = logging.getLogger(__name__)


class ProgressService(QObject):
    """Turn run callbacks into Qt signals for widgets to consume.

    Signals are emitted from whichever thread runs the generation; Qt queues
    them onto the receiver's thread for cross-thread connections.
    """

    progress_updated = pyqtSignal(object)
    generation_finished = pyqtSignal(str)
    generation_failed = pyqtSignal(str)

    @log_call(logger=logger)
    def __init__(self) -> None:
        super().__init__()
        self._last_event: ProgressEvent | None = None

    @property
    def last_event(self) -> ProgressEvent | None:
        return self._last_event

    def report(self, document_snapshot: str, status_label: str) -> None:
        """Progress callback suitable for :class:`GenerationRun`."""

        event = ProgressEvent(document_snapshot, status_label)
        self._last_event = event
        logger.debug("Progress updated", extra={"status": status_label})
        self.progress_updated.emit(event)

    @log_call(logger=logger, include_args=False)
    def watch(self, future: "Future[str]") -> None:
        """Emit ``generation_finished`` or ``generation_failed`` when ``future`` settles."""

        def _settled(done: "Future[str]") -> None:
            if done.cancelled():
                self.generation_failed.emit("Generation was cancelled.")
                return
            error = done.exception()
            if error is not None:
                logger.info("Generation failed", extra={"error": str(error)})
                self.generation_failed.emit(str(error))
                return
            self.generation_finished.emit(done.result())

        future.add_done_callback(_settled)


__all__ = ["ProgressService"]
