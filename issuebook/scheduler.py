"""Debounced persistence.

Every queue_save() restarts a single timer; the flush runs once the store has
been quiet for the whole delay.
"""

from __future__ import annotations

import enum
import threading
from typing import Any, Callable, Optional

from .logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_DELAY_SECONDS = 3.0


class SaveState(str, enum.Enum):
    IDLE = "idle"
    PENDING = "pending"


class SaveScheduler:
    """IDLE/PENDING debounce state machine around a flush callable.

    A timer only flushes if its generation is still the current one, so a
    timer that was cancelled (or superseded) can never flush.
    """

    def __init__(self, flush: Callable[[], Any], delay: float = DEFAULT_DELAY_SECONDS):
        self._flush = flush
        self.delay = delay
        self._lock = threading.Lock()
        self._flush_lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._generation = 0
        self._state = SaveState.IDLE
        self.flush_count = 0

    @property
    def state(self) -> SaveState:
        return self._state

    @property
    def pending(self) -> bool:
        return self._state is SaveState.PENDING

    def queue_save(self) -> None:
        """Schedule a flush after the delay, replacing any pending one."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            timer = threading.Timer(self.delay, self._fire, args=(self._generation,))
            timer.daemon = True
            timer.name = "IssuebookSaveTimer"
            self._timer = timer
            self._state = SaveState.PENDING
            timer.start()

    def cancel(self) -> None:
        """Drop the pending flush, if any. Never blocks."""
        with self._lock:
            self._invalidate()

    def flush_now(self) -> Any:
        """Cancel the pending flush and run one synchronously (shutdown hook)."""
        with self._lock:
            self._invalidate()
        return self._run_flush()

    def _invalidate(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._generation += 1
        self._state = SaveState.IDLE

    def _fire(self, generation: int) -> None:
        with self._flush_lock:
            # Checked under the flush lock: a cancel either wins or comes too late
            with self._lock:
                if generation != self._generation or self._state is not SaveState.PENDING:
                    return
            self._call_flush()
        with self._lock:
            # A queue_save() during the flush started a new window
            if generation == self._generation:
                self._timer = None
                self._state = SaveState.IDLE

    def _run_flush(self) -> Any:
        with self._flush_lock:
            return self._call_flush()

    def _call_flush(self) -> Any:
        try:
            result = self._flush()
        except Exception:
            logger.exception("Deferred save failed")
            return None
        self.flush_count += 1
        return result
