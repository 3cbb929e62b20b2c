"""Remote change monitoring for Issuebook.

Uses Watchdog to notice writes to the SQLite files and SQLite's
``PRAGMA data_version`` to tell commits by other processes apart from our
own. Foreign commits are handed to the change reconciler.
"""

from __future__ import annotations

import queue
import sqlite3
import threading
import time
from pathlib import Path
from threading import Event, Thread
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .config import IssuebookConfig
from .logging_config import get_logger

if TYPE_CHECKING:
    from .store import EntityStore

logger = get_logger(__name__)

DB_SUFFIXES = ("", "-wal", "-journal")


def watched_files(db_path: Path) -> set[str]:
    """Names of the files whose writes may carry a commit."""
    return {db_path.name + suffix for suffix in DB_SUFFIXES}


class DataVersionProbe:
    """Detects commits made through connections other than the store's.

    ``PRAGMA data_version`` on a private connection changes whenever any other
    connection commits. The store acknowledges its own commits so only foreign
    ones are reported. A foreign commit that lands just before one of ours is
    noticed by before_own_commit() and kept until the next check.
    """

    def __init__(self, db_path: Path):
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._lock = threading.Lock()
        self._known = self._read()
        self._foreign_pending = False
        self._closed = False

    def _read(self) -> int:
        return self._conn.execute("PRAGMA data_version").fetchone()[0]

    def before_own_commit(self) -> None:
        """Called under the store lock right before the store commits."""
        with self._lock:
            if self._closed:
                return
            if self._read() != self._known:
                self._foreign_pending = True

    def acknowledge(self) -> None:
        """Accept the current version as ours."""
        with self._lock:
            if self._closed:
                return
            self._known = self._read()

    def changed_externally(self) -> bool:
        with self._lock:
            current = self._read()
            changed = self._foreign_pending or current != self._known
            self._foreign_pending = False
            self._known = current
            return changed

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._conn.close()


class DatabaseChangeHandler(FileSystemEventHandler):
    """Push writes to the database files onto a processing queue."""

    def __init__(self, event_queue: queue.Queue, filenames: Iterable[str]):
        super().__init__()
        self.event_queue = event_queue
        self.filenames = set(filenames)

    def _accept(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        path = Path(event.src_path)
        if path.name not in self.filenames:
            return
        self.event_queue.put(path)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._accept(event)

    def on_created(self, event: FileSystemEvent) -> None:
        self._accept(event)


def process_events(
    event_queue: queue.Queue,
    changed: Callable[[], bool],
    on_remote_change: Callable[[], None],
    stop_event: Event,
    batch_window: float = 1.0,
) -> None:
    """Worker: collapse bursts of file events into one data_version check."""
    while not stop_event.is_set():
        try:
            first = event_queue.get(timeout=0.5)
        except queue.Empty:
            continue

        batch = [first]
        start_time = time.time()
        while (time.time() - start_time) < batch_window:
            try:
                batch.append(event_queue.get_nowait())
            except queue.Empty:
                time.sleep(0.05)

        try:
            if changed():
                logger.info(f"Remote change detected ({len(batch)} file event(s))")
                on_remote_change()
        except Exception as e:
            logger.error(f"Error handling remote change: {e}")


class RemoteMonitor:
    """Observer + worker pair; stop() tears both down."""

    def __init__(self, observer: Observer, worker: Thread, stop_event: Event, probe: DataVersionProbe):
        self.observer = observer
        self.worker = worker
        self.stop_event = stop_event
        self.probe = probe

    def stop(self) -> None:
        self.stop_event.set()
        self.observer.stop()
        self.observer.join()
        self.worker.join(timeout=2.0)
        self.probe.close()


def start_remote_monitoring(config: IssuebookConfig, store: "EntityStore") -> Optional[RemoteMonitor]:
    """Start watching the database for out-of-process writes if enabled."""
    if not config.monitoring.enabled:
        return None

    db_path = config.database_path
    if db_path is None:
        logger.info("In-memory database: remote change monitoring disabled")
        return None
    if not db_path.exists():
        logger.error(f"Database does not exist: {db_path}")
        return None

    probe = DataVersionProbe(db_path)
    store.before_commit(probe.before_own_commit)
    store.on_commit(probe.acknowledge)

    event_queue: queue.Queue = queue.Queue()
    stop_event = Event()

    worker = Thread(
        target=process_events,
        args=(
            event_queue,
            probe.changed_externally,
            store.reconciler.remote_store_changed,
            stop_event,
            config.monitoring.debounce_seconds,
        ),
        daemon=True,
        name="IssuebookMonitorWorker",
    )
    worker.start()

    handler = DatabaseChangeHandler(event_queue, watched_files(db_path))
    observer = Observer()
    observer.schedule(handler, str(db_path.parent), recursive=False)
    observer.start()

    logger.info(f"Watching {db_path} for remote changes")
    return RemoteMonitor(observer, worker, stop_event, probe)
