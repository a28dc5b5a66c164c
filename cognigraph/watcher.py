"""
Polling file watcher for a vault.

A daemon thread takes an mtime snapshot of the watched files every
`poll_interval` seconds. Changed, created and deleted paths are collected
until nothing has changed for `debounce_ms`, then delivered as one batch on
a queue. The consumer drains the queue at its own pace.

    watcher = FileWatcher(vault_path, extensions={"md"})
    watcher.start()
    for batch in watcher.batches():
        ...
"""

import queue
import threading
import time
from pathlib import Path
from typing import Iterator

import structlog

from .config import settings
from .utils import walk_vault

logger = structlog.get_logger(__name__)

# path -> (mtime_ns, size)
Snapshot = dict[Path, tuple[int, int]]


class FileWatcher:
    """Debounced change notifications for files under a directory."""

    def __init__(
        self,
        vault_path: Path,
        extensions: set[str] | None = None,
        debounce_ms: int | None = None,
        poll_interval: float | None = None,
        index_dir_name: str | None = None,
    ):
        self.vault_path = Path(vault_path)
        self.extensions = {e.lstrip(".").lower() for e in extensions} if extensions else None
        self.debounce = (settings.debounce_ms if debounce_ms is None else debounce_ms) / 1000
        self.poll_interval = settings.poll_interval if poll_interval is None else poll_interval
        self.skip_dirs = frozenset({index_dir_name or settings.index_dir_name})

        self._queue: queue.Queue[list[Path]] = queue.Queue()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _watched(self, path: Path) -> bool:
        return self.extensions is None or path.suffix.lstrip(".").lower() in self.extensions

    def _snapshot(self) -> Snapshot:
        snapshot: Snapshot = {}
        for path in walk_vault(self.vault_path, self.skip_dirs, settings.follow_symlinks):
            if not self._watched(path):
                continue
            try:
                stat = path.stat()
            except OSError:
                # Deleted between listing and stat
                continue
            snapshot[path] = (stat.st_mtime_ns, stat.st_size)
        return snapshot

    @staticmethod
    def _diff(old: Snapshot, new: Snapshot) -> set[Path]:
        changed = {path for path, state in new.items() if old.get(path) != state}
        changed.update(path for path in old if path not in new)
        return changed

    def start(self) -> None:
        """Take the baseline snapshot and start the polling thread."""
        if self.is_running:
            if not self._stop_event.is_set():
                return
            # A previous stop() timed out; the thread exits after its current scan
            self._thread.join()
        self._stop_event.clear()
        baseline = self._snapshot()
        self._thread = threading.Thread(
            target=self._run,
            args=(baseline,),
            name=f"cognigraph-watcher:{self.vault_path.name}",
            daemon=True,
        )
        self._thread.start()
        logger.info("watcher_started", vault=str(self.vault_path), files=len(baseline))

    def stop(self, timeout: float | None = 2.0) -> None:
        """Stop polling. Changes already collected are flushed as a final batch."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("watcher_stop_timeout", vault=str(self.vault_path), timeout=timeout)
                return
            self._thread = None
        logger.info("watcher_stopped", vault=str(self.vault_path))

    def _emit(self, pending: set[Path]) -> None:
        batch = sorted(pending)
        self._queue.put(batch)
        logger.debug("watch_batch", count=len(batch))

    def _run(self, snapshot: Snapshot) -> None:
        pending: set[Path] = set()
        last_change = 0.0

        while not self._stop_event.wait(self.poll_interval):
            try:
                current = self._snapshot()
            except Exception:
                logger.exception("watch_scan_failed", vault=str(self.vault_path))
                continue

            changed = self._diff(snapshot, current)
            snapshot = current
            now = time.monotonic()

            if changed:
                pending |= changed
                last_change = now
            elif pending and now - last_change >= self.debounce:
                self._emit(pending)
                pending = set()

        if pending:
            self._emit(pending)

    def get_batch(self, timeout: float | None = None) -> list[Path] | None:
        """Next batch of changed paths, or None if none arrives within timeout."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def batches(self) -> Iterator[list[Path]]:
        """Yield batches until the watcher is stopped and the queue is drained."""
        while self.is_running or not self._queue.empty():
            batch = self.get_batch(timeout=self.poll_interval)
            if batch is not None:
                yield batch
