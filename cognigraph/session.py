"""
Vault session: the coordinating layer around one open vault.

Owns the vault path, the graph store, the syncer and the watcher. Every
operation runs under a single re-entrant lock, so one sync at a time touches
the store. Opening a vault runs a full sync; closing stops the watcher and
closes the store.
"""

import threading
from pathlib import Path

import structlog

from .config import settings
from .models import GraphData, Node, SyncResult, VaultStatistics
from .object import CognitiveObject
from .storage import GraphStore, open_store
from .sync import VaultSyncer
from .utils import (
    CognigraphError,
    PathValidationError,
    StorageError,
    VaultNotOpenError,
    validate_path_within_vault,
)
from .watcher import FileWatcher

logger = structlog.get_logger(__name__)


class VaultSession:
    """One open vault at a time, with its store and optional watcher."""

    def __init__(self, syncer: VaultSyncer | None = None, storage: str | None = None):
        self.syncer = syncer or VaultSyncer()
        self.storage = storage or settings.storage
        self.vault_path: Path | None = None
        self.store: GraphStore | None = None
        self.watcher: FileWatcher | None = None
        self._lock = threading.RLock()

    @property
    def is_open(self) -> bool:
        return self.store is not None

    def _require_open(self) -> tuple[Path, GraphStore]:
        if self.vault_path is None or self.store is None:
            raise VaultNotOpenError("No vault is open")
        return self.vault_path, self.store

    # ---- lifecycle ----

    def open(self, vault_path: Path | str) -> SyncResult:
        """Open a vault, replacing any vault already open, and run a full sync."""
        vault_path = Path(vault_path).expanduser().resolve()
        if not vault_path.is_dir():
            raise PathValidationError(f"Vault path is not a directory: {vault_path}")

        with self._lock:
            if self.is_open:
                self.close()
            self.store = open_store(vault_path, self.storage)
            self.vault_path = vault_path
            logger.info("vault_opened", vault=str(vault_path), storage=self.storage)
            return self.full_sync()

    def close(self) -> None:
        with self._lock:
            if self.watcher is not None:
                self.watcher.stop()
                self.watcher = None
            if self.store is not None:
                self.store.close()
                logger.info("vault_closed", vault=str(self.vault_path))
            self.store = None
            self.vault_path = None

    def __enter__(self) -> "VaultSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ---- sync ----

    def full_sync(self) -> SyncResult:
        with self._lock:
            vault_path, store = self._require_open()
            return self.syncer.sync_full(vault_path, store)

    def sync_path(self, path: Path | str) -> bool:
        """Incrementally sync one path (absolute, or relative to the vault)."""
        with self._lock:
            vault_path, store = self._require_open()
            return self.syncer.sync_file(Path(path), vault_path, store)

    def start_watching(self) -> FileWatcher:
        with self._lock:
            vault_path, _ = self._require_open()
            if self.watcher is None:
                self.watcher = FileWatcher(
                    vault_path,
                    extensions=self.syncer.registry.extensions(),
                    index_dir_name=self.syncer.index_dir_name,
                )
                self.watcher.start()
            return self.watcher

    def process_pending(self, timeout: float | None = None) -> int:
        """Sync one batch from the watcher. Returns the number of paths handled.

        Per-file load failures are logged and skipped; storage errors propagate.
        """
        with self._lock:
            self._require_open()
            if self.watcher is None:
                raise CognigraphError("Watcher is not running; call start_watching() first")
            watcher = self.watcher

        batch = watcher.get_batch(timeout=timeout)
        if not batch:
            return 0

        handled = 0
        for path in batch:
            try:
                if self.sync_path(path):
                    handled += 1
            except StorageError:
                raise
            except (CognigraphError, OSError) as e:
                logger.warning("watch_sync_failed", path=str(path), error=str(e))

        logger.info("watch_batch_synced", paths=len(batch), handled=handled)
        return handled

    # ---- queries ----

    def graph_data(self) -> GraphData:
        with self._lock:
            _, store = self._require_open()
            return store.get_graph_data()

    def search(self, query: str) -> list[Node]:
        with self._lock:
            _, store = self._require_open()
            return store.search_nodes(query)

    def statistics(self) -> VaultStatistics:
        with self._lock:
            _, store = self._require_open()
            return store.get_statistics()

    # ---- files ----

    def read_note(self, relative_path: str) -> str:
        with self._lock:
            vault_path, _ = self._require_open()
            full_path = validate_path_within_vault(relative_path, vault_path)
            return full_path.read_text(encoding="utf-8")

    def write_note(self, relative_path: str, text: str) -> bool:
        """Write a note inside the vault and sync it."""
        with self._lock:
            vault_path, _ = self._require_open()
            full_path = validate_path_within_vault(relative_path, vault_path)
            full_path.parent.mkdir(parents=True, exist_ok=True)
            full_path.write_text(text, encoding="utf-8")
            logger.info("note_written", path=relative_path, size=len(text))
            return self.sync_path(full_path)

    def save_object(self, relative_path: str, obj: CognitiveObject) -> bool:
        """Serialize an object with the adapter for its path, write it and sync it."""
        with self._lock:
            vault_path, _ = self._require_open()
            adapter = self.syncer.registry.find_adapter_for_path(relative_path)
            if adapter is None:
                raise CognigraphError(f"No adapter for {relative_path}")
            raw = adapter.save(obj)
            full_path = validate_path_within_vault(relative_path, vault_path)
            full_path.parent.mkdir(parents=True, exist_ok=True)
            full_path.write_bytes(raw)
            logger.info("object_saved", path=relative_path, id=str(obj.id), size=len(raw))
            return self.sync_path(full_path)
