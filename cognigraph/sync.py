"""
Vault synchronization.

VaultSyncer turns a directory of notes into the graph store projection:

- sync_full: clear the store, load every adapter-claimed file, write all
  nodes, then resolve links against a stem index and write all edges
- sync_full_async: same contract, files read concurrently with aiofiles
- sync_file: incremental update of one path (upsert, or delete when the
  file is gone). Link edges are only rebuilt by a full sync, since
  resolving a link target needs the stem index of the whole vault.
"""

import asyncio
import os
import time
from pathlib import Path, PurePosixPath

import aiofiles
import structlog
from pydantic import BaseModel

from .adapters import AdapterRegistry, default_registry
from .config import settings
from .models import Edge, Node, SyncResult
from .object import CognitiveObject
from .storage import GraphStore
from .utils import (
    CognigraphError,
    content_hash,
    is_hidden,
    normalize_relative_path,
    path_to_uuid,
    tag_to_uuid,
    walk_vault,
)

logger = structlog.get_logger(__name__)

DEFAULT_NODE_TYPE = "note"
TAG_EDGE_SOURCE = "tag"


class LoadedFile(BaseModel):
    """An object loaded from disk together with where it came from."""

    obj: CognitiveObject
    relative_path: str
    created_ms: int
    modified_ms: int

    @property
    def uuid(self) -> str:
        return path_to_uuid(self.relative_path)

    @property
    def stem(self) -> str:
        return PurePosixPath(self.relative_path).stem


def _stat_millis(stat: os.stat_result) -> tuple[int, int]:
    modified = stat.st_mtime_ns // 1_000_000
    created = getattr(stat, "st_birthtime", None)
    created_ms = int(created * 1000) if created is not None else modified
    return min(created_ms, modified), modified


class VaultSyncer:
    """Full and incremental synchronization of a vault into a GraphStore.

    Holds no state beyond its adapter registry, which is not modified after
    construction.
    """

    def __init__(
        self,
        registry: AdapterRegistry | None = None,
        index_dir_name: str | None = None,
        follow_symlinks: bool | None = None,
    ):
        self.registry = registry if registry is not None else default_registry()
        self.index_dir_name = index_dir_name or settings.index_dir_name
        self.follow_symlinks = settings.follow_symlinks if follow_symlinks is None else follow_symlinks

    # ---- walking and loading ----

    def relative_path(self, file_path: Path, vault_path: Path) -> str:
        try:
            return normalize_relative_path(file_path.relative_to(vault_path))
        except ValueError:
            return normalize_relative_path(file_path)

    def iter_vault_files(self, vault_path: Path) -> list[Path]:
        """Adapter-claimed files under the vault, skipping hidden components."""
        return [
            path
            for path in walk_vault(vault_path, frozenset({self.index_dir_name}), self.follow_symlinks)
            if self.registry.find_adapter_for_path(path) is not None
        ]

    def _load(self, path: Path, raw: bytes, vault_path: Path) -> LoadedFile | None:
        relative = self.relative_path(path, vault_path)
        adapter = self.registry.find_adapter_for_path(path)
        if adapter is None:
            return None
        try:
            obj = adapter.load(relative, raw)
            created_ms, modified_ms = _stat_millis(path.stat())
        except (CognigraphError, OSError) as e:
            logger.warning("note_load_failed", path=relative, error=str(e))
            return None
        return LoadedFile(obj=obj, relative_path=relative, created_ms=created_ms, modified_ms=modified_ms)

    def collect_objects(self, vault_path: Path) -> tuple[list[LoadedFile], int]:
        """Load every claimed file. Returns (loaded, skipped count)."""
        loaded: list[LoadedFile] = []
        skipped = 0
        for path in self.iter_vault_files(vault_path):
            try:
                raw = path.read_bytes()
            except OSError as e:
                logger.warning("note_read_failed", path=str(path), error=str(e))
                skipped += 1
                continue
            item = self._load(path, raw, vault_path)
            if item is None:
                skipped += 1
            else:
                loaded.append(item)
        return loaded, skipped

    async def _read_file(self, path: Path) -> bytes | None:
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except OSError as e:
            logger.warning("note_read_failed", path=str(path), error=str(e))
            return None

    async def collect_objects_async(self, vault_path: Path) -> tuple[list[LoadedFile], int]:
        """collect_objects with file reads running concurrently."""
        # Directory walk is sync
        files = self.iter_vault_files(vault_path)
        contents = await asyncio.gather(*(self._read_file(path) for path in files))

        loaded: list[LoadedFile] = []
        skipped = 0
        for path, raw in zip(files, contents):
            item = self._load(path, raw, vault_path) if raw is not None else None
            if item is None:
                skipped += 1
            else:
                loaded.append(item)
        return loaded, skipped

    # ---- projection ----

    def build_filename_index(self, loaded: list[LoadedFile]) -> dict[str, list[str]]:
        """Map each file stem to the ids of every file sharing it."""
        index: dict[str, list[str]] = {}
        for item in loaded:
            index.setdefault(item.stem, []).append(item.uuid)
        return index

    def object_to_node(
        self,
        obj: CognitiveObject,
        relative_path: str,
        created_ms: int | None = None,
        modified_ms: int | None = None,
    ) -> Node:
        """Project an object onto a storage node keyed by its path identity."""
        content = obj.content or ""
        title = obj.title or PurePosixPath(relative_path).stem or "Untitled"
        updated_at = modified_ms if modified_ms is not None else obj.updated_at
        created_at = created_ms if created_ms is not None else obj.created_at
        return Node(
            uuid=path_to_uuid(relative_path),
            path=relative_path,
            title=title,
            content=content,
            node_type=obj.object_type() or DEFAULT_NODE_TYPE,
            hash=content_hash(content),
            created_at=created_at,
            updated_at=updated_at,
        )

    def _write_node(self, item: LoadedFile, store: GraphStore) -> None:
        node = self.object_to_node(item.obj, item.relative_path, item.created_ms, item.modified_ms)
        store.upsert_node(node)
        store.save_object_attributes(node.uuid, item.obj)

    def _write_tag_edges(self, src_uuid: str, obj: CognitiveObject, store: GraphStore) -> set[tuple[str, str]]:
        written = set()
        for tag in obj.tags:
            edge = Edge(
                src_uuid=src_uuid,
                dst_uuid=tag_to_uuid(tag),
                relation="tagged",
                source=TAG_EDGE_SOURCE,
            )
            store.upsert_edge(edge)
            written.add((edge.src_uuid, edge.dst_uuid))
        return written

    def _write_graph(self, loaded: list[LoadedFile], store: GraphStore) -> int:
        """Two passes: every node first, then every edge. Returns distinct edges written."""
        for item in loaded:
            self._write_node(item, store)

        index = self.build_filename_index(loaded)
        written: set[tuple[str, str]] = set()

        for item in loaded:
            src_uuid = item.uuid
            adapter = self.registry.find_adapter_for_path(item.relative_path)
            if adapter is not None:
                for link in adapter.extract_links(item.obj):
                    # Unresolved targets are dropped; colliding stems fan out
                    for dst_uuid in index.get(link.target, ()):
                        store.upsert_edge(Edge(
                            src_uuid=src_uuid,
                            dst_uuid=dst_uuid,
                            relation="link",
                            source=link.kind.value,
                        ))
                        written.add((src_uuid, dst_uuid))
            written |= self._write_tag_edges(src_uuid, item.obj, store)

        return len(written)

    # ---- entry points ----

    def sync_full(self, vault_path: Path, store: GraphStore) -> SyncResult:
        """Clear the store and rebuild it from every note in the vault.

        Per-file read, decode and parse failures are logged and skipped.
        StorageError propagates and leaves a partially rebuilt store; running
        sync_full again recovers.
        """
        start = time.perf_counter()
        logger.info("sync_full_started", vault=str(vault_path))

        store.clear_all()
        loaded, skipped = self.collect_objects(vault_path)
        edges = self._write_graph(loaded, store)

        result = SyncResult(
            nodes_synced=len(loaded),
            edges_created=edges,
            files_skipped=skipped,
            duration_ms=int((time.perf_counter() - start) * 1000),
        )
        logger.info("sync_full_completed", vault=str(vault_path), **result.model_dump())
        return result

    async def sync_full_async(self, vault_path: Path, store: GraphStore) -> SyncResult:
        """sync_full with concurrent file reads. Nodes are still all written before edges."""
        start = time.perf_counter()
        logger.info("sync_full_started", vault=str(vault_path), mode="async")

        store.clear_all()
        loaded, skipped = await self.collect_objects_async(vault_path)
        edges = self._write_graph(loaded, store)

        result = SyncResult(
            nodes_synced=len(loaded),
            edges_created=edges,
            files_skipped=skipped,
            duration_ms=int((time.perf_counter() - start) * 1000),
        )
        logger.info("sync_full_completed", vault=str(vault_path), mode="async", **result.model_dump())
        return result

    def sync_file(self, file_path: Path, vault_path: Path, store: GraphStore) -> bool:
        """Bring one path's node up to date.

        Returns True when the path was handled (updated or removed) and False
        when no adapter claims it. Read and load errors propagate.
        """
        file_path = Path(file_path)
        if not file_path.is_absolute():
            file_path = vault_path / file_path
        relative = self.relative_path(file_path, vault_path)
        uuid = path_to_uuid(relative)

        if not file_path.exists():
            store.delete_node(uuid)
            store.delete_edges_incident_to(uuid)
            logger.info("note_removed", path=relative)
            return True

        relative_parts = PurePosixPath(relative)
        if is_hidden(relative_parts) or self.index_dir_name in relative_parts.parts:
            return False

        adapter = self.registry.find_adapter_for_path(file_path)
        if adapter is None:
            return False

        raw = file_path.read_bytes()
        obj = adapter.load(relative, raw)
        created_ms, modified_ms = _stat_millis(file_path.stat())

        self._write_node(
            LoadedFile(obj=obj, relative_path=relative, created_ms=created_ms, modified_ms=modified_ms),
            store,
        )
        store.delete_edges_incident_to(uuid)
        self._write_tag_edges(uuid, obj, store)

        logger.info("note_synced", path=relative, tags=len(obj.tags))
        return True
