"""
Graph store for the storage projection.

GraphStore is the interface the syncer writes through. Nodes are keyed by
uuid and edges by (src_uuid, dst_uuid); a second upsert with the same key
fully replaces the stored row. Two implementations:

- MemoryGraphStore: dictionaries, used for tests and ephemeral sessions
- SqliteGraphStore: stdlib sqlite3 in WAL mode, with supplementary
  properties / tags / aliases tables for object attributes
"""

import contextlib
import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterator

import structlog

from .config import settings
from .models import Edge, GraphData, Node, VaultStatistics
from .object import CognitiveObject
from .property import PropertyValue
from .utils import StorageError

logger = structlog.get_logger(__name__)

# Object properties already denormalized onto the node row
NODE_PROPERTIES = frozenset({"title", "content"})


class GraphStore(ABC):
    """Key/value + relation store for nodes, edges and object attributes."""

    @abstractmethod
    def upsert_node(self, node: Node) -> None: ...

    @abstractmethod
    def upsert_edge(self, edge: Edge) -> None: ...

    @abstractmethod
    def get_all_nodes(self) -> list[Node]: ...

    @abstractmethod
    def get_all_edges(self) -> list[Edge]: ...

    @abstractmethod
    def delete_node(self, uuid: str) -> None:
        """Remove a node and its stored attributes. Edges are left alone."""

    @abstractmethod
    def delete_edges_incident_to(self, uuid: str) -> None:
        """Remove every edge with uuid as source or destination."""

    @abstractmethod
    def clear_all(self) -> None: ...

    @abstractmethod
    def save_properties(self, uuid: str, properties: dict[str, PropertyValue]) -> None: ...

    @abstractmethod
    def get_properties(self, uuid: str) -> dict[str, PropertyValue]: ...

    @abstractmethod
    def save_tags(self, uuid: str, tags: list[str]) -> None: ...

    @abstractmethod
    def get_tags(self, uuid: str) -> list[str]: ...

    @abstractmethod
    def save_aliases(self, uuid: str, aliases: list[str]) -> None: ...

    @abstractmethod
    def get_aliases(self, uuid: str) -> list[str]: ...

    def close(self) -> None:
        pass

    # ---- helpers built on the primitives ----

    def save_object_attributes(self, uuid: str, obj: CognitiveObject) -> None:
        """Persist an object's properties, tags and aliases under a node uuid."""
        self.save_properties(uuid, {
            name: value for name, value in obj.properties.items() if name not in NODE_PROPERTIES
        })
        self.save_tags(uuid, list(obj.tags))
        self.save_aliases(uuid, list(obj.aliases))

    def get_node(self, uuid: str) -> Node | None:
        for node in self.get_all_nodes():
            if node.uuid == uuid:
                return node
        return None

    def get_node_by_path(self, path: str) -> Node | None:
        for node in self.get_all_nodes():
            if node.path == path:
                return node
        return None

    def search_nodes(self, query: str) -> list[Node]:
        """Nodes whose title or content contains the query, case-insensitively."""
        query_lower = query.lower()
        return [
            node for node in self.get_all_nodes()
            if query_lower in node.title.lower() or query_lower in node.content.lower()
        ]

    def get_graph_data(self) -> GraphData:
        return GraphData(nodes=self.get_all_nodes(), edges=self.get_all_edges())

    def get_statistics(self) -> VaultStatistics:
        nodes = self.get_all_nodes()
        edges = self.get_all_edges()
        tags = {edge.dst_uuid for edge in edges if edge.relation == "tagged"}
        return VaultStatistics(total_nodes=len(nodes), total_edges=len(edges), total_tags=len(tags))


class MemoryGraphStore(GraphStore):
    """In-process store backed by dictionaries."""

    def __init__(self):
        self._nodes: dict[str, Node] = {}
        self._edges: dict[tuple[str, str], Edge] = {}
        self._properties: dict[str, dict[str, PropertyValue]] = {}
        self._tags: dict[str, list[str]] = {}
        self._aliases: dict[str, list[str]] = {}

    def upsert_node(self, node: Node) -> None:
        self._nodes[node.uuid] = node.model_copy()

    def upsert_edge(self, edge: Edge) -> None:
        self._edges[(edge.src_uuid, edge.dst_uuid)] = edge.model_copy()

    def get_all_nodes(self) -> list[Node]:
        return [node.model_copy() for node in self._nodes.values()]

    def get_all_edges(self) -> list[Edge]:
        return [edge.model_copy() for edge in self._edges.values()]

    def get_node(self, uuid: str) -> Node | None:
        node = self._nodes.get(uuid)
        return node.model_copy() if node else None

    def delete_node(self, uuid: str) -> None:
        self._nodes.pop(uuid, None)
        self._properties.pop(uuid, None)
        self._tags.pop(uuid, None)
        self._aliases.pop(uuid, None)

    def delete_edges_incident_to(self, uuid: str) -> None:
        self._edges = {
            key: edge for key, edge in self._edges.items()
            if uuid not in key
        }

    def clear_all(self) -> None:
        self._nodes.clear()
        self._edges.clear()
        self._properties.clear()
        self._tags.clear()
        self._aliases.clear()

    def save_properties(self, uuid: str, properties: dict[str, PropertyValue]) -> None:
        self._properties[uuid] = dict(properties)

    def get_properties(self, uuid: str) -> dict[str, PropertyValue]:
        return dict(self._properties.get(uuid, {}))

    def save_tags(self, uuid: str, tags: list[str]) -> None:
        self._tags[uuid] = list(dict.fromkeys(tags))

    def get_tags(self, uuid: str) -> list[str]:
        return list(self._tags.get(uuid, []))

    def save_aliases(self, uuid: str, aliases: list[str]) -> None:
        self._aliases[uuid] = list(dict.fromkeys(aliases))

    def get_aliases(self, uuid: str) -> list[str]:
        return list(self._aliases.get(uuid, []))


SCHEMA = """
    CREATE TABLE IF NOT EXISTS nodes (
        uuid TEXT PRIMARY KEY,
        path TEXT NOT NULL,
        title TEXT NOT NULL,
        content TEXT NOT NULL,
        node_type TEXT,
        hash TEXT NOT NULL,
        created_at INTEGER NOT NULL,
        updated_at INTEGER NOT NULL
    );
    CREATE INDEX IF NOT EXISTS nodes_path ON nodes(path);

    -- No foreign keys: tag pseudo-identities never appear in nodes
    CREATE TABLE IF NOT EXISTS edges (
        src_uuid TEXT NOT NULL,
        dst_uuid TEXT NOT NULL,
        relation TEXT NOT NULL,
        weight REAL NOT NULL DEFAULT 1.0,
        source TEXT NOT NULL,
        PRIMARY KEY (src_uuid, dst_uuid)
    );
    CREATE INDEX IF NOT EXISTS edges_dst ON edges(dst_uuid);

    CREATE TABLE IF NOT EXISTS properties (
        object_id TEXT NOT NULL,
        name TEXT NOT NULL,
        value_type TEXT NOT NULL,
        value_json TEXT NOT NULL,
        PRIMARY KEY (object_id, name)
    );

    CREATE TABLE IF NOT EXISTS tags (
        object_id TEXT NOT NULL,
        tag TEXT NOT NULL,
        PRIMARY KEY (object_id, tag)
    );

    CREATE TABLE IF NOT EXISTS aliases (
        object_id TEXT NOT NULL,
        alias TEXT NOT NULL,
        PRIMARY KEY (object_id, alias)
    );
"""

NODE_COLUMNS = "uuid, path, title, content, node_type, hash, created_at, updated_at"
EDGE_COLUMNS = "src_uuid, dst_uuid, relation, weight, source"


def _row_to_node(row: tuple) -> Node:
    uuid, path, title, content, node_type, hash_, created_at, updated_at = row
    return Node(
        uuid=uuid, path=path, title=title, content=content, node_type=node_type,
        hash=hash_, created_at=created_at, updated_at=updated_at,
    )


def _row_to_edge(row: tuple) -> Edge:
    src_uuid, dst_uuid, relation, weight, source = row
    return Edge(src_uuid=src_uuid, dst_uuid=dst_uuid, relation=relation, weight=weight, source=source)


class SqliteGraphStore(GraphStore):
    """SQLite-backed store. One connection, serialized by an internal lock."""

    def __init__(self, db_path: Path | str = ":memory:"):
        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.executescript(SCHEMA)
        except sqlite3.Error as e:
            raise StorageError(f"Failed to open graph store at {db_path}: {e}") from e
        logger.debug("graph_store_opened", path=str(db_path))

    @contextlib.contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                with self._conn:
                    yield self._conn
            except sqlite3.Error as e:
                raise StorageError(str(e)) from e

    def _query(self, sql: str, params: tuple = ()) -> list[tuple]:
        with self._lock:
            try:
                return self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise StorageError(str(e)) from e

    def upsert_node(self, node: Node) -> None:
        with self._transaction() as conn:
            conn.execute(
                f"INSERT OR REPLACE INTO nodes({NODE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (node.uuid, node.path, node.title, node.content, node.node_type,
                 node.hash, node.created_at, node.updated_at),
            )

    def upsert_edge(self, edge: Edge) -> None:
        with self._transaction() as conn:
            conn.execute(
                f"INSERT OR REPLACE INTO edges({EDGE_COLUMNS}) VALUES (?, ?, ?, ?, ?)",
                (edge.src_uuid, edge.dst_uuid, edge.relation, edge.weight, edge.source),
            )

    def get_all_nodes(self) -> list[Node]:
        return [_row_to_node(row) for row in self._query(f"SELECT {NODE_COLUMNS} FROM nodes")]

    def get_all_edges(self) -> list[Edge]:
        return [_row_to_edge(row) for row in self._query(f"SELECT {EDGE_COLUMNS} FROM edges")]

    def get_node(self, uuid: str) -> Node | None:
        rows = self._query(f"SELECT {NODE_COLUMNS} FROM nodes WHERE uuid = ?", (uuid,))
        return _row_to_node(rows[0]) if rows else None

    def get_node_by_path(self, path: str) -> Node | None:
        rows = self._query(f"SELECT {NODE_COLUMNS} FROM nodes WHERE path = ?", (path,))
        return _row_to_node(rows[0]) if rows else None

    def delete_node(self, uuid: str) -> None:
        with self._transaction() as conn:
            conn.execute("DELETE FROM nodes WHERE uuid = ?", (uuid,))
            conn.execute("DELETE FROM properties WHERE object_id = ?", (uuid,))
            conn.execute("DELETE FROM tags WHERE object_id = ?", (uuid,))
            conn.execute("DELETE FROM aliases WHERE object_id = ?", (uuid,))

    def delete_edges_incident_to(self, uuid: str) -> None:
        with self._transaction() as conn:
            conn.execute("DELETE FROM edges WHERE src_uuid = ? OR dst_uuid = ?", (uuid, uuid))

    def clear_all(self) -> None:
        with self._transaction() as conn:
            for table in ("nodes", "edges", "properties", "tags", "aliases"):
                conn.execute(f"DELETE FROM {table}")

    def save_properties(self, uuid: str, properties: dict[str, PropertyValue]) -> None:
        try:
            rows = [
                (uuid, name, value.kind.value, json.dumps(value.to_dict(), ensure_ascii=False))
                for name, value in properties.items()
            ]
        except (TypeError, ValueError) as e:
            raise StorageError(f"Property of {uuid} is not JSON serializable: {e}") from e
        with self._transaction() as conn:
            conn.execute("DELETE FROM properties WHERE object_id = ?", (uuid,))
            conn.executemany(
                "INSERT INTO properties(object_id, name, value_type, value_json) VALUES (?, ?, ?, ?)",
                rows,
            )

    def get_properties(self, uuid: str) -> dict[str, PropertyValue]:
        rows = self._query("SELECT name, value_json FROM properties WHERE object_id = ?", (uuid,))
        return {name: PropertyValue.from_dict(json.loads(value_json)) for name, value_json in rows}

    def save_tags(self, uuid: str, tags: list[str]) -> None:
        with self._transaction() as conn:
            conn.execute("DELETE FROM tags WHERE object_id = ?", (uuid,))
            conn.executemany(
                "INSERT OR IGNORE INTO tags(object_id, tag) VALUES (?, ?)",
                [(uuid, tag) for tag in tags],
            )

    def get_tags(self, uuid: str) -> list[str]:
        rows = self._query("SELECT tag FROM tags WHERE object_id = ? ORDER BY rowid", (uuid,))
        return [row[0] for row in rows]

    def save_aliases(self, uuid: str, aliases: list[str]) -> None:
        with self._transaction() as conn:
            conn.execute("DELETE FROM aliases WHERE object_id = ?", (uuid,))
            conn.executemany(
                "INSERT OR IGNORE INTO aliases(object_id, alias) VALUES (?, ?)",
                [(uuid, alias) for alias in aliases],
            )

    def get_aliases(self, uuid: str) -> list[str]:
        rows = self._query("SELECT alias FROM aliases WHERE object_id = ? ORDER BY rowid", (uuid,))
        return [row[0] for row in rows]

    def get_statistics(self) -> VaultStatistics:
        (total_nodes,), = self._query("SELECT COUNT(*) FROM nodes")
        (total_edges,), = self._query("SELECT COUNT(*) FROM edges")
        (total_tags,), = self._query("SELECT COUNT(DISTINCT dst_uuid) FROM edges WHERE relation = 'tagged'")
        return VaultStatistics(total_nodes=total_nodes, total_edges=total_edges, total_tags=total_tags)

    def close(self) -> None:
        with self._lock:
            self._conn.close()
        logger.debug("graph_store_closed", path=str(self.db_path))


def open_store(vault_path: Path, kind: str | None = None) -> GraphStore:
    """Open the configured store for a vault."""
    kind = kind or settings.storage
    if kind == "memory":
        return MemoryGraphStore()
    if kind == "sqlite":
        return SqliteGraphStore(settings.db_path_for(vault_path))
    raise StorageError(f"Unknown storage kind: {kind}")
