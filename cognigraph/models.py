"""
Pydantic models for the storage projection of the knowledge graph.

Nodes and edges are a lossy, query-oriented view of CognitiveObjects. They
are always rebuilt from objects, never edited by hand.
"""

from typing import Literal

from pydantic import BaseModel, Field

EdgeRelation = Literal["link", "tagged"]


class Node(BaseModel):
    """Model for a node in the graph store."""

    uuid: str
    path: str
    title: str
    content: str
    node_type: str | None = None
    hash: str
    created_at: int
    updated_at: int


class Edge(BaseModel):
    """Model for an edge in the graph store. Keyed by (src_uuid, dst_uuid)."""

    src_uuid: str
    dst_uuid: str
    relation: EdgeRelation
    weight: float = 1.0
    source: str


class GraphData(BaseModel):
    """Model for the full graph as handed to a viewer."""

    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)


class VaultStatistics(BaseModel):
    """Model for graph store counters."""

    total_nodes: int
    total_edges: int
    total_tags: int


class SyncResult(BaseModel):
    """Model for the result of a full sync."""

    nodes_synced: int
    edges_created: int
    files_skipped: int = 0
    duration_ms: int = 0
