# cognigraph: index a vault of plain-text notes into a knowledge graph
#
# Package structure:
# - config.py: Settings (pydantic-settings, COGNIGRAPH_ env prefix)
# - logging.py: structlog configuration
# - utils.py: Exceptions, regex patterns, identity and fingerprint helpers
# - property.py: PropertyValue tagged union
# - serialization.py: Physical and virtual sources of an object
# - object.py: ObjectId and CognitiveObject
# - adapters/: ObjectAdapter interface, registry, Obsidian Markdown adapter
# - models.py: Storage projection (Node, Edge, GraphData, ...)
# - storage.py: GraphStore with in-memory and SQLite backends
# - sync.py: VaultSyncer (full and incremental sync)
# - watcher.py: Polling, debounced FileWatcher
# - session.py: VaultSession coordinating store, syncer and watcher
# - main.py: Command-line entry point

__version__ = "0.1.0"
