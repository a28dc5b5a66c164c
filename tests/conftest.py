"""
Pytest configuration and fixtures for cognigraph tests.
"""

import pytest
import structlog
from pathlib import Path


@pytest.fixture(autouse=True)
def reset_logging():
    """Restore structlog defaults so no test keeps logging into a captured stream."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def temp_vault(tmp_path: Path):
    """Create a temporary vault with test notes."""
    vault_path = tmp_path / "vault"
    vault_path.mkdir()

    # Create folder structure
    (vault_path / "Concepts").mkdir()
    (vault_path / "Sessions").mkdir()
    (vault_path / "References").mkdir()
    (vault_path / ".obsidian").mkdir()

    # Note 1: Concept with full frontmatter
    (vault_path / "Concepts" / "Python.md").write_text("""---
date: 2024-01-15
type: concept
status: evergreen
tags:
  - programming
  - language
aliases:
  - py
---

# Python

Python is a programming language.

It has many features like:
- Dynamic typing
- Indentation-based syntax
- Rich standard library

See also [[JavaScript]] for comparison.
""", encoding="utf-8")

    # Note 2: Another concept with links
    (vault_path / "Concepts" / "JavaScript.md").write_text("""---
type: concept
tags: [programming, web]
---

# JavaScript

JavaScript is a web programming language.

It links to [[Python]] and [[Docker]].
""", encoding="utf-8")

    # Note 3: Session note with inline tags and an embed
    (vault_path / "Sessions" / "DevSetup.md").write_text("""---
type: session
---

# Development Setup

Today we configured Python and Docker for development. #devops #setup
The setup includes [[Python#Installation|Python]] configuration.

![[Docker]]
""", encoding="utf-8")

    # Note 4: Reference note with an external link
    (vault_path / "References" / "Docker.md").write_text("""---
type: reference
tags:
  - devops
  - containers
---

# Docker

Docker is a containerization platform. See [the docs](https://docs.docker.com).

Related: [[Python]], [[Kubernetes]]
""", encoding="utf-8")

    # Note 5: Note without frontmatter
    (vault_path / "no_frontmatter.md").write_text("""# Simple Note

This note has no YAML frontmatter.
Just plain markdown content.
""", encoding="utf-8")

    # Note 6: Note with invalid frontmatter
    (vault_path / "invalid_frontmatter.md").write_text("""---
title: [invalid yaml
date: not-a-date
---

This note has invalid YAML frontmatter.
""", encoding="utf-8")

    # Not valid UTF-8: skipped by a full sync
    (vault_path / "broken.md").write_bytes(b"# Broken\n\n\xff\xfe\xfa not text")

    # Hidden folder and unclaimed extension: never indexed
    (vault_path / ".obsidian" / "workspace.md").write_text("# Hidden\n", encoding="utf-8")
    (vault_path / "References" / "diagram.png").write_bytes(b"\x89PNG\r\n\x1a\n")

    yield vault_path


@pytest.fixture
def scenario_vault(tmp_path: Path):
    """Three linked, tagged notes, one of them in a subfolder."""
    vault_path = tmp_path / "scenario"
    vault_path.mkdir()
    (vault_path / "subfolder").mkdir()

    (vault_path / "note1.md").write_text("# Note 1\n\nLinks to [[note2]].\n\n#tag1\n", encoding="utf-8")
    (vault_path / "note2.md").write_text("# Note 2\n\nLinks back to [[note1]].\n\n#tag2\n", encoding="utf-8")
    (vault_path / "subfolder" / "note3.md").write_text("# Note 3\n\nAlso links to [[note1]].\n\n#tag3\n", encoding="utf-8")

    yield vault_path


@pytest.fixture
def memory_store():
    """Create an empty in-memory graph store."""
    from cognigraph.storage import MemoryGraphStore
    return MemoryGraphStore()


@pytest.fixture
def sqlite_store(tmp_path: Path):
    """Create an empty SQLite graph store in a temporary directory."""
    from cognigraph.storage import SqliteGraphStore
    store = SqliteGraphStore(tmp_path / "index" / "graph.db")
    yield store
    store.close()


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request, tmp_path: Path):
    """Each graph store backend in turn."""
    from cognigraph.storage import MemoryGraphStore, SqliteGraphStore

    if request.param == "memory":
        yield MemoryGraphStore()
    else:
        store = SqliteGraphStore(tmp_path / "index" / "graph.db")
        yield store
        store.close()


@pytest.fixture
def syncer():
    """Create a VaultSyncer with the default adapter registry."""
    from cognigraph.sync import VaultSyncer
    return VaultSyncer()
