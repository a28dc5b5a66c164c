"""
Tests for full and incremental vault synchronization.
"""

import pytest


def edge_pairs(store, relation=None):
    return {
        (edge.src_uuid, edge.dst_uuid)
        for edge in store.get_all_edges()
        if relation is None or edge.relation == relation
    }


class TestSyncFull:
    """Tests for VaultSyncer.sync_full."""

    def test_scenario_vault(self, scenario_vault, syncer, any_store):
        """Test three linked notes give three nodes, mutual links and tag edges."""
        from cognigraph.utils import path_to_uuid, tag_to_uuid

        result = syncer.sync_full(scenario_vault, any_store)

        note1 = path_to_uuid("note1.md")
        note2 = path_to_uuid("note2.md")
        note3 = path_to_uuid("subfolder/note3.md")

        assert result.nodes_synced == 3
        assert result.edges_created >= 5
        assert result.files_skipped == 0
        assert {n.uuid for n in any_store.get_all_nodes()} == {note1, note2, note3}

        links = edge_pairs(any_store, "link")
        assert (note1, note2) in links
        assert (note2, note1) in links
        assert (note3, note1) in links

        tagged = edge_pairs(any_store, "tagged")
        assert tagged == {
            (note1, tag_to_uuid("tag1")),
            (note2, tag_to_uuid("tag2")),
            (note3, tag_to_uuid("tag3")),
        }
        assert result.edges_created == len(links) + len(tagged)

    def test_node_fields(self, scenario_vault, syncer, memory_store):
        """Test nodes carry path, title, default type and a content hash."""
        from cognigraph.utils import content_hash, path_to_uuid

        syncer.sync_full(scenario_vault, memory_store)
        node = memory_store.get_node(path_to_uuid("subfolder/note3.md"))

        assert node.path == "subfolder/note3.md"
        assert node.title == "Note 3"
        assert node.node_type == "note"
        assert node.hash == content_hash(node.content)
        assert node.created_at <= node.updated_at

    def test_idempotent(self, scenario_vault, syncer, any_store):
        """Test running a full sync twice on an unchanged vault gives the same graph."""
        syncer.sync_full(scenario_vault, any_store)
        nodes_before = sorted(any_store.get_all_nodes(), key=lambda n: n.uuid)
        edges_before = sorted(any_store.get_all_edges(), key=lambda e: (e.src_uuid, e.dst_uuid))

        syncer.sync_full(scenario_vault, any_store)
        nodes_after = sorted(any_store.get_all_nodes(), key=lambda n: n.uuid)
        edges_after = sorted(any_store.get_all_edges(), key=lambda e: (e.src_uuid, e.dst_uuid))

        assert nodes_after == nodes_before
        assert edges_after == edges_before

    def test_full_sync_clears_stale_entries(self, scenario_vault, syncer, memory_store):
        """Test a note deleted between two full syncs disappears from the store."""
        from cognigraph.utils import path_to_uuid

        syncer.sync_full(scenario_vault, memory_store)
        (scenario_vault / "note2.md").unlink()
        result = syncer.sync_full(scenario_vault, memory_store)

        assert result.nodes_synced == 2
        assert memory_store.get_node(path_to_uuid("note2.md")) is None
        assert all(path_to_uuid("note2.md") not in pair for pair in edge_pairs(memory_store))

    def test_mixed_vault(self, temp_vault, syncer, any_store):
        """Test hidden files, unclaimed extensions and undecodable notes are not indexed."""
        result = syncer.sync_full(temp_vault, any_store)
        paths = {node.path for node in any_store.get_all_nodes()}

        assert result.nodes_synced == 6
        assert result.files_skipped == 1
        assert "broken.md" not in paths
        assert ".obsidian/workspace.md" not in paths
        assert "References/diagram.png" not in paths
        assert "invalid_frontmatter.md" in paths

    def test_mixed_vault_edges(self, temp_vault, syncer, memory_store):
        """Test link provenance, dropped unresolved links and distinct tag count."""
        from cognigraph.utils import path_to_uuid

        syncer.sync_full(temp_vault, memory_store)

        python = path_to_uuid("Concepts/Python.md")
        docker = path_to_uuid("References/Docker.md")
        dev_setup = path_to_uuid("Sessions/DevSetup.md")
        sources = {
            (edge.src_uuid, edge.dst_uuid): edge.source
            for edge in memory_store.get_all_edges()
        }

        assert sources[(dev_setup, python)] == "WikiLink"
        assert sources[(dev_setup, docker)] == "Embed"
        assert len(edge_pairs(memory_store, "link")) == 6
        assert memory_store.get_statistics().total_tags == 6

    def test_node_types_and_attributes(self, temp_vault, syncer, any_store):
        """Test front matter type, tags and aliases are stored with the node."""
        from cognigraph.utils import path_to_uuid

        syncer.sync_full(temp_vault, any_store)
        python = path_to_uuid("Concepts/Python.md")

        assert any_store.get_node(python).node_type == "concept"
        assert any_store.get_node(path_to_uuid("no_frontmatter.md")).node_type == "note"
        assert any_store.get_tags(python) == ["programming", "language"]
        assert any_store.get_aliases(python) == ["py"]
        assert any_store.get_properties(python)["status"].as_string() == "evergreen"

    def test_duplicate_stems_fan_out(self, tmp_path, syncer, memory_store):
        """Test a link to a stem shared by two files points at both."""
        from cognigraph.utils import path_to_uuid

        (tmp_path / "a").mkdir()
        (tmp_path / "b").mkdir()
        (tmp_path / "a" / "dup.md").write_text("# A dup", encoding="utf-8")
        (tmp_path / "b" / "dup.md").write_text("# B dup", encoding="utf-8")
        (tmp_path / "source.md").write_text("See [[dup]] and [[missing]]", encoding="utf-8")

        result = syncer.sync_full(tmp_path, memory_store)
        source = path_to_uuid("source.md")

        assert edge_pairs(memory_store) == {
            (source, path_to_uuid("a/dup.md")),
            (source, path_to_uuid("b/dup.md")),
        }
        assert result.edges_created == 2

    def test_self_link_kept(self, tmp_path, syncer, memory_store):
        """Test a note linking to itself produces a self edge."""
        from cognigraph.utils import path_to_uuid

        (tmp_path / "loop.md").write_text("# Loop\n\n[[loop]]", encoding="utf-8")

        syncer.sync_full(tmp_path, memory_store)
        uuid = path_to_uuid("loop.md")

        assert edge_pairs(memory_store) == {(uuid, uuid)}

    def test_stem_match_is_exact(self, tmp_path, syncer, memory_store):
        """Test link targets match file stems case-sensitively."""
        (tmp_path / "Target.md").write_text("# Target", encoding="utf-8")
        (tmp_path / "source.md").write_text("[[target]]", encoding="utf-8")

        syncer.sync_full(tmp_path, memory_store)

        assert edge_pairs(memory_store) == set()

    def test_index_directory_not_indexed(self, scenario_vault, syncer, memory_store):
        """Test notes inside the index directory are skipped."""
        from cognigraph.sync import VaultSyncer

        index_dir = scenario_vault / "cognigraph-index"
        index_dir.mkdir()
        (index_dir / "cache.md").write_text("# Cache", encoding="utf-8")

        result = VaultSyncer(index_dir_name="cognigraph-index").sync_full(scenario_vault, memory_store)

        assert result.nodes_synced == 3

    def test_empty_vault(self, tmp_path, syncer, memory_store):
        """Test an empty directory syncs to an empty graph."""
        result = syncer.sync_full(tmp_path, memory_store)

        assert (result.nodes_synced, result.edges_created, result.files_skipped) == (0, 0, 0)

    def test_unusual_front_matter_does_not_abort(self, tmp_path, syncer, any_store):
        """Test invalid dates, huge integers and binary values in front matter still sync."""
        from cognigraph.utils import path_to_uuid

        (tmp_path / "good.md").write_text("# Good\n\n#ok\n", encoding="utf-8")
        (tmp_path / "bad_date.md").write_text("---\ndate: 2024-02-30\n---\n# Bad date\n", encoding="utf-8")
        (tmp_path / "huge.md").write_text("---\nn: " + "9" * 400 + "\n---\n# Huge\n", encoding="utf-8")
        (tmp_path / "blob.md").write_text(
            "---\nmeta: {blob: !!binary aGVsbG8=, ids: !!set {a: null}}\n---\n# Blob\n",
            encoding="utf-8",
        )

        result = syncer.sync_full(tmp_path, any_store)

        assert (result.nodes_synced, result.files_skipped) == (4, 0)
        bad_date = any_store.get_node(path_to_uuid("bad_date.md"))
        assert bad_date.content.startswith("---\ndate: 2024-02-30\n---\n")
        assert "date" not in any_store.get_properties(bad_date.uuid)
        assert any_store.get_properties(path_to_uuid("huge.md"))["n"].is_null()
        meta = any_store.get_properties(path_to_uuid("blob.md"))["meta"]
        assert meta.as_json() == {"blob": "aGVsbG8=", "ids": ["a"]}


class TestSyncFullAsync:
    """Tests for VaultSyncer.sync_full_async."""

    async def test_matches_sync_variant(self, scenario_vault, syncer):
        """Test concurrent reads build the same graph as the sequential sync."""
        from cognigraph.storage import MemoryGraphStore

        sequential, concurrent = MemoryGraphStore(), MemoryGraphStore()
        expected = syncer.sync_full(scenario_vault, sequential)
        result = await syncer.sync_full_async(scenario_vault, concurrent)

        assert result.nodes_synced == expected.nodes_synced
        assert result.edges_created == expected.edges_created
        assert edge_pairs(concurrent) == edge_pairs(sequential)
        assert {n.uuid for n in concurrent.get_all_nodes()} == {n.uuid for n in sequential.get_all_nodes()}

    async def test_skips_undecodable(self, temp_vault, syncer, memory_store):
        """Test per-file failures are counted, not raised."""
        result = await syncer.sync_full_async(temp_vault, memory_store)

        assert result.nodes_synced == 6
        assert result.files_skipped == 1


class TestSyncFile:
    """Tests for VaultSyncer.sync_file."""

    def test_update_rewrites_node_and_tags(self, scenario_vault, syncer, any_store):
        """Test an edited note is re-projected with its new tag edges."""
        from cognigraph.utils import path_to_uuid, tag_to_uuid

        syncer.sync_full(scenario_vault, any_store)
        path = scenario_vault / "note1.md"
        path.write_text("# Note One\n\nNo links now.\n\n#fresh\n", encoding="utf-8")

        assert syncer.sync_file(path, scenario_vault, any_store) is True

        note1 = path_to_uuid("note1.md")
        assert any_store.get_node(note1).title == "Note One"
        assert {pair for pair in edge_pairs(any_store) if note1 in pair} == {
            (note1, tag_to_uuid("fresh")),
        }
        assert any_store.get_tags(note1) == ["fresh"]

    def test_relative_path(self, scenario_vault, syncer, memory_store):
        """Test a path relative to the vault is accepted."""
        from pathlib import Path
        from cognigraph.utils import path_to_uuid

        (scenario_vault / "new.md").write_text("# New", encoding="utf-8")

        assert syncer.sync_file(Path("new.md"), scenario_vault, memory_store) is True
        assert memory_store.get_node(path_to_uuid("new.md")).path == "new.md"

    def test_deleted_file_removes_node_and_edges(self, scenario_vault, syncer, any_store):
        """Test syncing a path that no longer exists removes it from the graph."""
        from cognigraph.utils import path_to_uuid

        syncer.sync_full(scenario_vault, any_store)
        path = scenario_vault / "note2.md"
        path.unlink()

        assert syncer.sync_file(path, scenario_vault, any_store) is True

        note2 = path_to_uuid("note2.md")
        assert any_store.get_node(note2) is None
        assert all(note2 not in pair for pair in edge_pairs(any_store))
        assert len(any_store.get_all_nodes()) == 2

    def test_unclaimed_and_hidden_paths(self, temp_vault, syncer, memory_store):
        """Test paths no adapter claims, or hidden paths, are not handled."""
        assert syncer.sync_file(temp_vault / "References" / "diagram.png", temp_vault, memory_store) is False
        assert syncer.sync_file(temp_vault / ".obsidian" / "workspace.md", temp_vault, memory_store) is False
        assert memory_store.get_all_nodes() == []

    def test_load_errors_propagate(self, temp_vault, syncer, memory_store):
        """Test an undecodable note raises from an incremental sync."""
        from cognigraph.utils import DecodeError

        with pytest.raises(DecodeError):
            syncer.sync_file(temp_vault / "broken.md", temp_vault, memory_store)


class TestCustomAdapter:
    """Tests for plugging a new format into the sync pipeline."""

    def test_registered_adapter_is_synced(self, tmp_path, memory_store):
        """Test a registered adapter's files become nodes and its links become edges."""
        from cognigraph.adapters import AdapterRegistry, ExtractedLink, LinkKind, ObjectAdapter
        from cognigraph.adapters.obsidian import ObsidianAdapter
        from cognigraph.object import CognitiveObject
        from cognigraph.sync import VaultSyncer
        from cognigraph.utils import path_to_uuid

        class ArrowAdapter(ObjectAdapter):
            """First line is the title, '-> name' lines are links."""

            def supported_extensions(self):
                return ("txt",)

            def load(self, relative_path, raw):
                text = raw.decode("utf-8")
                obj = CognitiveObject()
                obj.set_title(text.splitlines()[0] if text else "Untitled")
                obj.set_content(text)
                obj.set_type("plain")
                return obj

            def save(self, obj):
                return (obj.content or "").encode("utf-8")

            def extract_links(self, obj):
                return [
                    ExtractedLink(target=line[3:].strip(), kind=LinkKind.WIKI_LINK)
                    for line in (obj.content or "").splitlines()
                    if line.startswith("-> ")
                ]

        (tmp_path / "plain.txt").write_text("Plain\n-> note\n", encoding="utf-8")
        (tmp_path / "note.md").write_text("# Note\n\n[[plain]]", encoding="utf-8")

        syncer = VaultSyncer(AdapterRegistry([ObsidianAdapter(), ArrowAdapter()]))
        result = syncer.sync_full(tmp_path, memory_store)

        plain, note = path_to_uuid("plain.txt"), path_to_uuid("note.md")
        assert result.nodes_synced == 2
        assert memory_store.get_node(plain).node_type == "plain"
        assert edge_pairs(memory_store) == {(plain, note), (note, plain)}
