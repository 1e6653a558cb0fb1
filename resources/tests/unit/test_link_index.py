"""
Unit tests for LinkIndex.

Tests the two-pass build, graph queries and analytics, graph export, note ids,
and the incremental add/remove/update paths.
"""

from unittest.mock import patch

import networkx as nx
import pytest

from enkidu.services.links.index import IndexState, LinkIndex, build_link_index
from enkidu.utils.config import EnkiduSettings
from enkidu.utils.errors import ServiceError

from resources.tests.helpers.workspace import make_workspace, write_note


@pytest.fixture
def settings(workspace):
    return EnkiduSettings.from_root(workspace)


@pytest.fixture
def index(settings):
    return build_link_index(settings)


class TestBuild:
    """Test suite for the full build."""

    def test_state_transitions(self, settings):
        index = LinkIndex.from_settings(settings)
        assert index.state is IndexState.EMPTY
        assert len(index) == 0

        index.build()

        assert index.state is IndexState.BUILT
        assert index.built_at is not None

    def test_ids_in_scan_order(self, index):
        """Test that daily notes get date ids and every file gets one entry."""
        assert list(index.graph) == ["alpha", "beta", "gamma", "post", "2026-02-15"]

    def test_outgoing_references(self, index):
        outgoing = index.get_outgoing("alpha")

        assert [ref.target for ref in outgoing] == ["beta", "Beta", "missing"]
        assert [ref.line for ref in outgoing] == [1, 1, 2]

    def test_backlinks(self, index):
        backlinks = index.get_backlinks("beta")

        assert [edge.source_id for edge in backlinks] == ["alpha", "alpha"]
        assert [edge.reference.raw for edge in backlinks] == ["[[beta]]", "[[Beta|again]]"]
        assert backlinks[0].source_path.endswith("alpha.md")

    def test_daily_reference_becomes_backlink(self, index):
        assert [edge.source_id for edge in index.get_backlinks("2026-02-15")] == ["post"]
        assert [edge.source_id for edge in index.get_backlinks("post")] == ["2026-02-15"]

    def test_unknown_id_queries_are_empty(self, index):
        assert index.get_backlinks("nope") == []
        assert index.get_outgoing("nope") == []
        assert index.get_entry("nope") is None
        assert "nope" not in index

    def test_graph_is_read_only(self, index):
        graph = index.graph

        with pytest.raises(TypeError):
            graph["alpha"] = graph["beta"]

        graph["alpha"].outgoing.clear()
        assert len(index.get_outgoing("alpha")) == 3

    def test_rebuild_discards_previous_graph(self, workspace, index):
        (workspace / "notes" / "gamma.md").unlink()

        index.build()

        assert "gamma" not in index
        assert len(index) == 4

    def test_failed_rebuild_restores_previous_graph(self, index):
        before = dict(index.graph)

        with patch.object(index.reader, "list_markdown_files", side_effect=RuntimeError("boom")):
            with pytest.raises(RuntimeError):
                index.build()

        assert index.state is IndexState.BUILT
        assert dict(index.graph) == before

    def test_unreadable_note_is_left_out(self, workspace, settings):
        (workspace / "notes" / "binary.md").write_bytes(b"\xff\xfe\x00")

        index = build_link_index(settings)

        assert "binary" not in index
        assert len(index) == 5

    def test_duplicate_stems(self, tmp_path):
        root = make_workspace(tmp_path / "dupes")
        write_note(root, "notes/foo.md", "notes foo")
        write_note(root, "blog/foo.md", "blog foo links [[foo]]")

        index = build_link_index(EnkiduSettings.from_root(root))

        assert list(index.graph) == ["foo", "blog/foo"]
        assert [edge.source_id for edge in index.get_backlinks("foo")] == ["blog/foo"]
        assert index.id_for_path(root / "blog" / "foo.md") == "blog/foo"

    def test_daily_note_with_taken_date_id(self, tmp_path):
        root = make_workspace(tmp_path / "dated")
        write_note(root, "notes/2026-02-15.md", "note named like a date")
        write_note(root, "notes/other.md", "See [[2026-02-15]]")
        write_note(root, "daily/2026/02/15.md", "the daily note")

        index = build_link_index(EnkiduSettings.from_root(root))

        assert len(index) == 3
        assert list(index.graph) == ["2026-02-15", "other", "daily/2026/02/15"]
        assert index.graph["2026-02-15"].file_path.endswith("2026-02-15.md")
        assert index.id_for_path(root / "daily" / "2026" / "02" / "15.md") == "daily/2026/02/15"
        assert [edge.source_id for edge in index.get_backlinks("2026-02-15")] == ["other"]

        cache_path = root / ".enkidu" / "cache" / "links.json"
        index.save_cache(cache_path)
        assert index.is_cache_valid(cache_path)

    def test_daily_dir_from_workspace_config(self, tmp_path):
        root = make_workspace(tmp_path / "custom", config={"daily": {"path": "journal"}})
        write_note(root, "journal/2025/12/31.md", "end of year")
        write_note(root, "notes/review.md", "See [[2025-12-31]]")

        index = build_link_index(EnkiduSettings.from_root(root))

        assert "2025-12-31" in index
        assert [edge.source_id for edge in index.get_backlinks("2025-12-31")] == ["review"]


class TestAnalytics:
    """Test suite for broken links, statistics and rankings."""

    def test_find_broken_links_order(self, index):
        broken = index.find_broken_links()

        assert [(link.source_id, link.reference.target) for link in broken] == [
            ("alpha", "missing"),
            ("post", "gama"),
        ]
        assert broken[1].suggestions[0] == "gamma"

    def test_statistics(self, index):
        stats = index.get_statistics()

        assert stats.total_notes == 5
        assert stats.total_links == 8
        assert stats.broken_links == 2
        assert stats.valid_links == 6

    def test_statistics_consistent_with_broken_links(self, index):
        stats = index.get_statistics()

        assert len(index.find_broken_links()) == stats.broken_links == stats.total_links - stats.valid_links

    def test_orphans(self, index):
        assert index.get_orphans() == ["gamma"]

    def test_most_linked_ties_by_id(self, index):
        ranked = index.get_most_linked(10)

        assert [(item.id, item.count) for item in ranked] == [
            ("alpha", 2),
            ("beta", 2),
            ("2026-02-15", 1),
            ("post", 1),
            ("gamma", 0),
        ]

    def test_most_linked_limit(self, index):
        assert [item.id for item in index.get_most_linked(2)] == ["alpha", "beta"]
        assert index.get_most_linked(0) == []


class TestGraphExport:
    """Test suite for to_networkx and export_graph."""

    def test_to_networkx(self, index):
        graph = index.to_networkx()

        assert isinstance(graph, nx.DiGraph)
        assert graph.number_of_nodes() == 5
        assert graph.has_edge("alpha", "beta")
        assert not graph.has_edge("alpha", "missing")

    def test_export_deduplicates_edges(self, index):
        exported = index.export_graph()
        pairs = [(edge.source, edge.target) for edge in exported.edges]

        assert len(pairs) == len(set(pairs))
        assert sorted(pairs) == sorted([
            ("alpha", "beta"),
            ("beta", "alpha"),
            ("post", "alpha"),
            ("post", "2026-02-15"),
            ("2026-02-15", "post"),
        ])
        assert all(edge.type == "wiki" for edge in exported.edges)

    def test_export_labels(self, index):
        labels = {node.id: node.label for node in index.export_graph().nodes}

        assert labels["beta"] == "Beta Note"
        assert labels["alpha"] == "alpha"

    def test_export_label_falls_back_on_bad_frontmatter(self, workspace, settings):
        write_note(workspace, "notes/broken.md", "---\ntitle: [unclosed\n---\nbody")

        index = build_link_index(settings)
        labels = {node.id: node.label for node in index.export_graph().nodes}

        assert labels["broken"] == "broken"

    def test_export_json_field_names(self, index):
        data = index.export_graph().to_json_dict()

        assert set(data) == {"nodes", "edges"}
        assert set(data["nodes"][0]) == {"id", "label", "path"}
        assert set(data["edges"][0]) == {"source", "target", "type"}


class TestIncrementalUpdates:
    """Test suite for add_note, remove_note and update_note."""

    def test_patching_requires_built_index(self, workspace, settings):
        index = LinkIndex.from_settings(settings)

        with pytest.raises(ServiceError):
            index.add_note(workspace / "notes" / "alpha.md")
        with pytest.raises(ServiceError):
            index.remove_note("alpha")

    def test_add_note_fixes_broken_links(self, workspace, index):
        path = write_note(workspace, "notes/missing.md", "Now here, see [[gamma]].")

        entry = index.add_note(path)

        assert entry.id == "missing"
        assert [edge.source_id for edge in index.get_backlinks("missing")] == ["alpha"]
        assert [edge.source_id for edge in index.get_backlinks("gamma")] == ["missing"]
        assert [link.reference.target for link in index.find_broken_links()] == ["gama"]

    def test_add_note_matches_full_build(self, workspace, settings, index):
        path = write_note(workspace, "blog/missing.md", "[[alpha]]")

        index.add_note(path)
        rebuilt = build_link_index(settings)

        def edges(source, note_id):
            return sorted((edge.source_id, edge.reference.start_offset) for edge in source.get_backlinks(note_id))

        assert set(index.graph) == set(rebuilt.graph)
        for note_id in rebuilt.graph:
            assert edges(index, note_id) == edges(rebuilt, note_id)

    def test_add_note_earlier_in_scan_order(self, tmp_path):
        root = make_workspace(tmp_path / "order")
        write_note(root, "blog/Topic.md", "blog topic")
        write_note(root, "notes/src.md", "[[topic]]")
        settings = EnkiduSettings.from_root(root)
        index = build_link_index(settings)
        assert [edge.source_id for edge in index.get_backlinks("Topic")] == ["src"]

        index.add_note(write_note(root, "notes/TOPIC.md", "notes topic"))
        rebuilt = build_link_index(settings)

        assert list(index.graph) == list(rebuilt.graph) == ["TOPIC", "src", "Topic"]
        assert [edge.source_id for edge in index.get_backlinks("TOPIC")] == ["src"]
        assert index.get_backlinks("Topic") == []
        assert [edge.source_id for edge in rebuilt.get_backlinks("TOPIC")] == ["src"]

    def test_remove_note(self, index):
        assert index.remove_note("beta") is True

        assert "beta" not in index
        assert [edge.source_id for edge in index.get_backlinks("alpha")] == ["post"]
        assert [link.reference.target for link in index.find_broken_links()] == [
            "beta", "Beta", "missing", "gama",
        ]

    def test_remove_unknown_note(self, index):
        assert index.remove_note("nope") is False
        assert len(index) == 5

    def test_update_note(self, workspace, index):
        path = write_note(workspace, "notes/alpha.md", "Only [[gamma]] now.")

        entry = index.update_note(path)

        assert [ref.target for ref in entry.outgoing] == ["gamma"]
        assert index.get_backlinks("beta") == []
        assert [edge.source_id for edge in index.get_backlinks("gamma")] == ["alpha"]
        assert [edge.source_id for edge in index.get_backlinks("alpha")] == ["beta", "post"]

    def test_update_unknown_path_adds_note(self, workspace, index):
        path = write_note(workspace, "notes/delta.md", "[[beta]]")

        index.update_note(path)

        assert "delta" in index
        assert "delta" in [edge.source_id for edge in index.get_backlinks("beta")]
