#!/usr/bin/env python3
"""
Test the diagram session: text updates, remote results and interactive edits
"""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from vizcode.config import AppConfig
from vizcode.graph.types import EdgeType
from vizcode.layout.bounds import cluster_bounds
from vizcode.remote.client import ParseServiceClient, ParseServiceError
from vizcode.session import REMOTE_APPLIED, REMOTE_DISABLED, REMOTE_STALE, REMOTE_UNAVAILABLE, DiagramSession
from vizcode.validation.invariants import is_valid

TEXT = "Cluster: A\n  Node: X\nCluster: B\n  Node: Y\nX -> Y [arrow=dashed, label='go']"


def make_session(client=None):
    return DiagramSession(AppConfig(root_dir=Path(".")), client=client, token_factory=lambda: "t")


def node(session, label):
    return next(n for n in session.nodes if n.label == label)


def test_text_update_builds_valid_graph():
    session = make_session()
    status = session.update_from_text(TEXT)

    assert status.generation == 1
    assert status.remote == REMOTE_DISABLED
    assert len(session.clusters) == 2
    assert len(session.nodes) == 2
    assert len(session.edges) == 1
    assert all(c.x is not None for c in session.clusters)
    assert session.text == TEXT
    assert is_valid(session.graph)
    print("✓ Text update produces a valid laid-out graph")


def test_repeated_update_is_stable():
    session = make_session()
    session.update_from_text(TEXT)
    before = [(n.id, n.x, n.y) for n in session.nodes]
    clusters_before = [(c.id, c.x, c.y) for c in session.clusters]

    session.update_from_text(TEXT)

    assert [(n.id, n.x, n.y) for n in session.nodes] == before
    assert [(c.id, c.x, c.y) for c in session.clusters] == clusters_before


def test_adding_a_line_keeps_existing_ids():
    session = make_session()
    session.update_from_text(TEXT)
    ids = {n.label: n.id for n in session.nodes}

    session.update_from_text(TEXT + "\nCluster: C\n  Node: Z")

    assert node(session, "X").id == ids["X"]
    assert node(session, "Y").id == ids["Y"]
    assert node(session, "Z").cluster_id == "c"


def test_add_node_inside_cluster():
    session = make_session()
    session.update_from_text(TEXT)
    x = node(session, "X")

    added = session.add_node("New", x.x + 10, x.y + 10)

    assert added.cluster_id == x.cluster_id
    assert "  Node: New" in session.text.splitlines()
    assert is_valid(session.graph)


def test_add_node_on_empty_canvas_is_floating():
    session = make_session()
    session.update_from_text(TEXT)

    added = session.add_node("Loose", 5, 5, name="loose")

    assert added.cluster_id is None
    assert session.text.splitlines()[0] == "Node: Loose [name=loose]"


def test_drag_node_out_of_cluster():
    session = make_session()
    session.update_from_text(TEXT)
    x = node(session, "X")

    session.move_node(x.id, 5, 5)
    assert node(session, "X").cluster_id == "a"  # settled only on drop

    assert session.finalize_node_move(x.id) is None
    assert node(session, "X").cluster_id is None
    assert session.text.splitlines()[0] == "Node: X"


def test_drag_node_into_other_cluster():
    session = make_session()
    session.update_from_text(TEXT)
    x = node(session, "X")
    y = node(session, "Y")

    session.move_node(x.id, y.x + 5, y.y)
    assert session.finalize_node_move(x.id) == y.cluster_id


def test_delete_node_removes_its_edges():
    session = make_session()
    session.update_from_text(TEXT)

    session.delete_node(node(session, "Y").id)

    assert [n.label for n in session.nodes] == ["X"]
    assert session.edges == []
    assert "->" not in session.text


def test_add_and_delete_edge():
    session = make_session()
    session.update_from_text(TEXT)
    x, y = node(session, "X"), node(session, "Y")

    edge = session.add_edge(y.id, x.id, arrow="double-dotted", label="back")
    assert edge.type == EdgeType.DOUBLE_DOTTED
    assert "Y -> X [arrow=double-dotted, label='back']" in session.text

    session.delete_edge(edge.id)
    assert "Y -> X" not in session.text
    assert len(session.edges) == 1

    with pytest.raises(KeyError):
        session.delete_edge("nope")
    with pytest.raises(KeyError):
        session.add_edge("nope", x.id)


def test_picker_arrow_names():
    session = make_session()
    session.update_from_text(TEXT)
    x, y = node(session, "X"), node(session, "Y")

    assert session.add_edge(x.id, y.id, arrow="single").type == EdgeType.SOLID
    assert session.add_edge(x.id, y.id, arrow="dotted").type == EdgeType.DASHED


def test_rename_then_reparse_keeps_id():
    session = make_session()
    session.update_from_text(TEXT)
    x_id = node(session, "X").id

    session.rename_node(x_id, "xa")
    assert "xa -> Y [arrow=dashed, label='go']" in session.text

    session.update_from_text(session.text)
    assert node(session, "X").id == x_id
    assert node(session, "X").name == "xa"
    assert len(session.edges) == 1


def test_add_cluster():
    session = make_session()
    session.update_from_text(TEXT)

    first = session.add_cluster("Fresh")
    second = session.add_cluster("Fresh")

    assert first.id == "fresh"
    assert second.id == "fresh-2"
    assert "Cluster: Fresh" in session.text
    assert is_valid(session.graph)

    with pytest.raises(ValueError):
        session.add_cluster("   ")


def test_drop_cluster_swaps_cells():
    session = make_session()
    session.update_from_text(TEXT)
    a = next(c for c in session.clusters if c.id == "a")

    session.drop_cluster("b", a.x + 1, a.y + 1)

    b = next(c for c in session.clusters if c.id == "b")
    assert (b.x, b.y) == (a.x, a.y)
    with pytest.raises(KeyError):
        session.drop_cluster("zzz", 0, 0)


def test_move_cluster_carries_members():
    session = make_session()
    session.update_from_text(TEXT)
    box = cluster_bounds(session.clusters, session.nodes)["a"]
    x = node(session, "X")

    session.move_cluster("a", box["x"] + 50, box["y"] - 20)

    moved = node(session, "X")
    assert (moved.x, moved.y) == (x.x + 50, x.y - 20)


def test_remote_result_applied():
    client = MagicMock(spec=ParseServiceClient)
    session = make_session(client)
    session.update_from_text(TEXT)
    ids = {n.label: n.id for n in session.nodes}

    payload = {
        "clusters": [{"id": "ra", "label": "A"}, {"id": "rb", "label": "B"}],
        "nodes": [
            {"id": "rx", "label": "X", "clusterId": "ra"},
            {"id": "ry", "label": "Y", "clusterId": "rb"},
        ],
        "edges": [{"from": "rx", "to": "ry", "label": "remote words", "type": "double"}],
    }
    status = session.apply_remote_payload(session.generation, payload)

    assert status.remote == REMOTE_APPLIED
    assert {n.label: n.id for n in session.nodes} == ids
    assert [c.id for c in session.clusters] == ["a", "b"]
    assert session.edges[0].label == "remote words"
    assert session.edges[0].type == EdgeType.DASHED  # local style wins
    assert is_valid(session.graph)


def test_remote_label_falls_back_to_local():
    session = make_session()
    session.update_from_text(TEXT)
    payload = {
        "clusters": [{"id": "a", "label": "A"}, {"id": "b", "label": "B"}],
        "nodes": [{"id": "x", "label": "X", "clusterId": "a"}, {"id": "y", "label": "Y", "clusterId": "b"}],
        "edges": [{"from": "x", "to": "y"}],
    }
    session.apply_remote_payload(session.generation, payload)

    assert session.edges[0].label == "go"


def test_stale_remote_result_is_discarded():
    session = make_session()
    session.update_from_text(TEXT)
    old_generation = session.generation
    session.update_from_text("Node: Only")

    status = session.apply_remote_payload(old_generation, {"clusters": [], "nodes": [], "edges": []})

    assert status.remote == REMOTE_STALE
    assert [n.label for n in session.nodes] == ["Only"]


def test_remote_failure_keeps_local_result():
    client = MagicMock(spec=ParseServiceClient)
    client.parse.side_effect = ParseServiceError("service down")
    session = make_session(client)

    status = session.update_from_text(TEXT, use_remote=True)

    assert status.remote == REMOTE_UNAVAILABLE
    assert "service down" in status.error
    assert len(session.nodes) == 2


def test_remote_called_when_enabled():
    session = make_session()
    local = make_session()
    local.update_from_text(TEXT)
    client = MagicMock(spec=ParseServiceClient)
    client.parse.return_value = local.graph
    session.client = client

    status = session.update_from_text(TEXT, use_remote=True)

    client.parse.assert_called_once_with(TEXT)
    assert status.remote == REMOTE_APPLIED


def test_malformed_remote_payload():
    session = make_session()
    session.update_from_text(TEXT)

    status = session.apply_remote_payload(session.generation, {"nodes": []})

    assert status.remote == REMOTE_UNAVAILABLE
    assert len(session.nodes) == 2


def test_import_table(tmp_path):
    nodes_csv = tmp_path / "nodes.csv"
    nodes_csv.write_text("Node,Cluster\nWeb,Backend\nDB,Backend\n", encoding="utf-8")

    session = make_session()
    session.import_table(nodes_csv)

    assert sorted(n.label for n in session.nodes) == ["DB", "Web"]
    assert session.clusters[0].label == "Backend"


def test_snapshot_and_routes():
    session = make_session()
    session.update_from_text(TEXT)

    data = session.snapshot()

    assert set(data) >= {"clusters", "nodes", "edges", "routes", "bounds", "prompt"}
    edge_id = session.edges[0].id
    assert edge_id in data["routes"]
    assert len(data["routes"][edge_id]["points"]) >= 2
    assert data["prompt"] == TEXT


def test_remote_payload_with_repeated_cluster_ids_stays_valid():
    session = make_session()
    session.update_from_text(TEXT)
    payload = {
        "clusters": [{"id": "c", "label": "A"}, {"id": "c", "label": "B"}],
        "nodes": [{"id": "x", "label": "X", "clusterId": "c"}, {"id": "y", "label": "Y", "clusterId": "c"}],
        "edges": [{"from": "x", "to": "y"}],
    }
    status = session.apply_remote_payload(session.generation, payload)

    assert status.remote == REMOTE_APPLIED
    ids = [c.id for c in session.clusters]
    assert len(ids) == len(set(ids)) == 2
    assert is_valid(session.graph)
