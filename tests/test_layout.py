#!/usr/bin/env python3
"""
Test cluster layout and outline geometry
"""

import itertools

import pytest

from vizcode.graph.types import Cluster, Node
from vizcode.layout.bounds import cluster_bounds, diagram_bounds, find_cluster_at
from vizcode.layout.engine import PACK_STEP, FixedAnchor, layout, pack_shape
from vizcode.layout.placement import find_empty_cluster_position


def _boxes_overlap(a, b):
    return not (
        a["x"] + a["w"] <= b["x"]
        or b["x"] + b["w"] <= a["x"]
        or a["y"] + a["h"] <= b["y"]
        or b["y"] + b["h"] <= a["y"]
    )


def test_five_empty_clusters_form_two_column_grid():
    clusters = [Cluster(id=c, label=c.upper()) for c in "abcde"]
    placed, _ = layout(clusters, [])

    assert len({c.x for c in placed}) == 2
    assert len({c.y for c in placed}) == 3
    assert len({(c.x, c.y) for c in placed}) == 5

    boxes = cluster_bounds(placed, [])
    for a, b in itertools.combinations(boxes.values(), 2):
        assert not _boxes_overlap(a, b)
    print("✓ 5 clusters on a 2x3 grid without overlap")


def test_members_are_packed_around_cell_centre():
    clusters = [Cluster(id="a", label="A")]
    nodes = [Node(id=f"n{i}", label=f"N{i}", x=10 * i + 5, y=7, cluster_id="a") for i in range(4)]
    _, placed = layout(clusters, nodes)

    xs = sorted({n.x for n in placed})
    ys = sorted({n.y for n in placed})
    assert len(xs) == 2 and len(ys) == 2
    assert xs[1] - xs[0] == PACK_STEP
    assert ys[1] - ys[0] == PACK_STEP


def test_floating_nodes_do_not_move():
    clusters = [Cluster(id="a", label="A")]
    nodes = [Node(id="f", label="F", x=33, y=44), Node(id="m", label="M", x=500, y=500, cluster_id="a")]
    _, placed = layout(clusters, nodes)

    assert (placed[0].x, placed[0].y) == (33, 44)


def test_layout_is_idempotent():
    clusters = [Cluster(id="a", label="A"), Cluster(id="b", label="B"), Cluster(id="c", label="C")]
    nodes = [
        Node(id="x", label="X", x=100, y=100, cluster_id="a"),
        Node(id="y", label="Y", x=900, y=300, cluster_id="b"),
        Node(id="z", label="Z", x=950, y=350, cluster_id="b"),
        Node(id="w", label="W", x=40, y=40),
    ]
    c1, n1 = layout(clusters, nodes)
    c2, n2 = layout(c1, n1)

    assert [(c.x, c.y) for c in c2] == [(c.x, c.y) for c in c1]
    for a, b in zip(n1, n2):
        assert a.x == pytest.approx(b.x)
        assert a.y == pytest.approx(b.y)
    print("✓ Layout of a laid-out graph changes nothing")


def test_layout_returns_new_objects():
    clusters = [Cluster(id="a", label="A")]
    nodes = [Node(id="x", label="X", x=100, y=100, cluster_id="a")]
    c1, n1 = layout(clusters, nodes)

    assert c1[0] is not clusters[0]
    assert n1[0] is not nodes[0]
    assert clusters[0].x is None
    assert (nodes[0].x, nodes[0].y) == (100, 100)


def test_fixed_anchor_takes_nearest_cell():
    clusters = [Cluster(id=c, label=c.upper()) for c in "abc"]
    first, _ = layout(clusters, [])
    a = first[0]

    pinned, _ = layout(first, [], fixed=FixedAnchor("c", a.x + 1, a.y + 1))
    c = next(cl for cl in pinned if cl.id == "c")
    assert (c.x, c.y) == (a.x, a.y)
    assert len({(cl.x, cl.y) for cl in pinned}) == 3


def test_pack_shape():
    assert pack_shape(0) == (1, 1)
    assert pack_shape(1) == (1, 1)
    assert pack_shape(2) == (2, 1)
    assert pack_shape(5) == (3, 2)


def test_outline_encloses_members_and_children():
    clusters = [Cluster(id="outer", label="Outer"), Cluster(id="inner", label="Inner", parent_id="outer")]
    nodes = [
        Node(id="a", label="A", x=100, y=100, cluster_id="outer"),
        Node(id="b", label="B", x=400, y=300, cluster_id="inner"),
    ]
    boxes = cluster_bounds(clusters, nodes)

    outer, inner = boxes["outer"], boxes["inner"]
    assert inner["x"] == 400 - 36 - 8
    assert outer["x"] <= 100 - 36
    assert outer["x"] + outer["w"] >= inner["x"] + inner["w"]
    assert outer["y"] + outer["h"] >= inner["y"] + inner["h"]


def test_find_cluster_at_prefers_innermost():
    clusters = [Cluster(id="outer", label="Outer"), Cluster(id="inner", label="Inner", parent_id="outer")]
    nodes = [
        Node(id="a", label="A", x=100, y=100, cluster_id="outer"),
        Node(id="b", label="B", x=400, y=300, cluster_id="inner"),
    ]

    assert find_cluster_at(400, 300, clusters, nodes) == "inner"
    assert find_cluster_at(100, 100, clusters, nodes) == "outer"
    assert find_cluster_at(1500, 1000, clusters, nodes) is None


def test_bounds_survive_parent_cycle():
    clusters = [Cluster(id="a", label="A", parent_id="b"), Cluster(id="b", label="B", parent_id="a")]
    nodes = [Node(id="n", label="N", x=200, y=200, cluster_id="a")]
    boxes = cluster_bounds(clusters, nodes)

    assert set(boxes) == {"a", "b"}


def test_empty_cluster_uses_anchor():
    boxes = cluster_bounds([Cluster(id="e", label="E", x=300, y=200)], [])
    assert boxes["e"] == {"x": 300, "y": 200, "w": 180, "h": 100}


def test_diagram_bounds():
    assert diagram_bounds([], []) == {"x": 0, "y": 0, "w": 800, "h": 600}

    frame = diagram_bounds([], [Node(id="a", label="A", x=100, y=100), Node(id="b", label="B", x=300, y=200)])
    assert frame == {"x": 70, "y": 70, "w": 260, "h": 160}


def test_free_slot_avoids_nodes():
    nodes = [Node(id="a", label="A", x=100, y=100)]
    assert find_empty_cluster_position(180, 100, [], []) == (80, 60)
    assert find_empty_cluster_position(180, 100, nodes, []) == (380, 60)
