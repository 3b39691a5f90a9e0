import math

import networkx as nx
import pytest

from errors import InvalidGeometry
from geo import M_PER_DEG, Coordinate
from geometry_ingest import RoadFeature
from graph_builder import build_graph, node_key

GAP_DEG = 0.00005  # ~5.56 m


def two_roads():
    return [
        RoadFeature.from_latlng("A", [(0, 0), (0, 0.00009)]),
        RoadFeature.from_latlng("B", [(0, 0.00009 + GAP_DEG), (0, 0.00018 + GAP_DEG)]),
    ]


def test_node_key_quantizes():
    assert node_key(Coordinate(15.49421391, 120.55470581)) == "15.494214,120.554706"
    assert node_key(Coordinate(-0.0000001, 0)) == node_key(Coordinate(0, 0))


def test_nearby_ends_of_different_roads_are_bridged():
    nav = build_graph(two_roads(), k=4, max_dist=10)
    G = nav.graph
    a_end = node_key(Coordinate(0, 0.00009))
    b_start = node_key(Coordinate(0, 0.00009 + GAP_DEG))
    assert G.number_of_nodes() == 4
    assert nx.has_path(G, a_end, b_start)
    assert nx.number_connected_components(G) == 1

    bridges = [d for _, _, d in G.edges(data=True) if d["kind"] == "bridge"]
    assert len(bridges) == 1
    assert math.isclose(bridges[0]["weight"], GAP_DEG * M_PER_DEG, rel_tol=1e-6)
    assert nav.stats["bridges"] == 1
    # bridging keeps both nodes
    assert a_end != b_start and a_end in nav and b_start in nav


def test_gap_wider_than_max_dist_stays_disconnected():
    nav = build_graph(two_roads(), k=4, max_dist=1)
    G = nav.graph
    assert nx.number_connected_components(G) == 2
    assert not nx.has_path(G, node_key(Coordinate(0, 0)), node_key(Coordinate(0, 0.00018 + GAP_DEG)))


def test_k_zero_disables_bridging():
    nav = build_graph(two_roads(), k=0, max_dist=10)
    assert nx.number_connected_components(nav.graph) == 2


def test_vertices_of_one_road_are_not_bridged():
    feat = RoadFeature.from_latlng("A", [(0, 0), (0, 0.00001), (0, 0.00002), (0.00001, 0.00002)])
    nav = build_graph([feat], k=4, max_dist=80)
    kinds = [d["kind"] for _, _, d in nav.graph.edges(data=True)]
    assert kinds == ["road", "road", "road"]


def test_edge_weights_are_planar_meters():
    nav = build_graph([RoadFeature.from_latlng("A", [(0, 0), (0.0001, 0)])], k=4, max_dist=5)
    (_, _, w), = nav.graph.edges(data="weight")
    assert math.isclose(w, 0.0001 * M_PER_DEG)


def test_duplicate_points_and_shared_vertices():
    feats = [
        RoadFeature.from_latlng("A", [(0, 0), (0, 0), (0, 0.0001)]),
        RoadFeature.from_latlng("B", [(0, 0.0001), (0.0001, 0.0001)]),
    ]
    nav = build_graph(feats, k=4, max_dist=5)
    G = nav.graph
    assert G.number_of_nodes() == 3
    assert G.number_of_edges() == 2
    assert nav.stats["dropped_loops"] == 1
    assert all(w > 0 for _, _, w in G.edges(data="weight"))
    assert not any(u == v for u, v in G.edges())


def test_retraced_segment_is_deduplicated():
    feat = RoadFeature.from_latlng("A", [(0, 0), (0, 0.0001), (0, 0)])
    nav = build_graph([feat], k=4, max_dist=5)
    assert nav.graph.number_of_edges() == 1
    assert nav.stats["dropped_duplicates"] == 1


def test_parallel_roads_keep_parallel_edges():
    feats = [
        RoadFeature.from_latlng("A", [(0, 0), (0, 0.0001)]),
        RoadFeature.from_latlng("B", [(0, 0.0001), (0, 0)]),
    ]
    nav = build_graph(feats, k=4, max_dist=5)
    u, v = node_key(Coordinate(0, 0)), node_key(Coordinate(0, 0.0001))
    assert nav.graph.number_of_edges(u, v) == 2


def test_graph_is_frozen_and_indexed():
    nav = build_graph(two_roads(), k=4, max_dist=10)
    with pytest.raises(nx.NetworkXError):
        nav.graph.add_edge("x", "y")
    assert len(nav.index) == nav.graph.number_of_nodes()
    hit = nav.index.nearest_edge_point(Coordinate(0.00001, 0.00004), 5)
    assert hit is not None and nav.graph.has_edge(*hit.edge[:2])


def test_bad_parameters():
    with pytest.raises(ValueError):
        build_graph(two_roads(), k=-1, max_dist=10)
    with pytest.raises(ValueError):
        build_graph(two_roads(), k=4, max_dist=float("nan"))
    with pytest.raises(InvalidGeometry):
        build_graph([RoadFeature.from_latlng("short", [(0, 0)])])


def test_empty_input_builds_empty_graph():
    nav = build_graph([], k=4, max_dist=10)
    assert nav.graph.number_of_nodes() == 0
    assert nav.index.nearest_edge_point(Coordinate(0, 0), 100) is None
