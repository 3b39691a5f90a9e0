import math

from geo import Coordinate, LocalProjection, M_PER_DEG
from spatial_index import SpatialIndex, project_onto_segment

PROJ = LocalProjection(0.0, 0.0)
NODES = [
    ("a", Coordinate(0, 0)),
    ("b", Coordinate(0, 0.0001)),
    ("c", Coordinate(0, 0.01)),
]


def test_nearest_nodes_sorted_and_bounded():
    index = SpatialIndex(PROJ, NODES)
    found = index.nearest_nodes(Coordinate(0, 0.00001), k=2, max_dist=50)
    assert [nid for nid, _ in found] == ["a", "b"]
    assert math.isclose(found[0][1], 0.00001 * M_PER_DEG)
    assert math.isclose(found[1][1], 0.00009 * M_PER_DEG)

    assert index.nearest_nodes(Coordinate(0, 0.00001), k=1, max_dist=50) == found[:1]
    assert index.nearest_nodes(Coordinate(0.001, 0), k=3, max_dist=50) == []
    assert index.nearest_nodes(Coordinate(0, 0), k=0, max_dist=50) == []


def test_equal_distances_keep_insertion_order():
    index = SpatialIndex(PROJ, [("right", Coordinate(0, 0.0001)), ("left", Coordinate(0, -0.0001))])
    found = index.nodes_within(Coordinate(0, 0), 20)
    assert [nid for nid, _ in found] == ["right", "left"]


def test_nearest_edge_point_projects_off_vertex():
    index = SpatialIndex(PROJ, NODES, [("a", "b", 0)])
    hit = index.nearest_edge_point(Coordinate(0.00005, 0.00005), max_dist=10)
    assert hit is not None
    assert hit.edge == ("a", "b", 0)
    assert math.isclose(hit.t, 0.5)
    assert math.isclose(hit.distance, 0.00005 * M_PER_DEG)
    assert math.isclose(hit.point.lat, 0.0, abs_tol=1e-12)
    assert math.isclose(hit.point.lng, 0.00005)

    assert index.nearest_edge_point(Coordinate(0.00005, 0.00005), max_dist=5) is None


def test_nearest_edge_point_on_long_edge():
    # ~1.1 km edge: the query is far from both endpoints but near the middle
    index = SpatialIndex(PROJ, NODES, [("a", "c", 0)])
    hit = index.nearest_edge_point(Coordinate(0.0001, 0.005), max_dist=20)
    assert hit is not None
    assert math.isclose(hit.t, 0.5)
    assert math.isclose(hit.distance, 0.0001 * M_PER_DEG)


def test_nearest_edge_prefers_closest_edge():
    index = SpatialIndex(PROJ, NODES, [("a", "b", 0), ("b", "c", 0)])
    hit = index.nearest_edge_point(Coordinate(0.00002, 0.0003), max_dist=30)
    assert hit.edge == ("b", "c", 0)


def test_empty_index():
    index = SpatialIndex(PROJ, [])
    assert len(index) == 0
    assert index.nodes_within(Coordinate(0, 0), 100) == []
    assert index.nearest_edge_point(Coordinate(0, 0), 100) is None


def test_project_onto_segment_clamps():
    t, x, y, d = project_onto_segment(-5, 3, 0, 0, 10, 0)
    assert (t, x, y) == (0.0, 0.0, 0.0)
    assert math.isclose(d, math.hypot(5, 3))
    t, x, y, d = project_onto_segment(4, 3, 0, 0, 10, 0)
    assert (t, x, y, d) == (0.4, 4.0, 0.0, 3.0)
