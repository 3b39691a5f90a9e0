import networkx as nx
import pytest

from errors import NoRoute, RouteInvariantError
from geo import Coordinate
from route_assembler import assemble_route, format_distance
from routing import PathResult, hop_weight, shortest_path
from snapper import SnapResult


def square():
    G = nx.MultiGraph()
    for n, (lat, lng) in {"a": (0, 0), "b": (0, 1), "c": (1, 0), "d": (1, 1)}.items():
        G.add_node(n, lat=lat, lng=lng)
    G.add_edge("a", "b", weight=1.0)
    G.add_edge("a", "c", weight=1.0)
    G.add_edge("b", "d", weight=1.0)
    G.add_edge("c", "d", weight=1.0)
    return G


def test_parallel_edges_use_cheapest():
    G = nx.MultiGraph()
    G.add_edge("a", "b", weight=5.0)
    G.add_edge("a", "b", weight=3.0)
    G.add_edge("b", "c", weight=1.0)
    res = shortest_path(G, "a", "c")
    assert res.nodes == ["a", "b", "c"]
    assert res.distance_m == 4.0
    assert hop_weight(G, "b", "a") == 3.0


def test_ties_break_by_insertion_order():
    G = square()
    first = shortest_path(G, "a", "d")
    assert first.nodes == ["a", "b", "d"]
    assert shortest_path(G, "a", "d") == first


def test_same_node():
    res = shortest_path(square(), "a", "a")
    assert res.nodes == ["a"] and res.distance_m == 0


def test_unreachable_target():
    G = square()
    G.add_node("island")
    with pytest.raises(NoRoute) as err:
        shortest_path(G, "a", "island")
    assert (err.value.source, err.value.target) == ("a", "island")


def _snap(node, lat, lng):
    return SnapResult(node_id=node, query=Coordinate(lat, lng), snapped=Coordinate(lat, lng), distance_m=0.0)


def test_assemble_route_polyline_and_distance():
    G = square()
    res = shortest_path(G, "a", "d")
    route = assemble_route(G, _snap("a", 0, 0), _snap("d", 1.5, 1), res)
    # the start query equals node a and is not repeated
    assert route.latlngs() == [[0, 0], [0, 1], [1, 1], [1.5, 1]]
    assert route.distance_meters == 2.0
    assert route.path == ["a", "b", "d"]


def test_assemble_route_rejects_broken_chains():
    G = square()
    with pytest.raises(RouteInvariantError):
        assemble_route(G, _snap("a", 0, 0), _snap("d", 1, 1), shortest_path(G, "a", "b"))
    with pytest.raises(RouteInvariantError):
        assemble_route(G, _snap("a", 0, 0), _snap("a", 0, 0), PathResult(["a", "b", "a"], 2.0))
    with pytest.raises(RouteInvariantError):
        assemble_route(G, _snap("a", 0, 0), _snap("d", 1, 1), PathResult(["a", "d"], 2.0))


@pytest.mark.parametrize(
    "meters, text",
    [
        (0, "0 m"),
        (850, "850 m"),
        (999, "999 m"),
        (999.4, "999 m"),
        (999.6, "1.0 km"),
        (1000, "1.0 km"),
        (1249, "1.2 km"),
        (1250, "1.3 km"),
        (1500, "1.5 km"),
        (12345, "12.3 km"),
    ],
)
def test_format_distance(meters, text):
    assert format_distance(meters) == text


def test_format_distance_rejects_bad_values():
    for bad in (-1, float("nan"), float("inf")):
        with pytest.raises(ValueError):
            format_distance(bad)
