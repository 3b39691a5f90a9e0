"""
Turn a solved node path into a drawable polyline with a total distance.
"""

import math
from dataclasses import dataclass, field
from typing import List

import networkx as nx

from errors import RouteInvariantError
from geo import Coordinate
from routing import PathResult, hop_weight
from snapper import SnapResult


@dataclass(frozen=True)
class RoutedPolyline:
    polyline: List[Coordinate]
    distance_meters: float
    path: List[str] = field(default_factory=list)
    start_offset_m: float = 0.0
    dest_offset_m: float = 0.0

    def latlngs(self) -> List[List[float]]:
        return [[c.lat, c.lng] for c in self.polyline]


def assemble_route(
    graph: nx.MultiGraph,
    start: SnapResult,
    dest: SnapResult,
    result: PathResult,
) -> RoutedPolyline:
    """
    Sum the traversed edges and render [start, snap, path..., snap, dest].

    Raises RouteInvariantError if the path revisits a node, does not join
    the two snap nodes, or disagrees with the solver's distance.
    """
    path = result.nodes
    if not path or path[0] != start.node_id or path[-1] != dest.node_id:
        raise RouteInvariantError(f"path {path[:1]}..{path[-1:]} does not join the snap nodes")
    if len(set(path)) != len(path):
        raise RouteInvariantError(f"path revisits a node: {path}")

    total = 0.0
    for u, v in zip(path, path[1:]):
        if not graph.has_edge(u, v):
            raise RouteInvariantError(f"path hop {u} -> {v} is not an edge")
        total += hop_weight(graph, u, v)
    if not math.isclose(total, result.distance_m, rel_tol=1e-9, abs_tol=1e-6):
        raise RouteInvariantError(f"edge sum {total} != solver distance {result.distance_m}")

    points = [start.query]
    for nid in path:
        data = graph.nodes[nid]
        points.append(Coordinate(data["lat"], data["lng"]))
    points.append(dest.query)
    polyline = [c for i, c in enumerate(points) if i == 0 or c != points[i - 1]]

    return RoutedPolyline(
        polyline=polyline,
        distance_meters=total,
        path=list(path),
        start_offset_m=start.distance_m,
        dest_offset_m=dest.distance_m,
    )


def format_distance(meters) -> str:
    """'850 m' below 1 km, '1.2 km' from 1 km up. Rounds half up."""
    meters = float(meters)
    if not math.isfinite(meters) or meters < 0:
        raise ValueError(f"distance must be finite and >= 0, got {meters!r}")
    whole = math.floor(meters + 0.5)
    if whole < 1000:
        return f"{whole} m"
    tenths = math.floor(meters / 100 + 0.5)
    return f"{tenths / 10:.1f} km"
