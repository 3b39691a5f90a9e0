"""
Public entry points of the cemetery navigation engine.

    nav = build_graph(features, k=4, max_dist=80)
    route = build_routed_polyline(visitor_fix, grave, nav, start_radius=25, dest_radius=25)
    format_distance(route.distance_meters)  # "140 m"

A NavigationGraph is immutable. Each routing call snaps into its own overlay,
so concurrent calls can share one graph without locking. A geometry refresh
builds a new graph and swaps it into a NavigationStore.
"""

import logging
import threading
from typing import Optional

from geo import parse_lat_lng
from graph_builder import DEFAULT_K, DEFAULT_MAX_DIST_M, NavigationGraph, build_graph
from route_assembler import RoutedPolyline, assemble_route, format_distance
from routing import shortest_path
from snapper import RoutingOverlay, snap

logger = logging.getLogger(__name__)

DEFAULT_SNAP_RADIUS_M = 25.0

__all__ = [
    "DEFAULT_K",
    "DEFAULT_MAX_DIST_M",
    "DEFAULT_SNAP_RADIUS_M",
    "NavigationGraph",
    "NavigationStore",
    "RoutedPolyline",
    "build_graph",
    "build_routed_polyline",
    "format_distance",
]


def build_routed_polyline(
    start,
    destination,
    graph: NavigationGraph,
    start_radius: float = DEFAULT_SNAP_RADIUS_M,
    dest_radius: float = DEFAULT_SNAP_RADIUS_M,
) -> RoutedPolyline:
    """
    Route from start to destination over graph.

    start / destination may be Coordinates or anything parse_lat_lng accepts.
    Raises NoReachablePoint if either end cannot be snapped, NoRoute if both
    snap but lie in different components.
    """
    start = parse_lat_lng(start)
    destination = parse_lat_lng(destination)
    overlay = RoutingOverlay(graph)
    start_snap = snap(graph, start, start_radius, overlay, label="start")
    dest_snap = snap(graph, destination, dest_radius, overlay, label="destination")
    result = shortest_path(overlay.graph, start_snap.node_id, dest_snap.node_id)
    return assemble_route(overlay.graph, start_snap, dest_snap, result)


class NavigationStore:
    """Holds the current NavigationGraph; refresh swaps the whole reference."""

    def __init__(self, graph: Optional[NavigationGraph] = None):
        self._graph = graph
        self._write_lock = threading.Lock()

    def current(self) -> Optional[NavigationGraph]:
        return self._graph

    def swap(self, graph: NavigationGraph) -> Optional[NavigationGraph]:
        with self._write_lock:
            previous, self._graph = self._graph, graph
        logger.info("Swapped navigation graph (%d nodes)", graph.graph.number_of_nodes())
        return previous

    def rebuild(self, features, k: int = DEFAULT_K, max_dist: float = DEFAULT_MAX_DIST_M) -> NavigationGraph:
        """Build from features and swap in; the old graph stays valid for in-flight readers."""
        graph = build_graph(features, k=k, max_dist=max_dist)
        self.swap(graph)
        return graph

    def clear(self) -> None:
        with self._write_lock:
            self._graph = None
