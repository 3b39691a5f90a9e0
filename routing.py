"""
Shortest walkable path between two graph nodes.

Dijkstra over non-negative edge weights (meters). Parallel edges are all
relaxed; networkx keeps the cheapest per hop. Frontier ties are broken by
push order, so identical inputs give identical paths.
"""

import logging
from dataclasses import dataclass
from typing import List

import networkx as nx

from errors import NoRoute

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PathResult:
    nodes: List[str]
    distance_m: float


def hop_weight(graph: nx.MultiGraph, u, v) -> float:
    """Cheapest parallel edge between u and v."""
    return min(d.get("weight", 0.0) for d in graph[u][v].values())


def shortest_path(graph: nx.MultiGraph, source, target) -> PathResult:
    """Raises NoRoute when target is not reachable from source."""
    try:
        distance, path = nx.single_source_dijkstra(graph, source, target, weight="weight")
    except nx.NetworkXNoPath:
        logger.debug("No path from %s to %s", source, target)
        raise NoRoute(source, target) from None
    logger.debug("Solved %s -> %s: %d hops, %.1f m", source, target, len(path) - 1, distance)
    return PathResult(list(path), float(distance))
