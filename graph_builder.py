"""
Turn road segments into a routable, undirected navigation graph.

Segment endpoints become nodes (deduplicated by a quantized coordinate key),
consecutive points of one feature become "road" edges, and endpoints of
different features that lie within max_dist of each other are joined by
"bridge" edges. Bridged nodes keep their own identity.
"""

import logging
import math
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Set

import networkx as nx

from geo import Coordinate, LocalProjection
from geometry_ingest import normalize_segments
from spatial_index import SpatialIndex

logger = logging.getLogger(__name__)

COORD_PRECISION = 6  # ~0.1 m of latitude

DEFAULT_K = 4
DEFAULT_MAX_DIST_M = 80.0


def node_key(c: Coordinate) -> str:
    # + 0.0 folds -0.0 into 0.0 so both round to the same key
    lat = round(c.lat, COORD_PRECISION) + 0.0
    lng = round(c.lng, COORD_PRECISION) + 0.0
    return f"{lat:.{COORD_PRECISION}f},{lng:.{COORD_PRECISION}f}"


@dataclass(frozen=True)
class NavigationGraph:
    """A built graph and its spatial index. Never mutated after build_graph."""

    graph: nx.MultiGraph
    index: SpatialIndex
    projection: LocalProjection
    k: int = DEFAULT_K
    max_dist: float = DEFAULT_MAX_DIST_M
    stats: Dict[str, int] = field(default_factory=dict, compare=False)

    def __contains__(self, node_id) -> bool:
        return node_id in self.graph

    def coordinate(self, node_id) -> Coordinate:
        data = self.graph.nodes[node_id]
        return Coordinate(data["lat"], data["lng"])


def _check_params(k, max_dist):
    if isinstance(k, bool) or not isinstance(k, int) or k < 0:
        raise ValueError(f"k must be a non-negative integer, got {k!r}")
    try:
        max_dist = float(max_dist)
    except (TypeError, ValueError):
        raise ValueError(f"max_dist must be a number, got {max_dist!r}") from None
    if not math.isfinite(max_dist) or max_dist < 0:
        raise ValueError(f"max_dist must be finite and >= 0, got {max_dist!r}")
    return k, max_dist


def build_graph(features, k: int = DEFAULT_K, max_dist: float = DEFAULT_MAX_DIST_M) -> NavigationGraph:
    """
    Build a NavigationGraph from road features.

    Raises InvalidGeometry for malformed features and ValueError for bad
    k / max_dist.
    """
    k, max_dist = _check_params(k, max_dist)
    segments = normalize_segments(features)
    projection = LocalProjection.around(
        c for seg in segments for c in (seg.start, seg.end)
    )

    nodes: "OrderedDict[str, Coordinate]" = OrderedDict()
    node_features: Dict[str, Set[str]] = {}
    G = nx.MultiGraph()
    seen_edges = set()
    dropped_loops = dropped_dupes = 0

    for seg in segments:
        u, v = node_key(seg.start), node_key(seg.end)
        if u == v:
            dropped_loops += 1
            continue
        for nid, c in ((u, seg.start), (v, seg.end)):
            if nid not in nodes:
                nodes[nid] = c
                x, y = projection.project(c)
                G.add_node(nid, lat=c.lat, lng=c.lng, x=x, y=y)
            node_features.setdefault(nid, set()).add(seg.feature_id)
        edge_id = (min(u, v), max(u, v), seg.feature_id)
        if edge_id in seen_edges:
            dropped_dupes += 1
            continue
        seen_edges.add(edge_id)
        G.add_edge(
            u,
            v,
            weight=projection.distance(nodes[u], nodes[v]),
            kind="road",
            feature_id=seg.feature_id,
        )

    node_index = SpatialIndex(projection, list(nodes.items()))

    bridges = 0
    if k > 0:
        for i, (nid, c) in enumerate(nodes.items()):
            added = 0
            for other, d in node_index.nodes_within(c, max_dist):
                if added >= k:
                    break
                if node_index.order(other) >= i:
                    continue
                if not node_features[nid].isdisjoint(node_features[other]):
                    continue
                G.add_edge(nid, other, weight=d, kind="bridge", feature_id=None)
                added += 1
            bridges += added

    nx.freeze(G)
    index = SpatialIndex(projection, list(nodes.items()), list(G.edges(keys=True)))
    stats = {
        "segments": len(segments),
        "nodes": G.number_of_nodes(),
        "edges": G.number_of_edges(),
        "bridges": bridges,
        "dropped_loops": dropped_loops,
        "dropped_duplicates": dropped_dupes,
    }
    logger.info(
        "Built navigation graph: %d nodes, %d edges (%d bridges) from %d segments",
        stats["nodes"],
        stats["edges"],
        bridges,
        len(segments),
    )
    if dropped_loops or dropped_dupes:
        logger.debug("Dropped %d self-loops and %d duplicate edges", dropped_loops, dropped_dupes)
    return NavigationGraph(G, index, projection, k, max_dist, stats)
