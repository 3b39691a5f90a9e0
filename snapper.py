"""
Attach arbitrary coordinates (GPS fix, grave location) to the navigation graph.

A snap finds the nearest point on any edge within the radius. If a node sits
at that point it is reused; otherwise a transient node is inserted there and
the edge is split in two. Splits happen in a RoutingOverlay, a private copy
of the graph owned by one routing request.
"""

import bisect
import itertools
import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import networkx as nx

from errors import NoReachablePoint
from geo import Coordinate, make_coordinate
from graph_builder import NavigationGraph

logger = logging.getLogger(__name__)

NODE_REUSE_TOLERANCE_M = 0.5


@dataclass(frozen=True)
class SnapResult:
    node_id: str
    query: Coordinate
    snapped: Coordinate
    distance_m: float
    transient: bool = False


class RoutingOverlay:
    """Request-local view of a NavigationGraph that can hold snap splits."""

    def __init__(self, nav: NavigationGraph):
        self.nav = nav
        self._graph: Optional[nx.MultiGraph] = None
        self._ids = itertools.count(1)
        # transient node id -> projected position
        self.transient: Dict[str, Tuple[float, float]] = {}
        # base edge -> [(t, node_id), ...] sorted by t, endpoints included
        self.splits: Dict[tuple, List[Tuple[float, str]]] = {}

    @property
    def graph(self) -> nx.MultiGraph:
        return self.nav.graph if self._graph is None else self._graph

    def _writable(self) -> nx.MultiGraph:
        if self._graph is None:
            self._graph = self.nav.graph.copy()
        return self._graph

    def xy(self, node_id) -> Tuple[float, float]:
        if node_id in self.transient:
            return self.transient[node_id]
        return self.nav.index.xy(node_id)

    def node_near(self, xy, tolerance: float) -> Optional[str]:
        """Existing node within tolerance of a projected point, nearest first."""
        point = self.nav.projection.unproject(*xy)
        best = None
        for nid, d in self.nav.index.nearest_nodes(point, 1, tolerance):
            best = (d, 0, nid)
        for order, (nid, (x, y)) in enumerate(self.transient.items(), start=1):
            d = math.hypot(x - xy[0], y - xy[1])
            if d <= tolerance and (best is None or d < best[0]):
                best = (d, order, nid)
        return None if best is None else best[2]

    def split(self, hit) -> str:
        """Insert a transient node at hit.t on hit.edge, splitting the edge."""
        u, v, key = hit.edge
        chain = self.splits.setdefault(hit.edge, [(0.0, u), (1.0, v)])
        pos = bisect.bisect_left([t for t, _ in chain], hit.t)
        (_, a), (_, b) = chain[pos - 1], chain[pos]

        G = self._writable()
        base_data = self.nav.graph.edges[u, v, key]
        if len(chain) == 2:
            G.remove_edge(u, v, key)
        else:
            piece = next(k for k, d in G[a][b].items() if d.get("base") == hit.edge)
            G.remove_edge(a, b, piece)

        nid = f"snap:{next(self._ids)}"
        while nid in G:
            nid = f"snap:{next(self._ids)}"
        x, y = hit.xy
        G.add_node(nid, lat=hit.point.lat, lng=hit.point.lng, x=x, y=y, transient=True)
        self.transient[nid] = (x, y)
        for end in (a, b):
            ex, ey = self.xy(end)
            G.add_edge(
                nid,
                end,
                weight=math.hypot(ex - x, ey - y),
                kind="snap",
                feature_id=base_data.get("feature_id"),
                base=hit.edge,
            )
        chain.insert(pos, (hit.t, nid))
        return nid


def _check_radius(max_radius) -> float:
    try:
        radius = float(max_radius)
    except (TypeError, ValueError):
        raise ValueError(f"snap radius must be a number, got {max_radius!r}") from None
    if math.isnan(radius) or radius < 0:
        raise ValueError(f"snap radius must be >= 0, got {max_radius!r}")
    return radius


def snap(
    nav: NavigationGraph,
    point: Coordinate,
    max_radius: float,
    overlay: Optional[RoutingOverlay] = None,
    label: str = "point",
) -> SnapResult:
    """
    Snap point onto the graph.

    Raises NoReachablePoint when no edge lies within max_radius meters.
    Transient nodes are added to overlay, never to nav.graph.
    """
    point = make_coordinate(point.lat, point.lng)
    radius = _check_radius(max_radius)
    if overlay is None:
        overlay = RoutingOverlay(nav)

    hit = nav.index.nearest_edge_point(point, radius)
    if hit is None:
        raise NoReachablePoint(point, radius, label)

    nid = overlay.node_near(hit.xy, NODE_REUSE_TOLERANCE_M)
    transient = nid is None
    if transient:
        nid = overlay.split(hit)
    qx, qy = nav.projection.project(point)
    sx, sy = overlay.xy(nid)
    data = overlay.graph.nodes[nid]
    result = SnapResult(
        node_id=nid,
        query=point,
        snapped=Coordinate(data["lat"], data["lng"]),
        distance_m=math.hypot(sx - qx, sy - qy),
        transient=transient,
    )
    logger.debug(
        "Snapped %s %s to %s (%.2f m, %s)",
        label,
        point.as_pair(),
        nid,
        result.distance_m,
        "split" if transient else "existing node",
    )
    return result
