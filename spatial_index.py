"""
Nearest-neighbour lookups over graph nodes and edges.

Both lookups run on scipy cKDTrees in the graph's local planar projection:
one over node positions, one over points sampled along every edge. Edge
queries widen the radius by half the sample spacing, then project exactly
onto the candidate edges, so no query rescans the whole graph.
"""

import math
from dataclasses import dataclass
from typing import Hashable, List, Optional, Sequence, Tuple

import numpy as np
from scipy.spatial import cKDTree

from geo import Coordinate, LocalProjection

EDGE_SAMPLE_SPACING_M = 5.0

EdgeKey = Tuple[Hashable, Hashable, int]


@dataclass(frozen=True)
class EdgeHit:
    edge: EdgeKey
    t: float  # position along the edge, 0 at edge[0], 1 at edge[1]
    point: Coordinate
    xy: Tuple[float, float]
    distance: float


def project_onto_segment(px, py, ax, ay, bx, by) -> Tuple[float, float, float, float]:
    """Closest point on segment AB to P: (t, x, y, distance)."""
    dx, dy = bx - ax, by - ay
    len2 = dx * dx + dy * dy
    if len2 == 0:
        t = 0.0
    else:
        t = ((px - ax) * dx + (py - ay) * dy) / len2
        t = max(0.0, min(1.0, t))
    x, y = ax + t * dx, ay + t * dy
    return t, x, y, math.hypot(px - x, py - y)


class SpatialIndex:
    def __init__(
        self,
        projection: LocalProjection,
        nodes: Sequence[Tuple[Hashable, Coordinate]],
        edges: Sequence[EdgeKey] = (),
        sample_spacing: float = EDGE_SAMPLE_SPACING_M,
    ):
        self.projection = projection
        self.sample_spacing = float(sample_spacing)

        self._ids = [nid for nid, _ in nodes]
        self._pos = {nid: i for i, nid in enumerate(self._ids)}
        self._xy = np.array(
            [projection.project(c) for _, c in nodes], dtype=float
        ).reshape(-1, 2)
        self._tree = cKDTree(self._xy) if len(self._ids) else None

        self._edges = list(edges)
        owners, samples = [], []
        for ei, (u, v, _) in enumerate(self._edges):
            a, b = self._xy[self._pos[u]], self._xy[self._pos[v]]
            length = float(np.hypot(*(b - a)))
            n = max(2, int(math.ceil(length / self.sample_spacing)) + 1)
            samples.append(a + np.outer(np.linspace(0.0, 1.0, n), b - a))
            owners.append(np.full(n, ei, dtype=int))
        if samples:
            self._sample_owner = np.concatenate(owners)
            self._edge_tree = cKDTree(np.concatenate(samples))
        else:
            self._sample_owner = np.zeros(0, dtype=int)
            self._edge_tree = None

    def __len__(self):
        return len(self._ids)

    def xy(self, node_id) -> Tuple[float, float]:
        x, y = self._xy[self._pos[node_id]]
        return float(x), float(y)

    def order(self, node_id) -> int:
        """Insertion position of a node, used for tie-breaking."""
        return self._pos[node_id]

    def nodes_within(self, point: Coordinate, max_dist: float) -> List[Tuple[Hashable, float]]:
        """All nodes within max_dist, nearest first, ties by insertion order."""
        if self._tree is None or max_dist < 0:
            return []
        p = np.array(self.projection.project(point))
        idx = self._tree.query_ball_point(p, r=max_dist)
        found = []
        for i in idx:
            d = float(np.hypot(*(self._xy[i] - p)))
            if d <= max_dist:
                found.append((d, i))
        found.sort()
        return [(self._ids[i], d) for d, i in found]

    def nearest_nodes(self, point: Coordinate, k: int, max_dist: float) -> List[Tuple[Hashable, float]]:
        if k <= 0:
            return []
        return self.nodes_within(point, max_dist)[:k]

    def nearest_edge_point(self, point: Coordinate, max_dist: float) -> Optional[EdgeHit]:
        """Closest point on any edge within max_dist, or None."""
        if self._edge_tree is None or max_dist < 0:
            return None
        px, py = self.projection.project(point)
        radius = max_dist + self.sample_spacing / 2
        candidates = sorted(
            {int(self._sample_owner[i]) for i in self._edge_tree.query_ball_point([px, py], r=radius)}
        )
        best = None
        for ei in candidates:
            u, v, key = self._edges[ei]
            ax, ay = self._xy[self._pos[u]]
            bx, by = self._xy[self._pos[v]]
            t, x, y, d = project_onto_segment(px, py, ax, ay, bx, by)
            if d > max_dist:
                continue
            if best is None or d < best[0]:
                best = (d, ei, t, x, y)
        if best is None:
            return None
        d, ei, t, x, y = best
        return EdgeHit(
            edge=self._edges[ei],
            t=t,
            point=self.projection.unproject(x, y),
            xy=(x, y),
            distance=d,
        )
