"""
Load cemetery road geometry and build the navigation graph from it.

Road plots come from the plot store either as a GeoJSON FeatureCollection
export or as a CSV export of the road_plots table (uid, plot_name,
coordinates as WKT or GeoJSON text).

Usage:
  python graph_loader.py [roads.geojson|road_plots.csv]
"""

import json
import sys
from pathlib import Path
from typing import Dict, List, Tuple

import networkx as nx
import pandas as pd

from errors import InvalidGeometry
from geometry_ingest import LINE_TYPES, RoadFeature, coerce_feature, parse_wkt_linestring
from graph_builder import DEFAULT_K, DEFAULT_MAX_DIST_M, NavigationGraph, build_graph

DATA_DIR = Path("data")
ROADS_GEOJSON = DATA_DIR / "road_plots.geojson"


def load_road_geojson(path=ROADS_GEOJSON) -> List[Dict]:
    """Line features of a FeatureCollection file; other geometries are skipped."""
    with Path(path).open(encoding="utf-8") as f:
        gj = json.load(f)
    if gj.get("type") != "FeatureCollection":
        raise InvalidGeometry(f"{path}: expected a FeatureCollection")
    return [
        feat
        for feat in gj.get("features", [])
        if (feat.get("geometry") or {}).get("type") in LINE_TYPES
    ]


def _row_lines(raw, uid):
    text = str(raw).strip()
    if text.startswith("{"):
        try:
            geometry = json.loads(text)
        except ValueError:
            raise InvalidGeometry(f"road {uid}: unreadable GeoJSON geometry") from None
        return coerce_feature({"type": "Feature", "id": uid, "geometry": geometry}).lines
    return parse_wkt_linestring(text)


def load_road_plots_csv(path) -> List[RoadFeature]:
    df = pd.read_csv(path, dtype={"uid": str})
    missing = {"uid", "coordinates"} - set(df.columns)
    if missing:
        raise InvalidGeometry(f"{path}: missing columns {sorted(missing)}")
    features = []
    for _, row in df.iterrows():
        if pd.isna(row["coordinates"]):
            continue
        uid = row["uid"]
        name = row["plot_name"] if "plot_name" in df.columns and not pd.isna(row["plot_name"]) else None
        features.append(RoadFeature(str(uid), _row_lines(row["coordinates"], uid), name))
    return features


def load_road_features(path=ROADS_GEOJSON):
    if Path(path).suffix.lower() == ".csv":
        return load_road_plots_csv(path)
    return load_road_geojson(path)


def load_navigation_graph(
    path=ROADS_GEOJSON, k: int = DEFAULT_K, max_dist: float = DEFAULT_MAX_DIST_M
) -> NavigationGraph:
    return build_graph(load_road_features(path), k=k, max_dist=max_dist)


def describe_graph(nav: NavigationGraph) -> Tuple[int, int, int]:
    G = nav.graph
    n_nodes = G.number_of_nodes()
    n_edges = G.number_of_edges()
    components = nx.number_connected_components(G) if n_nodes > 0 else 0
    return n_nodes, n_edges, components


def graph_to_records(nav: NavigationGraph) -> Dict[str, List[Dict]]:
    nodes = []
    for node_id, data in nav.graph.nodes(data=True):
        nodes.append({"id": node_id, "lat": data["lat"], "lng": data["lng"]})
    edges = []
    for u, v, key, data in nav.graph.edges(keys=True, data=True):
        edges.append(
            {
                "source": u,
                "target": v,
                "key": key,
                "length_m": round(data["weight"], 2),
                "kind": data["kind"],
                "feature_id": data.get("feature_id"),
            }
        )
    return {"nodes": nodes, "edges": edges}


if __name__ == "__main__":
    source = sys.argv[1] if len(sys.argv) > 1 else ROADS_GEOJSON
    graph = load_navigation_graph(source)
    n_nodes, n_edges, components = describe_graph(graph)
    print(f"Nodes: {n_nodes}, Edges: {n_edges}, Components: {components}")
