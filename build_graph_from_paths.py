"""
Build the navigation graph from the cemetery road export and dump it for inspection.

Outputs:
- data/nodes.csv : graph nodes (quantized coordinate ids)
- data/edges.csv : road edges + bridge connectors between nearby road ends

Usage:
  python build_graph_from_paths.py [roads.geojson|road_plots.csv] [k] [max_dist_m]
"""

import csv
import sys
from pathlib import Path

from graph_loader import ROADS_GEOJSON, describe_graph, graph_to_records, load_navigation_graph
from graph_builder import DEFAULT_K, DEFAULT_MAX_DIST_M

NODES_CSV = Path("data/nodes.csv")
EDGES_CSV = Path("data/edges.csv")


def export_graph(nav, nodes_csv=NODES_CSV, edges_csv=EDGES_CSV):
    records = graph_to_records(nav)
    nodes_csv.parent.mkdir(parents=True, exist_ok=True)
    with nodes_csv.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=["id", "lat", "lng"])
        writer.writeheader()
        writer.writerows(records["nodes"])
    with edges_csv.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(
            f, fieldnames=["source", "target", "key", "length_m", "kind", "feature_id"]
        )
        writer.writeheader()
        writer.writerows(records["edges"])


def main(argv):
    source = Path(argv[0]) if argv else ROADS_GEOJSON
    k = int(argv[1]) if len(argv) > 1 else DEFAULT_K
    max_dist = float(argv[2]) if len(argv) > 2 else DEFAULT_MAX_DIST_M

    nav = load_navigation_graph(source, k=k, max_dist=max_dist)
    export_graph(nav)
    n_nodes, n_edges, components = describe_graph(nav)
    print(
        f"Built graph: nodes={n_nodes}, edges={n_edges}, "
        f"bridges={nav.stats['bridges']}, components={components}"
    )
    if components > 1:
        print(f"Warning: {components} disconnected components; consider a larger max_dist")


if __name__ == "__main__":
    main(sys.argv[1:])
