import logging
from pathlib import Path

from flask import Flask, jsonify, request
from flask_cors import CORS
from waitress import serve

from errors import InvalidGeometry, NoReachablePoint, NoRoute
from geo import Coordinate, make_coordinate, parse_lat_lng
from graph_loader import ROADS_GEOJSON, describe_graph, graph_to_records, load_road_features
from navigation import (
    DEFAULT_K,
    DEFAULT_MAX_DIST_M,
    DEFAULT_SNAP_RADIUS_M,
    NavigationStore,
    build_routed_polyline,
    format_distance,
)

logger = logging.getLogger(__name__)

# Cemetery entrance, used when the visitor shares no location
DEFAULT_START = Coordinate(15.4942139, 120.5547058)

app = Flask(__name__)
app.config.from_mapping(
    ROADS_PATH=str(ROADS_GEOJSON),
    GRAPH_K=DEFAULT_K,
    GRAPH_MAX_DIST_M=DEFAULT_MAX_DIST_M,
    SNAP_RADIUS_M=DEFAULT_SNAP_RADIUS_M,
)
app.config.from_prefixed_env()
CORS(app)

STORE = NavigationStore()


def current_graph():
    """Current graph, built from ROADS_PATH on first use if nothing was loaded."""
    nav = STORE.current()
    if nav is None:
        path = Path(app.config["ROADS_PATH"])
        if not path.exists():
            return None
        nav = STORE.rebuild(
            load_road_features(path),
            k=int(app.config["GRAPH_K"]),
            max_dist=float(app.config["GRAPH_MAX_DIST_M"]),
        )
    return nav


def point_arg(prefix: str):
    """Read <prefix> as a coordinate token, or <prefix>_lat / <prefix>_lng."""
    token = request.args.get(prefix)
    if token:
        return parse_lat_lng(token)
    lat = request.args.get(f"{prefix}_lat")
    lng = request.args.get(f"{prefix}_lng")
    if lat is None and lng is None:
        return None
    return make_coordinate(lat, lng)


@app.route("/graph")
def get_graph():
    nav = current_graph()
    if nav is None:
        return jsonify({"error": "road geometry not loaded"}), 503
    out = graph_to_records(nav)
    n_nodes, n_edges, components = describe_graph(nav)
    out["summary"] = {"nodes": n_nodes, "edges": n_edges, "components": components}
    return jsonify(out)


@app.route("/graph/refresh", methods=["POST"])
def refresh_graph():
    payload = request.get_json(silent=True)
    if payload is None:
        return jsonify({"error": "expected a GeoJSON FeatureCollection body"}), 400
    try:
        k = int(request.args.get("k", app.config["GRAPH_K"]))
        max_dist = float(request.args.get("max_dist", app.config["GRAPH_MAX_DIST_M"]))
        nav = STORE.rebuild(payload, k=k, max_dist=max_dist)
    except InvalidGeometry as e:
        logger.warning("Rejected road geometry: %s", e)
        return jsonify({"error": f"invalid geometry: {e}"}), 400
    except (TypeError, ValueError) as e:
        return jsonify({"error": str(e)}), 400
    n_nodes, n_edges, components = describe_graph(nav)
    return jsonify({"nodes": n_nodes, "edges": n_edges, "components": components})


@app.route("/route", methods=["GET"])
def route():
    nav = current_graph()
    if nav is None:
        return jsonify({"error": "road geometry not loaded"}), 503
    try:
        start = point_arg("start") or DEFAULT_START
        dest = point_arg("dest")
        start_radius = float(request.args.get("start_radius", app.config["SNAP_RADIUS_M"]))
        dest_radius = float(request.args.get("dest_radius", app.config["SNAP_RADIUS_M"]))
    except InvalidGeometry as e:
        return jsonify({"error": f"invalid coordinate: {e}"}), 400
    except (TypeError, ValueError):
        return jsonify({"error": "invalid start_radius/dest_radius"}), 400
    if dest is None:
        return jsonify({"error": "dest is required"}), 400

    try:
        result = build_routed_polyline(start, dest, nav, start_radius=start_radius, dest_radius=dest_radius)
    except NoReachablePoint as e:
        logger.warning("Snap failed: %s", e)
        return jsonify({"error": str(e), "reason": "no_reachable_point", "which": e.label}), 422
    except NoRoute as e:
        logger.warning("Route failed: %s", e)
        return jsonify({"error": "no path", "reason": "no_route"}), 404
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(
        {
            "polyline": result.latlngs(),
            "distance_m": round(result.distance_meters, 1),
            "distance_text": format_distance(result.distance_meters),
            "path": result.path,
        }
    )


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    serve(app, host="0.0.0.0", port=5000)
