"""
Normalize road features into directed 2-point segments.

Accepted inputs:
- RoadFeature objects (points already in (lat, lng) order)
- GeoJSON Feature / geometry dicts, LineString or MultiLineString,
  coordinates in GeoJSON [lng, lat] order
- a GeoJSON FeatureCollection dict wrapping the above

Axis order is fixed by the input type and never inferred from the values.
"""

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence

from shapely import wkt
from shapely.errors import ShapelyError

from errors import InvalidGeometry
from geo import Coordinate, make_coordinate

LINE_TYPES = {"LineString", "MultiLineString"}


@dataclass(frozen=True)
class RoadFeature:
    feature_id: str
    lines: List[List[Coordinate]]
    name: Optional[str] = None

    @classmethod
    def from_latlng(cls, feature_id, points, name=None) -> "RoadFeature":
        """Single polyline from (lat, lng) pairs."""
        return cls(str(feature_id), [[make_coordinate(a, b) for a, b in points]], name)


@dataclass(frozen=True)
class Segment:
    start: Coordinate
    end: Coordinate
    feature_id: str
    line: int = 0
    position: int = 0
    name: Optional[str] = field(default=None, compare=False)


def _geojson_line(coords, feature_id) -> List[Coordinate]:
    if not isinstance(coords, (list, tuple)):
        raise InvalidGeometry(f"feature {feature_id}: coordinates must be a list")
    line = []
    for pos in coords:
        if not isinstance(pos, (list, tuple)) or len(pos) < 2:
            raise InvalidGeometry(f"feature {feature_id}: bad position {pos!r}")
        lng, lat = pos[0], pos[1]
        line.append(make_coordinate(lat, lng))
    return line


def _geojson_lines(geometry, feature_id) -> List[List[Coordinate]]:
    if not isinstance(geometry, dict):
        raise InvalidGeometry(f"feature {feature_id}: missing geometry")
    gtype = geometry.get("type")
    coords = geometry.get("coordinates")
    if gtype == "LineString":
        return [_geojson_line(coords, feature_id)]
    if gtype == "MultiLineString":
        if not isinstance(coords, (list, tuple)):
            raise InvalidGeometry(f"feature {feature_id}: coordinates must be a list")
        return [_geojson_line(part, feature_id) for part in coords]
    raise InvalidGeometry(f"feature {feature_id}: unsupported geometry type {gtype!r}")


def _check_single_geometry(text: str) -> None:
    """Reject text after the outermost parenthesised body."""
    depth = 0
    for i, ch in enumerate(text):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                if text[i + 1 :].strip():
                    raise InvalidGeometry(f"trailing text after WKT geometry: {text[i + 1 :][:40]!r}")
                return


def parse_wkt_linestring(text: str) -> List[List[Coordinate]]:
    """Parse LINESTRING / MULTILINESTRING WKT; positions are 'lng lat'."""
    text = str(text or "").strip()
    if not text:
        raise InvalidGeometry("empty WKT geometry")
    _check_single_geometry(text)
    try:
        geom = wkt.loads(text)
    except (ShapelyError, ValueError) as e:
        raise InvalidGeometry(f"malformed WKT {text[:40]!r}: {e}") from None
    if geom.geom_type == "LineString":
        parts = [geom]
    elif geom.geom_type == "MultiLineString":
        parts = list(geom.geoms)
    else:
        raise InvalidGeometry(f"not a line WKT: {geom.geom_type}")
    if geom.is_empty:
        raise InvalidGeometry("empty WKT geometry")
    return [[make_coordinate(pos[1], pos[0]) for pos in part.coords] for part in parts]


def coerce_feature(obj, index: int = 0) -> RoadFeature:
    if isinstance(obj, RoadFeature):
        return obj
    if not isinstance(obj, dict) or "type" not in obj:
        raise InvalidGeometry(f"feature #{index}: expected a GeoJSON object, got {type(obj).__name__}")
    if obj["type"] == "Feature":
        props = obj.get("properties") or {}
        fid = obj.get("id", props.get("uid", index))
        name = props.get("plot_name") or props.get("name")
        return RoadFeature(str(fid), _geojson_lines(obj.get("geometry"), fid), name)
    if obj["type"] in LINE_TYPES:
        return RoadFeature(str(index), _geojson_lines(obj, index))
    raise InvalidGeometry(f"feature #{index}: unsupported type {obj['type']!r}")


def iter_features(features) -> Iterator[RoadFeature]:
    if isinstance(features, dict):
        if features.get("type") != "FeatureCollection":
            raise InvalidGeometry("expected a FeatureCollection or a list of features")
        features = features.get("features") or []
    for i, obj in enumerate(features):
        yield coerce_feature(obj, i)


def validate_line(line: Sequence[Coordinate], feature_id) -> None:
    if len(line) < 2:
        raise InvalidGeometry(f"feature {feature_id}: a line needs at least 2 points")
    for c in line:
        # RoadFeature may be built directly, so recheck
        make_coordinate(c.lat, c.lng)


def normalize_segments(features) -> List[Segment]:
    """Flatten features into directed segments tagged with their feature id."""
    segments: List[Segment] = []
    for feat in iter_features(features):
        if not feat.lines:
            raise InvalidGeometry(f"feature {feat.feature_id}: no lines")
        for li, line in enumerate(feat.lines):
            validate_line(line, feat.feature_id)
            for pos, (a, b) in enumerate(zip(line, line[1:])):
                segments.append(Segment(a, b, feat.feature_id, li, pos, feat.name))
    return segments
