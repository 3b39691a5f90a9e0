"""
Coordinates and the local planar projection used for every distance in a graph.

Distances are equirectangular: degrees are scaled by the local meters-per-degree
around one reference point. This is only valid over small extents such as a
cemetery or a campus.
"""

import json
import math
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from errors import InvalidGeometry

R = 6371000  # Earth radius meters
M_PER_DEG = math.pi * R / 180.0


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lng: float

    def as_pair(self) -> Tuple[float, float]:
        return (self.lat, self.lng)


def make_coordinate(lat, lng) -> Coordinate:
    """Validate and build a Coordinate. Raises InvalidGeometry."""
    try:
        lat = float(lat)
        lng = float(lng)
    except (TypeError, ValueError):
        raise InvalidGeometry(f"non-numeric coordinate ({lat!r}, {lng!r})") from None
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise InvalidGeometry(f"non-finite coordinate ({lat}, {lng})")
    if abs(lat) > 90 or abs(lng) > 180:
        raise InvalidGeometry(f"coordinate out of range ({lat}, {lng})")
    return Coordinate(lat, lng)


class LocalProjection:
    """Equirectangular projection about a reference point, in meters."""

    def __init__(self, ref_lat: float, ref_lng: float):
        self.ref_lat = ref_lat
        self.ref_lng = ref_lng
        self.m_per_deg_lat = M_PER_DEG
        self.m_per_deg_lng = M_PER_DEG * math.cos(math.radians(ref_lat))

    @classmethod
    def around(cls, coords: Iterable[Coordinate]) -> "LocalProjection":
        """Projection centred on the bounding box of coords."""
        lats, lngs = [], []
        for c in coords:
            lats.append(c.lat)
            lngs.append(c.lng)
        if not lats:
            return cls(0.0, 0.0)
        return cls((min(lats) + max(lats)) / 2, (min(lngs) + max(lngs)) / 2)

    def project(self, c: Coordinate) -> Tuple[float, float]:
        return (
            (c.lng - self.ref_lng) * self.m_per_deg_lng,
            (c.lat - self.ref_lat) * self.m_per_deg_lat,
        )

    def unproject(self, x: float, y: float) -> Coordinate:
        # m_per_deg_lng is 0 only at the poles
        lng = self.ref_lng + (x / self.m_per_deg_lng if self.m_per_deg_lng else 0.0)
        return Coordinate(self.ref_lat + y / self.m_per_deg_lat, lng)

    def distance(self, a: Coordinate, b: Coordinate) -> float:
        ax, ay = self.project(a)
        bx, by = self.project(b)
        return math.hypot(bx - ax, by - ay)


_NUM = r"([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)"
_GEO_URI = re.compile(rf"^geo:{_NUM},{_NUM}", re.I)
_QUERY_PAIR = re.compile(rf"[?&](?:q|query)={_NUM},\s*{_NUM}", re.I)
_AT_PAIR = re.compile(rf"/@\s*{_NUM},\s*{_NUM},", re.I)
_URL_LAT = re.compile(rf"[?&]lat={_NUM}", re.I)
_URL_LNG = re.compile(rf"[?&](?:lng|lon)={_NUM}", re.I)
_KV_LAT = re.compile(rf"(?:^|[|,;\s])lat\s*:\s*{_NUM}(?=$|[|,;\s])", re.I)
_KV_LNG = re.compile(rf"(?:^|[|,;\s])(?:lng|lon)\s*:\s*{_NUM}(?=$|[|,;\s])", re.I)
_WKT_POINT = re.compile(rf"POINT\s*\(\s*{_NUM}\s+{_NUM}\s*\)", re.I)
_PLAIN_PAIR = re.compile(rf"^\s*{_NUM}\s*[,\s]\s*{_NUM}\s*$")


def _find_lat_lng(obj) -> Optional[Coordinate]:
    stack = [obj]
    while stack:
        cur = stack.pop()
        if isinstance(cur, dict):
            if "lat" in cur and ("lng" in cur or "lon" in cur):
                return make_coordinate(cur["lat"], cur.get("lng", cur.get("lon")))
            stack.extend(reversed(list(cur.values())))
        elif isinstance(cur, list):
            stack.extend(reversed(cur))
        elif isinstance(cur, str) and cur.strip().startswith("{"):
            try:
                stack.append(json.loads(cur))
            except ValueError:
                continue
    return None


def parse_lat_lng(token) -> Coordinate:
    """
    Parse a coordinate token (QR payload, map URL, "lat: x | lng: y", WKT,
    "lat,lng", (lat, lng)).

    Plain pairs are always read as (lat, lng); WKT POINT is (lng lat).
    Raises InvalidGeometry when nothing usable is found.
    """
    if isinstance(token, Coordinate):
        return token
    if isinstance(token, (tuple, list)) and len(token) == 2:
        return make_coordinate(token[0], token[1])
    if isinstance(token, dict):
        found = _find_lat_lng(token)
        if found is None:
            raise InvalidGeometry("no lat/lng in token")
        return found
    raw = str(token or "").strip()
    if not raw:
        raise InvalidGeometry("empty coordinate token")

    if raw.startswith("{"):
        try:
            found = _find_lat_lng(json.loads(raw))
        except ValueError:
            found = None
        if found is not None:
            return found
        raise InvalidGeometry("no lat/lng in JSON token")

    m = _GEO_URI.match(raw) or _QUERY_PAIR.search(raw) or _AT_PAIR.search(raw)
    if m:
        return make_coordinate(m.group(1), m.group(2))
    m_lat, m_lng = _URL_LAT.search(raw), _URL_LNG.search(raw)
    if m_lat and m_lng:
        return make_coordinate(m_lat.group(1), m_lng.group(1))
    m_lat, m_lng = _KV_LAT.search(raw), _KV_LNG.search(raw)
    if m_lat and m_lng:
        return make_coordinate(m_lat.group(1), m_lng.group(1))
    m = _WKT_POINT.search(raw)
    if m:
        return make_coordinate(m.group(2), m.group(1))
    m = _PLAIN_PAIR.match(raw)
    if m:
        return make_coordinate(m.group(1), m.group(2))
    raise InvalidGeometry(f"unrecognised coordinate token: {raw[:60]!r}")
