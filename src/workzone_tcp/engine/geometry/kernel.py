"""Distance, bearing and point-translation primitives on (lon, lat) pairs.

All functions are pure and never raise. Distances use a haversine great-circle
approximation; translation uses an equirectangular approximation that is
accurate enough at work-zone scale (well under a kilometre).
"""
from __future__ import annotations

import math
from typing import Iterable, Sequence, Tuple

from ..domain.models import Point
from ..utils.constants import EARTH_RADIUS_M, M_TO_DEG


def distance(p1: Point, p2: Point) -> float:
    """Great-circle distance between two points in metres."""
    d_lng = math.radians(p2[0] - p1[0])
    d_lat = math.radians(p2[1] - p1[1])
    lat1 = math.radians(p1[1])
    lat2 = math.radians(p2[1])
    a = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def bearing(p1: Point, p2: Point) -> float:
    """Initial bearing from ``p1`` to ``p2`` in radians, clockwise from north.

    Coincident points have no defined bearing; 0.0 is returned for them.
    """
    if p1[0] == p2[0] and p1[1] == p2[1]:
        return 0.0
    d_lng = math.radians(p2[0] - p1[0])
    lat1 = math.radians(p1[1])
    lat2 = math.radians(p2[1])
    y = math.sin(d_lng) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(d_lng)
    result = math.atan2(y, x)
    if result == -math.pi:
        return math.pi
    return result


def move_point(p: Point, meters: float, bearing_rad: float) -> Point:
    """Translate ``p`` by ``meters`` along ``bearing_rad``."""
    dist_deg = meters * M_TO_DEG
    lat1 = math.radians(p[1])
    d_lat = dist_deg * math.cos(bearing_rad)
    d_lng = dist_deg * math.sin(bearing_rad) / math.cos(lat1)
    return (p[0] + d_lng, p[1] + d_lat)


def normalize_bearing(bearing_rad: float) -> float:
    """Wrap a bearing into (-pi, pi]."""
    wrapped = math.atan2(math.sin(bearing_rad), math.cos(bearing_rad))
    if wrapped == -math.pi:
        return math.pi
    return wrapped


def bearing_to_compass_deg(bearing_rad: float) -> float:
    return (math.degrees(bearing_rad) + 360.0) % 360.0


def centroid(ring: Sequence[Point]) -> Point:
    """Vertex-average centroid; (0, 0) for an empty ring."""
    if not ring:
        return (0.0, 0.0)
    sum_lng = sum(p[0] for p in ring)
    sum_lat = sum(p[1] for p in ring)
    return (sum_lng / len(ring), sum_lat / len(ring))


def bounding_box(points: Iterable[Point]) -> Tuple[float, float, float, float]:
    """Return ``(min_lng, min_lat, max_lng, max_lat)``."""
    pts = list(points)
    lngs = [p[0] for p in pts]
    lats = [p[1] for p in pts]
    return (min(lngs), min(lats), max(lngs), max(lats))


def expand_bounding_box(
    bbox: Tuple[float, float, float, float],
    padding_m: float,
) -> Tuple[float, float, float, float]:
    min_lng, min_lat, max_lng, max_lat = bbox
    mid_lat = math.radians((min_lat + max_lat) / 2.0)
    d_lat = padding_m * M_TO_DEG
    d_lng = padding_m * M_TO_DEG / max(math.cos(mid_lat), 1e-9)
    return (min_lng - d_lng, min_lat - d_lat, max_lng + d_lng, max_lat + d_lat)


def local_xy(origin: Point, p: Point) -> Tuple[float, float]:
    """Equirectangular offset of ``p`` from ``origin`` in metres (east, north)."""
    lat0 = math.radians(origin[1])
    x = (p[0] - origin[0]) * math.cos(lat0) / M_TO_DEG
    y = (p[1] - origin[1]) / M_TO_DEG
    return (x, y)


def project_on_segment(p: Point, a: Point, b: Point) -> Tuple[Point, float]:
    """Project ``p`` onto segment ``ab``; returns the clamped point and its parameter in [0, 1].

    The projection runs in a locally scaled plane so that longitude and
    latitude differences carry comparable weight.
    """
    scale = math.cos(math.radians((a[1] + b[1]) / 2.0))
    dx = (b[0] - a[0]) * scale
    dy = b[1] - a[1]
    len_sq = dx * dx + dy * dy
    if len_sq == 0:
        return a, 0.0
    t = (((p[0] - a[0]) * scale) * dx + (p[1] - a[1]) * dy) / len_sq
    t = max(0.0, min(1.0, t))
    return (a[0] + t * (b[0] - a[0]), a[1] + t * (b[1] - a[1])), t
