"""Containment, boundary projection and edge queries on unclosed polygon rings."""
from __future__ import annotations

import math
from typing import Iterator, List, Optional, Sequence, Tuple

from ..domain.models import Point
from .kernel import bearing, distance, project_on_segment


def iter_edges(ring: Sequence[Point]) -> Iterator[Tuple[Point, Point]]:
    """Yield every edge of the ring, including the implicit closing edge."""
    n = len(ring)
    for i in range(n):
        yield ring[i], ring[(i + 1) % n]


def is_inside(point: Point, ring: Sequence[Point]) -> bool:
    """Ray-casting containment test.

    Edges are treated half-open in latitude, so a ray passing exactly through
    a shared vertex is counted once.
    """
    x, y = point
    inside = False
    n = len(ring)
    j = n - 1
    for i in range(n):
        xi, yi = ring[i][0], ring[i][1]
        xj, yj = ring[j][0], ring[j][1]
        if (yi > y) != (yj > y):
            x_cross = (xj - xi) * (y - yi) / (yj - yi) + xi
            if x < x_cross:
                inside = not inside
        j = i
    return inside


def closest_point_on_polygon(point: Point, ring: Sequence[Point]) -> Point:
    """Nearest point on the ring boundary, scanning every edge once."""
    best = point
    best_dist = math.inf
    for a, b in iter_edges(ring):
        projected, _ = project_on_segment(point, a, b)
        dist = distance(point, projected)
        if dist < best_dist:
            best_dist = dist
            best = projected
    return best


def distance_to_polygon(point: Point, ring: Sequence[Point]) -> float:
    """Distance in metres from ``point`` to the nearest boundary edge."""
    return distance(point, closest_point_on_polygon(point, ring))


def signed_distance_to_polygon(point: Point, ring: Sequence[Point]) -> float:
    """Boundary distance, negative when ``point`` lies inside the ring."""
    dist = distance_to_polygon(point, ring)
    return -dist if is_inside(point, ring) else dist


def clamp_to_polygon(point: Point, ring: Sequence[Point]) -> Point:
    """Return ``point`` unchanged when inside, else its nearest boundary point."""
    if is_inside(point, ring):
        return point
    return closest_point_on_polygon(point, ring)


def longest_edge(ring: Sequence[Point]) -> Tuple[Point, Point]:
    best: Tuple[Point, Point] = (ring[0], ring[0])
    best_len = -1.0
    for a, b in iter_edges(ring):
        length = distance(a, b)
        if length > best_len:
            best_len = length
            best = (a, b)
    return best


def longest_edge_bearing(ring: Sequence[Point]) -> float:
    a, b = longest_edge(ring)
    return bearing(a, b)


def segment_intersection(a1: Point, a2: Point, b1: Point, b2: Point) -> Optional[Point]:
    """Intersection of segments ``a1a2`` and ``b1b2``; None when parallel or disjoint."""
    d1x = a2[0] - a1[0]
    d1y = a2[1] - a1[1]
    d2x = b2[0] - b1[0]
    d2y = b2[1] - b1[1]
    cross = d1x * d2y - d1y * d2x
    if abs(cross) < 1e-18:
        return None
    dx = b1[0] - a1[0]
    dy = b1[1] - a1[1]
    t = (dx * d2y - dy * d2x) / cross
    u = (dx * d1y - dy * d1x) / cross
    if 0.0 <= t <= 1.0 and 0.0 <= u <= 1.0:
        return (a1[0] + t * d1x, a1[1] + t * d1y)
    return None


def line_polygon_intersections(start: Point, end: Point, ring: Sequence[Point]) -> List[Point]:
    """All distinct crossings of the segment ``start``-``end`` with the ring boundary."""
    hits: List[Point] = []
    for a, b in iter_edges(ring):
        hit = segment_intersection(start, end, a, b)
        if hit is None:
            continue
        if any(abs(hit[0] - h[0]) < 1e-12 and abs(hit[1] - h[1]) < 1e-12 for h in hits):
            continue
        hits.append(hit)
    return hits
