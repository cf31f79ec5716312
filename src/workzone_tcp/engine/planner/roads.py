"""Road candidate normalisation and dominant-road selection."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import networkx as nx

from ..domain.models import Point, RoadCandidate
from ..geometry.kernel import bounding_box, centroid as ring_centroid, distance, expand_bounding_box
from ..geometry.polyline import polyline_length, project_point_to_polyline
from ..utils.constants import (
    ROAD_BBOX_PADDING_M,
    ROAD_FEATURE_COORD_PRECISION,
    ROAD_LENGTH_SATURATION_M,
    ROAD_LENGTH_WEIGHT,
    ROAD_PROXIMITY_SATURATION_M,
    ROAD_PROXIMITY_WEIGHT,
)
from ..utils.logging import get_logger

LOG = get_logger()

BBox = Tuple[float, float, float, float]


def _clip_segment(a: Point, b: Point, bbox: BBox) -> Optional[Tuple[Point, Point]]:
    """Liang-Barsky clip of segment ``ab`` against an axis-aligned box."""
    min_x, min_y, max_x, max_y = bbox
    dx = b[0] - a[0]
    dy = b[1] - a[1]
    t0, t1 = 0.0, 1.0
    for p, q in (
        (-dx, a[0] - min_x),
        (dx, max_x - a[0]),
        (-dy, a[1] - min_y),
        (dy, max_y - a[1]),
    ):
        if p == 0:
            if q < 0:
                return None
            continue
        r = q / p
        if p < 0:
            if r > t1:
                return None
            t0 = max(t0, r)
        else:
            if r < t0:
                return None
            t1 = min(t1, r)
    return (
        (a[0] + t0 * dx, a[1] + t0 * dy),
        (a[0] + t1 * dx, a[1] + t1 * dy),
    )


def length_inside_bbox(polyline: Sequence[Point], bbox: BBox) -> Optional[float]:
    """Length of ``polyline`` inside ``bbox`` in metres; None when it never touches the box."""
    touched = False
    total = 0.0
    for i in range(len(polyline) - 1):
        clipped = _clip_segment(polyline[i], polyline[i + 1], bbox)
        if clipped is None:
            continue
        touched = True
        total += distance(clipped[0], clipped[1])
    return total if touched else None


def score_roads(
    roads: Sequence[Sequence[Point]],
    ring: Sequence[Point],
    centroid: Optional[Point] = None,
) -> List[RoadCandidate]:
    """Score every road touching the padded work-zone box, in input order."""
    if not ring:
        return []
    center = centroid if centroid is not None else ring_centroid(ring)
    bbox = expand_bounding_box(bounding_box(ring), ROAD_BBOX_PADDING_M)
    candidates: List[RoadCandidate] = []
    for index, road in enumerate(roads):
        if len(road) < 2:
            continue
        inside = length_inside_bbox(road, bbox)
        if inside is None:
            continue
        centroid_distance = project_point_to_polyline(center, road).distance_from_line
        proximity = max(0.0, 1.0 - centroid_distance / ROAD_PROXIMITY_SATURATION_M)
        length_score = min(1.0, inside / ROAD_LENGTH_SATURATION_M)
        candidates.append(
            RoadCandidate(
                index=index,
                polyline=tuple((float(p[0]), float(p[1])) for p in road),
                proximity_score=proximity,
                length_score=length_score,
                score=ROAD_PROXIMITY_WEIGHT * proximity + ROAD_LENGTH_WEIGHT * length_score,
                centroid_distance_m=centroid_distance,
                length_inside_m=inside,
            )
        )
    return candidates


def select_dominant_road(
    roads: Optional[Sequence[Sequence[Point]]],
    ring: Sequence[Point],
    centroid: Optional[Point] = None,
) -> Optional[RoadCandidate]:
    """Pick the highest scoring road; the earliest candidate wins ties."""
    if not roads:
        return None
    best: Optional[RoadCandidate] = None
    for candidate in score_roads(roads, ring, centroid):
        if best is None or candidate.score > best.score:
            best = candidate
    if best is None:
        LOG.info("road selection: none of %d candidate(s) intersects the work zone", len(roads))
    else:
        LOG.info(
            "road selection: picked #%d score=%.3f dist=%.1fm inside=%.1fm",
            best.index,
            best.score,
            best.centroid_distance_m,
            best.length_inside_m,
        )
    return best


# ---------------------------------------------------------------------------
# Feature normalisation
# ---------------------------------------------------------------------------


def _coerce_point(raw: Any) -> Optional[Point]:
    if not isinstance(raw, (list, tuple)) or len(raw) < 2:
        return None
    try:
        return (float(raw[0]), float(raw[1]))
    except (TypeError, ValueError):
        return None


def _clean_line(raw_coords: Iterable[Any]) -> Optional[Tuple[Point, ...]]:
    points: List[Point] = []
    for raw in raw_coords:
        pt = _coerce_point(raw)
        if pt is None:
            continue
        if points and points[-1] == pt:
            continue
        points.append(pt)
    if len(points) < 2 or polyline_length(points) <= 0:
        return None
    return tuple(points)


def _feature_lines(feature: Any) -> List[Any]:
    """Extract raw coordinate lists from a GeoJSON feature, geometry or coordinate list."""
    if isinstance(feature, Mapping):
        geometry = feature.get("geometry", feature)
        if not isinstance(geometry, Mapping):
            return []
        gtype = geometry.get("type")
        coords = geometry.get("coordinates") or []
        if gtype == "LineString":
            return [coords]
        if gtype == "MultiLineString":
            return list(coords)
        return []
    if isinstance(feature, (list, tuple)):
        return [feature]
    return []


def _node_key(p: Point) -> Tuple[float, float]:
    return (round(p[0], ROAD_FEATURE_COORD_PRECISION), round(p[1], ROAD_FEATURE_COORD_PRECISION))


def _stitch(lines: List[Tuple[Point, ...]]) -> List[Tuple[Point, ...]]:
    """Join fragments that meet end-to-end into longer chains.

    Fragments are edges of a multigraph keyed by their rounded endpoints. Only
    components forming a simple chain or loop (no node of degree above two)
    are merged; junctions are left as separate fragments so that a crossing
    street is never glued onto the main road.
    """
    graph = nx.MultiGraph()
    for idx, line in enumerate(lines):
        graph.add_edge(_node_key(line[0]), _node_key(line[-1]), key=idx)

    merged: List[Tuple[int, Tuple[Point, ...]]] = []
    for component in nx.connected_components(graph):
        sub = graph.subgraph(component)
        edge_ids = sorted(k for _, _, k in sub.edges(keys=True))
        if len(edge_ids) == 1 or any(deg > 2 for _, deg in sub.degree()):
            merged.extend((i, lines[i]) for i in edge_ids)
            continue
        ends = sorted(node for node, deg in sub.degree() if deg == 1)
        first_line = lines[edge_ids[0]]
        current = ends[0] if ends else _node_key(first_line[0])
        chain: List[Point] = []
        used = set()
        while True:
            nxt = None
            for _, other, key in sorted(sub.edges(current, keys=True), key=lambda e: e[2]):
                if key not in used:
                    nxt = (other, key)
                    break
            if nxt is None:
                break
            other, key = nxt
            used.add(key)
            line = lines[key]
            oriented = line if _node_key(line[0]) == current else tuple(reversed(line))
            chain.extend(oriented if not chain else oriented[1:])
            current = other
        merged.append((edge_ids[0], tuple(chain)))
    merged.sort(key=lambda item: item[0])
    return [line for _, line in merged]


def normalize_road_features(features: Optional[Iterable[Any]], *, stitch: bool = True) -> List[Tuple[Point, ...]]:
    """Turn map road features into clean polylines suitable for road selection.

    Accepts GeoJSON features or geometries (LineString / MultiLineString) and
    bare coordinate lists. Degenerate geometry is dropped, repeated vertices
    are collapsed and, when ``stitch`` is true, tile-split fragments sharing
    endpoints are rejoined.
    """
    lines: List[Tuple[Point, ...]] = []
    dropped = 0
    for feature in features or []:
        for raw in _feature_lines(feature):
            cleaned = _clean_line(raw)
            if cleaned is None:
                dropped += 1
                continue
            lines.append(cleaned)
    if dropped:
        LOG.info("road features: dropped %d degenerate line(s)", dropped)
    if not stitch or len(lines) < 2:
        return lines
    stitched = _stitch(lines)
    if len(stitched) != len(lines):
        LOG.info("road features: stitched %d fragment(s) into %d polyline(s)", len(lines), len(stitched))
    return stitched


def describe_candidates(candidates: Sequence[RoadCandidate]) -> List[Dict[str, float]]:
    return [
        {
            "index": c.index,
            "score": round(c.score, 4),
            "proximity": round(c.proximity_score, 4),
            "length": round(c.length_score, 4),
        }
        for c in candidates
    ]
