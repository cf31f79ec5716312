"""Projection onto, and bounded travel along, road polylines."""
from __future__ import annotations

import math
from typing import List, Optional, Sequence

from ..domain.models import Point, PolylineProjection, PolylineWalk
from .kernel import bearing, distance, project_on_segment


def cumulative_lengths(polyline: Sequence[Point]) -> List[float]:
    """Arclength in metres at every vertex, starting at 0."""
    result = [0.0]
    for i in range(1, len(polyline)):
        result.append(result[-1] + distance(polyline[i - 1], polyline[i]))
    return result


def polyline_length(polyline: Sequence[Point]) -> float:
    return cumulative_lengths(polyline)[-1] if polyline else 0.0


def project_point_to_polyline(point: Point, polyline: Sequence[Point]) -> PolylineProjection:
    """Nearest point on ``polyline`` to ``point`` together with its arclength and bearing."""
    cumulative = cumulative_lengths(polyline)
    best: Optional[PolylineProjection] = None
    for i in range(len(polyline) - 1):
        a, b = polyline[i], polyline[i + 1]
        projected, _ = project_on_segment(point, a, b)
        offset = distance(point, projected)
        if best is not None and offset >= best.distance_from_line:
            continue
        best = PolylineProjection(
            point=projected,
            segment_index=i,
            distance_along_line=min(cumulative[i] + distance(a, projected), cumulative[i + 1]),
            distance_from_line=offset,
            segment_bearing=bearing(a, b),
        )
    if best is None:
        anchor = polyline[0] if polyline else point
        return PolylineProjection(
            point=anchor,
            segment_index=0,
            distance_along_line=0.0,
            distance_from_line=distance(point, anchor),
            segment_bearing=0.0,
        )
    return best


def _locate_segment(
    cumulative: Sequence[float],
    target: float,
    *,
    forward: bool,
    hint: Optional[int],
) -> int:
    n_segments = len(cumulative) - 1
    candidates = [
        i
        for i in range(n_segments)
        if cumulative[i] <= target <= cumulative[i + 1] and cumulative[i + 1] > cumulative[i]
    ]
    if not candidates:
        # only zero-length segments reach the target; fall back to the nearest real one
        real = [i for i in range(n_segments) if cumulative[i + 1] > cumulative[i]]
        return min(real, key=lambda i: abs(cumulative[i] - target)) if real else 0
    if hint is not None and hint in candidates:
        return hint
    return candidates[-1] if forward else candidates[0]


def walk_along_polyline_strict(
    polyline: Sequence[Point],
    start_segment: int,
    start_distance_along: float,
    delta_meters: float,
) -> Optional[PolylineWalk]:
    """Move ``delta_meters`` (signed) along ``polyline`` from an arclength position.

    ``start_distance_along`` is measured from the first vertex, as returned by
    :func:`project_point_to_polyline`. The destination is clamped to
    ``[0, total_length]``; the walk never extrapolates past either end, so a
    result always lies on the road. ``start_segment`` disambiguates the
    segment when the destination sits exactly on a shared vertex and no
    travel happens. Returns None for polylines without positive length.
    """
    if len(polyline) < 2:
        return None
    cumulative = cumulative_lengths(polyline)
    total = cumulative[-1]
    if total <= 0 or math.isnan(delta_meters):
        return None

    raw_target = start_distance_along + delta_meters
    target = max(0.0, min(total, raw_target))
    clamped = target != raw_target

    hint = start_segment if delta_meters == 0 else None
    index = _locate_segment(cumulative, target, forward=delta_meters >= 0, hint=hint)
    a, b = polyline[index], polyline[index + 1]
    seg_len = cumulative[index + 1] - cumulative[index]
    t = 0.0 if seg_len <= 0 else (target - cumulative[index]) / seg_len
    t = max(0.0, min(1.0, t))
    point = (a[0] + t * (b[0] - a[0]), a[1] + t * (b[1] - a[1]))
    return PolylineWalk(
        point=point,
        segment_index=index,
        bearing=bearing(a, b),
        distance_along_line=target,
        clamped=clamped,
    )


def bearing_at(polyline: Sequence[Point], distance_along: float) -> float:
    """Bearing of the segment containing ``distance_along`` (0.0 for degenerate lines)."""
    walk = walk_along_polyline_strict(polyline, 0, distance_along, 0.0)
    return walk.bearing if walk is not None else 0.0
