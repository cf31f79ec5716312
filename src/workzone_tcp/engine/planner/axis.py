"""Synthesise a work-zone centreline from the polygon when no road data exists."""
from __future__ import annotations

import math
from typing import Optional, Sequence

from ..domain.models import Point, WorkZoneAxis
from ..geometry.kernel import bearing, centroid as ring_centroid, distance, move_point, normalize_bearing
from ..geometry.polygon import closest_point_on_polygon, line_polygon_intersections, longest_edge_bearing
from ..utils.constants import AXIS_PROBE_HALF_LENGTH_M
from ..utils.logging import get_logger

LOG = get_logger()


def derive_fallback_axis(ring: Sequence[Point], centroid: Optional[Point] = None) -> WorkZoneAxis:
    """Derive entry/exit points and the upstream bearing from the polygon shape.

    A probe line runs through the centroid parallel to the longest edge. Its
    two outermost crossings with the boundary become the entry (nearer the
    probe start) and exit points. With fewer than two crossings the nearest
    boundary points of the probe ends are used instead.
    """
    center = centroid if centroid is not None else ring_centroid(ring)
    edge_bearing = longest_edge_bearing(ring)
    probe_start = move_point(center, AXIS_PROBE_HALF_LENGTH_M, edge_bearing + math.pi)
    probe_end = move_point(center, AXIS_PROBE_HALF_LENGTH_M, edge_bearing)

    hits = line_polygon_intersections(probe_start, probe_end, ring)
    degenerate = len(hits) < 2
    if degenerate:
        LOG.warning("axis probe crossed the boundary %d time(s); using nearest boundary points", len(hits))
        entry = closest_point_on_polygon(probe_start, ring)
        exit_point = closest_point_on_polygon(probe_end, ring)
    else:
        hits.sort(key=lambda p: distance(probe_start, p))
        entry = hits[0]
        exit_point = hits[-1]

    if entry == probe_start:
        upstream = normalize_bearing(edge_bearing + math.pi)
    else:
        upstream = bearing(entry, probe_start)

    return WorkZoneAxis(
        centroid=center,
        axis_bearing=edge_bearing,
        entry_point=entry,
        exit_point=exit_point,
        upstream_bearing=upstream,
        probe_start=probe_start,
        probe_end=probe_end,
        degenerate=degenerate,
    )
