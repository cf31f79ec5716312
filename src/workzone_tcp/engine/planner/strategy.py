"""Placement strategies: where the reference path runs and which way is upstream.

Exactly one strategy is chosen per placement call. Both variants expose the
same path abstraction (a polyline, an entry and exit arclength, and the
arclength direction that points upstream), so the device placers never branch
on how the path was obtained.
"""
from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import Optional, Sequence, Tuple

from ..domain.models import (
    PlacementMethod,
    Point,
    PolylineWalk,
    RoadCandidate,
    WorkZoneAxis,
)
from ..geometry.kernel import distance, normalize_bearing
from ..geometry.polygon import is_inside, signed_distance_to_polygon
from ..geometry.polyline import polyline_length, project_point_to_polyline, walk_along_polyline_strict
from ..utils.constants import BOUNDARY_MARCH_STEP_M, UPSTREAM_PROBE_M
from ..utils.logging import get_logger

LOG = get_logger()


class PlacementStrategy(ABC):
    """Reference path for one work zone."""

    method: PlacementMethod

    def __init__(self, ring: Sequence[Point], axis: WorkZoneAxis, path: Sequence[Point]) -> None:
        self.ring = ring
        self.axis = axis
        self.path: Tuple[Point, ...] = tuple(path)
        self.total_length = polyline_length(self.path)
        self.direction, self.entry_along, self.exit_along = self._resolve_path()

    @abstractmethod
    def _resolve_path(self) -> Tuple[int, float, float]:
        """Return ``(upstream_direction, entry_arclength, exit_arclength)``.

        ``upstream_direction`` is +1 when upstream lies towards increasing
        arclength and -1 otherwise.
        """

    def _walk(self, along: float, delta: float) -> PolylineWalk:
        walk = walk_along_polyline_strict(self.path, 0, along, delta)
        if walk is None:
            # zero-length path: stay put on the only available point
            anchor = self.path[0] if self.path else self.axis.entry_point
            return PolylineWalk(point=anchor, segment_index=0, bearing=self.axis.upstream_bearing, distance_along_line=0.0)
        return walk

    def upstream_of_entry(self, meters: float) -> PolylineWalk:
        return self._walk(self.entry_along, self.direction * meters)

    def downstream_of_exit(self, meters: float) -> PolylineWalk:
        return self._walk(self.exit_along, -self.direction * meters)

    def upstream_bearing_at(self, walk: PolylineWalk) -> float:
        if self.total_length <= 0:
            return self.axis.upstream_bearing
        if self.direction > 0:
            return walk.bearing
        return normalize_bearing(walk.bearing + math.pi)

    @property
    def entry_point(self) -> Point:
        return self.upstream_of_entry(0.0).point

    @property
    def exit_point(self) -> Point:
        return self.downstream_of_exit(0.0).point

    @property
    def upstream_bearing(self) -> float:
        return self.upstream_bearing_at(self.upstream_of_entry(0.0))

    def describe(self) -> str:
        return (
            f"{self.method.value}: path={self.total_length:.1f}m entry={self.entry_along:.1f}m "
            f"exit={self.exit_along:.1f}m direction={self.direction:+d}"
        )


class AxisFallbackStrategy(PlacementStrategy):
    """Uses the synthetic probe line through the polygon as the road."""

    method = PlacementMethod.AXIS_FALLBACK

    def __init__(self, ring: Sequence[Point], axis: WorkZoneAxis) -> None:
        super().__init__(ring, axis, (axis.probe_start, axis.probe_end))

    def _resolve_path(self) -> Tuple[int, float, float]:
        start = self.axis.probe_start
        entry_along = min(distance(start, self.axis.entry_point), self.total_length)
        exit_along = min(distance(start, self.axis.exit_point), self.total_length)
        # upstream runs back towards the probe's originating end
        return -1, entry_along, max(exit_along, entry_along)


class RoadAlignedStrategy(PlacementStrategy):
    """Follows the dominant road polyline."""

    method = PlacementMethod.ROAD_ALIGNED

    def __init__(self, ring: Sequence[Point], axis: WorkZoneAxis, road: RoadCandidate) -> None:
        self.road = road
        super().__init__(ring, axis, road.polyline)

    def _probe_direction(self, anchor_along: float) -> int:
        """Probe 50 m each way; the probe farther from the polygon is upstream."""
        forward = self._walk(anchor_along, UPSTREAM_PROBE_M)
        backward = self._walk(anchor_along, -UPSTREAM_PROBE_M)
        forward_score = signed_distance_to_polygon(forward.point, self.ring)
        backward_score = signed_distance_to_polygon(backward.point, self.ring)
        return 1 if forward_score > backward_score else -1

    def _march_to_boundary(self, start_along: float, direction: int) -> float:
        """Advance from ``start_along`` until the path leaves the polygon."""
        along = start_along
        while 0.0 <= along <= self.total_length:
            if not is_inside(self._walk(along, 0.0).point, self.ring):
                return along
            along += direction * BOUNDARY_MARCH_STEP_M
        return max(0.0, min(self.total_length, along))

    def _resolve_path(self) -> Tuple[int, float, float]:
        anchor = project_point_to_polyline(self.axis.entry_point, self.path).distance_along_line
        direction = self._probe_direction(anchor)
        entry_along = self._march_to_boundary(anchor, direction)

        exit_along: Optional[float] = None
        along = entry_along - direction * BOUNDARY_MARCH_STEP_M
        seen_inside = False
        while 0.0 <= along <= self.total_length:
            inside = is_inside(self._walk(along, 0.0).point, self.ring)
            if inside:
                seen_inside = True
            elif seen_inside:
                exit_along = along
                break
            along -= direction * BOUNDARY_MARCH_STEP_M
        if exit_along is None:
            if seen_inside:
                exit_along = max(0.0, min(self.total_length, along))
            else:
                exit_along = project_point_to_polyline(self.axis.exit_point, self.path).distance_along_line
        return direction, entry_along, exit_along


def build_strategy(
    ring: Sequence[Point],
    axis: WorkZoneAxis,
    road: Optional[RoadCandidate],
) -> PlacementStrategy:
    strategy: PlacementStrategy
    if road is not None:
        strategy = RoadAlignedStrategy(ring, axis, road)
    else:
        strategy = AxisFallbackStrategy(ring, axis)
    LOG.info("placement strategy %s", strategy.describe())
    return strategy
