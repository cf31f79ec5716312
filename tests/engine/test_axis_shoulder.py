from __future__ import annotations

import math

import pytest

from workzone_tcp.engine.domain.models import ShoulderSide
from workzone_tcp.engine.geometry.kernel import centroid, distance, move_point
from workzone_tcp.engine.planner.axis import derive_fallback_axis
from workzone_tcp.engine.planner.shoulder import select_shoulder_side, shoulder_bearing


def test_axis_runs_along_longest_edge(local, zone_ring) -> None:
    axis = derive_fallback_axis(zone_ring)

    assert not axis.degenerate
    assert axis.axis_bearing == pytest.approx(math.pi / 2, abs=1e-3)
    assert distance(axis.entry_point, local(-50, 5)) < 0.5
    assert distance(axis.exit_point, local(50, 5)) < 0.5
    # upstream points back towards the probe origin, i.e. west
    assert axis.upstream_bearing == pytest.approx(-math.pi / 2, abs=1e-2)


def test_axis_uses_boundary_points_when_probe_misses(local) -> None:
    tiny = (local(0, 0), local(4, 0), local(4, 1), local(0, 1))
    # centroid far from the polygon, so the probe never crosses it
    axis = derive_fallback_axis(tiny, centroid=local(0, 800))

    assert axis.degenerate
    assert distance(axis.entry_point, local(0, 1)) < 1.0
    assert distance(axis.exit_point, local(4, 1)) < 1.0


def test_shoulder_side_faces_away_from_the_zone(local, zone_ring) -> None:
    center = centroid(zone_ring)
    entry = local(-52, 0)
    west = -math.pi / 2

    side = select_shoulder_side(entry, west, center)
    shoulder_point = move_point(entry, 5.0, shoulder_bearing(west, side))

    assert side is ShoulderSide.LEFT
    assert shoulder_point[1] < entry[1]
    assert distance(shoulder_point, center) > distance(entry, center)


def test_shoulder_side_flips_with_zone_position(local) -> None:
    entry = local(0, 0)
    north = 0.0

    assert select_shoulder_side(entry, north, local(-40, 20)) is ShoulderSide.RIGHT
    assert select_shoulder_side(entry, north, local(40, 20)) is ShoulderSide.LEFT
