"""Choose the road side on which advance warning signs belong."""
from __future__ import annotations

import math

from ..domain.models import Point, ShoulderSide
from ..geometry.kernel import distance, move_point
from ..utils.constants import SHOULDER_TEST_OFFSET_M


def select_shoulder_side(
    reference_point: Point,
    reference_bearing: float,
    polygon_centroid: Point,
    *,
    test_offset_m: float = SHOULDER_TEST_OFFSET_M,
) -> ShoulderSide:
    """Return the side of ``reference_bearing`` farther from the work zone.

    Two test points are taken perpendicular to the bearing (+90 and -90
    degrees); the one farther from the polygon centroid wins. Signs must never
    land on the work-zone side, so a tie resolves to the right-hand shoulder
    only when both sides are genuinely equidistant.
    """
    right = move_point(reference_point, test_offset_m, reference_bearing + math.pi / 2)
    left = move_point(reference_point, test_offset_m, reference_bearing - math.pi / 2)
    if distance(left, polygon_centroid) > distance(right, polygon_centroid):
        return ShoulderSide.LEFT
    return ShoulderSide.RIGHT


def shoulder_bearing(reference_bearing: float, side: ShoulderSide) -> float:
    """Bearing pointing from the road towards the chosen shoulder."""
    return reference_bearing + int(side) * math.pi / 2


def work_side_bearing(reference_bearing: float, side: ShoulderSide) -> float:
    return reference_bearing - int(side) * math.pi / 2


def side_label(side: ShoulderSide) -> str:
    return "right" if side is ShoulderSide.RIGHT else "left"
