from __future__ import annotations

import itertools

import pytest

from workzone_tcp.engine.domain.models import (
    ApproachDirection,
    DeviceType,
    LayoutSource,
    Operation,
    PlacementMethod,
    SignCode,
)
from workzone_tcp.engine.geometry.kernel import distance
from workzone_tcp.engine.geometry.polygon import distance_to_polygon, is_inside
from workzone_tcp.engine.planner.placement import approach_direction, plan_layout, suggest_field_layout
from workzone_tcp.engine.utils.constants import (
    CONE_BOUNDARY_TOLERANCE_M,
    MIN_CONE_SEPARATION_M,
    MIN_SIGN_SEPARATION_M,
)


def _signs(layout):
    return {d.label: d for d in layout.devices_of(DeviceType.SIGN)}


@pytest.mark.parametrize("speed", [25, 35, 45, 55])
def test_road_aligned_layout_places_three_signs_outside_zone(make_request, through_road, id_factory, frozen_now, speed) -> None:
    request = make_request(speed=speed, roads=[through_road])

    plan = plan_layout(request, id_factory=id_factory, now=frozen_now)
    signs = _signs(plan.layout)

    assert plan.method is PlacementMethod.ROAD_ALIGNED
    assert set(signs) == {"A", "B", "C"}
    for sign in signs.values():
        assert not is_inside(sign.position, request.polygon)
        assert sign.meta["placementMethod"] == "road_aligned"
        assert sign.meta["placementOutcome"] == "placed"
    for a, b in itertools.combinations(signs.values(), 2):
        assert distance(a.position, b.position) >= MIN_SIGN_SEPARATION_M


def test_signs_step_upstream_on_the_far_shoulder(make_request, through_road, id_factory, local, frozen_now) -> None:
    request = make_request(speed=35, roads=[through_road])

    layout = suggest_field_layout(request, id_factory=id_factory, now=frozen_now)
    signs = _signs(layout)
    entry = local(-50, 0)

    assert distance(signs["C"].position, entry) < distance(signs["B"].position, entry)
    assert distance(signs["B"].position, entry) < distance(signs["A"].position, entry)
    # the zone lies north of the road, so signs go on the south shoulder
    assert all(s.position[1] < local(0, 0)[1] for s in signs.values())
    assert all(s.meta["shoulder"] == "left" for s in signs.values())
    assert [signs[k].meta["distanceFt"] for k in "CBA"] == [200, 400, 600]
    assert signs["A"].sign_code is SignCode.ROAD_WORK_AHEAD
    assert signs["B"].sign_code is SignCode.BE_PREPARED_TO_STOP
    assert signs["C"].sign_code is None
    assert layout.source is LayoutSource.MACHINE_SUGGESTED
    assert layout.direction is ApproachDirection.WEST
    assert layout.created_at == layout.updated_at == frozen_now


def test_cone_taper_stays_near_the_zone(make_request, through_road, id_factory, frozen_now) -> None:
    request = make_request(speed=45, roads=[through_road])

    plan = plan_layout(request, id_factory=id_factory, now=frozen_now)
    cones = plan.layout.devices_of(DeviceType.CONE)

    assert len(cones) == 9
    assert [c.meta["sequence"] for c in cones] == list(range(1, 10))
    for cone in cones:
        assert is_inside(cone.position, request.polygon) or (
            distance_to_polygon(cone.position, request.polygon) <= CONE_BOUNDARY_TOLERANCE_M + 1e-6
        )
    for a, b in itertools.combinations(cones, 2):
        assert distance(a.position, b.position) >= MIN_CONE_SEPARATION_M


def test_minimum_cone_count(make_request, through_road, id_factory) -> None:
    plan = plan_layout(make_request(speed=25, roads=[through_road]), id_factory=id_factory)

    assert len(plan.layout.devices_of(DeviceType.CONE)) >= 4


def test_high_speed_lane_closure_gets_arrow_board_and_flagger(make_request, through_road, id_factory) -> None:
    request = make_request(speed=45, roads=[through_road])

    layout = plan_layout(request, id_factory=id_factory).layout
    boards = layout.devices_of(DeviceType.ARROW_BOARD)
    flaggers = layout.devices_of(DeviceType.FLAGGER)

    assert len(boards) == 1
    assert not is_inside(boards[0].position, request.polygon)
    # traffic approaches from the west, so the board faces east
    assert boards[0].rotation == 90.0
    assert [f.label for f in flaggers] == ["F1"]
    assert len(layout.devices) == 3 + 9 + 1 + 1


def test_flagging_places_flaggers_at_both_ends(make_request, through_road, id_factory, local) -> None:
    request = make_request(speed=35, operation=Operation.FLAGGING, roads=[through_road])

    layout = plan_layout(request, id_factory=id_factory).layout
    flaggers = {f.label: f for f in layout.devices_of(DeviceType.FLAGGER)}

    assert set(flaggers) == {"F1", "F2"}
    assert flaggers["F1"].position[0] < local(-50, 0)[0]
    assert flaggers["F2"].position[0] > local(50, 0)[0]
    assert not layout.devices_of(DeviceType.ARROW_BOARD)
    assert _signs(layout)["C"].sign_code is SignCode.FLAGGER_AHEAD


def test_axis_fallback_without_roads(make_request, id_factory) -> None:
    request = make_request(speed=35)

    plan = plan_layout(request, id_factory=id_factory)
    signs = _signs(plan.layout)

    assert plan.method is PlacementMethod.AXIS_FALLBACK
    assert plan.road is None
    assert set(signs) == {"A", "B", "C"}
    assert all(not is_inside(s.position, request.polygon) for s in signs.values())
    assert all(d.meta.get("placementMethod") == "axis_fallback" for d in plan.layout.devices)


def test_short_road_degrades_to_flagged_approximation(make_request, id_factory, local) -> None:
    stub_road = (local(-40, 0), local(40, 0))
    request = make_request(speed=35, roads=[stub_road])

    plan = plan_layout(request, id_factory=id_factory)
    signs = list(_signs(plan.layout).values())

    assert plan.method is PlacementMethod.ROAD_ALIGNED
    assert len(signs) == 3
    assert any(s.meta.get("retryExhausted") for s in signs)
    for a, b in itertools.combinations(signs, 2):
        if distance(a.position, b.position) < MIN_SIGN_SEPARATION_M:
            assert a.meta.get("retryExhausted") or b.meta.get("retryExhausted")
            assert (a.meta.get("placementOutcome"), b.meta.get("placementOutcome")) != ("placed", "placed")


def test_device_ids_are_unique(make_request, through_road, id_factory) -> None:
    layout = plan_layout(make_request(speed=45, roads=[through_road]), id_factory=id_factory).layout
    ids = [d.id for d in layout.devices]

    assert len(ids) == len(set(ids))
    assert all(i.startswith("dev_") for i in ids)


def test_placement_is_deterministic(make_request, through_road, frozen_now) -> None:
    from workzone_tcp.engine.layout.ids import DeviceIdFactory

    request = make_request(speed=40, roads=[through_road])
    first = plan_layout(request, id_factory=DeviceIdFactory(epoch_ms=1), now=frozen_now).layout
    second = plan_layout(request, id_factory=DeviceIdFactory(epoch_ms=1), now=frozen_now).layout

    assert first == second


@pytest.mark.parametrize(
    "degrees, expected",
    [
        (0, ApproachDirection.NORTH),
        (44.9, ApproachDirection.NORTH),
        (46, ApproachDirection.EAST),
        (180, ApproachDirection.SOUTH),
        (-90, ApproachDirection.WEST),
        (-44, ApproachDirection.NORTH),
    ],
)
def test_approach_direction_quadrants(degrees: float, expected: ApproachDirection) -> None:
    import math

    assert approach_direction(math.radians(degrees)) is expected
