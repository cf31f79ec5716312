"""Device placement engine: turn a work zone and resolved rules into a Layout.

The engine is stateless. Each call resolves rules, picks one placement
strategy (road-aligned when a road touches the zone, axis fallback
otherwise), and places signs, the cone taper, flaggers and the arrow board.
Bounded retry loops keep signs outside the zone and devices apart; when a
loop runs out of attempts the best candidate is kept and the device is marked
``approximate`` in its metadata instead of failing the whole plan.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence

from ..domain.models import (
    ApproachDirection,
    Device,
    DeviceType,
    Layout,
    LayoutRequest,
    LayoutSource,
    Operation,
    PlacementMethod,
    PlacementOutcome,
    Point,
    ResolvedRules,
    RoadCandidate,
    ShoulderSide,
    WorkZoneAxis,
)
from ..geometry.kernel import bearing, bearing_to_compass_deg, distance, move_point, normalize_bearing
from ..geometry.polygon import clamp_to_polygon, distance_to_polygon, is_inside
from ..layout.ids import DeviceIdFactory
from ..rules.diagnostics import RulesDiagnosticSink
from ..rules.pack import RulesPack
from ..rules.resolver import resolve_rules
from ..utils.constants import (
    ARROW_BOARD_FALLBACK_OFFSET_M,
    ARROW_BOARD_MIN_SPEED_MPH,
    ARROW_BOARD_OFFSET_M,
    CONE_BOUNDARY_TOLERANCE_M,
    CONE_SEPARATION_PUSH_M,
    CONE_TAPER_MAX_OFFSET_M,
    FLAGGER_OFFSET_M,
    FT_TO_M,
    MAX_PLACEMENT_ATTEMPTS,
    MAX_SIGN_ROAD_DISTANCE_M,
    MIN_CONE_SEPARATION_M,
    MIN_SIGN_SEPARATION_M,
    MIN_TAPER_CONES,
    SIGN_COUNT,
    SIGN_LATERAL_OFFSET_M,
    SIGN_OFFSET_STEP_M,
    SIGN_SEPARATION_PUSH_M,
)
from ..utils.logging import get_logger
from .axis import derive_fallback_axis
from .roads import select_dominant_road
from .shoulder import select_shoulder_side, shoulder_bearing, side_label, work_side_bearing
from .strategy import PlacementStrategy, build_strategy

LOG = get_logger()

# closest to the work zone first
SIGN_LABELS_NEAR_TO_FAR = ("C", "B", "A")
SIGN_LABEL_ORDER = ("A", "B", "C")

IdFactory = Callable[[], str]


@dataclass(frozen=True)
class PlacementPlan:
    layout: Layout
    rules: ResolvedRules
    method: PlacementMethod
    axis: WorkZoneAxis
    road: Optional[RoadCandidate]
    shoulder: ShoulderSide
    upstream_bearing: float


def approach_direction(upstream_bearing: float) -> ApproachDirection:
    """Bucket a bearing into 90 degree quadrants centred on the cardinals."""
    deg = bearing_to_compass_deg(upstream_bearing)
    if deg >= 315 or deg < 45:
        return ApproachDirection.NORTH
    if deg < 135:
        return ApproachDirection.EAST
    if deg < 225:
        return ApproachDirection.SOUTH
    return ApproachDirection.WEST


def _outcome_meta(outcome: PlacementOutcome, attempts: int) -> Dict[str, object]:
    meta: Dict[str, object] = {"placementOutcome": outcome.value, "attempts": attempts}
    if outcome is PlacementOutcome.APPROXIMATE:
        meta["retryExhausted"] = True
    return meta


def place_signs(
    strategy: PlacementStrategy,
    ring: Sequence[Point],
    rules: ResolvedRules,
    side: ShoulderSide,
    new_id: IdFactory,
) -> List[Device]:
    """Place the C/B/A advance warning signs upstream of the entry point."""
    spacing_m = rules.sign_spacing_ft * FT_TO_M
    placed: List[Device] = []
    codes = list(rules.required_signs)

    for i, label in enumerate(SIGN_LABELS_NEAR_TO_FAR):
        target_m = spacing_m * (i + 1)
        push_m = 0.0
        best: Optional[Point] = None
        best_offset = SIGN_LATERAL_OFFSET_M
        outcome = PlacementOutcome.APPROXIMATE
        attempts = 0

        for attempt in range(1, MAX_PLACEMENT_ATTEMPTS + 1):
            attempts = attempt
            walk = strategy.upstream_of_entry(target_m + push_m)
            lateral = shoulder_bearing(strategy.upstream_bearing_at(walk), side)

            offset = SIGN_LATERAL_OFFSET_M
            candidate = move_point(walk.point, offset, lateral)
            for _ in range(MAX_PLACEMENT_ATTEMPTS):
                if not is_inside(candidate, ring):
                    break
                # offset never exceeds the maximum road distance
                offset = min(offset + SIGN_OFFSET_STEP_M, MAX_SIGN_ROAD_DISTANCE_M)
                candidate = move_point(walk.point, offset, lateral)

            outside = not is_inside(candidate, ring)
            if best is None or (outside and is_inside(best, ring)):
                best, best_offset = candidate, offset
            separated = all(distance(candidate, s.position) >= MIN_SIGN_SEPARATION_M for s in placed)
            if outside and separated:
                best, best_offset = candidate, offset
                outcome = PlacementOutcome.PLACED
                break
            push_m += SIGN_SEPARATION_PUSH_M

        if outcome is PlacementOutcome.APPROXIMATE:
            LOG.warning("sign %s: retries exhausted after %d attempt(s); keeping best candidate", label, attempts)

        seq = SIGN_LABEL_ORDER.index(label)
        meta: Dict[str, object] = {
            "sequence": seq + 1,
            "purpose": "advance_warning",
            "placementMethod": strategy.method.value,
            "distanceFt": round(rules.sign_spacing_ft * (i + 1)),
            "placedDistanceFt": round((target_m + push_m) / FT_TO_M) if outcome is PlacementOutcome.PLACED else None,
            "lateralOffsetM": round(best_offset, 2),
            "shoulder": side_label(side),
        }
        meta.update(_outcome_meta(outcome, attempts))
        placed.append(
            Device(
                id=new_id(),
                type=DeviceType.SIGN,
                position=best,
                sign_code=codes[seq] if seq < len(codes) else None,
                label=label,
                meta=meta,
            )
        )

    placed.sort(key=lambda d: SIGN_LABEL_ORDER.index(d.label))
    return placed[:SIGN_COUNT]


def place_cones(
    strategy: PlacementStrategy,
    ring: Sequence[Point],
    centroid: Point,
    rules: ResolvedRules,
    side: ShoulderSide,
    existing: Sequence[Device],
    new_id: IdFactory,
) -> List[Device]:
    """Lay the taper from the entry point towards the centroid."""
    entry = strategy.entry_point
    if distance(entry, centroid) < 0.5:
        taper_bearing = normalize_bearing(strategy.upstream_bearing + math.pi)
    else:
        taper_bearing = bearing(entry, centroid)
    # side is defined against the upstream-facing bearing
    lateral_bearing = work_side_bearing(strategy.upstream_bearing, side)

    spacing_m = rules.cone_spacing_ft * FT_TO_M
    count = max(MIN_TAPER_CONES, int(math.floor(rules.taper_length_ft / rules.cone_spacing_ft)))
    placed: List[Device] = []
    others: List[Device] = list(existing)

    for i in range(count):
        along = i * spacing_m
        lateral = (i / count) * CONE_TAPER_MAX_OFFSET_M
        extra = 0.0
        candidate = entry
        outcome = PlacementOutcome.APPROXIMATE
        attempts = 0
        for attempt in range(1, MAX_PLACEMENT_ATTEMPTS + 1):
            attempts = attempt
            candidate = move_point(move_point(entry, along + extra, taper_bearing), lateral, lateral_bearing)
            if not is_inside(candidate, ring) and distance_to_polygon(candidate, ring) > CONE_BOUNDARY_TOLERANCE_M:
                candidate = clamp_to_polygon(candidate, ring)
            if all(distance(candidate, d.position) >= MIN_CONE_SEPARATION_M for d in others):
                outcome = PlacementOutcome.PLACED
                break
            extra += CONE_SEPARATION_PUSH_M

        if outcome is PlacementOutcome.APPROXIMATE:
            LOG.warning("cone %d: retries exhausted after %d attempt(s); keeping last candidate", i + 1, attempts)

        meta: Dict[str, object] = {
            "sequence": i + 1,
            "purpose": "taper",
            "placementMethod": strategy.method.value,
            "distanceFt": round(rules.cone_spacing_ft * i),
        }
        meta.update(_outcome_meta(outcome, attempts))
        device = Device(id=new_id(), type=DeviceType.CONE, position=candidate, meta=meta)
        placed.append(device)
        others.append(device)
    return placed


def place_flaggers(
    strategy: PlacementStrategy,
    rules: ResolvedRules,
    new_id: IdFactory,
) -> List[Device]:
    """F1 upstream of the entry point, F2 downstream of the exit point."""
    devices: List[Device] = []
    count = min(2, max(0, rules.flagger_count))
    for index in range(count):
        if index == 0:
            walk = strategy.upstream_of_entry(FLAGGER_OFFSET_M)
            position_name = "upstream"
        else:
            walk = strategy.downstream_of_exit(FLAGGER_OFFSET_M)
            position_name = "downstream"
        role = rules.flagger_positions[index] if index < len(rules.flagger_positions) else None
        devices.append(
            Device(
                id=new_id(),
                type=DeviceType.FLAGGER,
                position=walk.point,
                label=f"F{index + 1}",
                meta={
                    "sequence": index + 1,
                    "purpose": "traffic_control",
                    "position": position_name,
                    "location": role.location if role else None,
                    "role": role.purpose if role else None,
                    "placementMethod": strategy.method.value,
                    "distanceFt": round(FLAGGER_OFFSET_M / FT_TO_M),
                },
            )
        )
    return devices


def needs_arrow_board(operation: Operation, posted_speed_mph: float) -> bool:
    return operation is Operation.LANE_CLOSURE and posted_speed_mph >= ARROW_BOARD_MIN_SPEED_MPH


def place_arrow_board(
    strategy: PlacementStrategy,
    ring: Sequence[Point],
    new_id: IdFactory,
) -> Device:
    offset = ARROW_BOARD_OFFSET_M
    walk = strategy.upstream_of_entry(offset)
    if is_inside(walk.point, ring):
        offset = ARROW_BOARD_FALLBACK_OFFSET_M
        walk = strategy.upstream_of_entry(offset)
    facing = strategy.upstream_bearing_at(walk) + math.pi
    return Device(
        id=new_id(),
        type=DeviceType.ARROW_BOARD,
        position=walk.point,
        label="AB",
        rotation=float(round(bearing_to_compass_deg(facing))) % 360.0,
        meta={
            "purpose": "lane_closure_warning",
            "placementMethod": strategy.method.value,
            "distanceFt": round(offset / FT_TO_M),
        },
    )


def plan_layout(
    request: LayoutRequest,
    *,
    rules: Optional[ResolvedRules] = None,
    rules_pack: Optional[RulesPack] = None,
    diagnostics: Optional[RulesDiagnosticSink] = None,
    now: Optional[datetime] = None,
    id_factory: Optional[IdFactory] = None,
) -> PlacementPlan:
    """Run the full placement pipeline for one work zone."""
    ring = request.polygon
    centroid = request.centroid
    resolved = rules if rules is not None else resolve_rules(
        request.rules_query(), rules_pack=rules_pack, diagnostics=diagnostics
    )

    road = select_dominant_road(request.road_polylines, ring, centroid)
    axis = derive_fallback_axis(ring, centroid)
    strategy = build_strategy(ring, axis, road)

    upstream = strategy.upstream_bearing
    side = select_shoulder_side(strategy.entry_point, upstream, centroid)
    new_id = id_factory or DeviceIdFactory()

    devices: List[Device] = []
    devices.extend(place_signs(strategy, ring, resolved, side, new_id))
    devices.extend(place_cones(strategy, ring, centroid, resolved, side, devices, new_id))
    devices.extend(place_flaggers(strategy, resolved, new_id))
    if needs_arrow_board(request.operation, request.posted_speed_mph):
        devices.append(place_arrow_board(strategy, ring, new_id))

    stamp = now or datetime.now(timezone.utc)
    layout = Layout(
        created_at=stamp,
        updated_at=stamp,
        devices=tuple(devices),
        source=LayoutSource.MACHINE_SUGGESTED,
        direction=approach_direction(upstream),
    )
    approximate = sum(1 for d in devices if d.meta.get("retryExhausted"))
    LOG.info(
        "placed %d device(s) via %s direction=%s shoulder=%s approximate=%d",
        len(devices),
        strategy.method.value,
        layout.direction.value if layout.direction else "-",
        side_label(side),
        approximate,
    )
    return PlacementPlan(
        layout=layout,
        rules=resolved,
        method=strategy.method,
        axis=axis,
        road=road,
        shoulder=side,
        upstream_bearing=upstream,
    )


def suggest_field_layout(request: LayoutRequest, **kwargs) -> Layout:
    """Return a fresh machine-suggested layout for ``request``."""
    return plan_layout(request, **kwargs).layout
