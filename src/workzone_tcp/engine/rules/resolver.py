"""Resolve concrete TCP spacing, length and count values from the rules pack.

The resolver is the single source of truth for placement numbers. It is a
pure function of its query: the same inputs always produce the same
:class:`ResolvedRules`. Lookup failures never escape; they degrade to the
legacy fixed-speed table, whose values stay within safe engineering bounds.
"""
from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from ..domain.models import (
    Citation,
    FlaggerPosition,
    Operation,
    ResolvedRules,
    RulesQuery,
    SignCode,
    TimeOfDay,
)
from ..utils.constants import DEFAULT_LANE_WIDTH_FT, MAX_RULES_SPEED_MPH, MIN_RULES_SPEED_MPH, SPEED_BUCKETS
from ..utils.errors import RulesPackError
from ..utils.logging import get_logger
from .diagnostics import RulesDiagnosticSink
from .pack import RulesPack, default_rules_pack, load_rules_pack

LOG = get_logger()

# Pre-rules-pack table, consulted only when the pack cannot be used.
# speed -> (first sign spacing ft, taper length ft, cone spacing ft)
LEGACY_SPEED_TABLE: Dict[int, Tuple[float, float, float]] = {
    25: (100, 100, 15),
    30: (100, 120, 15),
    35: (150, 175, 17),
    40: (200, 240, 20),
    45: (250, 300, 22),
    50: (300, 360, 25),
    55: (350, 420, 27),
    60: (400, 480, 30),
    65: (500, 550, 32),
}
LEGACY_MIN_SPEED_MPH = 25
LEGACY_MAX_SPEED_MPH = 65

LEGACY_REQUIRED_SIGNS: Dict[Operation, Tuple[SignCode, ...]] = {
    Operation.LANE_CLOSURE: (SignCode.ROAD_WORK_AHEAD, SignCode.BE_PREPARED_TO_STOP),
    Operation.FLAGGING: (SignCode.ROAD_WORK_AHEAD, SignCode.BE_PREPARED_TO_STOP, SignCode.FLAGGER_AHEAD),
    Operation.FULL_CLOSURE: (SignCode.ROAD_WORK_AHEAD, SignCode.ROAD_CLOSED, SignCode.DETOUR),
    Operation.LANE_SHIFT: (SignCode.ROAD_WORK_AHEAD,),
    Operation.SHOULDER_WORK: (SignCode.ROAD_WORK_AHEAD,),
}

_LEGACY_CITATION = Citation(source_pdf="legacy_fallback", notes="Legacy fixed speed table")

CITATION_KEYS = (
    "signSpacing",
    "taperLength",
    "coneSpacing",
    "bufferLength",
    "drumsRequired",
    "requiredSigns",
    "flaggers",
)


def clamp_rules_speed(speed_mph: float) -> float:
    return max(float(MIN_RULES_SPEED_MPH), min(float(MAX_RULES_SPEED_MPH), float(speed_mph)))


def speed_bucket_for(speed_mph: float) -> int:
    """Closest bucket at or below the speed, after clamping to the table range."""
    clamped = clamp_rules_speed(speed_mph)
    for bucket in reversed(SPEED_BUCKETS):
        if bucket <= clamped:
            return bucket
    return SPEED_BUCKETS[0]


def taper_length_by_formula(speed_mph: float, lane_width_ft: float) -> float:
    """MUTCD taper length: ``W*S`` up to 40 mph, ``W*S^2/60`` above."""
    if speed_mph <= 40:
        return lane_width_ft * speed_mph
    return lane_width_ft * speed_mph * speed_mph / 60.0


def _derived(pack: RulesPack, key: str, notes: str) -> Citation:
    base = pack.derivations[key]
    return Citation(source_pdf=base.source_pdf, page=base.page, section_title=base.section_title, notes=notes)


def _resolve_from_pack(query: RulesQuery, pack: RulesPack) -> ResolvedRules:
    speed = clamp_rules_speed(query.speed_mph)
    bucket_speed = speed_bucket_for(query.speed_mph)
    bucket = pack.bucket(bucket_speed)
    lane_width = query.lane_width_ft
    citations: Dict[str, Citation] = {}

    if bucket is not None and bucket.sign_spacing_ft:
        sign_spacing = bucket.sign_spacing_ft
        citations["signSpacing"] = bucket.source
    else:
        if speed <= 30:
            sign_spacing, tier = 100.0, "Using minimum spacing for low speed"
        elif speed <= 40:
            sign_spacing, tier = 200.0, "Using minimum for 35-40mph range"
        else:
            sign_spacing, tier = 350.0, "Using minimum for high speed"
        citations["signSpacing"] = _derived(pack, "signSpacingFallback", tier)

    if bucket is not None and bucket.taper_length_ft:
        taper = bucket.taper_length_ft
        citations["taperLength"] = bucket.source
    else:
        raw_taper = taper_length_by_formula(speed, lane_width)
        taper = float(round(raw_taper))
        if speed <= 40:
            notes = f"Calculated using L = W x S ({lane_width:g} x {speed:g} = {raw_taper:g})"
        else:
            notes = f"Calculated using L = W x S^2/60 ({lane_width:g} x {speed:g}^2 / 60 = {raw_taper:g})"
        citations["taperLength"] = _derived(pack, "taperFormula", notes)

    if bucket is not None and bucket.cone_spacing_ft:
        cone_spacing = bucket.cone_spacing_ft
        citations["coneSpacing"] = bucket.source
    else:
        cone_spacing = speed
        citations["coneSpacing"] = _derived(pack, "coneSpacingDefault", f"Cone spacing equals speed ({speed:g} ft)")

    if bucket is not None and bucket.buffer_length_ft:
        buffer_length = bucket.buffer_length_ft
        citations["bufferLength"] = bucket.source
    else:
        buffer_length = speed * 2
        citations["bufferLength"] = _derived(pack, "bufferLengthFallback", f"Estimated buffer length (2 x {speed:g})")

    policy = pack.drum_policy
    night = query.time_of_day is TimeOfDay.NIGHT
    if bucket is not None and bucket.drum_required:
        drums = True
        citations["drumsRequired"] = bucket.source
    elif speed >= policy.min_speed_mph or (night and speed >= policy.night_min_speed_mph):
        drums = True
        base = policy.required_source
        notes = (
            f"Drums required for overnight closures at {policy.night_min_speed_mph:g}mph+"
            if night and speed < policy.min_speed_mph
            else f"Drums required for high-speed streets ({policy.min_speed_mph:g}mph+)"
        )
        citations["drumsRequired"] = Citation(base.source_pdf, base.page, base.section_title, notes)
    else:
        drums = False
        citations["drumsRequired"] = policy.not_required_source

    signs = pack.required_signs[query.operation]
    citations["requiredSigns"] = signs.source

    flaggers = pack.flagger_rule(query.operation, speed)
    citations["flaggers"] = flaggers.source

    return ResolvedRules(
        sign_spacing_ft=float(sign_spacing),
        taper_length_ft=float(taper),
        cone_spacing_ft=float(cone_spacing),
        buffer_length_ft=float(buffer_length),
        drums_required=drums,
        required_signs=signs.signs,
        flagger_count=flaggers.count,
        flagger_positions=flaggers.positions,
        citations=citations,
        speed_bucket=bucket_speed,
    )


def legacy_speed_for(speed_mph: float) -> int:
    clamped = max(LEGACY_MIN_SPEED_MPH, min(LEGACY_MAX_SPEED_MPH, float(speed_mph)))
    return int(round(clamped / 5.0) * 5)


def _resolve_from_legacy_table(query: RulesQuery) -> ResolvedRules:
    speed = legacy_speed_for(query.speed_mph)
    sign_spacing, taper, cone_spacing = LEGACY_SPEED_TABLE[speed]
    night = query.time_of_day is TimeOfDay.NIGHT
    if query.operation is Operation.FLAGGING:
        count = 2
        positions = (
            FlaggerPosition("upstream_approach", "Control traffic entering work zone"),
            FlaggerPosition("downstream_approach", "Control traffic from opposite direction"),
        )
    elif query.operation is Operation.FULL_CLOSURE:
        count, positions = 1, (FlaggerPosition("closure_point", "Direct traffic to detour route"),)
    elif query.operation is Operation.LANE_CLOSURE and speed >= 40:
        count, positions = 1, (FlaggerPosition("taper_upstream", "Guide traffic through lane merge"),)
    else:
        count, positions = 0, ()
    return ResolvedRules(
        sign_spacing_ft=float(sign_spacing),
        taper_length_ft=float(taper),
        cone_spacing_ft=float(cone_spacing),
        buffer_length_ft=float(speed * 2),
        drums_required=speed >= 35 or (night and speed >= 30),
        required_signs=LEGACY_REQUIRED_SIGNS[query.operation],
        flagger_count=count,
        flagger_positions=positions,
        citations={key: _LEGACY_CITATION for key in CITATION_KEYS},
        speed_bucket=speed,
        legacy_fallback=True,
    )


def resolve_rules(
    query: RulesQuery,
    *,
    rules_pack: Optional[RulesPack] = None,
    rules_pack_path: Optional[Path] = None,
    diagnostics: Optional[RulesDiagnosticSink] = None,
) -> ResolvedRules:
    """Resolve ``query`` against ``rules_pack``.

    Without an explicit pack, the pack at ``rules_pack_path`` is loaded, or
    the bundled pack when no path is given.
    """
    try:
        if rules_pack is not None:
            pack = rules_pack
        elif rules_pack_path is not None:
            pack = load_rules_pack(rules_pack_path)
        else:
            pack = default_rules_pack()
        resolved = _resolve_from_pack(query, pack)
    except (RulesPackError, KeyError, TypeError, ValueError) as exc:
        LOG.warning("[RULES] rules pack lookup failed (%s); using legacy speed table", exc)
        resolved = _resolve_from_legacy_table(query)

    LOG.info(
        "[RULES] bucket=%d signSpacing=%gft taperLength=%gft coneSpacing=%gft buffer=%gft drums=%s flaggers=%d%s",
        resolved.speed_bucket,
        resolved.sign_spacing_ft,
        resolved.taper_length_ft,
        resolved.cone_spacing_ft,
        resolved.buffer_length_ft,
        resolved.drums_required,
        resolved.flagger_count,
        " (legacy)" if resolved.legacy_fallback else "",
    )
    if diagnostics is not None:
        diagnostics.record(query, resolved)
    return resolved


def resolve_tcp_rules(
    speed_mph: float,
    operation: Union[Operation, str],
    time_of_day: Union[TimeOfDay, str] = TimeOfDay.DAY,
    lane_width_ft: Optional[float] = None,
    *,
    rules_pack: Optional[RulesPack] = None,
    diagnostics: Optional[RulesDiagnosticSink] = None,
) -> ResolvedRules:
    """Convenience wrapper accepting plain values.

    >>> resolve_tcp_rules(45, "lane_closure").taper_length_ft
    405.0

    Unknown operation or time-of-day strings raise ``ValueError``; every other
    failure degrades to the legacy table.
    """
    query = RulesQuery(
        speed_mph=float(speed_mph),
        operation=Operation(operation),
        time_of_day=TimeOfDay(time_of_day),
        lane_width_ft=float(lane_width_ft) if lane_width_ft is not None else DEFAULT_LANE_WIDTH_FT,
    )
    return resolve_rules(query, rules_pack=rules_pack, diagnostics=diagnostics)
