"""Compliance summary for the plan panel."""
from __future__ import annotations

from typing import Any, Dict, List

from ..domain.models import DeviceType, Layout, LayoutRequest, PlacementMethod, PlanSummary, ResolvedRules
from .editing import count_devices_by_type

LAYOUT_NAMES = {
    "lane_closure": "Lane closure with taper",
    "lane_shift": "Lane shift",
    "flagging": "One-lane two-way traffic control with flaggers",
    "shoulder_work": "Shoulder work",
    "full_closure": "Full road closure with detour",
}


def summarize_plan(
    request: LayoutRequest,
    rules: ResolvedRules,
    layout: Layout,
    *,
    method: PlacementMethod = PlacementMethod.ROAD_ALIGNED,
) -> PlanSummary:
    signs = sorted(layout.devices_of(DeviceType.SIGN), key=lambda d: d.label or "")
    sign_spacing: List[Dict[str, Any]] = [
        {
            "label": sign.label,
            "signCode": sign.sign_code.value if sign.sign_code else None,
            "distanceFt": sign.meta.get("distanceFt"),
        }
        for sign in signs
    ]

    counts = count_devices_by_type(layout)
    devices: Dict[str, Any] = {device_type.value: counts[device_type] for device_type in DeviceType}
    devices["arrowBoardRequired"] = counts[DeviceType.ARROW_BOARD] > 0
    devices["drumsRequired"] = rules.drums_required

    assumptions: List[str] = [
        f"Posted speed {request.posted_speed_mph:g} mph resolved against the {rules.speed_bucket} mph bucket",
        f"Lane width {request.lane_width_ft:g} ft",
        f"{'Night' if request.is_night else 'Day'} operation",
    ]
    if method is PlacementMethod.AXIS_FALLBACK:
        assumptions.append("No road data near the work zone; devices follow the polygon axis")
    if rules.legacy_fallback:
        assumptions.append("Rules pack unavailable; values come from the legacy speed table")
    approximate = [d.label or d.id for d in layout.devices if d.meta.get("retryExhausted")]
    if approximate:
        assumptions.append(f"Approximate placement for: {', '.join(approximate)}")

    references = sorted({_format_citation(c) for c in rules.citations.values()})

    return PlanSummary(
        recommended_layout=LAYOUT_NAMES[request.operation.value],
        sign_spacing=sign_spacing,
        taper_length_ft=rules.taper_length_ft,
        buffer_length_ft=rules.buffer_length_ft,
        devices=devices,
        assumptions=assumptions,
        references=references,
    )


def _format_citation(citation) -> str:
    parts = [citation.source_pdf]
    if citation.page:
        parts.append(f"p. {citation.page}")
    if citation.section_title:
        parts.append(citation.section_title)
    return ", ".join(parts)
