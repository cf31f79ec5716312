"""GeoJSON and JSON payloads for map and citation-panel collaborators."""
from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional, Sequence

from ..domain.models import Citation, Device, Layout, PlanSummary, Point, ResolvedRules


def _device_feature(device: Device) -> Dict[str, Any]:
    properties: Dict[str, Any] = {
        "id": device.id,
        "deviceType": device.type.value,
    }
    if device.sign_code is not None:
        properties["signCode"] = device.sign_code.value
    if device.label is not None:
        properties["label"] = device.label
    if device.rotation is not None:
        properties["rotation"] = device.rotation
    properties["meta"] = dict(device.meta)
    return {
        "type": "Feature",
        "geometry": {"type": "Point", "coordinates": [device.position[0], device.position[1]]},
        "properties": properties,
    }


def _polygon_feature(ring: Sequence[Point]) -> Dict[str, Any]:
    coords = [[p[0], p[1]] for p in ring]
    if coords and coords[0] != coords[-1]:
        coords.append(list(coords[0]))
    return {
        "type": "Feature",
        "geometry": {"type": "Polygon", "coordinates": [coords]},
        "properties": {"role": "work_zone"},
    }


def layout_to_geojson(layout: Layout, polygon: Optional[Sequence[Point]] = None) -> Dict[str, Any]:
    """FeatureCollection of device markers, with the work zone first when given."""
    features: List[Dict[str, Any]] = []
    if polygon:
        features.append(_polygon_feature(polygon))
    features.extend(_device_feature(device) for device in layout.devices)
    return {
        "type": "FeatureCollection",
        "features": features,
        "properties": {
            "version": layout.version,
            "source": layout.source.value,
            "direction": layout.direction.value if layout.direction else None,
            "createdAt": layout.created_at.isoformat(),
            "updatedAt": layout.updated_at.isoformat(),
        },
    }


def _citation_dict(citation: Citation) -> Dict[str, Any]:
    return {
        "sourcePdf": citation.source_pdf,
        "page": citation.page,
        "sectionTitle": citation.section_title,
        "notes": citation.notes,
    }


def rules_to_dict(rules: ResolvedRules) -> Dict[str, Any]:
    return {
        "signSpacingFt": rules.sign_spacing_ft,
        "taperLengthFt": rules.taper_length_ft,
        "coneSpacingFt": rules.cone_spacing_ft,
        "bufferLengthFt": rules.buffer_length_ft,
        "drumsRequired": rules.drums_required,
        "requiredSigns": [code.value for code in rules.required_signs],
        "flaggers": {
            "count": rules.flagger_count,
            "positions": [{"location": p.location, "purpose": p.purpose} for p in rules.flagger_positions],
        },
        "speedBucket": rules.speed_bucket,
        "legacyFallback": rules.legacy_fallback,
        "citations": {key: _citation_dict(c) for key, c in rules.citations.items()},
    }


def summary_to_dict(summary: PlanSummary) -> Dict[str, Any]:
    payload = asdict(summary)
    return {
        "recommendedLayout": payload["recommended_layout"],
        "signSpacing": payload["sign_spacing"],
        "taperLengthFt": payload["taper_length_ft"],
        "bufferLengthFt": payload["buffer_length_ft"],
        "devices": payload["devices"],
        "assumptions": payload["assumptions"],
        "references": payload["references"],
    }
