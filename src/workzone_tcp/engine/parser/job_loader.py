"""Load job documents and turn them into layout requests."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..domain.models import LayoutRequest, Operation, Point, RoadType
from ..geometry.kernel import centroid as ring_centroid
from ..planner.roads import normalize_road_features
from ..utils.constants import DEFAULT_LANE_WIDTH_FT, JOB_SCHEMA_JSON_PATH
from ..utils.errors import SemanticValidationError, UnsupportedVersionError
from ..utils.logging import get_logger
from .schema import load_json_file, load_schema_file, validate_json_schema

LOG = get_logger()

SUPPORTED_JOB_MAJOR = "1."
MIN_POSTED_SPEED_MPH = 15
MAX_POSTED_SPEED_MPH = 75

WORK_TYPE_ALIASES: Dict[str, Operation] = {
    "one_lane_two_way_flaggers": Operation.FLAGGING,
}


def ensure_supported_version(job_json: Dict) -> None:
    version = str(job_json.get("version", ""))
    if not version.startswith(SUPPORTED_JOB_MAJOR):
        raise UnsupportedVersionError(f'unsupported "version": {version} (expected 1.*)')


def parse_operation(raw: str) -> Operation:
    alias = WORK_TYPE_ALIASES.get(raw)
    if alias is not None:
        LOG.info("workType %s mapped to %s", raw, alias.value)
        return alias
    return Operation(raw)


def _ring(raw_polygon) -> Tuple[Point, ...]:
    ring = [(float(p[0]), float(p[1])) for p in raw_polygon]
    # closed rings are accepted; the engine works on unclosed rings
    if len(ring) > 1 and ring[0] == ring[-1]:
        ring.pop()
    return tuple(ring)


def validate_job_semantics(job_json: Dict) -> None:
    errors: List[str] = []
    ring = _ring(job_json["geometry"]["polygon"])
    distinct = len(set(ring))
    if distinct < 3:
        errors.append(f"[VAL] E201 polygon needs at least 3 distinct points: distinct={distinct}")

    job = job_json["job"]
    speed = float(job["postedSpeedMph"])
    if not MIN_POSTED_SPEED_MPH <= speed <= MAX_POSTED_SPEED_MPH:
        errors.append(
            f"[VAL] E202 postedSpeedMph out of range: value={speed:g} "
            f"allowed=[{MIN_POSTED_SPEED_MPH},{MAX_POSTED_SPEED_MPH}]"
        )
    length = float(job["workLengthFt"])
    if length <= 0:
        errors.append(f"[VAL] E203 workLengthFt must be greater than 0: value={length:g}")

    if errors:
        for msg in errors:
            LOG.error(msg)
        raise SemanticValidationError(f"semantic validation failed with {len(errors)} error(s)")


def parse_job(job_json: Dict, schema_json: Optional[Dict] = None) -> LayoutRequest:
    """Validate ``job_json`` and build the matching :class:`LayoutRequest`."""
    if schema_json is not None:
        validate_json_schema(job_json, schema_json)
    ensure_supported_version(job_json)
    validate_job_semantics(job_json)

    geometry = job_json["geometry"]
    job = job_json["job"]
    ring = _ring(geometry["polygon"])
    raw_centroid = geometry.get("centroid")
    center = (float(raw_centroid[0]), float(raw_centroid[1])) if raw_centroid else ring_centroid(ring)

    roads: Optional[Tuple[Tuple[Point, ...], ...]] = None
    if geometry.get("roads"):
        normalized = normalize_road_features(geometry["roads"])
        roads = tuple(normalized) if normalized else None

    request = LayoutRequest(
        polygon=ring,
        centroid=center,
        posted_speed_mph=float(job["postedSpeedMph"]),
        operation=parse_operation(job["workType"]),
        work_length_ft=float(job["workLengthFt"]),
        road_type=RoadType(job.get("roadType", RoadType.TWO_LANE_UNDIVIDED.value)),
        is_night=bool(job.get("isNight", False)),
        lane_width_ft=float(job.get("laneWidthFt", DEFAULT_LANE_WIDTH_FT)),
        road_polylines=roads,
        location_label=geometry.get("locationLabel"),
    )
    LOG.info(
        "job: operation=%s speed=%gmph length=%gft night=%s polygon=%d pts roads=%d",
        request.operation.value,
        request.posted_speed_mph,
        request.work_length_ft,
        request.is_night,
        len(request.polygon),
        len(request.road_polylines or ()),
    )
    return request


def load_job_file(job_path: Path, schema_path: Path = JOB_SCHEMA_JSON_PATH) -> LayoutRequest:
    job_json = load_json_file(job_path)
    schema_json = load_schema_file(schema_path)
    return parse_job(job_json, schema_json)
