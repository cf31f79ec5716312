"""Domain models for work-zone geometry, resolved rules and device layouts."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..utils.constants import (
    DEFAULT_LANE_WIDTH_FT,
    LAYOUT_FILE_NAME,
    LOG_FILE_NAME,
    MANIFEST_NAME,
    OUTPUT_DIR_PREFIX,
    RULES_FILE_NAME,
    RULES_PACK_JSON_PATH,
    JOB_SCHEMA_JSON_PATH,
    SNAPSHOT_FILE_NAME,
    SUMMARY_FILE_NAME,
)

Point = Tuple[float, float]
Ring = Sequence[Point]
Polyline = Sequence[Point]


class DeviceType(str, Enum):
    CONE = "cone"
    SIGN = "sign"
    ARROW_BOARD = "arrowBoard"
    FLAGGER = "flagger"
    DRUM = "drum"
    BARRICADE = "barricade"


class SignCode(str, Enum):
    ROAD_WORK_AHEAD = "ROAD_WORK_AHEAD"
    BE_PREPARED_TO_STOP = "BE_PREPARED_TO_STOP"
    FLAGGER_AHEAD = "FLAGGER_AHEAD"
    RIGHT_LANE_CLOSED = "RIGHT_LANE_CLOSED"
    LEFT_LANE_CLOSED = "LEFT_LANE_CLOSED"
    ONE_LANE_ROAD = "ONE_LANE_ROAD"
    WORKERS_AHEAD = "WORKERS_AHEAD"
    END_ROAD_WORK = "END_ROAD_WORK"
    DETOUR = "DETOUR"
    ROAD_CLOSED = "ROAD_CLOSED"


class Operation(str, Enum):
    LANE_CLOSURE = "lane_closure"
    LANE_SHIFT = "lane_shift"
    FLAGGING = "flagging"
    SHOULDER_WORK = "shoulder_work"
    FULL_CLOSURE = "full_closure"


class TimeOfDay(str, Enum):
    DAY = "day"
    NIGHT = "night"


class RoadType(str, Enum):
    TWO_LANE_UNDIVIDED = "2_lane_undivided"
    MULTILANE_DIVIDED = "multilane_divided"
    INTERSECTION = "intersection"


class ApproachDirection(str, Enum):
    NORTH = "N"
    EAST = "E"
    SOUTH = "S"
    WEST = "W"


class LayoutSource(str, Enum):
    MACHINE_SUGGESTED = "machine_suggested"
    USER_CREATED = "user_created"
    USER_MODIFIED = "user_modified"


class PlacementMethod(str, Enum):
    ROAD_ALIGNED = "road_aligned"
    AXIS_FALLBACK = "axis_fallback"
    USER = "user"


class PlacementOutcome(str, Enum):
    PLACED = "placed"
    APPROXIMATE = "approximate"


class ShoulderSide(int, Enum):
    """Lateral side relative to the upstream-facing bearing."""

    RIGHT = 1
    LEFT = -1


@dataclass(frozen=True)
class Citation:
    source_pdf: str
    page: Optional[str] = None
    section_title: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class FlaggerPosition:
    location: str
    purpose: str


@dataclass(frozen=True)
class RulesQuery:
    speed_mph: float
    operation: Operation
    time_of_day: TimeOfDay = TimeOfDay.DAY
    lane_width_ft: float = DEFAULT_LANE_WIDTH_FT


@dataclass(frozen=True)
class ResolvedRules:
    """Concrete spacing, length and count values for one job, with citations."""

    sign_spacing_ft: float
    taper_length_ft: float
    cone_spacing_ft: float
    buffer_length_ft: float
    drums_required: bool
    required_signs: Tuple[SignCode, ...]
    flagger_count: int
    flagger_positions: Tuple[FlaggerPosition, ...]
    citations: Mapping[str, Citation]
    speed_bucket: int
    legacy_fallback: bool = False


@dataclass(frozen=True)
class Device:
    id: str
    type: DeviceType
    position: Point
    sign_code: Optional[SignCode] = None
    label: Optional[str] = None
    rotation: Optional[float] = None
    meta: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Layout:
    created_at: datetime
    updated_at: datetime
    devices: Tuple[Device, ...]
    source: LayoutSource
    direction: Optional[ApproachDirection] = None
    version: int = 1

    def device(self, device_id: str) -> Optional[Device]:
        for item in self.devices:
            if item.id == device_id:
                return item
        return None

    def devices_of(self, device_type: DeviceType) -> List[Device]:
        return [item for item in self.devices if item.type is device_type]


@dataclass(frozen=True)
class LayoutRequest:
    """Inputs supplied by the map/job collaborator for one work zone."""

    polygon: Tuple[Point, ...]
    centroid: Point
    posted_speed_mph: float
    operation: Operation
    work_length_ft: float
    road_type: RoadType = RoadType.TWO_LANE_UNDIVIDED
    is_night: bool = False
    lane_width_ft: float = DEFAULT_LANE_WIDTH_FT
    road_polylines: Optional[Tuple[Tuple[Point, ...], ...]] = None
    location_label: Optional[str] = None

    @property
    def time_of_day(self) -> TimeOfDay:
        return TimeOfDay.NIGHT if self.is_night else TimeOfDay.DAY

    def rules_query(self) -> RulesQuery:
        return RulesQuery(
            speed_mph=self.posted_speed_mph,
            operation=self.operation,
            time_of_day=self.time_of_day,
            lane_width_ft=self.lane_width_ft,
        )


@dataclass(frozen=True)
class PolylineProjection:
    point: Point
    segment_index: int
    distance_along_line: float
    distance_from_line: float
    segment_bearing: float


@dataclass(frozen=True)
class PolylineWalk:
    point: Point
    segment_index: int
    bearing: float
    distance_along_line: float
    clamped: bool = False


@dataclass(frozen=True)
class RoadCandidate:
    index: int
    polyline: Tuple[Point, ...]
    proximity_score: float
    length_score: float
    score: float
    centroid_distance_m: float
    length_inside_m: float


@dataclass(frozen=True)
class WorkZoneAxis:
    centroid: Point
    axis_bearing: float
    entry_point: Point
    exit_point: Point
    upstream_bearing: float
    probe_start: Point
    probe_end: Point
    degenerate: bool = False


@dataclass(frozen=True)
class PlanSummary:
    recommended_layout: str
    sign_spacing: List[Dict[str, Any]]
    taper_length_ft: float
    buffer_length_ft: float
    devices: Dict[str, Any]
    assumptions: List[str]
    references: List[str]


@dataclass(frozen=True)
class OutputDirectoryTemplate:
    """Templates used to materialise output directories for each planning run."""

    root: str = OUTPUT_DIR_PREFIX
    run: str = "{month}{day}_{seq:03}"


@dataclass(frozen=True)
class OutputFileTemplates:
    """Templates controlling where each exported artefact is written."""

    log: str = LOG_FILE_NAME
    manifest: str = MANIFEST_NAME
    layout: str = LAYOUT_FILE_NAME
    rules: str = RULES_FILE_NAME
    summary: str = SUMMARY_FILE_NAME
    snapshot: str = SNAPSHOT_FILE_NAME


@dataclass(frozen=True)
class PlanOptions:
    schema_path: Path = JOB_SCHEMA_JSON_PATH
    rules_pack_path: Path = RULES_PACK_JSON_PATH
    console_log: bool = False
    render_snapshot: bool = True
    output_template: OutputDirectoryTemplate = field(default_factory=OutputDirectoryTemplate)
    output_files: OutputFileTemplates = field(default_factory=OutputFileTemplates)


@dataclass
class PlanResult:
    request: LayoutRequest
    rules: ResolvedRules
    layout: Layout
    placement_method: PlacementMethod
    road: Optional[RoadCandidate] = None
    summary: Optional[PlanSummary] = None
    manifest_path: Optional[Path] = None
    layout_path: Optional[Path] = None
    snapshot_path: Optional[Path] = None
