"""Shared constants for geometry, placement and output naming."""
from __future__ import annotations

from pathlib import Path

DATA_DIR = Path(__file__).resolve().parents[1] / "data"
RULES_PACK_JSON_PATH = DATA_DIR / "tcp_rules_pack.v1.json"
RULES_PACK_SCHEMA_PATH = DATA_DIR / "rules_pack.schema.json"
JOB_SCHEMA_JSON_PATH = DATA_DIR / "job.schema.json"

# Units and earth model
FT_TO_M = 0.3048
EARTH_RADIUS_M = 6371000.0
M_TO_DEG = 1.0 / 111320.0

# Rules resolution
SPEED_BUCKETS = (25, 30, 35, 40, 45, 50, 55)
MIN_RULES_SPEED_MPH = 25
MAX_RULES_SPEED_MPH = 55
DEFAULT_LANE_WIDTH_FT = 12.0

# Road selection
ROAD_BBOX_PADDING_M = 100.0
ROAD_PROXIMITY_WEIGHT = 0.6
ROAD_LENGTH_WEIGHT = 0.4
ROAD_PROXIMITY_SATURATION_M = 200.0
ROAD_LENGTH_SATURATION_M = 300.0
ROAD_FEATURE_COORD_PRECISION = 7

# Axis and direction probing
AXIS_PROBE_HALF_LENGTH_M = 500.0
UPSTREAM_PROBE_M = 50.0
BOUNDARY_MARCH_STEP_M = 2.0
SHOULDER_TEST_OFFSET_M = 10.0

# Sign placement
SIGN_COUNT = 3
SIGN_LATERAL_OFFSET_M = 5.0
SIGN_OFFSET_STEP_M = 3.0
MAX_SIGN_ROAD_DISTANCE_M = 15.0
MIN_SIGN_SEPARATION_M = 15.0
SIGN_SEPARATION_PUSH_M = 10.0
MAX_PLACEMENT_ATTEMPTS = 5

# Cone taper
MIN_TAPER_CONES = 4
CONE_TAPER_MAX_OFFSET_M = 3.0
CONE_BOUNDARY_TOLERANCE_M = 5.0
MIN_CONE_SEPARATION_M = 3.0
CONE_SEPARATION_PUSH_M = 1.5

# Flaggers and arrow board
FLAGGER_OFFSET_M = 15.0
ARROW_BOARD_OFFSET_M = 30.0
ARROW_BOARD_FALLBACK_OFFSET_M = 50.0
ARROW_BOARD_MIN_SPEED_MPH = 45

# Output naming
OUTPUT_DIR_PREFIX = "tcp_out"
LAYOUT_FILE_NAME = "layout_{id}.geojson"
RULES_FILE_NAME = "rules_{id}.json"
SUMMARY_FILE_NAME = "summary_{id}.json"
SNAPSHOT_FILE_NAME = "snapshot_{id}.svg"
MANIFEST_NAME = "manifest_{id}.json"
LOG_FILE_NAME = "plan_{id}.log"
