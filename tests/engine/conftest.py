from __future__ import annotations

import copy
import json
import math
from datetime import datetime, timezone
from typing import Callable, Tuple

import pytest

from workzone_tcp.engine.domain.models import LayoutRequest, Operation
from workzone_tcp.engine.geometry.kernel import centroid
from workzone_tcp.engine.layout.ids import DeviceIdFactory

LON0 = -122.0
LAT0 = 37.0
M_PER_DEG_LAT = 111320.0
M_PER_DEG_LON = M_PER_DEG_LAT * math.cos(math.radians(LAT0))

FROZEN_NOW = datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc)


def at(east_m: float, north_m: float) -> Tuple[float, float]:
    """Point offset from the test origin in local metres."""
    return (LON0 + east_m / M_PER_DEG_LON, LAT0 + north_m / M_PER_DEG_LAT)


@pytest.fixture
def zone_ring():
    # 100 m x 20 m box north of the road centre line
    return (at(-50, -5), at(50, -5), at(50, 15), at(-50, 15))


@pytest.fixture
def through_road():
    return (at(-1000, 0), at(1000, 0))


@pytest.fixture
def id_factory() -> DeviceIdFactory:
    return DeviceIdFactory(epoch_ms=1_700_000_000_000)


@pytest.fixture
def make_request(zone_ring) -> Callable[..., LayoutRequest]:
    def _make(
        *,
        speed: float = 35,
        operation: Operation = Operation.LANE_CLOSURE,
        roads=None,
        ring=None,
        is_night: bool = False,
    ) -> LayoutRequest:
        polygon = tuple(ring or zone_ring)
        return LayoutRequest(
            polygon=polygon,
            centroid=centroid(polygon),
            posted_speed_mph=speed,
            operation=operation,
            work_length_ft=300,
            is_night=is_night,
            road_polylines=tuple(tuple(r) for r in roads) if roads else None,
        )

    return _make


@pytest.fixture
def local() -> Callable[[float, float], Tuple[float, float]]:
    return at


@pytest.fixture
def frozen_now() -> datetime:
    return FROZEN_NOW


JOB_PAYLOAD = {
    "version": "1.0",
    "geometry": {
        "polygon": [list(at(-50, -5)), list(at(50, -5)), list(at(50, 15)), list(at(-50, 15)), list(at(-50, -5))],
        "roads": [[list(at(-1000, 0)), list(at(1000, 0))]],
        "locationLabel": "SE Main St & 12th Ave",
    },
    "job": {
        "postedSpeedMph": 35,
        "workType": "lane_closure",
        "workLengthFt": 300,
        "isNight": True,
        "jobOwner": {"companyName": "Acme Paving"},
    },
}


@pytest.fixture
def job_payload():
    return copy.deepcopy(JOB_PAYLOAD)


@pytest.fixture
def job_file(tmp_path, job_payload):
    path = tmp_path / "job.json"
    path.write_text(json.dumps(job_payload), encoding="utf-8")
    return path
