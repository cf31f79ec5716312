"""Immutable edit operations on layouts.

Every helper returns a new :class:`Layout`; the input is never mutated. Any
user edit re-tags the layout ``user_modified``. Regeneration respects the
provenance state machine: machine suggestions are replaced freely, while
user-created and user-modified layouts are only replaced when the caller
passes ``confirm_overwrite=True``.
"""
from __future__ import annotations

import string
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence

from ..domain.models import (
    ApproachDirection,
    Device,
    DeviceType,
    Layout,
    LayoutRequest,
    LayoutSource,
    PlacementMethod,
    Point,
    SignCode,
)
from ..planner.placement import suggest_field_layout
from .ids import DeviceIdFactory
from ..utils.errors import LayoutEditError, LayoutOverwriteError
from ..utils.logging import get_logger

LOG = get_logger()

AUTO_SIGN_LABELS = tuple(string.ascii_uppercase[:8])

STICKY_SOURCES = frozenset({LayoutSource.USER_CREATED, LayoutSource.USER_MODIFIED})


def _now() -> datetime:
    return datetime.now(timezone.utc)


def create_empty_layout(
    *,
    direction: Optional[ApproachDirection] = None,
    now: Optional[datetime] = None,
) -> Layout:
    stamp = now or _now()
    return Layout(
        created_at=stamp,
        updated_at=stamp,
        devices=(),
        source=LayoutSource.USER_CREATED,
        direction=direction,
    )


def clone_layout(
    layout: Layout,
    *,
    devices: Optional[Sequence[Device]] = None,
    direction: Optional[ApproachDirection] = None,
    now: Optional[datetime] = None,
) -> Layout:
    """Copy ``layout`` for an edit; the copy is always ``user_modified``."""
    return replace(
        layout,
        devices=tuple(devices) if devices is not None else layout.devices,
        direction=direction if direction is not None else layout.direction,
        updated_at=now or _now(),
        source=LayoutSource.USER_MODIFIED,
    )


def next_sign_label(layout: Layout) -> str:
    used = {device.label for device in layout.devices_of(DeviceType.SIGN) if device.label}
    for label in AUTO_SIGN_LABELS:
        if label not in used:
            return label
    n = 1
    while f"S{n}" in used:
        n += 1
    return f"S{n}"


def add_device(
    layout: Layout,
    device_type: DeviceType,
    position: Point,
    *,
    sign_code: Optional[SignCode] = None,
    label: Optional[str] = None,
    rotation: Optional[float] = None,
    id_factory: Optional[Callable[[], str]] = None,
    now: Optional[datetime] = None,
) -> Layout:
    device_type = DeviceType(device_type)
    if sign_code is not None and device_type is not DeviceType.SIGN:
        raise LayoutEditError(f"sign_code is only valid for signs, got type={device_type.value}")
    new_id = id_factory or DeviceIdFactory(reserved=(d.id for d in layout.devices))
    if label is None and device_type is DeviceType.SIGN:
        label = next_sign_label(layout)
    device = Device(
        id=new_id(),
        type=device_type,
        position=(float(position[0]), float(position[1])),
        sign_code=SignCode(sign_code) if sign_code is not None else None,
        label=label,
        rotation=rotation,
        meta={"placementMethod": PlacementMethod.USER.value},
    )
    if layout.device(device.id) is not None:
        raise LayoutEditError(f"duplicate device id: {device.id}")
    LOG.debug("add %s %s at %s", device.type.value, device.id, device.position)
    return clone_layout(layout, devices=layout.devices + (device,), now=now)


def _require(layout: Layout, device_id: str) -> Device:
    device = layout.device(device_id)
    if device is None:
        raise LayoutEditError(f"unknown device id: {device_id}")
    return device


def move_device(layout: Layout, device_id: str, position: Point, *, now: Optional[datetime] = None) -> Layout:
    _require(layout, device_id)
    moved = tuple(
        replace(
            d,
            position=(float(position[0]), float(position[1])),
            meta={**d.meta, "movedByUser": True},
        )
        if d.id == device_id
        else d
        for d in layout.devices
    )
    return clone_layout(layout, devices=moved, now=now)


def delete_device(layout: Layout, device_id: str, *, now: Optional[datetime] = None) -> Layout:
    _require(layout, device_id)
    return clone_layout(layout, devices=tuple(d for d in layout.devices if d.id != device_id), now=now)


def count_devices_by_type(layout: Layout) -> Dict[DeviceType, int]:
    counts = {device_type: 0 for device_type in DeviceType}
    for device in layout.devices:
        counts[device.type] += 1
    return counts


def validate_layout_state(layout: Layout) -> List[str]:
    """Return problems found in ``layout``; an empty list means it is consistent."""
    problems: List[str] = []
    seen = set()
    for index, device in enumerate(layout.devices):
        if device.id in seen:
            problems.append(f"duplicate device id at index {index}: {device.id}")
        seen.add(device.id)
        if not isinstance(device.type, DeviceType):
            problems.append(f"unknown device type at index {index}: {device.type!r}")
        if device.sign_code is not None and device.type is not DeviceType.SIGN:
            problems.append(f"sign subtype on non-sign device {device.id}")
        if len(device.position) != 2:
            problems.append(f"invalid position for device {device.id}")
    if layout.updated_at < layout.created_at:
        problems.append("updated_at precedes created_at")
    return problems


def is_sticky(layout: Optional[Layout]) -> bool:
    return layout is not None and layout.source in STICKY_SOURCES


def regenerate_layout(
    current: Optional[Layout],
    request: LayoutRequest,
    *,
    confirm_overwrite: bool = False,
    **plan_kwargs,
) -> Layout:
    """Replace ``current`` with a fresh machine suggestion for ``request``."""
    if is_sticky(current) and not confirm_overwrite:
        raise LayoutOverwriteError(
            f"layout is {current.source.value}; pass confirm_overwrite=True to discard user edits"
        )
    if is_sticky(current):
        LOG.warning("discarding %s layout with %d device(s) on request", current.source.value, len(current.devices))
    return suggest_field_layout(request, **plan_kwargs)
