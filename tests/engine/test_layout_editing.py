from __future__ import annotations

from dataclasses import replace
from datetime import timedelta

import pytest

from workzone_tcp.engine.domain.models import DeviceType, LayoutSource, PlacementMethod, SignCode
from workzone_tcp.engine.layout.editing import (
    add_device,
    clone_layout,
    count_devices_by_type,
    create_empty_layout,
    delete_device,
    is_sticky,
    move_device,
    next_sign_label,
    regenerate_layout,
    validate_layout_state,
)
from workzone_tcp.engine.planner.placement import suggest_field_layout
from workzone_tcp.engine.utils.errors import LayoutEditError, LayoutOverwriteError


@pytest.fixture
def suggested(make_request, through_road, id_factory, frozen_now):
    return suggest_field_layout(make_request(speed=45, roads=[through_road]), id_factory=id_factory, now=frozen_now)


def test_clone_keeps_devices_and_marks_user_modified(suggested, frozen_now) -> None:
    later = frozen_now + timedelta(minutes=5)

    copy = clone_layout(suggested, now=later)

    assert copy.source is LayoutSource.USER_MODIFIED
    assert [d.id for d in copy.devices] == [d.id for d in suggested.devices]
    assert [d.position for d in copy.devices] == [d.position for d in suggested.devices]
    assert copy.created_at == suggested.created_at
    assert copy.updated_at == later
    # the original is untouched
    assert suggested.source is LayoutSource.MACHINE_SUGGESTED


def test_add_move_delete_round(local, frozen_now) -> None:
    layout = create_empty_layout(now=frozen_now)
    assert layout.source is LayoutSource.USER_CREATED

    layout = add_device(layout, DeviceType.SIGN, local(0, -20), sign_code=SignCode.ROAD_WORK_AHEAD, now=frozen_now)
    layout = add_device(layout, "cone", local(5, 5), now=frozen_now)
    sign, cone = layout.devices

    assert sign.label == "A"
    assert sign.sign_code is SignCode.ROAD_WORK_AHEAD
    assert sign.meta["placementMethod"] == PlacementMethod.USER.value
    assert cone.type is DeviceType.CONE and cone.label is None
    assert layout.source is LayoutSource.USER_MODIFIED

    moved = move_device(layout, cone.id, local(6, 6), now=frozen_now)
    assert moved.device(cone.id).position == local(6, 6)
    assert moved.device(cone.id).meta["movedByUser"] is True
    assert moved.device(sign.id) == sign

    trimmed = delete_device(moved, sign.id, now=frozen_now)
    assert [d.id for d in trimmed.devices] == [cone.id]


def test_edits_on_machine_layout_become_user_modified(suggested, local) -> None:
    sign = suggested.devices_of(DeviceType.SIGN)[0]

    edited = move_device(suggested, sign.id, local(-300, -10))

    assert edited.source is LayoutSource.USER_MODIFIED
    assert is_sticky(edited)
    assert not is_sticky(suggested)
    assert not is_sticky(None)


def test_new_device_ids_do_not_collide(suggested, local) -> None:
    edited = add_device(suggested, DeviceType.DRUM, local(0, 30))
    ids = [d.id for d in edited.devices]

    assert len(ids) == len(set(ids))
    assert validate_layout_state(edited) == []


def test_sign_code_on_non_sign_is_rejected(local) -> None:
    with pytest.raises(LayoutEditError):
        add_device(create_empty_layout(), DeviceType.CONE, local(0, 0), sign_code=SignCode.DETOUR)


@pytest.mark.parametrize("operation", [move_device, delete_device])
def test_unknown_device_id_is_rejected(operation, local) -> None:
    layout = create_empty_layout()
    args = (local(0, 0),) if operation is move_device else ()

    with pytest.raises(LayoutEditError):
        operation(layout, "dev_missing", *args)


def test_sign_labels_run_through_h_then_numbered(local) -> None:
    layout = create_empty_layout()
    for i in range(9):
        layout = add_device(layout, DeviceType.SIGN, local(i * 20, -30))

    labels = [d.label for d in layout.devices]

    assert labels == ["A", "B", "C", "D", "E", "F", "G", "H", "S1"]
    assert next_sign_label(layout) == "S2"


def test_count_devices_by_type_covers_every_type(suggested) -> None:
    counts = count_devices_by_type(suggested)

    assert set(counts) == set(DeviceType)
    assert counts[DeviceType.SIGN] == 3
    assert counts[DeviceType.CONE] == 9
    assert counts[DeviceType.ARROW_BOARD] == 1
    assert counts[DeviceType.DRUM] == 0
    assert sum(counts.values()) == len(suggested.devices)


def test_validate_layout_state_reports_problems(suggested, frozen_now) -> None:
    first = suggested.devices[0]
    broken = replace(
        suggested,
        devices=suggested.devices + (replace(first, type=DeviceType.CONE, sign_code=SignCode.DETOUR),),
        updated_at=frozen_now - timedelta(days=1),
    )

    problems = validate_layout_state(broken)

    assert any("duplicate device id" in p for p in problems)
    assert any("sign subtype" in p for p in problems)
    assert any("updated_at" in p for p in problems)


def test_regenerate_replaces_machine_suggestions_freely(suggested, make_request, through_road) -> None:
    request = make_request(speed=35, roads=[through_road])

    fresh = regenerate_layout(suggested, request)

    assert fresh.source is LayoutSource.MACHINE_SUGGESTED
    assert len(fresh.devices_of(DeviceType.CONE)) == 5
    assert regenerate_layout(None, request).source is LayoutSource.MACHINE_SUGGESTED


def test_regenerate_requires_confirmation_for_user_layouts(suggested, make_request, through_road, local) -> None:
    edited = add_device(suggested, DeviceType.DRUM, local(0, 30))
    request = make_request(speed=35, roads=[through_road])

    with pytest.raises(LayoutOverwriteError):
        regenerate_layout(edited, request)
    with pytest.raises(LayoutOverwriteError):
        regenerate_layout(create_empty_layout(), request)

    fresh = regenerate_layout(edited, request, confirm_overwrite=True)
    assert fresh.source is LayoutSource.MACHINE_SUGGESTED
    assert fresh.devices_of(DeviceType.DRUM) == []
