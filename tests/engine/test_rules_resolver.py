from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path

import pytest

from workzone_tcp.engine.domain.models import Operation, RulesQuery, SignCode, TimeOfDay
from workzone_tcp.engine.rules.diagnostics import LastResolvedRulesSink
from workzone_tcp.engine.rules.pack import default_rules_pack, load_rules_pack, parse_rules_pack
from workzone_tcp.engine.rules.resolver import (
    legacy_speed_for,
    resolve_rules,
    resolve_tcp_rules,
    speed_bucket_for,
    taper_length_by_formula,
)
from workzone_tcp.engine.utils.constants import RULES_PACK_JSON_PATH
from workzone_tcp.engine.utils.errors import RulesPackError
from workzone_tcp.engine.utils.logging import get_logger


def _pack_json() -> dict:
    return json.loads(RULES_PACK_JSON_PATH.read_text(encoding="utf-8"))


@pytest.mark.parametrize(
    "speed, bucket",
    [(10, 25), (25, 25), (29, 25), (30, 30), (44.9, 40), (55, 55), (70, 55)],
)
def test_speed_bucket_clamps_and_rounds_down(speed: float, bucket: int) -> None:
    assert speed_bucket_for(speed) == bucket


def test_taper_formula_switches_at_40_mph() -> None:
    assert taper_length_by_formula(40, 12) == 480
    assert taper_length_by_formula(45, 12) == pytest.approx(405)


def test_lane_closure_at_45_mph() -> None:
    rules = resolve_tcp_rules(45, "lane_closure", "day", 12)

    assert rules.taper_length_ft == 405
    assert rules.flagger_count == 1
    assert rules.drums_required is True
    assert not rules.legacy_fallback


def test_lane_closure_at_35_mph() -> None:
    rules = resolve_tcp_rules(35, Operation.LANE_CLOSURE)

    assert rules.sign_spacing_ft == 200
    assert rules.taper_length_ft == 180
    assert rules.flagger_count == 0
    assert rules.required_signs == (SignCode.ROAD_WORK_AHEAD, SignCode.BE_PREPARED_TO_STOP)


def test_low_speed_sign_spacing() -> None:
    assert resolve_tcp_rules(25, "lane_closure").sign_spacing_ft == 100


def test_night_work_at_30_mph_requires_drums() -> None:
    day = resolve_tcp_rules(30, "lane_closure", "day")
    night = resolve_tcp_rules(30, "lane_closure", "night")

    assert day.drums_required is False
    assert night.drums_required is True
    assert "overnight" in (night.citations["drumsRequired"].notes or "")


def test_flagging_adds_flagger_sign_and_two_flaggers() -> None:
    rules = resolve_tcp_rules(35, "flagging")

    assert SignCode.FLAGGER_AHEAD in rules.required_signs
    assert rules.flagger_count == 2
    assert len(rules.flagger_positions) == 2


@pytest.mark.parametrize(
    "operation, signs, flaggers",
    [
        ("full_closure", (SignCode.ROAD_WORK_AHEAD, SignCode.ROAD_CLOSED, SignCode.DETOUR), 1),
        ("shoulder_work", (SignCode.ROAD_WORK_AHEAD,), 0),
        ("lane_shift", (SignCode.ROAD_WORK_AHEAD,), 0),
    ],
)
def test_operation_tables(operation: str, signs, flaggers: int) -> None:
    rules = resolve_tcp_rules(50, operation)

    assert rules.required_signs == signs
    assert rules.flagger_count == flaggers


def test_unpopulated_bucket_uses_derivations() -> None:
    rules = resolve_tcp_rules(55, "lane_closure")

    assert rules.speed_bucket == 55
    assert rules.sign_spacing_ft == 350
    assert rules.taper_length_ft == round(12 * 55 * 55 / 60)
    assert rules.cone_spacing_ft == 55
    assert rules.buffer_length_ft == 110
    assert "W x S^2/60" in rules.citations["taperLength"].notes


def test_speed_above_range_is_clamped_before_derivation() -> None:
    assert resolve_tcp_rules(75, "lane_closure") == resolve_tcp_rules(55, "lane_closure")


def test_every_field_carries_a_citation() -> None:
    rules = resolve_tcp_rules(40, "flagging")

    assert set(rules.citations) == {
        "signSpacing",
        "taperLength",
        "coneSpacing",
        "bufferLength",
        "drumsRequired",
        "requiredSigns",
        "flaggers",
    }
    assert all(c.source_pdf for c in rules.citations.values())


def test_resolution_is_idempotent() -> None:
    first = resolve_tcp_rules(45, "lane_closure", "night", 11)
    second = resolve_tcp_rules(45, "lane_closure", "night", 11)

    assert first == second


def test_invalid_enum_input_is_rejected() -> None:
    with pytest.raises(ValueError):
        resolve_tcp_rules(35, "paving")


def test_broken_pack_falls_back_to_legacy_table(caplog: pytest.LogCaptureFixture, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(get_logger(), "propagate", True)
    pack = default_rules_pack()
    broken = replace(pack, required_signs={})

    with caplog.at_level("WARNING", logger="workzone_tcp"):
        rules = resolve_rules(RulesQuery(47, Operation.LANE_CLOSURE), rules_pack=broken)

    assert rules.legacy_fallback
    assert rules.speed_bucket == 45
    assert rules.sign_spacing_ft == 250
    assert rules.taper_length_ft == 300
    assert rules.flagger_count == 1
    assert all(c.source_pdf == "legacy_fallback" for c in rules.citations.values())
    assert "legacy speed table" in caplog.text


def test_missing_pack_path_falls_back_to_legacy_table(tmp_path: Path) -> None:
    rules = resolve_rules(
        RulesQuery(62, Operation.FLAGGING, TimeOfDay.NIGHT),
        rules_pack_path=tmp_path / "missing.json",
    )

    assert rules.legacy_fallback
    assert legacy_speed_for(62) == 60
    assert rules.sign_spacing_ft == 400
    assert rules.flagger_count == 2


def test_diagnostic_sink_records_last_resolution() -> None:
    sink = LastResolvedRulesSink()

    first = resolve_tcp_rules(35, "lane_closure", diagnostics=sink)
    second = resolve_tcp_rules(45, "lane_closure", diagnostics=sink)

    assert sink.count == 2
    assert sink.last_rules == second
    assert sink.last_query.speed_mph == 45
    # recorded state never feeds back into resolution
    assert resolve_tcp_rules(35, "lane_closure") == first


def test_pack_loader_rejects_bad_documents(tmp_path: Path) -> None:
    payload = _pack_json()
    payload["version"] = "2.0.0"
    with pytest.raises(RulesPackError):
        parse_rules_pack(payload)

    invalid = _pack_json()
    del invalid["spacing"]
    path = tmp_path / "pack.json"
    path.write_text(json.dumps(invalid), encoding="utf-8")
    with pytest.raises(RulesPackError):
        load_rules_pack(path)

    with pytest.raises(RulesPackError):
        load_rules_pack(tmp_path / "absent.json")


def test_bundled_pack_loads() -> None:
    pack = load_rules_pack()

    assert pack.version.startswith("1.")
    assert 55 not in pack.buckets
    assert pack.bucket(45).taper_length_ft == 405
