"""Load, validate and parse the static TCP rules pack."""
from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from ..domain.models import Citation, FlaggerPosition, Operation, SignCode
from ..parser.schema import load_json_file, load_schema_file, validate_json_schema
from ..utils.constants import RULES_PACK_JSON_PATH, RULES_PACK_SCHEMA_PATH
from ..utils.errors import PlanError, RulesPackError
from ..utils.logging import get_logger

LOG = get_logger()

SUPPORTED_PACK_MAJOR = "1."


@dataclass(frozen=True)
class SpeedBucketRule:
    speed_mph: int
    source: Citation
    sign_spacing_ft: Optional[float] = None
    cone_spacing_ft: Optional[float] = None
    taper_length_ft: Optional[float] = None
    buffer_length_ft: Optional[float] = None
    drum_required: bool = False


@dataclass(frozen=True)
class SignRequirement:
    signs: Tuple[SignCode, ...]
    source: Citation


@dataclass(frozen=True)
class FlaggerRule:
    min_speed_mph: float
    count: int
    positions: Tuple[FlaggerPosition, ...]
    source: Citation


@dataclass(frozen=True)
class DrumPolicy:
    min_speed_mph: float
    night_min_speed_mph: float
    required_source: Citation
    not_required_source: Citation


@dataclass(frozen=True)
class RulesPack:
    version: str
    buckets: Mapping[int, SpeedBucketRule]
    derivations: Mapping[str, Citation]
    drum_policy: DrumPolicy
    required_signs: Mapping[Operation, SignRequirement]
    flagger_policies: Mapping[Operation, Tuple[FlaggerRule, ...]]

    def bucket(self, speed_bucket: int) -> Optional[SpeedBucketRule]:
        return self.buckets.get(speed_bucket)

    def flagger_rule(self, operation: Operation, speed_mph: float) -> FlaggerRule:
        """First rule (highest threshold first) whose minimum speed is met."""
        rules = sorted(self.flagger_policies[operation], key=lambda r: r.min_speed_mph, reverse=True)
        for rule in rules:
            if speed_mph >= rule.min_speed_mph:
                return rule
        raise KeyError(f"no flagger rule for {operation.value} at {speed_mph} mph")


def parse_citation(raw: Mapping[str, Any]) -> Citation:
    page = raw.get("page")
    return Citation(
        source_pdf=str(raw["sourcePdf"]),
        page=str(page) if page is not None else None,
        section_title=raw.get("sectionTitle"),
        notes=raw.get("notes"),
    )


def _optional_float(raw: Mapping[str, Any], key: str) -> Optional[float]:
    value = raw.get(key)
    return float(value) if value is not None else None


def parse_rules_pack(pack_json: Dict) -> RulesPack:
    version = str(pack_json.get("version", ""))
    if not version.startswith(SUPPORTED_PACK_MAJOR):
        raise RulesPackError(f'unsupported rules pack "version": {version} (expected 1.*)')

    try:
        buckets: Dict[int, SpeedBucketRule] = {}
        for key, entry in pack_json["spacing"]["bySpeedBucket"].items():
            speed = int(key)
            buckets[speed] = SpeedBucketRule(
                speed_mph=speed,
                source=parse_citation(entry["source"]),
                sign_spacing_ft=_optional_float(entry, "signSpacingFt"),
                cone_spacing_ft=_optional_float(entry, "coneSpacingFt"),
                taper_length_ft=_optional_float(entry, "taperLengthFt"),
                buffer_length_ft=_optional_float(entry, "bufferLengthFt"),
                drum_required=bool(entry.get("drumRequired", False)),
            )

        derivations = {name: parse_citation(raw) for name, raw in pack_json["derivations"].items()}

        drums = pack_json["drumPolicy"]
        drum_policy = DrumPolicy(
            min_speed_mph=float(drums["minSpeedMph"]),
            night_min_speed_mph=float(drums["nightMinSpeedMph"]),
            required_source=parse_citation(drums["requiredSource"]),
            not_required_source=parse_citation(drums["notRequiredSource"]),
        )

        required_signs = {
            Operation(op): SignRequirement(
                signs=tuple(SignCode(code) for code in entry["signs"]),
                source=parse_citation(entry["source"]),
            )
            for op, entry in pack_json["requiredSigns"].items()
        }

        flagger_policies = {
            Operation(op): tuple(
                FlaggerRule(
                    min_speed_mph=float(rule["minSpeedMph"]),
                    count=int(rule["count"]),
                    positions=tuple(
                        FlaggerPosition(location=str(p["location"]), purpose=str(p["purpose"]))
                        for p in rule["positions"]
                    ),
                    source=parse_citation(rule["source"]),
                )
                for rule in rules
            )
            for op, rules in pack_json["flaggerPolicies"].items()
        }
    except (KeyError, TypeError, ValueError) as exc:
        raise RulesPackError(f"malformed rules pack: {exc}") from exc

    LOG.info(
        "rules pack %s: buckets=%s operations=%d",
        version,
        ",".join(str(b) for b in sorted(buckets)),
        len(required_signs),
    )
    return RulesPack(
        version=version,
        buckets=buckets,
        derivations=derivations,
        drum_policy=drum_policy,
        required_signs=required_signs,
        flagger_policies=flagger_policies,
    )


def load_rules_pack(
    pack_path: Path = RULES_PACK_JSON_PATH,
    schema_path: Optional[Path] = RULES_PACK_SCHEMA_PATH,
) -> RulesPack:
    """Read, schema-check and parse a rules pack; every failure surfaces as RulesPackError."""
    try:
        pack_json = load_json_file(pack_path, missing=RulesPackError)
        if schema_path is not None:
            validate_json_schema(pack_json, load_schema_file(schema_path), error=RulesPackError)
    except RulesPackError:
        raise
    except (PlanError, OSError, json.JSONDecodeError) as exc:
        raise RulesPackError(f"cannot read rules pack {pack_path}: {exc}") from exc
    return parse_rules_pack(pack_json)


@lru_cache(maxsize=1)
def default_rules_pack() -> RulesPack:
    return load_rules_pack()
