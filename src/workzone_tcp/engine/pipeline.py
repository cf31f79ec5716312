"""High-level orchestration: job file in, layout and compliance artefacts out."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

from .domain.models import LayoutRequest, PlanOptions, PlanResult, ResolvedRules
from .emitters.geojson import layout_to_geojson, rules_to_dict, summary_to_dict
from .emitters.svg import render_layout_svg
from .layout.summary import summarize_plan
from .parser.job_loader import load_job_file
from .planner.placement import plan_layout
from .planner.roads import describe_candidates
from .rules.diagnostics import RulesDiagnosticSink
from .rules.pack import RulesPack
from .rules.resolver import resolve_rules
from .utils.constants import RULES_PACK_JSON_PATH
from .utils.io import ensure_output_directory, write_json, write_manifest
from .utils.logging import configure_logger, get_logger

LOG = get_logger()


def plan_work_zone(
    request: LayoutRequest,
    *,
    rules_pack: Optional[RulesPack] = None,
    diagnostics: Optional[RulesDiagnosticSink] = None,
    **plan_kwargs,
) -> PlanResult:
    """Resolve rules, place devices and summarise; performs no I/O."""
    plan = plan_layout(request, rules_pack=rules_pack, diagnostics=diagnostics, **plan_kwargs)
    summary = summarize_plan(request, plan.rules, plan.layout, method=plan.method)
    return PlanResult(
        request=request,
        rules=plan.rules,
        layout=plan.layout,
        placement_method=plan.method,
        road=plan.road,
        summary=summary,
    )


def _resolve_for(request: LayoutRequest, options: PlanOptions) -> ResolvedRules:
    pack_path = None if options.rules_pack_path == RULES_PACK_JSON_PATH else options.rules_pack_path
    return resolve_rules(request.rules_query(), rules_pack_path=pack_path)


def plan_and_export(job_path: Path, options: Optional[PlanOptions] = None) -> PlanResult:
    options = options or PlanOptions()
    artifacts = ensure_output_directory(options.output_template, options.output_files)
    artifacts.log_path.parent.mkdir(parents=True, exist_ok=True)
    configure_logger(artifacts.log_path, console=options.console_log)
    LOG.info("outdir: %s", artifacts.outdir.resolve())

    request = load_job_file(job_path, options.schema_path)
    result = plan_work_zone(request, rules=_resolve_for(request, options))

    result.layout_path = write_json(artifacts.layout_path, layout_to_geojson(result.layout, request.polygon))
    write_json(artifacts.rules_path, rules_to_dict(result.rules))
    write_json(artifacts.summary_path, summary_to_dict(result.summary))

    if options.render_snapshot:
        snapshot = render_layout_svg(
            result.layout,
            request.polygon,
            artifacts.snapshot_path,
            road=result.road.polyline if result.road else None,
        )
        if snapshot is not None:
            result.snapshot_path = snapshot.image_path

    manifest = {
        "source": str(job_path.resolve()),
        "schema": str(options.schema_path.resolve()),
        "rulesPack": str(options.rules_pack_path.resolve()),
        "runId": artifacts.run_id,
        "placementMethod": result.placement_method.value,
        "road": describe_candidates([result.road]) if result.road else [],
        "legacyFallback": result.rules.legacy_fallback,
        "devices": len(result.layout.devices),
        "outputs": {
            "layout": artifacts.layout_path.name,
            "rules": artifacts.rules_path.name,
            "summary": artifacts.summary_path.name,
            "snapshot": result.snapshot_path.name if result.snapshot_path else None,
        },
    }
    result.manifest_path = write_manifest(artifacts, manifest)
    return result
