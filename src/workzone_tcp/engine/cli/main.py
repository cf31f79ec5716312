"""Command line interface for the work-zone layout planner."""
from __future__ import annotations

import argparse
from dataclasses import fields, replace
from pathlib import Path

from ..domain.models import OutputDirectoryTemplate, OutputFileTemplates, PlanOptions
from ..pipeline import plan_and_export
from ..utils.constants import JOB_SCHEMA_JSON_PATH, RULES_PACK_JSON_PATH


_FILE_TEMPLATE_KEYS = tuple(field.name for field in fields(OutputFileTemplates))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Plan traffic-control device layouts for a work-zone job file",
    )
    parser.add_argument("job", type=Path, help="Path to the job JSON document")
    parser.add_argument(
        "--schema",
        "-sc",
        type=Path,
        default=JOB_SCHEMA_JSON_PATH,
        help="Path to the job JSON schema (default: bundled job.schema.json)",
    )
    parser.add_argument(
        "--rules-pack",
        "-rp",
        type=Path,
        default=RULES_PACK_JSON_PATH,
        help="Path to the TCP rules pack (default: bundled tcp_rules_pack.v1.json)",
    )
    parser.add_argument("--no-console-log", "-nl", action="store_true", help="Disable console logging")
    parser.add_argument("--no-snapshot", "-ns", action="store_true", help="Skip the SVG layout snapshot")
    parser.add_argument(
        "--output-root",
        "-or",
        dest="output_root_template",
        help=(
            "Template for the root output directory (default: tcp_out). "
            "Supports placeholders such as {year}, {month}, {day}, {hour}, {minute}, {second}, {millisecond}, "
            "{seq}, {sqid}, and {epoch_ms}."
        ),
    )
    parser.add_argument(
        "--output-run",
        "-rr",
        dest="output_run_template",
        help="Template for the per-run directory relative to the root (default: {month}{day}_{seq:03}).",
    )
    parser.add_argument(
        "--output-file-template",
        "-ft",
        dest="output_file_template",
        metavar="KEY=VALUE",
        action="append",
        help=(
            "Override the template for a specific artefact. "
            f"Valid keys: {', '.join(_FILE_TEMPLATE_KEYS)}. "
            "Templates support the same placeholders as --output-root plus {id}."
        ),
    )
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    return _build_parser().parse_args(argv)


def _resolve_output_template(args: argparse.Namespace) -> OutputDirectoryTemplate:
    default_template = OutputDirectoryTemplate()
    return OutputDirectoryTemplate(
        root=args.output_root_template if args.output_root_template is not None else default_template.root,
        run=args.output_run_template if args.output_run_template is not None else default_template.run,
    )


def _resolve_output_files(args: argparse.Namespace) -> OutputFileTemplates:
    overrides: dict[str, str] = {}
    for raw in args.output_file_template or []:
        key, _, value = raw.partition("=")
        if not value:
            raise SystemExit(f"Invalid --output-file-template '{raw}'. Expected KEY=VALUE.")
        key = key.strip()
        if key not in _FILE_TEMPLATE_KEYS:
            raise SystemExit(f"Unknown output template key '{key}'. Expected one of: {', '.join(_FILE_TEMPLATE_KEYS)}.")
        overrides[key] = value

    template = OutputFileTemplates()
    if not overrides:
        return template
    return replace(template, **overrides)


def _build_options(args: argparse.Namespace) -> PlanOptions:
    return PlanOptions(
        schema_path=args.schema,
        rules_pack_path=args.rules_pack,
        console_log=not args.no_console_log,
        render_snapshot=not args.no_snapshot,
        output_template=_resolve_output_template(args),
        output_files=_resolve_output_files(args),
    )


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    options = _build_options(args)
    result = plan_and_export(args.job, options)
    print(result.manifest_path)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
