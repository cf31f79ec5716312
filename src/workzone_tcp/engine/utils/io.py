"""Filesystem helpers for templated run directories and exported artefacts."""
from __future__ import annotations

import datetime
import json
import time
from itertools import count
from pathlib import Path
from typing import Any, Mapping

from sqids import Sqids

from ..domain.models import OutputDirectoryTemplate, OutputFileTemplates


_SQIDS = Sqids()
_DEFAULT_SEQ_WIDTH = 3


def _current_time() -> datetime.datetime:
    return datetime.datetime.now()


def _time_ns() -> int:
    return time.time_ns()


class _PaddedComponent:
    def __init__(self, value: int, default_width: int) -> None:
        self._value = value
        self._default_width = default_width

    def __format__(self, format_spec: str) -> str:
        spec = format_spec or f"0{self._default_width}"
        return format(self._value, spec)


class _UidComponent:
    def __init__(self, token: str) -> None:
        self._token = token

    def __format__(self, format_spec: str) -> str:
        if format_spec and format_spec not in {"s", ""}:
            raise ValueError("uid placeholder does not support custom format specifiers")
        return self._token


def _build_context(
    *,
    now: datetime.datetime,
    seq: int,
    uid: str,
    epoch_ms: int,
) -> dict[str, object]:
    return {
        "year": _PaddedComponent(now.year, 4),
        "month": _PaddedComponent(now.month, 2),
        "day": _PaddedComponent(now.day, 2),
        "hour": _PaddedComponent(now.hour, 2),
        "minute": _PaddedComponent(now.minute, 2),
        "second": _PaddedComponent(now.second, 2),
        "millisecond": _PaddedComponent(now.microsecond // 1000, 3),
        "seq": _PaddedComponent(seq, _DEFAULT_SEQ_WIDTH),
        "uid": _UidComponent(uid),
        "sqid": _UidComponent(uid),
        "epoch_ms": epoch_ms,
    }


def _format_template(template: str | Path, context: Mapping[str, object]) -> str:
    template_str = str(template)
    try:
        return template_str.format_map(context)
    except KeyError as exc:
        missing = exc.args[0]
        raise ValueError(f"unknown placeholder {{{missing}}} in template '{template_str}'") from exc


class RunArtifacts:
    """Materialised file paths for one planning run."""

    def __init__(
        self,
        outdir: Path,
        *,
        context: Mapping[str, object],
        file_templates: OutputFileTemplates,
    ) -> None:
        self.outdir = outdir
        self._context = context
        self._file_templates = file_templates
        self._path_cache: dict[str, Path] = {}

    def _resolve_path(self, key: str) -> Path:
        if key not in self._path_cache:
            template = getattr(self._file_templates, key)
            candidate = Path(_format_template(template, self._context))
            if not candidate.is_absolute():
                candidate = self.outdir / candidate
            self._path_cache[key] = candidate
        return self._path_cache[key]

    @property
    def run_id(self) -> str:
        return str(self._context["id"])

    @property
    def log_path(self) -> Path:
        return self._resolve_path("log")

    @property
    def manifest_path(self) -> Path:
        return self._resolve_path("manifest")

    @property
    def layout_path(self) -> Path:
        return self._resolve_path("layout")

    @property
    def rules_path(self) -> Path:
        return self._resolve_path("rules")

    @property
    def summary_path(self) -> Path:
        return self._resolve_path("summary")

    @property
    def snapshot_path(self) -> Path:
        return self._resolve_path("snapshot")


def ensure_output_directory(
    template: OutputDirectoryTemplate | None = None,
    file_templates: OutputFileTemplates | None = None,
    *,
    extra_context: Mapping[str, object] | None = None,
) -> RunArtifacts:
    config = template or OutputDirectoryTemplate()
    file_config = file_templates or OutputFileTemplates()

    literal_run = bool(config.run) and "{" not in config.run

    for seq in count(1):
        now = _current_time()
        epoch_ms = _time_ns() // 1_000_000
        uid = _SQIDS.encode([epoch_ms])
        context = _build_context(now=now, seq=seq, uid=uid, epoch_ms=epoch_ms)
        if extra_context:
            context.update(extra_context)
        context.setdefault("id", uid)
        root_path = Path(_format_template(config.root, context))
        run_name = _format_template(config.run, context) if config.run else ""

        root_path.mkdir(parents=True, exist_ok=True)

        if run_name:
            run_path = Path(run_name)
            if run_path.is_absolute() or run_path.anchor:
                raise ValueError("run directory template must be relative")
            outdir = root_path / run_path
        else:
            outdir = root_path

        if outdir.exists():
            if not outdir.is_dir():
                raise ValueError(f"output path exists and is not a directory: {outdir}")
            if literal_run or not run_name:
                if any(outdir.iterdir()):
                    raise ValueError(f"output directory already exists and is not empty: {outdir}")
                return RunArtifacts(outdir, context=context, file_templates=file_config)
            continue
        outdir.mkdir(parents=True, exist_ok=False)
        return RunArtifacts(outdir, context=context, file_templates=file_config)

    raise RuntimeError("unable to create unique output directory")


def _write_text(path: Path, payload: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(payload, encoding="utf-8")


def write_json(path: Path, payload: Any) -> Path:
    _write_text(path, json.dumps(payload, indent=2, ensure_ascii=False))
    return path


def write_manifest(artifacts: RunArtifacts, payload: dict) -> Path:
    return write_json(artifacts.manifest_path, payload)
