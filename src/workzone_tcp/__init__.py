"""Top-level package for work-zone traffic-control planning."""
from __future__ import annotations

from . import engine
from .engine import (
    LayoutRequest,
    PlanOptions,
    PlanResult,
    plan_and_export,
    plan_work_zone,
    resolve_tcp_rules,
)

__all__ = [
    "engine",
    "LayoutRequest",
    "PlanOptions",
    "PlanResult",
    "plan_and_export",
    "plan_work_zone",
    "resolve_tcp_rules",
]
