"""Public API for the work-zone layout engine."""
from .domain.models import (
    Device,
    DeviceType,
    Layout,
    LayoutRequest,
    LayoutSource,
    Operation,
    OutputDirectoryTemplate,
    OutputFileTemplates,
    PlanOptions,
    PlanResult,
    ResolvedRules,
    SignCode,
    TimeOfDay,
)
from .layout.editing import (
    add_device,
    clone_layout,
    count_devices_by_type,
    create_empty_layout,
    delete_device,
    move_device,
    regenerate_layout,
    validate_layout_state,
)
from .pipeline import plan_and_export, plan_work_zone
from .planner.placement import plan_layout, suggest_field_layout
from .rules.resolver import resolve_rules, resolve_tcp_rules, speed_bucket_for

__all__ = [
    "Device",
    "DeviceType",
    "Layout",
    "LayoutRequest",
    "LayoutSource",
    "Operation",
    "OutputDirectoryTemplate",
    "OutputFileTemplates",
    "PlanOptions",
    "PlanResult",
    "ResolvedRules",
    "SignCode",
    "TimeOfDay",
    "add_device",
    "clone_layout",
    "count_devices_by_type",
    "create_empty_layout",
    "delete_device",
    "move_device",
    "regenerate_layout",
    "validate_layout_state",
    "plan_and_export",
    "plan_work_zone",
    "plan_layout",
    "suggest_field_layout",
    "resolve_rules",
    "resolve_tcp_rules",
    "speed_bucket_for",
]
