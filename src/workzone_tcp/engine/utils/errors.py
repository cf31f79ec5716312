"""Exception hierarchy shared across the planner."""
from __future__ import annotations


class PlanError(Exception):
    """Base class for all planning related failures."""


class JobFileNotFound(PlanError):
    pass


class SchemaFileNotFound(PlanError):
    pass


class UnsupportedVersionError(PlanError):
    pass


class SchemaValidationError(PlanError):
    pass


class SemanticValidationError(PlanError):
    pass


class RulesPackError(PlanError):
    """Raised when the static rules pack cannot be read or is malformed."""


class LayoutEditError(PlanError):
    pass


class LayoutOverwriteError(LayoutEditError):
    """Raised when regeneration would discard user edits without confirmation."""
