"""Optional side channel for inspecting resolved rules."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from ..domain.models import ResolvedRules, RulesQuery


class RulesDiagnosticSink(ABC):
    @abstractmethod
    def record(self, query: RulesQuery, rules: ResolvedRules) -> None:
        """Receive one resolution; must not influence later resolutions."""


class LastResolvedRulesSink(RulesDiagnosticSink):
    """Keeps the most recent query/result pair for QA panels.

    The stored value is never read back by the resolver.
    """

    def __init__(self) -> None:
        self.last_query: Optional[RulesQuery] = None
        self.last_rules: Optional[ResolvedRules] = None
        self.count = 0

    def record(self, query: RulesQuery, rules: ResolvedRules) -> None:
        self.last_query = query
        self.last_rules = rules
        self.count += 1
