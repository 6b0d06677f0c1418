"""Base class and shared helpers for security rules."""

import math
from typing import Any

from npmscore.core.errors import InvalidRuleError, RuleNotImplementedError
from npmscore.models.schemas import PackageMetadata, RiskLevel, RuleResult

# (minimum accumulated risk, share of weight deducted, risk level)
DEDUCTION_TIERS = [
    (3, 1.0, RiskLevel.HIGH),
    (2, 0.75, RiskLevel.MEDIUM),
    (1, 0.5, RiskLevel.LOW),
]


def tiered_deduction(weight: float, total_risk: float) -> tuple[int | float, RiskLevel]:
    """Map an accumulated risk value onto a deduction and risk level.

    risk >= 3 deducts the full weight, >= 2 deducts 75% and >= 1 deducts 50%
    (partial deductions are floored). Anything below 1 deducts nothing.
    """
    for threshold, share, level in DEDUCTION_TIERS:
        if total_risk >= threshold:
            if share == 1.0:
                return weight, level
            return math.floor(weight * share), level
    return 0, RiskLevel.NONE


def round_risk(total_risk: float) -> float:
    """Round accumulated risk to one decimal for reporting."""
    return round(total_risk * 10) / 10


class BaseRule:
    """Base class for security rules.

    Subclasses replace `evaluate`. A disabled rule is still evaluated by the
    calculator and should return `RuleResult.neutral(...)` so it shows up in
    the report.
    """

    def __init__(
        self,
        name: str,
        weight: float = 0,
        description: str = "",
        config: dict[str, Any] | None = None,
    ) -> None:
        if not name or not isinstance(name, str):
            raise InvalidRuleError("Rule name is required")

        self._name = name
        self.weight = weight
        self.description = description
        self.config = dict(config or {})
        self.enabled = True

    @property
    def name(self) -> str:
        return self._name

    async def evaluate(self, metadata: PackageMetadata) -> RuleResult:
        """Evaluate the rule against package metadata."""
        raise RuleNotImplementedError(type(self).__name__)

    def enable(self) -> None:
        self.enabled = True

    def disable(self) -> None:
        self.enabled = False

    def is_enabled(self) -> bool:
        return self.enabled

    def disabled_result(self) -> RuleResult:
        return RuleResult.neutral("Rule is disabled")

    def get_metadata(self) -> dict[str, Any]:
        """Get rule metadata for reports."""
        return {
            "name": self.name,
            "weight": self.weight,
            "description": self.description,
            "enabled": self.enabled,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, weight={self.weight!r}, enabled={self.enabled})"
