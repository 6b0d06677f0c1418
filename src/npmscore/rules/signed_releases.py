"""Registry signatures and provenance attestations."""

import math
from typing import Any

from npmscore.core.base_rule import BaseRule, round_risk, tiered_deduction
from npmscore.models.schemas import Finding, PackageMetadata, RiskLevel, RuleResult, Severity


class SignedReleasesRule(BaseRule):
    """Rewards signed releases and penalizes unsigned ones.

    Signatures with provenance attestations earn the full weight as a bonus,
    signatures alone earn half. A release with neither is treated as one unit
    of risk.
    """

    NAME = "signed-releases"
    DEFAULT_WEIGHT = 5
    DESCRIPTION = "Checks for registry signatures and provenance attestations"

    def __init__(self, weight: float = DEFAULT_WEIGHT, config: dict[str, Any] | None = None) -> None:
        super().__init__(self.NAME, weight, self.DESCRIPTION, config)

    async def evaluate(self, metadata: PackageMetadata) -> RuleResult:
        if not self.enabled:
            return self.disabled_result()

        has_signatures = bool(metadata.dist.signatures)
        has_provenance = bool(metadata.dist.attestations)
        details: dict[str, Any] = {
            "has_signatures": has_signatures,
            "has_provenance": has_provenance,
        }

        if has_signatures and has_provenance:
            return RuleResult(bonus=self.weight, details={**details, "findings": []}, risk_level=RiskLevel.NONE)

        if has_signatures:
            return RuleResult(
                bonus=math.floor(self.weight * 0.5),
                details={**details, "findings": []},
                risk_level=RiskLevel.NONE,
            )

        total_risk = 1
        deduction, risk_level = tiered_deduction(self.weight, total_risk)
        finding = Finding(
            type="unsigned-release",
            description="Release has no registry signatures or provenance",
            severity=Severity.LOW,
        )
        return RuleResult(
            deduction=deduction,
            details={**details, "findings": [finding], "total_risk": round_risk(total_risk)},
            risk_level=risk_level,
        )
