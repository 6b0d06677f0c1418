"""Publisher trust: was this version published by a listed maintainer?"""

import logging
from typing import Any

from npmscore.core.base_rule import BaseRule, round_risk, tiered_deduction
from npmscore.models.schemas import Finding, PackageMetadata, RuleResult, Severity

logger = logging.getLogger(__name__)


def maintainer_names(maintainers: list[dict[str, Any] | str]) -> list[str]:
    """Names from a maintainers list.

    Entries may be objects ({"name": ..., "email": ...}) or the npm string
    form "name <email>".
    """
    names = []
    for maintainer in maintainers:
        if isinstance(maintainer, dict):
            name = maintainer.get("name")
        elif isinstance(maintainer, str):
            name = maintainer.split("<", 1)[0].strip()
        else:
            name = None
        if name:
            names.append(name)
    return names


class VerifiedPublisherRule(BaseRule):
    """Penalizes releases whose publisher is unknown or not a listed maintainer.

    A publish by an account outside the maintainer list is a typical sign of
    a hijacked token.
    """

    NAME = "verified-publisher"
    DEFAULT_WEIGHT = 10
    DESCRIPTION = "Checks that the publishing account is a listed maintainer"

    def __init__(self, weight: float = DEFAULT_WEIGHT, config: dict[str, Any] | None = None) -> None:
        super().__init__(self.NAME, weight, self.DESCRIPTION, config)

    async def evaluate(self, metadata: PackageMetadata) -> RuleResult:
        if not self.enabled:
            return self.disabled_result()

        publisher = metadata.npm_user.name if metadata.npm_user else None
        maintainers = maintainer_names(metadata.maintainers)
        findings: list[Finding] = []
        total_risk = 0.0

        if not publisher:
            findings.append(
                Finding(
                    type="missing-publisher",
                    description="Publisher information is missing",
                    severity=Severity.LOW,
                )
            )
            total_risk += 1
        elif not maintainers:
            findings.append(
                Finding(
                    type="no-maintainers",
                    publisher=publisher,
                    description="Package lists no maintainers",
                    severity=Severity.MEDIUM,
                )
            )
            total_risk += 1
        elif publisher not in maintainers:
            logger.debug(f"{metadata.name}: publisher {publisher} not in {maintainers}")
            findings.append(
                Finding(
                    type="publisher-not-maintainer",
                    publisher=publisher,
                    description=f"Publisher '{publisher}' not in maintainers list",
                    severity=Severity.HIGH,
                )
            )
            total_risk += 3

        deduction, risk_level = tiered_deduction(self.weight, total_risk)

        return RuleResult(
            deduction=deduction,
            details={
                "findings": findings,
                "total_risk": round_risk(total_risk),
                "publisher": publisher,
                "maintainers": maintainers,
                "publisher_is_listed_maintainer": bool(publisher) and publisher in maintainers,
            },
            risk_level=risk_level,
        )
