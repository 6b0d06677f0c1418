"""SBOM presence."""

import re
from typing import Any

from npmscore.core.base_rule import BaseRule
from npmscore.models.schemas import PackageMetadata, RiskLevel, RuleResult

# CycloneDX and SPDX document names
SBOM_FILE_PATTERNS = [
    re.compile(r"(^|/)sbom\.json$", re.IGNORECASE),
    re.compile(r"(^|/)bom\.json$", re.IGNORECASE),
    re.compile(r"\.cdx\.json$", re.IGNORECASE),
    re.compile(r"\.spdx(\.json)?$", re.IGNORECASE),
    re.compile(r"(^|/)bom\.xml$", re.IGNORECASE),
]


def is_sbom_file(path: Any) -> bool:
    return isinstance(path, str) and any(pattern.search(path) for pattern in SBOM_FILE_PATTERNS)


class SBOMDetectionRule(BaseRule):
    """Bonus for packages that ship or reference a software bill of materials."""

    NAME = "sbom-detection"
    DEFAULT_WEIGHT = 5
    DESCRIPTION = "Rewards packages that publish a CycloneDX or SPDX SBOM"

    def __init__(self, weight: float = DEFAULT_WEIGHT, config: dict[str, Any] | None = None) -> None:
        super().__init__(self.NAME, weight, self.DESCRIPTION, config)

    async def evaluate(self, metadata: PackageMetadata) -> RuleResult:
        if not self.enabled:
            return self.disabled_result()

        sbom_files = [path for path in metadata.files if is_sbom_file(path)]
        sbom_field = self._sbom_reference(metadata.sbom)
        if sbom_field:
            sbom_files.append(sbom_field)

        if not sbom_files:
            return RuleResult(details={"has_sbom": False, "sbom_files": []}, risk_level=RiskLevel.NONE)

        return RuleResult(
            bonus=self.weight,
            details={"has_sbom": True, "sbom_files": sbom_files},
            risk_level=RiskLevel.NONE,
        )

    @staticmethod
    def _sbom_reference(sbom: dict[str, Any] | str | None) -> str | None:
        """The document an `sbom` manifest field points at, if it is one."""
        if isinstance(sbom, str):
            return sbom if is_sbom_file(sbom) else None
        if isinstance(sbom, dict):
            for key in ("path", "file", "url"):
                if is_sbom_file(sbom.get(key)):
                    return sbom[key]
        return None
