"""Code obfuscation detection.

Large, minified or high-entropy payloads resist manual review. Signals come
from the declared package size, the declared `files` list and, when a tarball
URL is available, the tarball's actual contents. Tarball failures are recorded
as findings and never penalize the package.
"""

import logging
import re
from typing import Any

from npmscore.core.base_rule import BaseRule, round_risk, tiered_deduction
from npmscore.core.errors import TarballError
from npmscore.models.schemas import Finding, PackageMetadata, RuleResult, Severity
from npmscore.utils.entropy import calculate_entropy
from npmscore.utils.package_analyzer import calculate_size_metrics
from npmscore.utils.tarball_analyzer import TarballAnalyzer

logger = logging.getLogger(__name__)

DEFAULT_MAX_MINIFIED_SIZE = 5 * 1024 * 1024
DEFAULT_ENTROPY_THRESHOLD = 7.5
DEFAULT_MAX_FILE_COUNT = 10_000

MINIFIED_FILE_PATTERNS = [
    re.compile(r"\.min\.js$", re.IGNORECASE),
    re.compile(r"\.bundle\.js$", re.IGNORECASE),
    re.compile(r"\.chunk\.js$", re.IGNORECASE),
    re.compile(r"\.vendor\.js$", re.IGNORECASE),
    re.compile(r"\.pack\.js$", re.IGNORECASE),
    re.compile(r"\.obfuscated\.js$", re.IGNORECASE),
]

# Matched against entries of the declared `files` list
SUSPICIOUS_FILE_PATTERNS = [
    re.compile(r"\.min\.js$", re.IGNORECASE),
    re.compile(r"\.bundle\.js$", re.IGNORECASE),
    re.compile(r"\.pack\.js$", re.IGNORECASE),
    re.compile(r"\.obfuscated\.js$", re.IGNORECASE),
    re.compile(r"obfuscat", re.IGNORECASE),
    re.compile(r"minified", re.IGNORECASE),
    re.compile(r"packed", re.IGNORECASE),
]

SUSPICIOUS_FILE_RISK = 0.5

BYTE_UNITS = ["Bytes", "KB", "MB", "GB", "TB"]


def format_bytes(size: int | float) -> str:
    """Render a byte count with binary units, e.g. 10485760 -> "10 MB"."""
    if not size or size <= 0:
        return "0 Bytes"
    value = float(size)
    exponent = 0
    while value >= 1024 and exponent < len(BYTE_UNITS) - 1:
        value /= 1024
        exponent += 1
    return f"{round(value, 2):g} {BYTE_UNITS[exponent]}"


def is_minified_file(path: str) -> bool:
    return any(pattern.search(path) for pattern in MINIFIED_FILE_PATTERNS)


class ObfuscationRule(BaseRule):
    """Flags packages shipping oversized, minified or high-entropy code."""

    NAME = "code-obfuscation"
    DEFAULT_WEIGHT = 10
    DESCRIPTION = "Detects minified, bundled or obfuscated code that resists review"

    def __init__(
        self,
        weight: float = DEFAULT_WEIGHT,
        config: dict[str, Any] | None = None,
        tarball_analyzer: TarballAnalyzer | None = None,
    ) -> None:
        super().__init__(self.NAME, weight, self.DESCRIPTION, config)
        self.max_minified_size = self.config.get("max_minified_size", DEFAULT_MAX_MINIFIED_SIZE)
        self.entropy_threshold = self.config.get("entropy_threshold", DEFAULT_ENTROPY_THRESHOLD)
        self.max_file_count = self.config.get("max_file_count", DEFAULT_MAX_FILE_COUNT)
        self.check_entropy = bool(self.config.get("check_entropy", True))
        self.tarball_analyzer = tarball_analyzer or TarballAnalyzer()

    async def evaluate(self, metadata: PackageMetadata) -> RuleResult:
        if not self.enabled:
            return self.disabled_result()

        findings: list[Finding] = []
        total_risk = 0.0

        # 1. Declared package size
        size_metrics = calculate_size_metrics(metadata)
        unpacked_size = size_metrics["unpacked_size"]
        if unpacked_size > self.max_minified_size:
            findings.append(
                Finding(
                    type="large-package-size",
                    size=unpacked_size,
                    threshold=self.max_minified_size,
                    description=(
                        f"Package size ({format_bytes(unpacked_size)}) exceeds threshold "
                        f"({format_bytes(self.max_minified_size)})"
                    ),
                    severity=Severity.MEDIUM,
                )
            )
            total_risk += 1

        # 2. Tarball contents
        tarball_url = metadata.dist.tarball
        if tarball_url:
            try:
                tarball_findings = await self.analyze_tarball(tarball_url, metadata.name)
            except TarballError as e:
                logger.warning(f"Tarball analysis failed for {metadata.name}: {e}")
                findings.append(
                    Finding(
                        type="tarball-analysis-error",
                        error=str(e),
                        description=f"Could not analyze tarball: {e}",
                        severity=Severity.LOW,
                    )
                )
            else:
                findings.extend(tarball_findings)
                total_risk += len(tarball_findings)

        # 3. Declared file names
        suspicious = [path for path in metadata.files if self._is_suspicious_file(path)]
        if suspicious:
            findings.append(
                Finding(
                    type="suspicious-file-patterns",
                    files=suspicious,
                    description=f"{len(suspicious)} file(s) with suspicious naming patterns",
                    severity=Severity.MEDIUM,
                )
            )
            total_risk += len(suspicious) * SUSPICIOUS_FILE_RISK

        deduction, risk_level = tiered_deduction(self.weight, total_risk)

        return RuleResult(
            deduction=deduction,
            details={
                "findings": findings,
                "total_risk": round_risk(total_risk),
                "has_obfuscation": any(f.type != "tarball-analysis-error" for f in findings),
                "package_size": unpacked_size,
            },
            risk_level=risk_level,
        )

    async def analyze_tarball(self, url: str, package_name: str) -> list[Finding]:
        """Inspect a package tarball for obfuscation signals.

        Raises:
            TarballError: If the tarball cannot be downloaded or extracted.
        """
        analysis = await self.tarball_analyzer.analyze_tarball(
            url, package_name, measure_entropy=self.check_entropy
        )
        findings: list[Finding] = []

        if not analysis.has_manifest:
            findings.append(
                Finding(
                    type="missing-package-json",
                    description="Tarball does not contain package.json",
                    severity=Severity.HIGH,
                )
            )

        for file in analysis.largest_files:
            if file.size > self.max_minified_size:
                findings.append(
                    Finding(
                        type="large-minified-file",
                        file=file.path,
                        size=file.size,
                        description=f"Large file detected: {file.path} ({format_bytes(file.size)})",
                        severity=Severity.MEDIUM,
                    )
                )
            if is_minified_file(file.path):
                findings.append(
                    Finding(
                        type="minified-file",
                        file=file.path,
                        size=file.size,
                        description=f"Minified file detected: {file.path}",
                        severity=Severity.LOW,
                    )
                )
            if file.entropy is not None and file.entropy > self.entropy_threshold:
                findings.append(
                    Finding(
                        type="high-entropy-file",
                        file=file.path,
                        entropy=round(file.entropy, 2),
                        description=f"High-entropy content in {file.path} ({file.entropy:.2f} bits/byte)",
                        severity=Severity.HIGH,
                    )
                )

        if analysis.total_files > self.max_file_count:
            findings.append(
                Finding(
                    type="excessive-file-count",
                    count=analysis.total_files,
                    description=f"Unusually high file count: {analysis.total_files}",
                    severity=Severity.LOW,
                )
            )

        return findings

    def calculate_entropy(self, content: str | bytes | None) -> float:
        return calculate_entropy(content)

    def is_obfuscated_content(self, content: str | bytes | None) -> bool:
        """True if content's entropy exceeds the configured threshold."""
        return calculate_entropy(content) > self.entropy_threshold

    @staticmethod
    def _is_suspicious_file(path: Any) -> bool:
        return isinstance(path, str) and any(p.search(path) for p in SUSPICIOUS_FILE_PATTERNS)

    def format_bytes(self, size: int | float) -> str:
        return format_bytes(size)
