"""External network call detection.

Install-time network access is a common exfiltration vector, so lifecycle
scripts are checked twice: a regex pass that always runs, and a syntax-tree
pass for scripts that parse as JavaScript. Dependencies on network-capable
modules add lower-confidence risk.
"""

import logging
import re
from typing import Any

from npmscore.core.base_rule import BaseRule, round_risk, tiered_deduction
from npmscore.models.schemas import Finding, PackageMetadata, RuleResult, Severity
from npmscore.rules.script_analyzer import NETWORK_MODULES, ScriptAnalyzer, TreeSitterScriptAnalyzer
from npmscore.utils.package_analyzer import (
    extract_dependencies,
    extract_lifecycle_scripts,
    normalize_script,
)

logger = logging.getLogger(__name__)

# (regex, description) checked against raw script text
NETWORK_PATTERNS = [
    (re.compile(r"\bfetch\s*\(", re.IGNORECASE), "fetch() call"),
    (re.compile(r"\bXMLHttpRequest", re.IGNORECASE), "XMLHttpRequest usage"),
    (re.compile(r"\brequire\s*\(\s*['\"]https?['\"]\s*\)", re.IGNORECASE), "require of http/https"),
    (re.compile(r"\brequire\s*\(\s*['\"](?:request|axios)['\"]\s*\)", re.IGNORECASE), "require of HTTP client library"),
    (re.compile(r"\bimport\s+.*\s+from\s+['\"]https?://", re.IGNORECASE), "ES import from URL"),
    (re.compile(r"\bimport\s*\(\s*['\"]https?://", re.IGNORECASE), "dynamic import from URL"),
]

# Dependency matches are heuristic (substring on the name), so count half
DEPENDENCY_RISK = 0.5

# Dependency groups consulted; peer dependencies are installed by the consumer
DEPENDENCY_GROUPS = ["dependencies", "devDependencies", "optionalDependencies"]


class NetworkCallRule(BaseRule):
    """Flags lifecycle scripts and dependencies that imply outbound network access."""

    NAME = "external-network-call"
    DEFAULT_WEIGHT = 20
    DESCRIPTION = "Detects external network calls in package code and lifecycle scripts"

    def __init__(
        self,
        weight: float = DEFAULT_WEIGHT,
        config: dict[str, Any] | None = None,
        script_analyzer: ScriptAnalyzer | None = None,
    ) -> None:
        super().__init__(self.NAME, weight, self.DESCRIPTION, config)
        self.network_modules = list(NETWORK_MODULES) + list(self.config.get("extra_network_modules", []))
        self.script_analyzer = script_analyzer or TreeSitterScriptAnalyzer(self.network_modules)

    async def evaluate(self, metadata: PackageMetadata) -> RuleResult:
        if not self.enabled:
            return self.disabled_result()

        findings: list[Finding] = []
        total_risk = 0.0

        # 1. Lifecycle scripts
        for hook, script in extract_lifecycle_scripts(metadata).items():
            script_findings = self.analyze_script(script)
            if not script_findings:
                continue

            findings.append(
                Finding(
                    type="lifecycle-script",
                    source="lifecycle-script",
                    hook=hook,
                    script=normalize_script(script),
                    findings=script_findings,
                    risk=len(script_findings),
                    description=f"{len(script_findings)} network indicator(s) in {hook} script",
                    severity=Severity.HIGH,
                )
            )
            total_risk += len(script_findings)

        # 2. Network-capable dependencies
        network_deps = self.check_network_dependencies(extract_dependencies(metadata))
        if network_deps:
            dep_risk = len(network_deps) * DEPENDENCY_RISK
            findings.append(
                Finding(
                    type="network-dependencies",
                    source="dependencies",
                    findings=network_deps,
                    risk=dep_risk,
                    description=f"{len(network_deps)} network-related dependencies",
                    severity=Severity.LOW,
                )
            )
            total_risk += dep_risk

        deduction, risk_level = tiered_deduction(self.weight, total_risk)

        return RuleResult(
            deduction=deduction,
            details={
                "findings": findings,
                "total_risk": round_risk(total_risk),
                "has_network_calls": bool(findings),
            },
            risk_level=risk_level,
        )

    def analyze_script(self, script: str) -> list[Finding]:
        """Find network indicators in one script.

        The regex pass runs regardless of whether the script is valid
        JavaScript; the syntax-tree pass only contributes when it parses.
        """
        findings = [
            Finding(
                type="network-pattern",
                pattern=pattern.pattern,
                description=f"Network call pattern detected in lifecycle script: {label}",
                severity=Severity.MEDIUM,
            )
            for pattern, label in NETWORK_PATTERNS
            if pattern.search(script)
        ]
        findings.extend(self.script_analyzer.analyze(script))
        return findings

    def check_network_dependencies(self, dependencies: dict[str, dict[str, str]]) -> list[Finding]:
        """Dependencies whose name contains a known network module name.

        Substring matching is deliberately loose ("http-errors" matches
        "http") and can produce false positives.
        """
        merged: dict[str, str] = {}
        for group in DEPENDENCY_GROUPS:
            merged.update(dependencies.get(group) or {})

        findings = []
        for name, version in merged.items():
            matched = next((module for module in self.network_modules if module in name), None)
            if matched is None:
                continue
            findings.append(
                Finding(
                    type="network-dependency",
                    package=name,
                    version=version,
                    module=matched,
                    description=f"Network-related dependency: {name}",
                    severity=Severity.LOW,
                )
            )
        return findings
