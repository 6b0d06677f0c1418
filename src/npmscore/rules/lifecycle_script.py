"""Lifecycle script risk.

npm runs install hooks automatically on every consumer's machine, so their
mere presence is a risk signal. Shell-level patterns inside any lifecycle
script add more risk according to their severity.
"""

import logging
import re
from typing import Any

from npmscore.core.base_rule import BaseRule, round_risk, tiered_deduction
from npmscore.models.schemas import Finding, PackageMetadata, RuleResult, Severity
from npmscore.utils.package_analyzer import INSTALL_HOOKS, extract_lifecycle_scripts, normalize_script

logger = logging.getLogger(__name__)

# Shell commands in the scripts section, so patterns don't require quotes.
# (regex, finding type, severity, description)
LIFECYCLE_SCRIPT_PATTERNS = [
    (r"\b(curl|wget)\s+", "script-network-fetch", Severity.HIGH, "Network download in script"),
    (r"\|\s*(bash|sh|zsh)\b", "script-pipe-shell", Severity.CRITICAL, "Piping output to shell (RCE risk)"),
    (r"base64\s+(-d|--decode)", "script-base64-decode", Severity.HIGH, "Base64 decoding in script"),
    (r"https?://[^\s]+", "script-url", Severity.MEDIUM, "URL in script"),
    (r"\bnode\s+(-e|--eval|-p|--print)\b", "script-inline-eval", Severity.HIGH, "Inline code evaluation with node -e"),
    (r"\bnode\s+[a-zA-Z_][a-zA-Z0-9_]*\.js\b", "script-node-exec", Severity.MEDIUM, "Node.js file execution in script"),
    (r"\$[A-Z_]+|process\.env\b", "script-env-var", Severity.LOW, "Environment variable in script"),
    (r"\bbun\.sh\b", "bun-install", Severity.CRITICAL, "Bun runtime installation"),
    (r"npm\s+(i|install).*?\s+bun\b", "bun-npm", Severity.CRITICAL, "Installing Bun via npm"),
    (r"deno\.(land|com)", "deno-install", Severity.HIGH, "Deno runtime reference"),
]

SEVERITY_RISK = {
    Severity.CRITICAL: 2,
    Severity.HIGH: 1,
    Severity.MEDIUM: 0.5,
    Severity.LOW: 0.25,
}

# Each install hook present adds this much
INSTALL_HOOK_RISK = 1


class LifecycleScriptRiskRule(BaseRule):
    """Scores the install-time attack surface of a package's lifecycle scripts."""

    NAME = "lifecycle-script-risk"
    DEFAULT_WEIGHT = 30
    DESCRIPTION = "Flags install-time lifecycle scripts and dangerous shell patterns in them"

    def __init__(self, weight: float = DEFAULT_WEIGHT, config: dict[str, Any] | None = None) -> None:
        super().__init__(self.NAME, weight, self.DESCRIPTION, config)
        self.patterns = [
            (re.compile(regex), finding_type, severity, description)
            for regex, finding_type, severity, description in LIFECYCLE_SCRIPT_PATTERNS
        ]

    async def evaluate(self, metadata: PackageMetadata) -> RuleResult:
        if not self.enabled:
            return self.disabled_result()

        scripts = extract_lifecycle_scripts(metadata)
        findings: list[Finding] = []
        total_risk = 0.0

        for hook, script in scripts.items():
            pattern_findings = self.scan_script(script)
            risk = sum(SEVERITY_RISK[f.severity] for f in pattern_findings)
            is_install_hook = hook in INSTALL_HOOKS
            if is_install_hook:
                risk += INSTALL_HOOK_RISK

            if not is_install_hook and not pattern_findings:
                continue

            findings.append(
                Finding(
                    type="install-hook" if is_install_hook else "lifecycle-script",
                    hook=hook,
                    script=normalize_script(script),
                    findings=pattern_findings,
                    risk=risk,
                    description=f"{hook} script runs {'on install' if is_install_hook else 'during publish'}: "
                    f"{len(pattern_findings)} suspicious pattern(s)",
                    severity=_max_severity(pattern_findings, Severity.MEDIUM if is_install_hook else Severity.LOW),
                )
            )
            total_risk += risk

        deduction, risk_level = tiered_deduction(self.weight, total_risk)

        return RuleResult(
            deduction=deduction,
            details={
                "findings": findings,
                "total_risk": round_risk(total_risk),
                "install_hooks": sorted(set(scripts) & INSTALL_HOOKS),
                "has_install_scripts": bool(set(scripts) & INSTALL_HOOKS),
            },
            risk_level=risk_level,
        )

    def scan_script(self, script: str) -> list[Finding]:
        """Match one script against the shell-level patterns.

        Each pattern counts at most once per script.
        """
        findings = []
        for pattern, finding_type, severity, description in self.patterns:
            match = pattern.search(script)
            if match:
                findings.append(
                    Finding(
                        type=finding_type,
                        match=match.group(0)[:100],
                        description=description,
                        severity=severity,
                    )
                )
        return findings


def _max_severity(findings: list[Finding], default: Severity) -> Severity:
    order = list(SEVERITY_RISK)[::-1]  # low -> critical
    highest = default
    for finding in findings:
        if order.index(finding.severity) > order.index(highest):
            highest = finding.severity
    return highest
