"""Security rules and the default rule set."""

from npmscore.core.config import Settings
from npmscore.core.registry import RuleRegistry
from npmscore.rules.lifecycle_script import LifecycleScriptRiskRule
from npmscore.rules.network_call import NetworkCallRule
from npmscore.rules.obfuscation import ObfuscationRule
from npmscore.rules.publisher import VerifiedPublisherRule
from npmscore.rules.sbom import SBOMDetectionRule
from npmscore.rules.script_analyzer import ScriptAnalyzer, TreeSitterScriptAnalyzer
from npmscore.rules.signed_releases import SignedReleasesRule
from npmscore.utils.tarball_analyzer import TarballAnalyzer

# Registration order, which is also report order
DEFAULT_RULES = [
    NetworkCallRule,
    ObfuscationRule,
    LifecycleScriptRiskRule,
    VerifiedPublisherRule,
    SignedReleasesRule,
    SBOMDetectionRule,
]


def create_default_registry(
    settings: Settings | None = None,
    tarball_analyzer: TarballAnalyzer | None = None,
    script_analyzer: ScriptAnalyzer | None = None,
) -> RuleRegistry:
    """Build a registry holding the default rules with per-rule overrides applied.

    Args:
        settings: Configuration providing per-rule `enabled`, `weight` and
            `options`. Defaults apply when omitted.
        tarball_analyzer: Analyzer shared with ObfuscationRule.
        script_analyzer: Script parser used by NetworkCallRule.

    Returns:
        RuleRegistry with every default rule registered; rules disabled in
        settings are registered but disabled.
    """
    settings = settings or Settings()
    registry = RuleRegistry()

    for rule_cls in DEFAULT_RULES:
        overrides = settings.rule_settings(rule_cls.NAME)
        weight = overrides.weight if overrides.weight is not None else rule_cls.DEFAULT_WEIGHT

        if rule_cls is ObfuscationRule:
            rule = rule_cls(weight, overrides.options, tarball_analyzer=tarball_analyzer)
        elif rule_cls is NetworkCallRule:
            rule = rule_cls(weight, overrides.options, script_analyzer=script_analyzer)
        else:
            rule = rule_cls(weight, overrides.options)

        if not overrides.enabled:
            rule.disable()
        registry.register(rule)

    return registry


__all__ = [
    "DEFAULT_RULES",
    "LifecycleScriptRiskRule",
    "NetworkCallRule",
    "ObfuscationRule",
    "SBOMDetectionRule",
    "ScriptAnalyzer",
    "SignedReleasesRule",
    "TreeSitterScriptAnalyzer",
    "VerifiedPublisherRule",
    "create_default_registry",
]
