"""Score calculator that aggregates rule results into a final score."""

import inspect
import logging
from typing import Any

from pydantic import ValidationError

from npmscore.core.config import ScoringSettings
from npmscore.core.errors import InvalidPackageDataError, MissingPackageDataError, RuleNotImplementedError
from npmscore.core.registry import RuleRegistry
from npmscore.core.score_bands import band_for
from npmscore.models.schemas import PackageMetadata, RuleReport, RuleResult, ScoreResult

logger = logging.getLogger(__name__)


class ScoreCalculator:
    """Runs every registered rule against a package and aggregates the results.

    score = clamp(base_score - sum(deductions) + sum(bonuses), min_score, max_score)

    Rules run one after another, in registration order. A rule that raises is
    recorded with risk level `error` and no deduction; scoring carries on with
    the remaining rules. `RuleNotImplementedError` is the exception: it means a rule
    never implemented `evaluate`, and is re-raised.
    """

    def __init__(
        self,
        registry: RuleRegistry | None = None,
        settings: ScoringSettings | dict[str, Any] | None = None,
    ) -> None:
        """Initialize the calculator.

        Args:
            registry: Rules to run. Defaults to an empty registry.
            settings: Score bounds; a mapping is validated into ScoringSettings.
        """
        self.registry = registry if registry is not None else RuleRegistry()
        if settings is None:
            settings = ScoringSettings()
        elif isinstance(settings, dict):
            settings = ScoringSettings.model_validate(settings)
        self.settings = settings

    def register_rule(self, rule: Any) -> None:
        self.registry.register(rule)

    def get_rules(self) -> list[Any]:
        return self.registry.get_active_rules()

    async def calculate_score(self, metadata: PackageMetadata | dict[str, Any] | None) -> ScoreResult:
        """Calculate the security score for a package.

        Args:
            metadata: Package metadata, as a model or an npm-shaped mapping.

        Returns:
            ScoreResult with the clamped score, its band and per-rule results.

        Raises:
            MissingPackageDataError: If no metadata is given.
            InvalidPackageDataError: If a mapping fails validation.
        """
        if metadata is None:
            raise MissingPackageDataError()
        metadata = self._coerce_metadata(metadata)

        score: float = self.settings.base_score
        reports: list[RuleReport] = []

        for rule in self.registry.get_active_rules():
            result = await self._evaluate_rule(rule, metadata)
            reports.append(
                RuleReport(
                    rule_name=rule.name,
                    weight=getattr(rule, "weight", 0) or 0,
                    result=result,
                )
            )
            score -= result.deduction
            score += result.bonus

        score = self._clamp(score)
        band = band_for(score)

        logger.info(
            f"Scored {metadata.name}@{metadata.version or 'unknown'}: {score} ({band.key}) "
            f"from {len(reports)} rules"
        )

        return ScoreResult(
            score=score,
            band=band,
            rule_results=reports,
            package_name=metadata.name,
            package_version=metadata.version,
        )

    async def _evaluate_rule(self, rule: Any, metadata: PackageMetadata) -> RuleResult:
        """Evaluate one rule, converting any failure into an error result."""
        try:
            outcome = rule.evaluate(metadata)
            if inspect.isawaitable(outcome):
                outcome = await outcome
            result = self._coerce_result(outcome)
        except RuleNotImplementedError:
            raise
        except Exception as e:
            logger.warning(f"Rule {rule.name} failed on {metadata.name}: {e}")
            return RuleResult.error(str(e) or type(e).__name__)

        logger.debug(
            f"Rule {rule.name}: deduction={result.deduction} bonus={result.bonus} "
            f"risk={result.risk_level.value}"
        )
        return result

    @staticmethod
    def _coerce_result(outcome: Any) -> RuleResult:
        if isinstance(outcome, RuleResult):
            return outcome
        if outcome is None:
            return RuleResult()
        return RuleResult.model_validate(outcome)

    @staticmethod
    def _coerce_metadata(metadata: PackageMetadata | dict[str, Any]) -> PackageMetadata:
        if isinstance(metadata, PackageMetadata):
            return metadata
        try:
            return PackageMetadata.model_validate(metadata)
        except ValidationError as e:
            raise InvalidPackageDataError(f"Invalid package data: {e}") from e

    def _clamp(self, score: float) -> float:
        return max(self.settings.min_score, min(self.settings.max_score, score))
