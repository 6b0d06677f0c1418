"""Rule contract, registry, score calculation and banding."""

from npmscore.core.base_rule import BaseRule, tiered_deduction
from npmscore.core.calculator import ScoreCalculator
from npmscore.core.config import Settings, load_settings
from npmscore.core.registry import RuleRegistry
from npmscore.core.score_bands import SCORE_BANDS, band_for, interpret, should_block

__all__ = [
    "BaseRule",
    "RuleRegistry",
    "SCORE_BANDS",
    "ScoreCalculator",
    "Settings",
    "band_for",
    "interpret",
    "load_settings",
    "should_block",
    "tiered_deduction",
]
