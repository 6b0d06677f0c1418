"""Score band definitions and categorization."""

import math

from npmscore.core.errors import InvalidScoreError
from npmscore.models.schemas import ScoreBand

SCORE_BANDS: dict[str, ScoreBand] = {
    "SAFE": ScoreBand(
        key="SAFE",
        min=90,
        max=100,
        label="Safe",
        emoji="✅",
        description="Package appears safe to use",
        action="safe",
    ),
    "REVIEW": ScoreBand(
        key="REVIEW",
        min=70,
        max=89,
        label="Review Recommended",
        emoji="⚠️",
        description="Review recommended before use",
        action="review",
    ),
    "HIGH_RISK": ScoreBand(
        key="HIGH_RISK",
        min=50,
        max=69,
        label="High Risk",
        emoji="❌",
        description="High risk package, use with caution",
        action="caution",
    ),
    "BLOCK": ScoreBand(
        key="BLOCK",
        min=0,
        max=49,
        label="Block",
        emoji="🚨",
        description="Block in CI/CD - significant security concerns",
        action="block",
    ),
}


def _validate(score: object) -> float:
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise InvalidScoreError(score)
    if not math.isfinite(score):
        raise InvalidScoreError(score)
    return score


def band_for(score: float) -> ScoreBand:
    """Get the score band containing a score.

    Fractional scores between two integer bands (e.g. 89.5) belong to the
    lower band, since every band's upper edge extends to just below the next
    band's minimum. Out-of-range scores fall back to BLOCK.

    Raises:
        InvalidScoreError: If the score is not a finite number.
    """
    score = _validate(score)

    # Half-open [min, max + 1) ranges, so no fractional score falls between bands
    for band in SCORE_BANDS.values():
        if band.min <= score < band.max + 1 and score <= 100:
            return band

    return SCORE_BANDS["BLOCK"]


def get_all_score_bands() -> dict[str, ScoreBand]:
    """Get all band definitions, highest band first."""
    return dict(SCORE_BANDS)


def should_block(score: float) -> bool:
    """Whether a score should fail a CI gate outright."""
    return band_for(score).action == "block"


def interpret(score: float) -> str:
    """Human-readable interpretation of a score."""
    band = band_for(score)
    return f"{band.emoji} {band.label}: {band.description}"
