"""Data models and schemas."""

from npmscore.models.schemas import (
    DistInfo,
    Finding,
    PackageMetadata,
    RiskLevel,
    RuleReport,
    RuleResult,
    ScoreBand,
    ScoreResult,
    Severity,
    TarballAnalysis,
    TarballFile,
)

__all__ = [
    "DistInfo",
    "Finding",
    "PackageMetadata",
    "RiskLevel",
    "RuleReport",
    "RuleResult",
    "ScoreBand",
    "ScoreResult",
    "Severity",
    "TarballAnalysis",
    "TarballFile",
]
