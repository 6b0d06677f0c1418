"""Pydantic models for package metadata, rule results and scores."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RiskLevel(str, Enum):
    """Risk level reported by a single rule."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    ERROR = "error"  # Rule raised during evaluation


class Severity(str, Enum):
    """Severity of an individual finding."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# --- Package Metadata ---


class NpmUser(BaseModel):
    """Account that published a version (the registry's `_npmUser`)."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str | None = None
    email: str | None = None


class DistInfo(BaseModel):
    """Distribution info for a published version."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    tarball: str | None = None
    unpacked_size: int = Field(default=0, alias="unpackedSize", ge=0)
    file_count: int = Field(default=0, alias="fileCount", ge=0)
    size: int = Field(default=0, ge=0)
    shasum: str | None = None
    integrity: str | None = None
    signatures: list[dict[str, Any]] = Field(default_factory=list)
    attestations: dict[str, Any] | None = None

    @field_validator("unpacked_size", "file_count", "size", mode="before")
    @classmethod
    def _missing_as_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("tarball", mode="before")
    @classmethod
    def _empty_tarball_as_none(cls, value: Any) -> Any:
        return value or None


class PackageMetadata(BaseModel):
    """Normalized metadata for a single npm package version.

    Accepts both the registry's camelCase field names and snake_case names.
    Immutable for the lifetime of a scoring run.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    name: str
    version: str = ""
    description: str | None = None
    scripts: dict[str, Any] = Field(default_factory=dict)
    dependencies: dict[str, str] = Field(default_factory=dict)
    dev_dependencies: dict[str, str] = Field(default_factory=dict, alias="devDependencies")
    peer_dependencies: dict[str, str] = Field(default_factory=dict, alias="peerDependencies")
    optional_dependencies: dict[str, str] = Field(
        default_factory=dict, alias="optionalDependencies"
    )
    dist: DistInfo = Field(default_factory=DistInfo)
    files: list[str] = Field(default_factory=list)
    repository: dict[str, Any] | str | None = None
    author: dict[str, Any] | str | None = None
    license: dict[str, Any] | str | None = None
    homepage: str | None = None
    maintainers: list[dict[str, Any] | str] = Field(default_factory=list)
    npm_user: NpmUser | None = Field(default=None, alias="_npmUser")
    sbom: dict[str, Any] | str | None = None

    @field_validator(
        "scripts",
        "dependencies",
        "dev_dependencies",
        "peer_dependencies",
        "optional_dependencies",
        mode="before",
    )
    @classmethod
    def _none_as_empty_mapping(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("files", "maintainers", mode="before")
    @classmethod
    def _none_as_empty_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("dist", mode="before")
    @classmethod
    def _none_as_empty_dist(cls, value: Any) -> Any:
        return {} if value is None else value


# --- Rule Models ---


class Finding(BaseModel):
    """A single structured observation produced by a rule.

    Rules attach their own fields (url, module, file, size...) as extras.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    type: str
    description: str
    severity: Severity = Severity.MEDIUM


class RuleResult(BaseModel):
    """Outcome of evaluating one rule against one package."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    deduction: int | float = Field(default=0, ge=0)
    bonus: int | float = Field(default=0, ge=0)
    details: dict[str, Any] = Field(default_factory=dict)
    risk_level: RiskLevel = Field(default=RiskLevel.NONE, alias="riskLevel")

    @field_validator("bonus", mode="before")
    @classmethod
    def _missing_bonus_as_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @classmethod
    def neutral(cls, reason: str) -> "RuleResult":
        """Zero-impact result, used by disabled rules."""
        return cls(deduction=0, bonus=0, details={"reason": reason}, risk_level=RiskLevel.NONE)

    @classmethod
    def error(cls, message: str) -> "RuleResult":
        """Zero-impact result recording a failed evaluation."""
        return cls(deduction=0, bonus=0, details={"error": message}, risk_level=RiskLevel.ERROR)


class RuleReport(BaseModel):
    """A rule's result paired with the rule that produced it."""

    model_config = ConfigDict(frozen=True)

    rule_name: str
    weight: int | float = 0
    result: RuleResult

    @property
    def risk_level(self) -> RiskLevel:
        return self.result.risk_level


# --- Scoring Models ---


class ScoreBand(BaseModel):
    """One of the fixed risk bands used for CI gating."""

    model_config = ConfigDict(frozen=True)

    key: str
    min: int
    max: int
    label: str
    emoji: str
    description: str
    action: str  # safe, review, caution, block


class ScoreResult(BaseModel):
    """Final score for a package."""

    model_config = ConfigDict(frozen=True)

    score: int | float
    band: ScoreBand
    rule_results: list[RuleReport] = Field(default_factory=list)
    package_name: str
    package_version: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_json(self, indent: int | None = 2) -> str:
        """Serialize to JSON with the band rendered as a full object."""
        return self.model_dump_json(indent=indent)


# --- Tarball Models ---


class TarballFile(BaseModel):
    """A file inside an extracted tarball."""

    model_config = ConfigDict(frozen=True)

    path: str
    size: int
    entropy: float | None = None  # Only set when entropy sampling was requested


class TarballAnalysis(BaseModel):
    """Structural summary of a package tarball."""

    model_config = ConfigDict(frozen=True)

    has_manifest: bool = False
    largest_files: list[TarballFile] = Field(default_factory=list)  # Descending by size
    total_files: int = 0
    tarball_size: int = 0
