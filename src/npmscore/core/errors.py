"""Exception types raised by the scoring core."""


class ScoringError(Exception):
    """Base class for scoring precondition failures."""


class MissingPackageDataError(ScoringError):
    """Raised when no package metadata is supplied to the calculator."""

    def __init__(self) -> None:
        super().__init__("Package data is required")


class InvalidPackageDataError(ScoringError):
    """Raised when package metadata cannot be validated."""


class InvalidScoreError(ScoringError, ValueError):
    """Raised when a score is not a finite number."""

    def __init__(self, score: object) -> None:
        self.score = score
        super().__init__(f"Score must be a valid number, got {score!r}")


# --- Rule registration ---


class RuleError(Exception):
    """Base class for rule definition and registration errors."""


class InvalidRuleError(RuleError, ValueError):
    """Raised when an object does not satisfy the rule contract."""


class RuleNotImplementedError(RuleError, NotImplementedError):
    """Raised by a rule that does not override `evaluate`."""

    def __init__(self, rule_class: str) -> None:
        self.rule_class = rule_class
        super().__init__(f"{rule_class}.evaluate() must be implemented by subclass")


class DuplicateRuleError(RuleError):
    """Raised when a rule name is registered twice."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f'Rule with name "{name}" is already registered')


# --- Tarball I/O ---


class TarballError(Exception):
    """Base class for tarball acquisition and inspection failures."""


class MissingUrlError(TarballError, ValueError):
    """Raised when no tarball URL is given."""

    def __init__(self) -> None:
        super().__init__("Tarball URL is required")


class DownloadError(TarballError):
    """Raised when a tarball cannot be downloaded."""

    def __init__(self, message: str, url: str | None = None, status_code: int | None = None) -> None:
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class DownloadTimeoutError(DownloadError):
    """Raised when a download exceeds its deadline."""

    def __init__(self, url: str, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"Download timed out after {timeout:g}s: {url}", url=url)


class ExtractionError(TarballError):
    """Raised when an archive is corrupt or cannot be unpacked."""


class InvalidPathError(TarballError):
    """Raised when a path would escape its extraction root."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Invalid file path: {path}")


class FileReadError(TarballError):
    """Raised when an extracted file cannot be read."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        super().__init__(f"Failed to read {path}: {reason}")


# --- Configuration ---


class ConfigError(Exception):
    """Raised when configuration cannot be loaded or validated."""


# --- Registry ---


class RegistryError(Exception):
    """Raised when the npm registry cannot be queried."""


class PackageNotFoundError(RegistryError):
    """Raised when a package or version does not exist in the registry."""

    def __init__(self, name: str, version: str | None = None) -> None:
        self.name = name
        self.version = version
        target = f"{name}@{version}" if version else name
        super().__init__(f"Package '{target}' not found in npm registry")
