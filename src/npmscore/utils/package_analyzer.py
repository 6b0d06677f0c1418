"""Pure helpers for pulling scripts, dependencies and sizes out of package metadata."""

import re
from typing import Any

from npmscore.models.schemas import PackageMetadata

# npm lifecycle hooks, in the order npm runs them
LIFECYCLE_HOOKS = [
    "preinstall",
    "install",
    "postinstall",
    "prepublish",
    "prepublishOnly",
    "prepare",
    "prepack",
    "postpack",
    "publish",
    "postpublish",
    "preversion",
    "version",
    "postversion",
]

# Hooks npm runs automatically when a consumer installs the package
INSTALL_HOOKS = {"preinstall", "install", "postinstall"}

DEPENDENCY_FIELDS = {
    "dependencies": "dependencies",
    "devDependencies": "dev_dependencies",
    "peerDependencies": "peer_dependencies",
    "optionalDependencies": "optional_dependencies",
}


def _as_metadata(package: PackageMetadata | dict[str, Any] | None) -> PackageMetadata | None:
    if package is None or isinstance(package, PackageMetadata):
        return package
    if isinstance(package, dict) and package.get("name"):
        return PackageMetadata.model_validate(package)
    return None


def extract_lifecycle_scripts(package: PackageMetadata | dict[str, Any] | None) -> dict[str, str]:
    """Extract lifecycle scripts, keyed by hook name.

    Empty and non-string script entries are ignored.
    """
    if isinstance(package, dict):
        scripts = package.get("scripts") or {}
    elif isinstance(package, PackageMetadata):
        scripts = package.scripts
    else:
        return {}

    return {
        hook: scripts[hook]
        for hook in LIFECYCLE_HOOKS
        if isinstance(scripts.get(hook), str) and scripts[hook]
    }


def extract_all_scripts(package: PackageMetadata | dict[str, Any] | None) -> dict[str, Any]:
    if isinstance(package, dict):
        return dict(package.get("scripts") or {})
    if isinstance(package, PackageMetadata):
        return dict(package.scripts)
    return {}


def normalize_script(script: Any) -> str:
    """Collapse whitespace in a script command."""
    if not isinstance(script, str):
        return ""
    return re.sub(r"\s+", " ", script.strip())


def extract_dependencies(package: PackageMetadata | dict[str, Any] | None) -> dict[str, dict[str, str]]:
    """Extract dependency maps grouped by npm field name."""
    if isinstance(package, dict):
        return {field: dict(package.get(field) or {}) for field in DEPENDENCY_FIELDS}
    if isinstance(package, PackageMetadata):
        return {field: dict(getattr(package, attr)) for field, attr in DEPENDENCY_FIELDS.items()}
    return {field: {} for field in DEPENDENCY_FIELDS}


def calculate_size_metrics(package: PackageMetadata | dict[str, Any]) -> dict[str, int]:
    """Size metrics from the `dist` block. Missing values count as 0."""
    if isinstance(package, PackageMetadata):
        dist = package.dist
        return {
            "unpacked_size": dist.unpacked_size,
            "file_count": dist.file_count,
            "tarball_size": dist.size,
        }

    dist = (package or {}).get("dist") or {}
    return {
        "unpacked_size": dist.get("unpackedSize") or 0,
        "file_count": dist.get("fileCount") or 0,
        "tarball_size": dist.get("size") or 0,
    }


def get_package_summary(package: PackageMetadata | dict[str, Any] | None) -> dict[str, Any] | None:
    """Summarize a package for reports."""
    metadata = _as_metadata(package)
    if metadata is None:
        return None

    scripts = extract_all_scripts(metadata)
    lifecycle_scripts = extract_lifecycle_scripts(metadata)

    return {
        "name": metadata.name,
        "version": metadata.version,
        "description": metadata.description or "",
        "author": metadata.author,
        "maintainers": list(metadata.maintainers),
        "repository": metadata.repository,
        "homepage": metadata.homepage,
        "license": metadata.license,
        "scripts": scripts,
        "lifecycle_scripts": lifecycle_scripts,
        "install_scripts": sorted(set(lifecycle_scripts) & INSTALL_HOOKS),
        "dependencies": extract_dependencies(metadata),
        "size_metrics": calculate_size_metrics(metadata),
        "has_scripts": bool(scripts),
        "has_lifecycle_scripts": bool(lifecycle_scripts),
    }
