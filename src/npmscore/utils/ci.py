"""CI/CD environment detection."""

import os
from collections.abc import Mapping

# (platform name, env var, expected value or None for "any value")
CI_PLATFORMS = [
    ("github-actions", "GITHUB_ACTIONS", "true"),
    ("gitlab-ci", "GITLAB_CI", "true"),
    ("jenkins", "JENKINS_URL", None),
    ("circleci", "CIRCLECI", "true"),
    ("travis", "TRAVIS", "true"),
    ("buildkite", "BUILDKITE", "true"),
    ("teamcity", "TEAMCITY_VERSION", None),
    ("bamboo", "BAMBOO_BUILDKEY", None),
    ("gocd", "GO_PIPELINE_NAME", None),
]


def detect_platform(environ: Mapping[str, str] | None = None) -> str | None:
    """Name of the CI platform we are running on, or None outside CI."""
    env = os.environ if environ is None else environ

    for platform, var, expected in CI_PLATFORMS:
        value = env.get(var)
        if value is None:
            continue
        if expected is None or value.lower() == expected:
            return platform

    if env.get("CI", "").lower() == "true" or env.get("CONTINUOUS_INTEGRATION", "").lower() == "true":
        return "generic"
    return None


def is_ci(environ: Mapping[str, str] | None = None) -> bool:
    return detect_platform(environ) is not None


def get_exit_code(score: float, threshold: float = 70) -> int:
    """0 when the score meets the threshold, 1 otherwise."""
    return 0 if score >= threshold else 1
