"""Package, tarball and environment utilities."""

from npmscore.utils.entropy import calculate_entropy
from npmscore.utils.tarball_analyzer import TarballAnalyzer

__all__ = ["TarballAnalyzer", "calculate_entropy"]
