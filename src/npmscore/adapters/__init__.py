"""Registry adapters."""

from npmscore.adapters.npm import NpmRegistryClient

__all__ = ["NpmRegistryClient"]
