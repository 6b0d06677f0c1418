"""Security risk scoring for npm packages."""

__version__ = "0.1.0"
