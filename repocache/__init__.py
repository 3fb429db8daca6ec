"""Local mirror cache for remote git repositories."""

__version__ = "0.1.0"
