"""Unified repository, pull request and credential handling for git hosting services."""

__version__ = "0.1.0"
