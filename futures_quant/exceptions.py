"""Exception hierarchy shared by the research pipeline."""

from __future__ import annotations


class FuturesQuantError(Exception):
    """Base class for every fatal pipeline error."""


class ConfigurationError(FuturesQuantError, ValueError):
    """Invalid YAML, parameter ordering or transformer settings."""


class InputDataError(FuturesQuantError, ValueError):
    """Raw CSV content that cannot be parsed."""


class IntegrityError(FuturesQuantError, RuntimeError):
    """Data present but insufficient or inconsistent for the requested operation."""


class ArchiveError(FuturesQuantError, OSError):
    """Archive file that cannot be decoded."""
