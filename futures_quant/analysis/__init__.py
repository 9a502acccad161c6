"""Archive analysis exports."""

from futures_quant.analysis.analyzer import (
    ArchiveSummary,
    FeatureStats,
    analyze,
    analyze_archive,
    resolve_archive_path,
)

__all__ = [
    "ArchiveSummary",
    "FeatureStats",
    "analyze",
    "analyze_archive",
    "resolve_archive_path",
]
