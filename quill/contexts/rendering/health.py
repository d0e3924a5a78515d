"""
Health/diagnostics reporting for the compilation service.

Pure aggregation over the cache directories and the compiler binary check.
The only mutation exposed here is the explicit operator cache clear.
"""

from typing import Dict, List

from quill.contexts.rendering.cache import CacheDirectoryManager
from quill.contexts.rendering.models import BYTES_PER_MB, DirectoryStatus, HealthSnapshot
from quill.contexts.rendering.runner import JobRunner
from quill.utils.timestamp import now_exact


def build_recommendations(
    binary_present: bool,
    directories: List[DirectoryStatus],
    cache_warn_mb: float,
) -> List[str]:
    """
    Derive operator-facing recommendations from simple thresholds.

    Args:
        binary_present: Whether the compiler binary is available
        directories: Status of each managed cache directory
        cache_warn_mb: Combined cache size above which clearing is suggested

    Returns:
        Recommendations in order of severity (possibly empty)
    """
    recommendations = []

    if not binary_present:
        recommendations.append(
            "LaTeX compiler binary is missing. Install Tectonic or set LATEX_COMPILER; "
            "no compilation can succeed until then."
        )

    total_bytes = sum(d.size_bytes for d in directories)
    if total_bytes == 0:
        recommendations.append(
            "No compiler cache populated yet. The first PDF generation will be slow while "
            "packages download; run the warm-cache command to prepare it."
        )
    elif any(not d.exists or d.size_bytes == 0 for d in directories):
        missing = ", ".join(d.name for d in directories if not d.exists or d.size_bytes == 0)
        recommendations.append(f"Cache partially populated ({missing} empty). Some compilations may be slow.")

    if total_bytes / BYTES_PER_MB > cache_warn_mb:
        recommendations.append(
            f"Large cache detected ({total_bytes / BYTES_PER_MB:.1f} MB > {cache_warn_mb:g} MB). "
            "Consider clearing it if the host is short on disk or memory."
        )

    return recommendations


class HealthReporter:
    """Builds HealthSnapshots and performs the clear-cache action."""

    def __init__(self, cache_manager: CacheDirectoryManager, runner: JobRunner, cache_warn_mb: float = 100.0):
        self.cache_manager = cache_manager
        self.runner = runner
        self.cache_warn_mb = cache_warn_mb

    def snapshot(self) -> HealthSnapshot:
        """Recompute the operational status (filesystem walk; run off the event loop)."""
        binary_present = self.runner.binary_available()
        directories = self.cache_manager.inspect()

        return HealthSnapshot(
            binary_present=binary_present,
            binary_path=self.runner.binary_description,
            directories=directories,
            recommendations=build_recommendations(binary_present, directories, self.cache_warn_mb),
            timestamp=now_exact(),
        )

    def clear_cache(self) -> List[Dict]:
        """Destructive cache reset; delegates to CacheDirectoryManager.clear()."""
        return self.cache_manager.clear()
