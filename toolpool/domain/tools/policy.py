"""Promotion policy deciding when a private tool joins the shared pool."""
from typing import Optional

from toolpool.config import Settings
from toolpool.domain.tools.manifest import ToolManifest


class PromotionPolicy:
    """
    Sharing gate for tools

    A tool is promoted once it has been invoked at least ``min_usage`` times
    with a success rate of at least ``success_threshold``. The policy only
    answers the question; it never demotes. Once shared, a tool stays shared
    even if its success rate drops later.

    Usage:
        policy = PromotionPolicy.from_settings(settings)
        if policy.should_promote(manifest):
            manifest = manifest.promote()
    """

    DEFAULT_MIN_USAGE = 3
    DEFAULT_SUCCESS_THRESHOLD = 0.70

    def __init__(
        self,
        min_usage: int = DEFAULT_MIN_USAGE,
        success_threshold: float = DEFAULT_SUCCESS_THRESHOLD,
    ):
        if min_usage < 1:
            raise ValueError(f"min_usage must be at least 1, got {min_usage}")
        if not 0.0 <= success_threshold <= 1.0:
            raise ValueError(
                f"success_threshold must be between 0 and 1, got {success_threshold}"
            )

        self.min_usage = min_usage
        self.success_threshold = success_threshold

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "PromotionPolicy":
        if settings is None:
            from toolpool.config import settings
        return cls(
            min_usage=settings.min_usage,
            success_threshold=settings.success_threshold,
        )

    def should_promote(self, manifest: ToolManifest) -> bool:
        """
        Check whether a manifest's statistics qualify it for the shared pool

        usage_count >= min_usage > 0 guards the division.
        """
        if manifest.usage_count < self.min_usage:
            return False

        success_rate = manifest.success_count * 1.0 / manifest.usage_count
        return success_rate >= self.success_threshold

    def __repr__(self) -> str:
        return (
            f"<PromotionPolicy min_usage={self.min_usage} "
            f"success_threshold={self.success_threshold}>"
        )
