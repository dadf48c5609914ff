"""
Invocation Accountant - Records tool outcomes against their manifests

Counting and promotion happen in one serialized update per tool:
read the manifest, add the outcome, ask the promotion policy, write back.
Concurrent outcomes for the same tool therefore never lose an increment and
the shared flag is set at most once.
"""

import logging
from typing import Optional

from toolpool.domain.tools.manifest import ResultEnvelope, ToolManifest, utcnow
from toolpool.domain.tools.policy import PromotionPolicy
from toolpool.domain.tools.store import ManifestStore
from toolpool.domain.types import OutcomeStatus
from toolpool.infra.metrics import MetricsService, get_metrics

logger = logging.getLogger(__name__)


class InvocationAccountant:
    """
    Records invocation outcomes and applies promotions

    The accountant never invokes tools and never retries. Unknown tool names
    raise NotFound: they mean the resolver and the registry disagree.

    Usage:
        accountant = InvocationAccountant(store, PromotionPolicy.from_settings())
        manifest = accountant.record_outcome("convert_temp_1755608867746_19bf163d", True)
    """

    def __init__(
        self,
        store: ManifestStore,
        policy: Optional[PromotionPolicy] = None,
        metrics: Optional[MetricsService] = None,
    ):
        self.store = store
        self.policy = policy or PromotionPolicy.from_settings()
        self.metrics = metrics or get_metrics()

    def record_outcome(self, tool_name: str, succeeded: bool) -> ToolManifest:
        """
        Count one invocation and promote the tool if it now qualifies

        Args:
            tool_name: Concrete tool name
            succeeded: Outcome declared by the tool's result envelope

        Returns:
            ToolManifest: The manifest as written

        Raises:
            NotFound: If tool_name is not registered
            MalformedManifest: If the stored record is unreadable
        """
        promoted = False

        def apply_outcome(current: ToolManifest) -> ToolManifest:
            nonlocal promoted
            updated = current.with_outcome(succeeded)
            promoted = not updated.shared and self.policy.should_promote(updated)
            if promoted:
                updated = updated.promote(utcnow())
            return updated

        manifest = self.store.update(tool_name, apply_outcome)

        status = OutcomeStatus.SUCCESS if succeeded else OutcomeStatus.FAILURE
        self.metrics.tool_outcomes.labels(tool_type=manifest.tool_type, status=status.value).inc()

        logger.debug(
            f"Recorded {status.value} for {tool_name} "
            f"({manifest.success_count}S/{manifest.failure_count}F)",
            extra={"tool_name": tool_name, "usage_count": manifest.usage_count},
        )

        if promoted:
            self.metrics.tool_promotions.labels(tool_type=manifest.tool_type).inc()
            logger.info(
                f"Promoted {tool_name} to the shared pool "
                f"({manifest.success_count}/{manifest.usage_count} successful)",
                extra={
                    "tool_name": tool_name,
                    "tool_type": manifest.tool_type,
                    "created_by": manifest.created_by,
                },
            )

        return manifest

    def record_envelope(self, tool_name: str, envelope: ResultEnvelope) -> ToolManifest:
        """Record the outcome declared by a result envelope"""
        return self.record_outcome(tool_name, envelope.success)
