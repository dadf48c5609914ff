"""
Tool Resolver - Finds an existing tool for a capability or asks for a new one

Resolution order, first match wins:
1. The requesting agent's own tools of the requested type
2. Shared tools of that type, best success rate first (ties: oldest)
3. NeedsSynthesis, telling the caller to synthesize and register a tool

Tools whose body the loader cannot find are skipped with a warning.

The resolver never blocks unrelated agents: it reads snapshots from the
store and only writes through ``put`` when registering a new tool.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, List, Optional, Union

from pydantic import BaseModel

from toolpool.domain.tools.accountant import InvocationAccountant
from toolpool.domain.tools.errors import InvalidSynthesizedTool, NotFound
from toolpool.domain.tools.executor import ExecutionLimiter, ToolHandle
from toolpool.domain.tools.loader import ToolBody, ToolLoader
from toolpool.domain.tools.manifest import ToolManifest
from toolpool.domain.tools.naming import (
    canonical_type,
    find_similar_tool_names,
    new_tool_name,
)
from toolpool.domain.tools.store import ManifestStore
from toolpool.domain.types import ResolutionSource
from toolpool.infra.logging import agent_context
from toolpool.infra.metrics import MetricsService, get_metrics

logger = logging.getLogger(__name__)


class NeedsSynthesis(BaseModel):
    """No reusable tool exists; the caller must synthesize one"""
    agent_id: str
    capability: str
    tool_type: str


@dataclass
class SynthesizedTool:
    """What the synthesis collaborator hands back"""
    body: ToolBody
    proposed_name: Optional[str] = None
    code_ref: Optional[str] = None
    description: Optional[str] = None
    code_hash: Optional[str] = None


class ToolSynthesizer(ABC):
    """
    External code-synthesis collaborator

    Implementations typically prompt a language model and sandbox the
    result; the registry only checks the structure of what comes back.
    """

    @abstractmethod
    def synthesize(self, agent_id: str, capability: str) -> SynthesizedTool:
        pass


def rank_key(manifest: ToolManifest):
    """Best success rate first, then oldest, then name. Unused tools rate 0."""
    return (-(manifest.success_rate or 0.0), manifest.created_at, manifest.tool_name)


class ToolResolver:
    """
    Decides between reusing a tool and synthesizing a new one

    Usage:
        resolver = ToolResolver(store, accountant, loader)
        resolution = resolver.resolve("agent-a", "convert_temp")
        if isinstance(resolution, NeedsSynthesis):
            handle = resolver.register_synthesized("agent-a", "convert_temp", synthesizer.synthesize(...))
        else:
            handle = resolution
        envelope = handle.invoke({"celsius": 21.5})
    """

    def __init__(
        self,
        store: ManifestStore,
        accountant: InvocationAccountant,
        loader: ToolLoader,
        timeout_seconds: Optional[float] = None,
        limiter: Optional[ExecutionLimiter] = None,
        metrics: Optional[MetricsService] = None,
    ):
        self.store = store
        self.accountant = accountant
        self.loader = loader
        self.timeout_seconds = timeout_seconds
        self.limiter = limiter
        self.metrics = metrics or get_metrics()

    @classmethod
    def from_settings(
        cls,
        store: ManifestStore,
        accountant: InvocationAccountant,
        loader: ToolLoader,
        settings=None,
    ) -> "ToolResolver":
        if settings is None:
            from toolpool.config import settings
        return cls(
            store,
            accountant,
            loader,
            timeout_seconds=settings.tool_timeout_seconds,
            limiter=ExecutionLimiter.from_settings(settings),
        )

    def resolve(self, agent_id: str, requested_capability: str) -> Union[ToolHandle, NeedsSynthesis]:
        """
        Find a tool for a capability

        Args:
            agent_id: Requesting agent
            requested_capability: Tool type (or any name normalizing to it)

        Returns:
            ToolHandle bound to a concrete tool, or NeedsSynthesis
        """
        tool_type = canonical_type(requested_capability)

        with agent_context(agent_id):
            own = self._resolve_ranked(self.store.list_by_creator(agent_id), tool_type, ResolutionSource.OWN)
            if own is not None:
                return own

            shared = self._resolve_ranked(self.store.list_shared(), tool_type, ResolutionSource.SHARED)
            if shared is not None:
                return shared

            self.metrics.tool_resolutions.labels(source=ResolutionSource.SYNTHESIS.value).inc()
            logger.info(f"No reusable tool for '{tool_type}', synthesis needed")
            return NeedsSynthesis(
                agent_id=agent_id,
                capability=requested_capability,
                tool_type=tool_type,
            )

    def register_synthesized(
        self,
        agent_id: str,
        capability: str,
        synthesized: SynthesizedTool,
    ) -> ToolHandle:
        """
        Register a freshly synthesized tool for an agent

        The tool is named ``<type>_<epoch-ms>_<hex>``. When the proposed name
        normalizes to a different type than the capability, the capability's
        type wins so later resolves find the tool.

        Raises:
            InvalidSynthesizedTool: If the body is not callable or no usable
                name can be derived
            DuplicateToolName: If the generated name collides
        """
        if synthesized is None or not callable(synthesized.body):
            raise InvalidSynthesizedTool(
                f"Synthesized tool for '{capability}' has no callable body"
            )

        capability_type = canonical_type(capability)
        proposed_type = canonical_type(synthesized.proposed_name or "")
        if not capability_type and not proposed_type:
            raise InvalidSynthesizedTool(
                f"Cannot derive a tool name from capability {capability!r}"
            )

        base = capability_type or proposed_type
        if proposed_type and capability_type and proposed_type != capability_type:
            logger.warning(
                f"Proposed tool name '{synthesized.proposed_name}' does not match "
                f"capability '{capability_type}', registering under the capability type"
            )

        tool_name = new_tool_name(base)
        code_ref = synthesized.code_ref or tool_name

        with agent_context(agent_id):
            self.loader.bind(code_ref, synthesized.body)
            manifest = self.store.put(
                ToolManifest.new(
                    tool_name=tool_name,
                    created_by=agent_id,
                    code_ref=code_ref,
                    description=synthesized.description,
                    code_hash=synthesized.code_hash,
                )
            )

            self.metrics.tool_registrations.labels(tool_type=manifest.tool_type).inc()
            logger.info(f"Registered synthesized tool {tool_name}", extra={"tool_name": tool_name})

        return self._handle(manifest)

    def resolve_or_synthesize(
        self,
        agent_id: str,
        capability: str,
        synthesizer: ToolSynthesizer,
    ) -> ToolHandle:
        """Resolve a capability, synthesizing and registering a tool on a miss"""
        resolution = self.resolve(agent_id, capability)
        if isinstance(resolution, ToolHandle):
            return resolution

        synthesized = synthesizer.synthesize(agent_id, capability)
        return self.register_synthesized(agent_id, capability, synthesized)

    def get_handle(self, tool_name: str) -> ToolHandle:
        """
        Handle for a specific tool name

        Raises:
            NotFound: With similar known names as suggestions
        """
        try:
            manifest = self.store.get(tool_name)
        except NotFound:
            known = [m.tool_name for m in self.store.snapshot().manifests]
            raise NotFound(tool_name, find_similar_tool_names(tool_name, known))
        return self._handle(manifest)

    def available_tools(self, agent_id: str, limit: Optional[int] = None) -> List[ToolHandle]:
        """
        Toolbox for an agent: its own tools, then the best shared tool of
        every type it does not own, capped at ``limit``
        """
        if limit is None:
            from toolpool.config import settings
            limit = settings.max_tools_per_agent

        own = self.store.list_by_creator(agent_id)
        owned_types = {m.tool_type for m in own}

        best_shared = {}
        for manifest in sorted(self.store.list_shared(), key=rank_key):
            if manifest.tool_type not in owned_types:
                best_shared.setdefault(manifest.tool_type, manifest)

        handles: List[ToolHandle] = []
        for manifest in own + list(best_shared.values()):
            if len(handles) >= limit:
                break
            try:
                handles.append(self._handle(manifest))
            except NotFound:
                logger.warning(
                    f"Skipping {manifest.tool_name}: no body bound to '{manifest.code_ref or manifest.tool_name}'",
                    extra={"tool_name": manifest.tool_name},
                )

        logger.info(f"Loaded {len(handles)} tools for agent {agent_id} (limit {limit})")
        return handles

    def _resolve_ranked(
        self,
        manifests: Iterable[ToolManifest],
        tool_type: str,
        source: ResolutionSource,
    ) -> Optional[ToolHandle]:
        """Handle for the best-ranked loadable tool of a type, if any"""
        candidates = sorted((m for m in manifests if m.tool_type == tool_type), key=rank_key)
        for manifest in candidates:
            try:
                handle = self._handle(manifest)
            except NotFound:
                logger.warning(
                    f"Skipping {manifest.tool_name}: no body bound to '{manifest.code_ref or manifest.tool_name}'",
                    extra={"tool_name": manifest.tool_name},
                )
                continue

            self.metrics.tool_resolutions.labels(source=source.value).inc()
            logger.info(
                f"Resolved '{tool_type}' to {manifest.tool_name} ({source.value} tool)",
                extra={"tool_name": manifest.tool_name, "source": source.value},
            )
            return handle

        return None

    def _handle(self, manifest: ToolManifest) -> ToolHandle:
        body = self.loader.load(manifest.code_ref or manifest.tool_name)
        return ToolHandle(
            manifest,
            body,
            self.accountant,
            timeout_seconds=self.timeout_seconds,
            limiter=self.limiter,
            metrics=self.metrics,
        )
