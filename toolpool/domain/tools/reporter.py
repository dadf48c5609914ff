"""
Reuse Reporter - Read-only statistics over the manifest store

Answers whether tools are actually being reused: how many tools exist and
are used, which agents create and exercise them, which tool types were
created redundantly by several agents, and which tools are reused most.
Malformed manifests are skipped and counted rather than failing the report.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from toolpool.domain.tools.manifest import ToolManifest, utcnow
from toolpool.domain.tools.naming import classify, group_by_type
from toolpool.domain.tools.store import ManifestSnapshot, ManifestStore
from toolpool.domain.types import ToolClassification

logger = logging.getLogger(__name__)

MOST_REUSED_MIN_USAGE = 3


class ToolUsage(BaseModel):
    """Usage line for one tool"""
    tool_name: str
    tool_type: str
    created_by: str
    usage_count: int
    success_count: int
    failure_count: int
    success_rate: Optional[float] = None
    shared: bool = False

    @classmethod
    def from_manifest(cls, manifest: ToolManifest) -> "ToolUsage":
        return cls(
            tool_name=manifest.tool_name,
            tool_type=manifest.tool_type,
            created_by=manifest.created_by,
            usage_count=manifest.usage_count,
            success_count=manifest.success_count,
            failure_count=manifest.failure_count,
            success_rate=manifest.success_rate,
            shared=manifest.shared,
        )


class AgentSummary(BaseModel):
    """Tools created by one agent"""
    agent_id: str
    tool_count: int
    used_tools: int
    total_usage: int
    tools: List[ToolUsage] = Field(default_factory=list)


class ToolTypeSummary(BaseModel):
    """All instances of one canonical tool type"""
    tool_type: str
    classification: ToolClassification
    versions: int
    creators: List[str] = Field(default_factory=list)
    total_usage: int
    tools: List[ToolUsage] = Field(default_factory=list)


class ReuseReport(BaseModel):
    """Registry-wide reuse statistics"""
    generated_at: datetime
    total_tools: int
    used_tools: int
    unused_tools: int
    shared_tools: int
    total_usage: int
    average_uses_per_tool: float
    average_success_rate: Optional[float] = None
    skipped_manifests: int = 0
    skipped_sources: List[str] = Field(default_factory=list)
    agents: List[AgentSummary] = Field(default_factory=list)
    tool_types: List[ToolTypeSummary] = Field(default_factory=list)
    redundant_types: List[str] = Field(default_factory=list)
    most_reused: List[ToolUsage] = Field(default_factory=list)

    @property
    def used_ratio(self) -> float:
        if self.total_tools == 0:
            return 0.0
        return self.used_tools / self.total_tools


class ReuseReporter:
    """
    Builds ReuseReports from a store snapshot

    Never writes to the store, so it is safe to run alongside resolvers and
    accountants.

    Usage:
        report = ReuseReporter(store).build_report()
        print(report.redundant_types)
    """

    def __init__(self, store: ManifestStore):
        self.store = store

    def build_report(self) -> ReuseReport:
        """Take a snapshot and aggregate it"""
        snapshot = self.store.snapshot()
        if snapshot.skipped:
            logger.warning(
                f"Skipped {snapshot.skipped} malformed manifests while building reuse report",
                extra={"skipped_sources": snapshot.skipped_sources},
            )
        return self.summarize(snapshot)

    @staticmethod
    def summarize(snapshot: ManifestSnapshot, generated_at: Optional[datetime] = None) -> ReuseReport:
        """Aggregate an already-taken snapshot"""
        manifests = snapshot.manifests
        total_tools = len(manifests)
        used = [m for m in manifests if m.usage_count > 0]
        total_usage = sum(m.usage_count for m in manifests)

        average_success_rate = None
        if used:
            average_success_rate = sum(m.success_rate for m in used) / len(used)

        groups = group_by_type(manifests)
        tool_types = [
            ToolTypeSummary(
                tool_type=tool_type,
                classification=classify(members),
                versions=len(members),
                creators=list(dict.fromkeys(m.created_by for m in members)),
                total_usage=sum(m.usage_count for m in members),
                tools=[ToolUsage.from_manifest(m) for m in members],
            )
            for tool_type, members in groups.items()
        ]

        most_reused = sorted(
            (m for m in manifests if m.usage_count >= MOST_REUSED_MIN_USAGE),
            key=lambda m: (-m.usage_count, m.tool_name),
        )

        return ReuseReport(
            generated_at=generated_at or utcnow(),
            total_tools=total_tools,
            used_tools=len(used),
            unused_tools=total_tools - len(used),
            shared_tools=sum(1 for m in manifests if m.shared),
            total_usage=total_usage,
            average_uses_per_tool=(total_usage / total_tools) if total_tools else 0.0,
            average_success_rate=average_success_rate,
            skipped_manifests=snapshot.skipped,
            skipped_sources=list(snapshot.skipped_sources),
            agents=_summarize_agents(manifests),
            tool_types=tool_types,
            redundant_types=[
                summary.tool_type
                for summary in tool_types
                if summary.classification == ToolClassification.REDUNDANT_CREATION
            ],
            most_reused=[ToolUsage.from_manifest(m) for m in most_reused],
        )


def _summarize_agents(manifests: List[ToolManifest]) -> List[AgentSummary]:
    by_agent: Dict[str, List[ToolManifest]] = {}
    for manifest in manifests:
        by_agent.setdefault(manifest.created_by, []).append(manifest)

    return [
        AgentSummary(
            agent_id=agent_id,
            tool_count=len(tools),
            used_tools=sum(1 for t in tools if t.usage_count > 0),
            total_usage=sum(t.usage_count for t in tools),
            tools=[ToolUsage.from_manifest(t) for t in tools],
        )
        for agent_id, tools in sorted(by_agent.items())
    ]
