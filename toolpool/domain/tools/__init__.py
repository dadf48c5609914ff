"""
Tools domain - Registry, accounting and reuse promotion for synthesized tools

Agents synthesize small tools, invoke them, and reuse them. This module
decides when a tool created by one agent becomes available to every agent.

Key components:
- ToolManifest: Identity, ownership and usage statistics of one tool
- ManifestStore: Keyed manifest storage with per-key serialized updates
- InvocationAccountant: Records outcomes and applies promotions
- PromotionPolicy: Sharing gate (minimum usage and success rate)
- ToolResolver: Reuse an own or shared tool, or ask for synthesis
- ReuseReporter: Read-only reuse statistics
"""

from toolpool.domain.tools.accountant import InvocationAccountant
from toolpool.domain.tools.errors import (
    DuplicateToolName,
    InvalidManifestUpdate,
    InvalidSynthesizedTool,
    MalformedManifest,
    ManifestSourceError,
    NotFound,
    ToolInvocationTimeout,
    ToolRegistryError,
)
from toolpool.domain.tools.executor import ExecutionLimiter, ToolHandle
from toolpool.domain.tools.loader import InMemoryToolLoader, ToolLoader
from toolpool.domain.tools.manifest import ResultEnvelope, ToolManifest
from toolpool.domain.tools.naming import canonical_type, classify, group_by_type, new_tool_name
from toolpool.domain.tools.policy import PromotionPolicy
from toolpool.domain.tools.reporter import ReuseReport, ReuseReporter
from toolpool.domain.tools.resolver import (
    NeedsSynthesis,
    SynthesizedTool,
    ToolResolver,
    ToolSynthesizer,
)
from toolpool.domain.tools.store import InMemoryManifestStore, ManifestSnapshot, ManifestStore

__all__ = [
    "DuplicateToolName",
    "ExecutionLimiter",
    "InMemoryManifestStore",
    "InMemoryToolLoader",
    "InvalidManifestUpdate",
    "InvalidSynthesizedTool",
    "InvocationAccountant",
    "MalformedManifest",
    "ManifestSnapshot",
    "ManifestSourceError",
    "ManifestStore",
    "NeedsSynthesis",
    "NotFound",
    "PromotionPolicy",
    "ResultEnvelope",
    "ReuseReport",
    "ReuseReporter",
    "SynthesizedTool",
    "ToolHandle",
    "ToolInvocationTimeout",
    "ToolLoader",
    "ToolManifest",
    "ToolRegistryError",
    "ToolResolver",
    "ToolSynthesizer",
    "canonical_type",
    "classify",
    "group_by_type",
    "new_tool_name",
]
