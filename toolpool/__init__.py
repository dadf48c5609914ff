"""Tool registry and reuse-promotion engine for agent-synthesized tools."""

__version__ = "0.1.0"
