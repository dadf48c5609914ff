"""Errors raised by the tool registry.

Store and accountant errors are always surfaced to the caller; nothing in the
registry retries on its own.
"""

from typing import List, Optional


class ToolRegistryError(Exception):
    """Base class for registry errors"""
    pass


class DuplicateToolName(ToolRegistryError):
    """Raised when registering a tool name that already exists"""

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Tool '{tool_name}' is already registered")


class NotFound(ToolRegistryError):
    """Raised when an operation references an unknown tool name"""

    def __init__(self, tool_name: str, suggestions: Optional[List[str]] = None):
        self.tool_name = tool_name
        self.suggestions = suggestions or []

        message = f"Tool '{tool_name}' not found in registry"
        if self.suggestions:
            message += f". Did you mean one of these? {', '.join(self.suggestions)}"
        super().__init__(message)


class MalformedManifest(ToolRegistryError):
    """Raised when a persisted manifest fails schema validation on read"""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Malformed manifest '{source}': {reason}")


class ManifestSourceError(ToolRegistryError):
    """Raised when the manifest source itself cannot be read"""
    pass


class InvalidManifestUpdate(ToolRegistryError):
    """Raised when an update mutator returns a manifest the store must reject"""

    def __init__(self, tool_name: str, reason: str):
        self.tool_name = tool_name
        self.reason = reason
        super().__init__(f"Rejected update for tool '{tool_name}': {reason}")


class InvalidSynthesizedTool(ToolRegistryError):
    """Raised when a synthesized tool fails structural checks"""
    pass


class ToolInvocationTimeout(ToolRegistryError):
    """Raised when a tool invocation is abandoned after its timeout.

    No outcome is recorded for an abandoned invocation. Callers that want to
    treat the timeout as a failure must record it themselves.
    """

    def __init__(self, tool_name: str, timeout_seconds: float):
        self.tool_name = tool_name
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Tool '{tool_name}' execution exceeded {timeout_seconds} seconds"
        )
