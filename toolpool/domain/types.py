"""Domain types and enums for type safety."""
from enum import Enum


class ToolClassification(str, Enum):
    """How a tool type was produced across agents."""
    SPECIALIZED = "specialized"  # one creator
    REDUNDANT_CREATION = "redundant_creation"  # several creators solved the same problem


class ResolutionSource(str, Enum):
    """Where the resolver found a tool for a capability."""
    OWN = "own"
    SHARED = "shared"
    SYNTHESIS = "synthesis"


class OutcomeStatus(str, Enum):
    """Recorded outcome of a tool invocation."""
    SUCCESS = "success"
    FAILURE = "failure"
