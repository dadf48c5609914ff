"""
Tool Naming - Canonical tool types and duplicate detection

Every registered tool name is a base name plus a creation-time disambiguator:

    <base>_<epoch-ms>_<hash>        e.g. calc_discount_1755608867746_19bf163d

The tool *type* is the base name. Suffix grammar, applied to the sanitized
name split on "_":

- the disambiguator is the longest trailing run of segments that starts with
  an all-digit segment, every later segment being digits or lowercase hex
  (``calc_discount_171_aa`` -> ``calc_discount``);
- without such a run, a single trailing hex segment of 6+ characters holding
  at least one digit is a bare content hash
  (``email_validator_6797c58e`` -> ``email_validator``);
- the base always keeps at least one segment.

Grouping by type is how redundant creation is detected: several agents
creating the same type independently instead of reusing an existing tool.
"""

import difflib
import re
import secrets
import time
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional

from toolpool.domain.types import ToolClassification

if TYPE_CHECKING:
    from toolpool.domain.tools.manifest import ToolManifest

_INVALID_CHARS = re.compile(r"[^a-z0-9_]")
_REPEATED_SEPARATORS = re.compile(r"_+")
_DIGITS = re.compile(r"^[0-9]+$")
_HEX = re.compile(r"^[0-9a-f]+$")
_BARE_HASH = re.compile(r"^(?=[0-9a-f]*[0-9])[0-9a-f]{6,}$")


def sanitize_tool_name(name: str) -> str:
    """Lowercase a name and reduce it to ``[a-z0-9_]`` with single separators."""
    lowered = _INVALID_CHARS.sub("_", name.strip().lower())
    return _REPEATED_SEPARATORS.sub("_", lowered).strip("_")


def canonical_type(tool_name: str) -> str:
    """
    Strip the creation-time disambiguator from a tool name

    Pure and deterministic. Names without a disambiguator are returned
    sanitized but otherwise unchanged.

    Args:
        tool_name: Concrete tool name (or a requested capability)

    Returns:
        str: Canonical tool type
    """
    sanitized = sanitize_tool_name(tool_name)
    if not sanitized:
        return sanitized

    segments = sanitized.split("_")

    for start in range(1, len(segments)):
        if _DIGITS.match(segments[start]) and all(
            _HEX.match(segment) for segment in segments[start + 1:]
        ):
            return "_".join(segments[:start])

    if len(segments) > 1 and _BARE_HASH.match(segments[-1]):
        return "_".join(segments[:-1])

    return sanitized


def new_tool_name(base: str, timestamp_ms: Optional[int] = None, suffix: Optional[str] = None) -> str:
    """
    Build a unique tool name for a freshly synthesized tool

    The result always normalizes back to ``canonical_type(base)``.

    Raises:
        ValueError: If nothing usable is left of ``base`` after sanitizing
    """
    tool_type = canonical_type(base)
    if not tool_type:
        raise ValueError(f"Cannot derive a tool name from {base!r}")

    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    if suffix is None:
        suffix = secrets.token_hex(4)

    return f"{tool_type}_{timestamp_ms}_{suffix}"


def group_by_type(manifests: Iterable["ToolManifest"]) -> Dict[str, List["ToolManifest"]]:
    """
    Group manifests by canonical tool type

    Returns:
        Dict mapping tool_type -> manifests ordered by created_at (ties by
        tool_name). Types appear in order of their first creation.
    """
    groups: Dict[str, List["ToolManifest"]] = {}
    for manifest in sorted(manifests, key=lambda m: (m.created_at, m.tool_name)):
        groups.setdefault(manifest.tool_type, []).append(manifest)
    return groups


def classify(manifests: Iterable["ToolManifest"]) -> ToolClassification:
    """Redundant creation when more than one distinct agent created the type."""
    creators = {manifest.created_by for manifest in manifests}
    if len(creators) > 1:
        return ToolClassification.REDUNDANT_CREATION
    return ToolClassification.SPECIALIZED


def find_similar_tool_names(target: str, names: Iterable[str], limit: int = 3) -> List[str]:
    """Closest known tool names for a lookup that missed."""
    candidates = list(dict.fromkeys(names))
    target_type = canonical_type(target)

    # Same type first, then fuzzy matches on the full name
    same_type = [name for name in candidates if target_type and canonical_type(name) == target_type]
    fuzzy = difflib.get_close_matches(target, candidates, n=limit, cutoff=0.6)

    return list(dict.fromkeys(same_type + fuzzy))[:limit]
