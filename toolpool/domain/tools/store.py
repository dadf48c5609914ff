"""
Manifest Store - Keyed storage of one manifest per tool instance

Every write to a manifest goes through ``update``, which serializes
read-modify-write cycles per tool name. Updates to different tools never wait
on each other; there is no lock across the whole store.

Backends:
- InMemoryManifestStore: process-local dict (this module)
- SqlManifestStore: SQLModel table (toolpool.infra.db.manifest_store)
- JsonManifestStore: one JSON file per tool (toolpool.infra.files.manifest_store)
"""

import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List

from pydantic import BaseModel, Field

from toolpool.domain.tools.errors import DuplicateToolName, InvalidManifestUpdate, NotFound
from toolpool.domain.tools.manifest import ToolManifest

logger = logging.getLogger(__name__)

ManifestMutator = Callable[[ToolManifest], ToolManifest]

_IMMUTABLE_FIELDS = ("tool_name", "created_by", "created_at", "code_ref")
_COUNTERS = ("usage_count", "success_count", "failure_count")


def manifest_sort_key(manifest: ToolManifest):
    """Snapshot ordering: creation time, ties broken by name"""
    return (manifest.created_at, manifest.tool_name)


class ManifestSnapshot(BaseModel):
    """Read-only view of a store for aggregation

    Malformed records are skipped and counted instead of aborting the read.
    """
    manifests: List[ToolManifest] = Field(default_factory=list)
    skipped: int = 0
    skipped_sources: List[str] = Field(default_factory=list)


class KeyedLocks:
    """One lock per key, created on first use"""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
        with lock:
            yield


def check_new(manifest: ToolManifest) -> ToolManifest:
    """
    Validate a manifest being registered

    Raises:
        InvalidManifestUpdate: If it carries usage statistics or is already
            shared. Both only change through ``update``.
    """
    if any(getattr(manifest, field) for field in _COUNTERS):
        raise InvalidManifestUpdate(manifest.tool_name, "new manifests must start with zero counters")

    if manifest.shared or manifest.promoted_at is not None:
        raise InvalidManifestUpdate(
            manifest.tool_name, "new manifests start private; only promotion shares a tool"
        )

    return manifest


def check_update(current: ToolManifest, updated: ToolManifest) -> ToolManifest:
    """
    Validate what a mutator returned before it is written

    Raises:
        InvalidManifestUpdate: If identity fields changed, shared was cleared,
            a counter went backwards or the counter invariant broke
    """
    tool_name = current.tool_name

    if not isinstance(updated, ToolManifest):
        raise InvalidManifestUpdate(tool_name, f"mutator returned {type(updated).__name__}")

    for field in _IMMUTABLE_FIELDS:
        if getattr(updated, field) != getattr(current, field):
            raise InvalidManifestUpdate(tool_name, f"{field} is immutable")

    if current.shared and not updated.shared:
        raise InvalidManifestUpdate(tool_name, "shared tools cannot be un-shared by the registry")

    for field in _COUNTERS:
        if getattr(updated, field) < getattr(current, field):
            raise InvalidManifestUpdate(tool_name, f"{field} cannot decrease")

    if updated.usage_count != updated.success_count + updated.failure_count:
        raise InvalidManifestUpdate(
            tool_name, "usage_count must equal success_count + failure_count"
        )

    return updated


class ManifestStore(ABC):
    """
    Abstract keyed manifest storage

    Snapshots from list_* are ordered by (created_at, tool_name). The list_*
    methods serve the hot path and raise MalformedManifest on a bad record;
    ``snapshot`` is for read-only aggregation and skips bad records.
    """

    @abstractmethod
    def put(self, manifest: ToolManifest) -> ToolManifest:
        """Register a fresh manifest.

        Raises DuplicateToolName if the name exists and InvalidManifestUpdate
        if the manifest has counters or is shared.
        """

    @abstractmethod
    def get(self, tool_name: str) -> ToolManifest:
        """Return a manifest. Raises NotFound."""

    @abstractmethod
    def update(self, tool_name: str, mutator: ManifestMutator) -> ToolManifest:
        """Atomic read-modify-write, serialized per tool name."""

    @abstractmethod
    def list_all(self) -> List[ToolManifest]:
        """All manifests."""

    @abstractmethod
    def snapshot(self) -> ManifestSnapshot:
        """All readable manifests plus a count of skipped records."""

    def list_by_creator(self, agent_id: str) -> List[ToolManifest]:
        return [m for m in self.list_all() if m.created_by == agent_id]

    def list_shared(self) -> List[ToolManifest]:
        return [m for m in self.list_all() if m.shared]

    def exists(self, tool_name: str) -> bool:
        try:
            self.get(tool_name)
        except NotFound:
            return False
        return True


class InMemoryManifestStore(ManifestStore):
    """
    Process-local manifest store

    Manifests are immutable, so readers always see a whole manifest. The
    guard lock only protects the dict itself and is never held while a
    mutator runs.
    """

    def __init__(self):
        self._manifests: Dict[str, ToolManifest] = {}
        self._guard = threading.Lock()
        self._locks = KeyedLocks()

    def put(self, manifest: ToolManifest) -> ToolManifest:
        check_new(manifest)
        with self._guard:
            if manifest.tool_name in self._manifests:
                raise DuplicateToolName(manifest.tool_name)
            self._manifests[manifest.tool_name] = manifest

        logger.debug(f"Registered manifest: {manifest.tool_name} (created_by={manifest.created_by})")
        return manifest

    def get(self, tool_name: str) -> ToolManifest:
        with self._guard:
            manifest = self._manifests.get(tool_name)
        if manifest is None:
            raise NotFound(tool_name)
        return manifest

    def update(self, tool_name: str, mutator: ManifestMutator) -> ToolManifest:
        with self._locks.hold(tool_name):
            current = self.get(tool_name)
            updated = check_update(current, mutator(current))
            with self._guard:
                self._manifests[tool_name] = updated
        return updated

    def list_all(self) -> List[ToolManifest]:
        with self._guard:
            manifests = list(self._manifests.values())
        return sorted(manifests, key=manifest_sort_key)

    def snapshot(self) -> ManifestSnapshot:
        return ManifestSnapshot(manifests=self.list_all())

    def __len__(self) -> int:
        return len(self._manifests)
