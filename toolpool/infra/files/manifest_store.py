"""
File-backed manifest store

One ``<toolName>.json`` file per tool in a manifests directory, in the
persisted camelCase shape. New files are created exclusively (hard link of a
fully written temp file) and updates replace the file atomically, so readers
never see a half-written manifest. Writers hold an exclusive ``flock`` on a
``<toolName>.lock`` file next to the manifest, so stores in other threads
or processes sharing the directory do not lose updates.

Directories written by the legacy generator (``<toolName>_<hash>.json`` files)
can be listed and reported on; lookups and updates use the current layout.
"""

import fcntl
import json
import logging
import os
import re
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Union

from toolpool.domain.tools.errors import (
    DuplicateToolName,
    MalformedManifest,
    ManifestSourceError,
    NotFound,
)
from toolpool.domain.tools.manifest import ToolManifest
from toolpool.domain.tools.store import (
    KeyedLocks,
    ManifestMutator,
    ManifestSnapshot,
    ManifestStore,
    check_new,
    check_update,
    manifest_sort_key,
)

logger = logging.getLogger(__name__)

_FILE_SAFE_NAME = re.compile(r"^[A-Za-z0-9_]+$")


class JsonManifestStore(ManifestStore):
    """
    Manifest store on a directory of JSON files

    Usage:
        store = JsonManifestStore("generated-tools/manifests")
        report = ReuseReporter(store).build_report()
    """

    SUFFIX = ".json"
    LOCK_SUFFIX = ".lock"

    def __init__(self, directory: Union[str, Path], create: bool = True):
        self.directory = Path(directory)
        self._locks = KeyedLocks()

        if create:
            self.directory.mkdir(parents=True, exist_ok=True)

    def put(self, manifest: ToolManifest) -> ToolManifest:
        check_new(manifest)
        path = self._path(manifest.tool_name)
        with self._locked(manifest.tool_name):
            self._write(path, manifest, exclusive=True)

        logger.debug(f"Wrote manifest file: {path}")
        return manifest

    def get(self, tool_name: str) -> ToolManifest:
        if not _FILE_SAFE_NAME.match(tool_name):
            raise NotFound(tool_name)
        return self._read(self._path(tool_name), tool_name)

    def update(self, tool_name: str, mutator: ManifestMutator) -> ToolManifest:
        if not _FILE_SAFE_NAME.match(tool_name):
            raise NotFound(tool_name)

        path = self._path(tool_name)
        with self._locked(tool_name):
            current = self._read(path, tool_name)
            updated = check_update(current, mutator(current))
            self._write(path, updated, exclusive=False)

        return updated

    def list_all(self) -> List[ToolManifest]:
        manifests = [self._read(path) for path in self._manifest_paths()]
        return sorted(manifests, key=manifest_sort_key)

    def snapshot(self) -> ManifestSnapshot:
        snapshot = ManifestSnapshot()
        for path in self._manifest_paths():
            try:
                snapshot.manifests.append(self._read(path))
            except (MalformedManifest, NotFound, ManifestSourceError) as e:
                logger.warning(f"Skipping manifest file {path.name}: {e}")
                snapshot.skipped += 1
                snapshot.skipped_sources.append(path.name)

        snapshot.manifests.sort(key=manifest_sort_key)
        return snapshot

    @contextmanager
    def _locked(self, tool_name: str) -> Iterator[None]:
        with self._locks.hold(tool_name):
            lock_path = self.directory / f"{tool_name}{self.LOCK_SUFFIX}"
            try:
                lock_file = open(lock_path, "a")
            except OSError as e:
                raise ManifestSourceError(f"Cannot lock manifest {tool_name}: {e}") from e

            with lock_file:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
                try:
                    yield
                finally:
                    fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def _path(self, tool_name: str) -> Path:
        return self.directory / f"{tool_name}{self.SUFFIX}"

    def _manifest_paths(self) -> List[Path]:
        if not self.directory.is_dir():
            raise ManifestSourceError(f"Manifests directory not found: {self.directory}")
        try:
            return sorted(self.directory.glob(f"*{self.SUFFIX}"))
        except OSError as e:
            raise ManifestSourceError(f"Cannot list manifests in {self.directory}: {e}") from e

    def _read(self, path: Path, tool_name: Optional[str] = None) -> ToolManifest:
        try:
            with path.open(encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise NotFound(tool_name or path.stem)
        except ValueError as e:
            raise MalformedManifest(path.name, f"invalid JSON: {e}") from e
        except OSError as e:
            raise ManifestSourceError(f"Cannot read manifest {path}: {e}") from e

        manifest = ToolManifest.from_persisted(data, source=path.name)
        if tool_name is not None and manifest.tool_name != tool_name:
            raise MalformedManifest(
                path.name, f"file holds toolName '{manifest.tool_name}', expected '{tool_name}'"
            )
        return manifest

    def _write(self, path: Path, manifest: ToolManifest, exclusive: bool) -> None:
        payload = json.dumps(manifest.to_persisted(), indent=2)

        fd, temp_path = tempfile.mkstemp(
            dir=self.directory, prefix=f".{manifest.tool_name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())

            if exclusive:
                try:
                    os.link(temp_path, path)
                except FileExistsError:
                    raise DuplicateToolName(manifest.tool_name)
            else:
                os.replace(temp_path, path)
        finally:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
