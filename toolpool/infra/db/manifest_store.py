"""
SQL-backed manifest store

One row per tool in ``tool_manifests``. Updates take the per-key lock for
this process and ``SELECT ... FOR UPDATE`` on the row, so writers in other
processes are serialized by the database on backends that support row locks.
"""

import logging
import threading
from contextlib import contextmanager, nullcontext
from typing import Iterator, List

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, select

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
)
from toolpool.infra.db.connection import create_db_engine
from toolpool.infra.db.models import ToolManifestRecord

logger = logging.getLogger(__name__)


class SqlManifestStore(ManifestStore):
    """
    Manifest store on any SQLAlchemy-supported database

    Usage:
        store = SqlManifestStore.from_url("postgresql://...")
        store.put(ToolManifest.new("convert_temp_1755608867746_19bf163d", "agent-a"))
    """

    def __init__(self, engine: Engine, create_tables: bool = True):
        self.engine = engine
        self._locks = KeyedLocks()
        # One shared connection (in-memory SQLite): sessions must not overlap
        self._connection_lock = threading.Lock() if isinstance(engine.pool, StaticPool) else None

        if create_tables:
            SQLModel.metadata.create_all(engine, tables=[ToolManifestRecord.__table__])

    @classmethod
    def from_url(cls, database_url: str, create_tables: bool = True, echo: bool = False) -> "SqlManifestStore":
        try:
            return cls(create_db_engine(database_url, echo=echo), create_tables=create_tables)
        except SQLAlchemyError as e:
            raise ManifestSourceError(f"Cannot open manifest database: {e}") from e

    def put(self, manifest: ToolManifest) -> ToolManifest:
        check_new(manifest)
        with self._session() as session:
            if session.get(ToolManifestRecord, manifest.tool_name) is not None:
                raise DuplicateToolName(manifest.tool_name)

            session.add(ToolManifestRecord.from_manifest(manifest))
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise DuplicateToolName(manifest.tool_name) from e

        logger.debug(f"Registered manifest: {manifest.tool_name} (created_by={manifest.created_by})")
        return manifest

    def get(self, tool_name: str) -> ToolManifest:
        with self._session() as session:
            record = session.get(ToolManifestRecord, tool_name)
            if record is None:
                raise NotFound(tool_name)
            return record.to_manifest()

    def update(self, tool_name: str, mutator: ManifestMutator) -> ToolManifest:
        with self._locks.hold(tool_name):
            with self._session() as session:
                statement = (
                    select(ToolManifestRecord)
                    .where(ToolManifestRecord.tool_name == tool_name)
                    .with_for_update()
                )
                record = session.exec(statement).first()
                if record is None:
                    raise NotFound(tool_name)

                current = record.to_manifest()
                updated = check_update(current, mutator(current))

                record.apply(updated)
                session.add(record)
                session.commit()

        return updated

    def list_all(self) -> List[ToolManifest]:
        return [record.to_manifest() for record in self._fetch(self._ordered())]

    def list_by_creator(self, agent_id: str) -> List[ToolManifest]:
        statement = self._ordered().where(ToolManifestRecord.created_by == agent_id)
        return [record.to_manifest() for record in self._fetch(statement)]

    def list_shared(self) -> List[ToolManifest]:
        statement = self._ordered().where(ToolManifestRecord.shared == True)  # noqa: E712
        return [record.to_manifest() for record in self._fetch(statement)]

    def snapshot(self) -> ManifestSnapshot:
        snapshot = ManifestSnapshot()
        for record in self._fetch(self._ordered()):
            try:
                snapshot.manifests.append(record.to_manifest())
            except MalformedManifest as e:
                logger.warning(f"Skipping malformed manifest row: {e}")
                snapshot.skipped += 1
                snapshot.skipped_sources.append(record.tool_name)
        return snapshot

    @contextmanager
    def _session(self) -> Iterator[Session]:
        with self._connection_lock or nullcontext():
            with Session(self.engine) as session:
                yield session

    def _ordered(self):
        return select(ToolManifestRecord).order_by(
            ToolManifestRecord.created_at, ToolManifestRecord.tool_name
        )

    def _fetch(self, statement) -> List[ToolManifestRecord]:
        try:
            with self._session() as session:
                return list(session.exec(statement).all())
        except SQLAlchemyError as e:
            raise ManifestSourceError(f"Cannot read tool manifests from database: {e}") from e
