"""Tests for the SQL manifest store."""
from datetime import timezone

import pytest
from sqlmodel import Session, select

from toolpool.domain.tools.errors import MalformedManifest, ManifestSourceError
from toolpool.infra.db.connection import create_db_engine
from toolpool.infra.db.manifest_store import SqlManifestStore
from toolpool.infra.db.models import ToolManifestRecord


def test_row_stores_derived_type(sql_store, session, make_manifest):
    sql_store.put(make_manifest("convert_temp_1755608867746_19bf163d"))

    record = session.exec(select(ToolManifestRecord)).one()

    assert record.tool_type == "convert_temp"
    assert record.created_by == "agent-a"


def test_timestamps_come_back_as_utc(sql_store, make_manifest, seed):
    seed(sql_store, make_manifest("convert_temp_1_aa", successes=3, shared=True))

    manifest = sql_store.get("convert_temp_1_aa")

    assert manifest.created_at.tzinfo == timezone.utc
    assert manifest.promoted_at.tzinfo == timezone.utc


def test_snapshot_skips_malformed_rows(sql_store, session, make_manifest):
    sql_store.put(make_manifest("convert_temp_1_aa"))
    broken = ToolManifestRecord.from_manifest(make_manifest("sort_numbers_2_bb", age=1))
    broken.usage_count = 7
    session.add(broken)
    session.commit()

    snapshot = sql_store.snapshot()

    assert [m.tool_name for m in snapshot.manifests] == ["convert_temp_1_aa"]
    assert snapshot.skipped == 1
    assert snapshot.skipped_sources == ["sort_numbers_2_bb"]
    with pytest.raises(MalformedManifest):
        sql_store.list_all()


def test_missing_table_is_a_source_error():
    store = SqlManifestStore(create_db_engine("sqlite://"), create_tables=False)

    with pytest.raises(ManifestSourceError):
        store.snapshot()


def test_from_url_creates_schema(tmp_path, make_manifest):
    database_url = f"sqlite:///{tmp_path / 'tools.db'}"
    SqlManifestStore.from_url(database_url).put(make_manifest("convert_temp_1_aa"))

    reopened = SqlManifestStore.from_url(database_url, create_tables=False)

    assert [m.tool_name for m in reopened.list_all()] == ["convert_temp_1_aa"]
