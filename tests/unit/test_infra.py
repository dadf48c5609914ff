"""Tests for structured logging and metrics export."""
import io
import json
import logging

from toolpool.infra.logging import (
    CorrelationIdFilter,
    JSONFormatter,
    agent_context,
    get_correlation_id,
    set_correlation_id,
    tool_context,
)


def make_logger(formatter):
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(formatter)

    logger = logging.getLogger("toolpool.tests.logging")
    logger.handlers = [handler]
    logger.propagate = False
    logger.setLevel(logging.INFO)
    return logger, stream


def test_json_log_carries_context_and_extras():
    logger, stream = make_logger(JSONFormatter())
    correlation_id = set_correlation_id()
    assert get_correlation_id() == correlation_id

    with agent_context("agent-a"), tool_context("convert_temp_1_aa"):
        logger.info("Resolved tool", extra={"source": "own"})

    record = json.loads(stream.getvalue())
    assert record["message"] == "Resolved tool"
    assert record["correlation_id"] == correlation_id
    assert record["agent_id"] == "agent-a"
    assert record["tool_name"] == "convert_temp_1_aa"
    assert record["extra"] == {"source": "own"}


def test_explicit_tool_name_wins_over_context():
    logger, stream = make_logger(logging.Formatter("%(agent_id)s %(tool_name)s %(message)s"))

    with tool_context("convert_temp_1_aa"):
        logger.info("Promoted", extra={"tool_name": "sort_numbers_2_bb"})
    logger.info("Outside")

    lines = stream.getvalue().splitlines()
    assert lines[0] == "- sort_numbers_2_bb Promoted"
    assert lines[1] == "- - Outside"


def test_metrics_export(metrics):
    metrics.tool_promotions.labels(tool_type="convert_temp").inc()
    with metrics.track_tool_invocation("convert_temp"):
        pass

    exported = metrics.export_metrics().decode()

    assert 'tool_promotions_total{tool_type="convert_temp"} 1.0' in exported
    assert 'tool_invocation_seconds_count{tool_type="convert_temp"} 1.0' in exported


def test_open_manifest_store_precedence(tmp_path):
    from toolpool.config import Settings
    from toolpool.domain.tools.store import InMemoryManifestStore
    from toolpool.infra.db.manifest_store import SqlManifestStore
    from toolpool.infra.files.manifest_store import JsonManifestStore
    from toolpool.infra.stores import open_manifest_store

    database_url = f"sqlite:///{tmp_path / 'tools.db'}"
    configured = Settings(_env_file=None, manifests_dir=str(tmp_path / "manifests"), database_url=database_url)

    assert isinstance(open_manifest_store(Settings(_env_file=None, manifests_dir=None, database_url=None)), InMemoryManifestStore)
    assert isinstance(open_manifest_store(configured), JsonManifestStore)
    assert isinstance(open_manifest_store(configured, database_url=database_url), SqlManifestStore)
    assert isinstance(open_manifest_store(Settings(_env_file=None, manifests_dir=None, database_url=database_url)), SqlManifestStore)
