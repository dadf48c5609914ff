"""Tests for update validation and the in-memory manifest store."""
import threading
from datetime import datetime, timezone

import pytest

from toolpool.domain.tools.errors import DuplicateToolName, InvalidManifestUpdate, NotFound
from toolpool.domain.tools.store import KeyedLocks, check_new, check_update


def test_check_update_accepts_outcome_and_promotion(make_manifest):
    current = make_manifest("convert_temp_1_aa", successes=2)
    updated = current.with_outcome(True).promote()

    assert check_update(current, updated) is updated


@pytest.mark.parametrize("field,value", [("created_by", "agent-b"), ("code_ref", "elsewhere.js")])
def test_check_update_rejects_identity_changes(make_manifest, field, value):
    current = make_manifest("convert_temp_1_aa")

    with pytest.raises(InvalidManifestUpdate, match=field):
        check_update(current, current.model_copy(update={field: value}))


def test_check_update_rejects_unsharing(make_manifest):
    current = make_manifest("convert_temp_1_aa", successes=3, shared=True)
    unshared = current.model_copy(update={"shared": False, "promoted_at": None})

    with pytest.raises(InvalidManifestUpdate, match="un-shared"):
        check_update(current, unshared)


def test_check_update_rejects_decreasing_counters(make_manifest):
    current = make_manifest("convert_temp_1_aa", successes=2, failures=1)
    reset = current.model_copy(update={"usage_count": 1, "success_count": 1, "failure_count": 0})

    with pytest.raises(InvalidManifestUpdate, match="cannot decrease"):
        check_update(current, reset)


def test_check_update_rejects_broken_invariant(make_manifest):
    current = make_manifest("convert_temp_1_aa")
    broken = current.model_copy(update={"usage_count": 1})

    with pytest.raises(InvalidManifestUpdate, match="usage_count"):
        check_update(current, broken)


def test_check_update_rejects_non_manifest(make_manifest):
    current = make_manifest("convert_temp_1_aa")

    with pytest.raises(InvalidManifestUpdate):
        check_update(current, None)


def test_check_new_accepts_fresh_manifest(make_manifest):
    manifest = make_manifest("convert_temp_1_aa")

    assert check_new(manifest) is manifest


@pytest.mark.parametrize(
    "fields",
    [
        {"successes": 4},
        {"failures": 1},
        {"shared": True},
    ],
)
def test_check_new_rejects_manifests_with_history(make_manifest, fields):
    with pytest.raises(InvalidManifestUpdate):
        check_new(make_manifest("convert_temp_1_aa", **fields))


def test_check_new_rejects_promotion_timestamp(make_manifest):
    promoted_at = datetime(2025, 8, 19, tzinfo=timezone.utc)
    manifest = make_manifest("convert_temp_1_aa").model_copy(update={"promoted_at": promoted_at})

    with pytest.raises(InvalidManifestUpdate):
        check_new(manifest)


def test_keyed_locks_do_not_block_other_keys():
    """Test that holding one key's lock leaves other keys free."""
    locks = KeyedLocks()
    acquired = threading.Event()

    def take_other_key():
        with locks.hold("sort_numbers_1_aa"):
            acquired.set()

    with locks.hold("convert_temp_1_aa"):
        worker = threading.Thread(target=take_other_key)
        worker.start()
        assert acquired.wait(timeout=5)
        worker.join()


def test_memory_store_put_get(memory_store, make_manifest):
    manifest = make_manifest("convert_temp_1_aa")

    memory_store.put(manifest)

    assert memory_store.get("convert_temp_1_aa") == manifest
    assert len(memory_store) == 1
    assert memory_store.exists("convert_temp_1_aa")
    assert not memory_store.exists("convert_temp_2_bb")


def test_memory_store_rejects_duplicates(memory_store, make_manifest):
    memory_store.put(make_manifest("convert_temp_1_aa"))

    with pytest.raises(DuplicateToolName):
        memory_store.put(make_manifest("convert_temp_1_aa", created_by="agent-b"))

    assert memory_store.get("convert_temp_1_aa").created_by == "agent-a"


def test_memory_store_update_unknown_tool(memory_store):
    with pytest.raises(NotFound):
        memory_store.update("convert_temp_1_aa", lambda m: m.with_outcome(True))


def test_memory_store_rejected_update_leaves_manifest(memory_store, make_manifest, seed):
    seed(memory_store, make_manifest("convert_temp_1_aa", successes=1))

    with pytest.raises(InvalidManifestUpdate):
        memory_store.update(
            "convert_temp_1_aa",
            lambda m: m.model_copy(update={"created_by": "agent-b"}),
        )

    assert memory_store.get("convert_temp_1_aa").created_by == "agent-a"


def test_memory_store_put_rejects_shared_manifest(memory_store, make_manifest):
    with pytest.raises(InvalidManifestUpdate):
        memory_store.put(make_manifest("convert_temp_1_aa", successes=3, shared=True))

    assert len(memory_store) == 0


def test_memory_store_snapshot_has_nothing_skipped(memory_store, make_manifest):
    memory_store.put(make_manifest("convert_temp_1_aa"))

    snapshot = memory_store.snapshot()

    assert [m.tool_name for m in snapshot.manifests] == ["convert_temp_1_aa"]
    assert snapshot.skipped == 0
