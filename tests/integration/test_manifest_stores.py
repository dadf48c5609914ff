"""Behaviour every manifest store backend must share."""
import pytest

from toolpool.domain.tools.errors import DuplicateToolName, InvalidManifestUpdate, NotFound


@pytest.fixture(params=["memory_store", "sql_store", "json_store"])
def store(request):
    return request.getfixturevalue(request.param)


def test_put_then_get(store, make_manifest):
    manifest = make_manifest("convert_temp_1_aa", description="Celsius to Fahrenheit")

    store.put(manifest)

    assert store.get("convert_temp_1_aa") == manifest
    assert store.exists("convert_temp_1_aa")


def test_statistics_survive_a_round_trip(store, make_manifest, seed):
    manifest = make_manifest("convert_temp_1_aa", successes=2, failures=1, description="Celsius to Fahrenheit")

    seed(store, manifest)

    assert store.get("convert_temp_1_aa") == manifest


@pytest.mark.parametrize(
    "fields",
    [
        {"successes": 1},
        {"failures": 2},
        {"successes": 3, "shared": True},
    ],
)
def test_put_rejects_manifests_with_history(store, make_manifest, fields):
    """Test that counters and sharing only come from updates, never from put."""
    with pytest.raises(InvalidManifestUpdate):
        store.put(make_manifest("convert_temp_1_aa", **fields))

    assert not store.exists("convert_temp_1_aa")


def test_duplicate_name_rejected(store, make_manifest):
    store.put(make_manifest("convert_temp_1_aa"))

    with pytest.raises(DuplicateToolName):
        store.put(make_manifest("convert_temp_1_aa", created_by="agent-b"))

    assert store.get("convert_temp_1_aa").created_by == "agent-a"


def test_get_unknown(store):
    with pytest.raises(NotFound):
        store.get("convert_temp_1_aa")
    assert not store.exists("convert_temp_1_aa")


def test_update_applies_mutator(store, make_manifest, seed):
    seed(store, make_manifest("convert_temp_1_aa", successes=2))

    updated = store.update("convert_temp_1_aa", lambda m: m.with_outcome(True).promote())

    assert updated.usage_count == 3
    assert updated.shared is True
    assert store.get("convert_temp_1_aa") == updated


def test_update_unknown(store):
    with pytest.raises(NotFound):
        store.update("convert_temp_1_aa", lambda m: m.with_outcome(True))


def test_rejected_update_is_not_written(store, make_manifest, seed):
    original = seed(store, make_manifest("convert_temp_1_aa", successes=3, shared=True))

    with pytest.raises(InvalidManifestUpdate):
        store.update(
            "convert_temp_1_aa",
            lambda m: m.model_copy(update={"shared": False, "promoted_at": None}),
        )

    assert store.get("convert_temp_1_aa") == original


def test_listing_order_and_filters(store, make_manifest, seed):
    store.put(make_manifest("sort_numbers_3_cc", created_by="agent-b", age=20))
    seed(store, make_manifest("calc_discount_2_bb", created_by="agent-a", successes=3, shared=True, age=10))
    store.put(make_manifest("convert_temp_1_aa", created_by="agent-a", age=10))

    # Equal creation times fall back to the name
    assert [m.tool_name for m in store.list_all()] == [
        "calc_discount_2_bb",
        "convert_temp_1_aa",
        "sort_numbers_3_cc",
    ]
    assert [m.tool_name for m in store.list_by_creator("agent-a")] == [
        "calc_discount_2_bb",
        "convert_temp_1_aa",
    ]
    assert [m.tool_name for m in store.list_shared()] == ["calc_discount_2_bb"]


def test_list_all_is_idempotent(store, make_manifest, seed):
    seed(store, make_manifest("convert_temp_1_aa", successes=1))
    store.put(make_manifest("sort_numbers_3_cc", age=1))

    assert store.list_all() == store.list_all()
    assert store.snapshot().manifests == store.list_all()
