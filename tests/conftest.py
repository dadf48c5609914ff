"""Test configuration and fixtures."""
from datetime import datetime, timedelta, timezone

import pytest
from prometheus_client import CollectorRegistry
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from toolpool.domain.tools.accountant import InvocationAccountant
from toolpool.domain.tools.loader import InMemoryToolLoader
from toolpool.domain.tools.manifest import ToolManifest
from toolpool.domain.tools.policy import PromotionPolicy
from toolpool.domain.tools.resolver import ToolResolver
from toolpool.domain.tools.store import InMemoryManifestStore
from toolpool.infra.db.manifest_store import SqlManifestStore
from toolpool.infra.db.models import ToolManifestRecord  # noqa: F401
from toolpool.infra.files.manifest_store import JsonManifestStore
from toolpool.infra.metrics import MetricsService

BASE_TIME = datetime(2025, 8, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(name="engine")
def engine_fixture():
    """Create test database engine."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(name="session")
def session_fixture(engine):
    """Create test database session."""
    with Session(engine) as session:
        yield session


@pytest.fixture(name="metrics")
def metrics_fixture():
    """Metrics on a private registry so tests don't share counters."""
    return MetricsService(registry=CollectorRegistry())


@pytest.fixture(name="policy")
def policy_fixture():
    return PromotionPolicy(min_usage=3, success_threshold=0.70)


@pytest.fixture(name="memory_store")
def memory_store_fixture():
    return InMemoryManifestStore()


@pytest.fixture(name="sql_store")
def sql_store_fixture(engine):
    return SqlManifestStore(engine)


@pytest.fixture(name="json_store")
def json_store_fixture(tmp_path):
    return JsonManifestStore(tmp_path / "manifests")


@pytest.fixture(name="accountant")
def accountant_fixture(memory_store, policy, metrics):
    return InvocationAccountant(memory_store, policy, metrics=metrics)


@pytest.fixture(name="loader")
def loader_fixture():
    return InMemoryToolLoader()


@pytest.fixture(name="resolver")
def resolver_fixture(memory_store, accountant, loader, metrics):
    return ToolResolver(memory_store, accountant, loader, metrics=metrics)


@pytest.fixture(name="make_manifest")
def make_manifest_fixture():
    """Factory for manifests with given statistics.

    ``age`` is in minutes after a fixed base time, so creation order is
    controlled by the test.
    """

    def make(
        tool_name: str,
        created_by: str = "agent-a",
        successes: int = 0,
        failures: int = 0,
        shared: bool = False,
        age: int = 0,
        **fields,
    ) -> ToolManifest:
        created_at = BASE_TIME + timedelta(minutes=age)
        return ToolManifest(
            tool_name=tool_name,
            created_by=created_by,
            created_at=created_at,
            usage_count=successes + failures,
            success_count=successes,
            failure_count=failures,
            shared=shared,
            promoted_at=created_at if shared else None,
            **fields,
        )

    return make



@pytest.fixture(name="seed")
def seed_fixture():
    """Store a manifest with statistics the way the registry would.

    ``put`` only takes fresh manifests, so the counters and sharing are
    written through ``update`` afterwards.
    """

    def seed(store, manifest: ToolManifest) -> ToolManifest:
        fresh = manifest.model_copy(
            update={
                "usage_count": 0,
                "success_count": 0,
                "failure_count": 0,
                "shared": False,
                "promoted_at": None,
            }
        )
        store.put(fresh)
        if fresh == manifest:
            return manifest
        return store.update(manifest.tool_name, lambda current: manifest)

    return seed
