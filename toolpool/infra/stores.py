"""Manifest store selection from configuration."""
import logging
from typing import Optional

from toolpool.config import Settings
from toolpool.domain.tools.store import InMemoryManifestStore, ManifestStore
from toolpool.infra.db.manifest_store import SqlManifestStore
from toolpool.infra.files.manifest_store import JsonManifestStore

logger = logging.getLogger(__name__)


def open_manifest_store(
    settings: Optional[Settings] = None,
    manifests_dir: Optional[str] = None,
    database_url: Optional[str] = None,
    create: bool = True,
) -> ManifestStore:
    """
    Open the configured manifest store

    Precedence: explicit directory, explicit database URL, then
    MANIFESTS_DIR and DATABASE_URL from settings. With nothing configured the
    store is in-memory.

    Args:
        settings: Settings to fall back on (default: global settings)
        manifests_dir: Directory of JSON manifests
        database_url: SQLAlchemy database URL
        create: Create the directory or tables if missing. Read-only callers
            pass False so a missing source is reported instead of created.
    """
    if settings is None:
        from toolpool.config import settings

    if manifests_dir is None and database_url is None:
        manifests_dir = settings.manifests_dir
        database_url = settings.database_url

    if manifests_dir is not None:
        logger.info(f"Using JSON manifest store at {manifests_dir}")
        return JsonManifestStore(manifests_dir, create=create)

    if database_url is not None:
        logger.info("Using SQL manifest store")
        return SqlManifestStore.from_url(database_url, create_tables=create)

    logger.info("No manifest source configured, using in-memory store")
    return InMemoryManifestStore()
