"""Database persistence for tool manifests."""

from toolpool.infra.db.manifest_store import SqlManifestStore
from toolpool.infra.db.models import ToolManifestRecord

__all__ = [
    "SqlManifestStore",
    "ToolManifestRecord",
]
