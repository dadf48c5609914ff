"""File persistence for tool manifests."""

from toolpool.infra.files.manifest_store import JsonManifestStore

__all__ = [
    "JsonManifestStore",
]
