"""SQLModel database models for the tool registry."""
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Column, Field, SQLModel, Text

from toolpool.domain.tools.manifest import ToolManifest


class ToolManifestRecord(SQLModel, table=True):
    """One row per synthesized tool instance."""
    __tablename__ = "tool_manifests"

    tool_name: str = Field(primary_key=True)
    tool_type: str = Field(index=True)  # derived, stored for querying only
    created_by: str = Field(index=True)
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False, index=True))

    code_ref: Optional[str] = Field(default=None)
    description: Optional[str] = Field(default=None, sa_column=Column(Text))
    code_hash: Optional[str] = Field(default=None)

    usage_count: int = Field(default=0)
    success_count: int = Field(default=0)
    failure_count: int = Field(default=0)

    shared: bool = Field(default=False, index=True)
    promoted_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True)))

    @classmethod
    def from_manifest(cls, manifest: ToolManifest) -> "ToolManifestRecord":
        return cls(
            tool_name=manifest.tool_name,
            tool_type=manifest.tool_type,
            created_by=manifest.created_by,
            created_at=manifest.created_at,
            code_ref=manifest.code_ref,
            description=manifest.description,
            code_hash=manifest.code_hash,
            usage_count=manifest.usage_count,
            success_count=manifest.success_count,
            failure_count=manifest.failure_count,
            shared=manifest.shared,
            promoted_at=manifest.promoted_at,
        )

    def to_manifest(self) -> ToolManifest:
        """
        Validate the row as a manifest

        Raises:
            MalformedManifest: If the row breaks the manifest schema
        """
        return ToolManifest.from_persisted(
            {
                "tool_name": self.tool_name,
                "created_by": self.created_by,
                "created_at": self.created_at,
                "code_ref": self.code_ref,
                "description": self.description,
                "code_hash": self.code_hash,
                "usage_count": self.usage_count,
                "success_count": self.success_count,
                "failure_count": self.failure_count,
                "shared": self.shared,
                "promoted_at": self.promoted_at,
            },
            source=self.tool_name,
        )

    def apply(self, manifest: ToolManifest) -> None:
        """Copy the mutable fields of an updated manifest onto the row"""
        self.description = manifest.description
        self.code_hash = manifest.code_hash
        self.usage_count = manifest.usage_count
        self.success_count = manifest.success_count
        self.failure_count = manifest.failure_count
        self.shared = manifest.shared
        self.promoted_at = manifest.promoted_at
