"""
Tool manifests and result envelopes

A manifest is the registry's record of one synthesized tool instance: who
created it, when, and how it has performed. The persisted shape is camelCase
JSON so manifests written by other tooling (including the legacy generator
layout) can be read back.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from toolpool.domain.tools.errors import MalformedManifest
from toolpool.domain.tools.naming import canonical_type

TOOL_NAME_PATTERN = r"^[A-Za-z0-9_]+$"

# Legacy generator keys -> current persisted keys
_LEGACY_KEYS = {
    "filePath": "codeRef",
    "hash": "codeHash",
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ToolManifest(BaseModel):
    """Identity, ownership and usage statistics of one tool instance"""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    tool_name: str = Field(min_length=1, pattern=TOOL_NAME_PATTERN)
    created_by: str = Field(min_length=1)
    created_at: datetime
    code_ref: Optional[str] = None
    description: Optional[str] = None
    code_hash: Optional[str] = None
    usage_count: int = Field(default=0, ge=0)
    success_count: int = Field(default=0, ge=0)
    failure_count: int = Field(default=0, ge=0)
    shared: bool = False
    promoted_at: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def _accept_legacy_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        data = dict(data)
        for legacy, current in _LEGACY_KEYS.items():
            if legacy in data and current not in data:
                data[current] = data.pop(legacy)

        request = data.pop("originalRequest", None)
        if isinstance(request, dict) and "description" not in data:
            data["description"] = request.get("taskDescription")

        return data

    @field_validator("created_at", "promoted_at")
    @classmethod
    def _normalize_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @model_validator(mode="after")
    def _check_counters(self) -> "ToolManifest":
        if self.usage_count != self.success_count + self.failure_count:
            raise ValueError(
                f"usageCount ({self.usage_count}) must equal successCount + failureCount "
                f"({self.success_count} + {self.failure_count})"
            )
        if self.promoted_at is not None and not self.shared:
            raise ValueError("promotedAt is set on a manifest that is not shared")
        return self

    @property
    def tool_type(self) -> str:
        """Canonical type, derived from the tool name"""
        return canonical_type(self.tool_name)

    @property
    def success_rate(self) -> Optional[float]:
        """Fraction of successful invocations, None when never used"""
        if self.usage_count == 0:
            return None
        return self.success_count * 1.0 / self.usage_count

    @classmethod
    def new(
        cls,
        tool_name: str,
        created_by: str,
        code_ref: Optional[str] = None,
        description: Optional[str] = None,
        code_hash: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> "ToolManifest":
        """Manifest for a freshly registered tool: zero counters, not shared"""
        return cls(
            tool_name=tool_name,
            created_by=created_by,
            created_at=created_at or utcnow(),
            code_ref=code_ref,
            description=description,
            code_hash=code_hash,
        )

    def with_outcome(self, succeeded: bool) -> "ToolManifest":
        """Copy with one more invocation counted"""
        update = {"usage_count": self.usage_count + 1}
        if succeeded:
            update["success_count"] = self.success_count + 1
        else:
            update["failure_count"] = self.failure_count + 1
        return self.model_copy(update=update)

    def promote(self, at: Optional[datetime] = None) -> "ToolManifest":
        """Copy marked as shared. Promoting a shared manifest is a no-op."""
        if self.shared:
            return self
        return self.model_copy(update={"shared": True, "promoted_at": at or utcnow()})

    def to_persisted(self) -> Dict[str, Any]:
        """Persisted JSON shape, including the derived toolType"""
        data = self.model_dump(mode="json", by_alias=True)
        data["toolType"] = self.tool_type
        return data

    @classmethod
    def from_persisted(cls, data: Any, source: Optional[str] = None) -> "ToolManifest":
        """
        Validate a persisted record

        Raises:
            MalformedManifest: If the record fails schema validation
        """
        if not isinstance(data, Mapping):
            raise MalformedManifest(source or "<unknown>", "record is not a JSON object")

        data = dict(data)
        data.pop("toolType", None)

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            label = source or str(data.get("toolName", "<unknown>"))
            reason = "; ".join(
                f"{'.'.join(str(part) for part in error['loc']) or 'manifest'}: {error['msg']}"
                for error in e.errors()
            )
            raise MalformedManifest(label, reason) from e


class ResultEnvelope(BaseModel):
    """Standardized result of a tool invocation

    Tools may attach extra metadata fields next to success/result/error.
    """

    model_config = ConfigDict(extra="allow")

    success: bool
    result: Any = None
    error: Optional[str] = None
    tool_name: Optional[str] = None
    execution_time_ms: Optional[float] = None

    @classmethod
    def failure(cls, error: str, **metadata: Any) -> "ResultEnvelope":
        return cls(success=False, error=error, **metadata)

    @classmethod
    def from_raw(cls, raw: Any) -> "ResultEnvelope":
        """
        Coerce whatever a tool body returned into an envelope

        Accepts an envelope, a mapping or a JSON string. Anything without a
        boolean ``success`` field is a failure: the outcome must be declared,
        not inferred from the body returning normally.
        """
        if isinstance(raw, ResultEnvelope):
            return raw

        if isinstance(raw, (str, bytes)):
            try:
                raw = json.loads(raw)
            except ValueError:
                return cls.failure("Tool returned a non-JSON string instead of a result envelope")

        if not isinstance(raw, Mapping):
            return cls.failure(
                f"Tool returned {type(raw).__name__} instead of a result envelope"
            )

        if not isinstance(raw.get("success"), bool):
            return cls.failure("Result envelope is missing a boolean 'success' field")

        try:
            return cls.model_validate(dict(raw))
        except ValidationError as e:
            return cls.failure(f"Malformed result envelope: {e.error_count()} validation error(s)")
