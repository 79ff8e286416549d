"""Batch operation result schemas."""
import enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ItemStatus(str, enum.Enum):
    """Per-item outcome of a batch operation."""
    pending = "pending"
    success = "success"
    failed = "failed"
    skipped = "skipped"


class MetadataStatus(str, enum.Enum):
    """Outcome of one metadata document cascade step."""
    saved = "saved"
    unchanged = "unchanged"
    failed = "failed"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ItemResult(CamelModel):
    key: str
    status: ItemStatus
    error: Optional[str] = None
    data: Optional[dict[str, Any]] = None


class MetadataOutcome(CamelModel):
    """Result of writing one metadata document after the object-store actions."""
    document: str
    status: MetadataStatus
    error: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.status == MetadataStatus.failed


class OperationResult(CamelModel):
    operation_id: str
    ok: bool
    total: int
    succeeded: int
    failed: int
    skipped: int
    details: list[ItemResult] = Field(default_factory=list)
    retryable: list[str] = Field(default_factory=list)
    duration_ms: int = 0


class LegacyError(BaseModel):
    """{from, to, error} entry kept for older move/rename clients."""
    model_config = ConfigDict(populate_by_name=True)

    from_key: str = Field(alias="from")
    to_key: Optional[str] = Field(default=None, alias="to")
    error: str


class CascadeResult(OperationResult):
    """Operation result plus metadata outcomes and legacy summary counters."""
    metadata: list[MetadataOutcome] = Field(default_factory=list)
    errors: list[LegacyError] = Field(default_factory=list)

    trashed: Optional[int] = None
    deleted: Optional[int] = None
    restored: Optional[int] = None
    moved: Optional[int] = None
    renamed: Optional[int] = None
    updated: Optional[int] = None

    @property
    def metadata_degraded(self) -> bool:
        return any(outcome.degraded for outcome in self.metadata)
