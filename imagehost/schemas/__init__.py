"""
Schemas package.

Metadata documents stored under `.config/` and the result envelopes
returned by batch operations.
"""

from .meta import (
    MetaDocument,
    ImageMeta,
    ImageMetaEntry,
    HashMeta,
    HashMetaEntry,
    ShareMeta,
    ShareMetaEntry,
    FolderMeta,
    MaintenanceMeta,
)
from .operation import (
    ItemStatus,
    MetadataStatus,
    ItemResult,
    MetadataOutcome,
    OperationResult,
    CascadeResult,
    LegacyError,
)

__all__ = [
    "MetaDocument",
    "ImageMeta",
    "ImageMetaEntry",
    "HashMeta",
    "HashMetaEntry",
    "ShareMeta",
    "ShareMetaEntry",
    "FolderMeta",
    "MaintenanceMeta",
    "ItemStatus",
    "MetadataStatus",
    "ItemResult",
    "MetadataOutcome",
    "OperationResult",
    "CascadeResult",
    "LegacyError",
]
