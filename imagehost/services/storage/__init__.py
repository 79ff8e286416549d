"""
Blob store backends.

`S3BlobStore` lives in `imagehost.services.storage.s3` and is imported on
demand so the in-memory backend works without boto3 configured.
"""

from .base import BlobStore, ListPage, ObjectInfo, StoredObject
from .memory import MemoryBlobStore

__all__ = [
    "BlobStore",
    "ListPage",
    "ObjectInfo",
    "StoredObject",
    "MemoryBlobStore",
]
