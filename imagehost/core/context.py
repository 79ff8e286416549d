"""Explicit per-application context passed to every lifecycle function."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from imagehost.repositories.meta_repo import MetadataStore
from imagehost.services.storage.base import BlobStore
from imagehost.utils.timestamps import utc_now


@dataclass
class StoreContext:
    """
    Blob store handle plus the metadata repository built on top of it.

    The metadata store carries the per-document write locks, so one context
    should be shared by all requests of a process.
    """
    store: BlobStore
    clock: Callable[[], datetime] = utc_now
    meta: Optional[MetadataStore] = field(default=None)

    def __post_init__(self):
        if self.meta is None:
            self.meta = MetadataStore(self.store, clock=self.clock)
