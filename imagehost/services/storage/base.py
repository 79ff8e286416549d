"""Blob store contract consumed by the lifecycle and metadata layers."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional, Protocol, Union


@dataclass
class ObjectInfo:
    """Listing / head entry (no body)."""
    key: str
    size: int
    uploaded: Optional[datetime] = None


@dataclass
class StoredObject:
    """Object with its body and side metadata."""
    key: str
    body: bytes
    content_type: Optional[str] = None
    custom_metadata: dict[str, str] = field(default_factory=dict)
    size: int = 0
    uploaded: Optional[datetime] = None

    def text(self, encoding: str = "utf-8") -> str:
        return self.body.decode(encoding)


@dataclass
class ListPage:
    objects: list[ObjectInfo]
    truncated: bool = False
    cursor: Optional[str] = None


class BlobStore(Protocol):
    """
    Key-value blob store.

    get/head return None for a missing key. Transient backend failures
    raise StoreUnavailableError.
    """

    def get(self, key: str) -> Optional[StoredObject]: ...

    def head(self, key: str) -> Optional[ObjectInfo]: ...

    def put(
        self,
        key: str,
        body: bytes,
        content_type: Optional[str] = None,
        custom_metadata: Optional[dict[str, str]] = None,
    ) -> None: ...

    def delete(self, keys: Union[str, Iterable[str]]) -> None: ...

    def list(self, prefix: str = "", cursor: Optional[str] = None, limit: int = 1000) -> ListPage: ...
