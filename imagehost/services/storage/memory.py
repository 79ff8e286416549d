"""In-process blob store for local development and tests."""
import logging
import threading
from typing import Iterable, List, Optional, Union

from imagehost.services.storage.base import ListPage, ObjectInfo, StoredObject
from imagehost.utils.timestamps import utc_now

logger = logging.getLogger(__name__)


class MemoryBlobStore:
    """Dictionary-backed BlobStore. Listing is lexicographic; the cursor is the last key returned."""

    def __init__(self):
        self._objects: dict[str, StoredObject] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[StoredObject]:
        with self._lock:
            obj = self._objects.get(key)
            if obj is None:
                return None
            return StoredObject(
                key=obj.key,
                body=obj.body,
                content_type=obj.content_type,
                custom_metadata=dict(obj.custom_metadata),
                size=obj.size,
                uploaded=obj.uploaded,
            )

    def head(self, key: str) -> Optional[ObjectInfo]:
        with self._lock:
            obj = self._objects.get(key)
            if obj is None:
                return None
            return ObjectInfo(key=obj.key, size=obj.size, uploaded=obj.uploaded)

    def put(
        self,
        key: str,
        body: bytes,
        content_type: Optional[str] = None,
        custom_metadata: Optional[dict[str, str]] = None,
    ) -> None:
        if isinstance(body, str):
            body = body.encode("utf-8")
        with self._lock:
            self._objects[key] = StoredObject(
                key=key,
                body=bytes(body),
                content_type=content_type,
                custom_metadata=dict(custom_metadata or {}),
                size=len(body),
                uploaded=utc_now(),
            )
        logger.debug(f"Stored {len(body)} bytes at: {key}")

    def delete(self, keys: Union[str, Iterable[str]]) -> None:
        if isinstance(keys, str):
            keys = [keys]
        with self._lock:
            for key in keys:
                self._objects.pop(key, None)

    def list(self, prefix: str = "", cursor: Optional[str] = None, limit: int = 1000) -> ListPage:
        with self._lock:
            keys = sorted(key for key in self._objects if key.startswith(prefix))
            if cursor:
                keys = [key for key in keys if key > cursor]
            page = keys[:limit]
            objects = [
                ObjectInfo(key=key, size=self._objects[key].size, uploaded=self._objects[key].uploaded)
                for key in page
            ]
        truncated = len(keys) > limit
        return ListPage(objects=objects, truncated=truncated, cursor=page[-1] if truncated else None)

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._objects)
