"""
Metadata document repository.

Typed read/normalize/write access to the JSON side documents kept in the
same bucket as the images, with an optimistic version guard on write.

The blob store has no compare-and-swap, so the guard is a re-read of the
stored version immediately before the put. Writers in this process are
serialized per document by a lock; writers in other processes can still
race inside the window between the guard read and the put.
"""
import json
import logging
import math
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional, Type, TypeVar

from imagehost.core.exceptions import VersionConflictError
from imagehost.schemas.meta import (
    FolderMeta,
    HashMeta,
    HashMetaEntry,
    ImageMeta,
    ImageMetaEntry,
    MaintenanceMeta,
    MetaDocument,
    ShareMeta,
    ShareMetaEntry,
)
from imagehost.services.storage.base import BlobStore, ObjectInfo
from imagehost.utils.timestamps import isoformat_z, utc_now

logger = logging.getLogger(__name__)

DocType = TypeVar("DocType", bound=MetaDocument)

MIN_PAGE_SIZE = 1
MAX_PAGE_SIZE = 1000


# ---------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------

def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_string(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _as_string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def _finite_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _version(data: Dict[str, Any]) -> int:
    number = _finite_number(data.get("version"))
    return max(1, int(number)) if number is not None else 1


def _envelope(data: Dict[str, Any], now: str) -> Dict[str, Any]:
    return {"version": _version(data), "updated_at": _as_string(data.get("updatedAt")) or now}


def normalize_image_meta(raw: Any, now: str = "") -> ImageMeta:
    data = _as_dict(raw)
    images = {}
    for key, value in _as_dict(data.get("images")).items():
        entry = _as_dict(value)
        images[key] = ImageMetaEntry(tags=_as_string_list(entry.get("tags")), favorite=bool(entry.get("favorite")))
    meta = ImageMeta(images=images, **_envelope(data, now))
    meta.prune()
    return meta


def normalize_hash_meta(raw: Any, now: str = "") -> HashMeta:
    data = _as_dict(raw)
    hashes = {}
    for key, value in _as_dict(data.get("hashes")).items():
        entry = _as_dict(value)
        size = _finite_number(entry.get("size"))
        hashes[key] = HashMetaEntry(
            hash=_as_string(entry.get("hash")),
            size=max(0, int(size)) if size is not None else None,
            uploaded_at=_as_string(entry.get("uploadedAt")) or None,
        )
    return HashMeta(hashes=hashes, **_envelope(data, now))


def normalize_share_meta(raw: Any, now: str = "") -> ShareMeta:
    data = _as_dict(raw)
    shares = {}
    for share_id, value in _as_dict(data.get("shares")).items():
        entry = _as_dict(value)
        shares[share_id] = ShareMetaEntry(
            id=_as_string(entry.get("id")) or share_id,
            title=_as_string(entry.get("title")),
            description=_as_string(entry.get("description")),
            items=_as_string_list(entry.get("items")),
            created_at=_as_string(entry.get("createdAt")),
            updated_at=_as_string(entry.get("updatedAt")),
            password_hash=_as_string(entry.get("passwordHash")) or None,
            password_salt=_as_string(entry.get("passwordSalt")) or None,
            domain=_as_string(entry.get("domain")),
            folder=_as_string(entry.get("folder")) or None,
        )
    return ShareMeta(shares=shares, **_envelope(data, now))


def normalize_folder_meta(raw: Any, now: str = "") -> FolderMeta:
    data = _as_dict(raw)
    return FolderMeta(folders=_as_string_list(data.get("folders")), **_envelope(data, now))


def normalize_maintenance_meta(raw: Any, now: str = "") -> MaintenanceMeta:
    data = _as_dict(raw)
    last_runs = {
        job: stamp
        for job, stamp in _as_dict(data.get("lastRuns")).items()
        if isinstance(stamp, str) and stamp
    }
    return MaintenanceMeta(last_runs=last_runs, **_envelope(data, now))


_NORMALIZERS: Dict[Type[MetaDocument], Callable[[Any, str], MetaDocument]] = {
    ImageMeta: normalize_image_meta,
    HashMeta: normalize_hash_meta,
    ShareMeta: normalize_share_meta,
    FolderMeta: normalize_folder_meta,
    MaintenanceMeta: normalize_maintenance_meta,
}


# ---------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------

@dataclass
class DocumentEdit:
    """In-memory document handed out by MetadataStore.edit()."""
    doc: Any
    changed: bool = False
    saved: bool = False

    def mark_changed(self) -> None:
        self.changed = True


@dataclass
class ObjectPage:
    objects: List[ObjectInfo]
    cursor: Optional[str]
    has_more: bool


class MetadataStore:
    """Reads, normalizes and version-guards the metadata documents."""

    def __init__(self, store: BlobStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self._clock = clock
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, key: str) -> threading.RLock:
        with self._locks_guard:
            if key not in self._locks:
                self._locks[key] = threading.RLock()
            return self._locks[key]

    def _now(self) -> str:
        return isoformat_z(self._clock())

    def get(self, doc_type: Type[DocType]) -> DocType:
        """
        Read a document, falling back to an empty version-1 document.

        Missing and unparsable blobs both yield the empty document. Store
        failures propagate as StoreUnavailableError.
        """
        key = doc_type.BLOB_KEY
        normalize = _NORMALIZERS[doc_type]
        obj = self.store.get(key)
        if obj is None:
            return normalize({}, self._now())
        try:
            raw = json.loads(obj.text())
        except (ValueError, UnicodeDecodeError) as e:
            logger.warning(f"Unparsable metadata document {key}, using empty document: {e}")
            return normalize({}, self._now())
        return normalize(raw, self._now())

    def save(self, doc: MetaDocument) -> None:
        """
        Write a document through the version guard.

        Raises:
            VersionConflictError: If the stored version is newer than doc.version
        """
        key = doc.BLOB_KEY
        with self._lock_for(key):
            current = self.get(type(doc)).version
            if doc.version < current:
                logger.warning(f"Version conflict on {key}: have {doc.version}, stored {current}")
                raise VersionConflictError(key)

            if isinstance(doc, ImageMeta):
                doc.prune()
            doc.version = current + 1
            doc.updated_at = self._now()
            payload = json.dumps(doc.model_dump(by_alias=True), ensure_ascii=False)
            self.store.put(key, payload.encode("utf-8"), content_type="application/json")
            logger.debug(f"Saved {key} at version {doc.version}")

    @contextmanager
    def edit(self, doc_type: Type[DocType]) -> Iterator[DocumentEdit]:
        """
        Read-modify-write a document under its lock.

        The document is written back only if the caller marked it changed,
        so no-op edits do not bump the version.
        """
        with self._lock_for(doc_type.BLOB_KEY):
            session = DocumentEdit(doc=self.get(doc_type))
            yield session
            if session.changed:
                self.save(session.doc)
                session.saved = True

    # Named accessors, one pair per document

    def get_image_meta(self) -> ImageMeta:
        return self.get(ImageMeta)

    def save_image_meta(self, meta: ImageMeta) -> None:
        self.save(meta)

    def get_hash_meta(self) -> HashMeta:
        return self.get(HashMeta)

    def save_hash_meta(self, meta: HashMeta) -> None:
        self.save(meta)

    def get_share_meta(self) -> ShareMeta:
        return self.get(ShareMeta)

    def save_share_meta(self, meta: ShareMeta) -> None:
        self.save(meta)

    def get_folder_meta(self) -> FolderMeta:
        return self.get(FolderMeta)

    def save_folder_meta(self, meta: FolderMeta) -> None:
        self.save(meta)

    def get_maintenance_meta(self) -> MaintenanceMeta:
        return self.get(MaintenanceMeta)

    def save_maintenance_meta(self, meta: MaintenanceMeta) -> None:
        self.save(meta)

    # Listing helpers

    def list_all_objects(self, prefix: str = "") -> List[ObjectInfo]:
        """Page through everything under a prefix."""
        objects: List[ObjectInfo] = []
        cursor = None
        while True:
            page = self.store.list(prefix=prefix, cursor=cursor, limit=MAX_PAGE_SIZE)
            objects.extend(page.objects)
            if not page.truncated or not page.cursor:
                break
            cursor = page.cursor
        return objects

    def list_objects_page(self, prefix: str = "", cursor: Optional[str] = None, limit: Any = 100) -> ObjectPage:
        """One page for interactive browsing; limit is clamped to [1, 1000]."""
        number = _finite_number(limit)
        safe_limit = int(number) if number else 100
        safe_limit = max(MIN_PAGE_SIZE, min(safe_limit, MAX_PAGE_SIZE))
        page = self.store.list(prefix=prefix, cursor=cursor or None, limit=safe_limit)
        return ObjectPage(
            objects=list(page.objects),
            cursor=page.cursor if page.truncated else None,
            has_more=bool(page.truncated),
        )
