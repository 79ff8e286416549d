"""
Trash engine: moves objects between live keys and trash keys.

The store has no rename, so every move is get + put + delete. The put
always happens before the delete: a failure between the two leaves a
duplicate object rather than a lost one.
"""
import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from imagehost.core import keys as keyspace
from imagehost.core.exceptions import ObjectNotFoundError, TargetExistsError
from imagehost.services.storage.base import BlobStore
from imagehost.utils.timestamps import isoformat_z, key_suffix, utc_now

logger = logging.getLogger(__name__)

# Upper bound on counter suffixes tried after a timestamp-suffixed key also collides
MAX_COLLISION_ATTEMPTS = 50


class TrashAction(str, enum.Enum):
    moved = "moved"
    deleted = "deleted"
    missing = "missing"
    restored = "restored"
    not_trash = "not_trash"


@dataclass
class TrashResult:
    action: TrashAction
    from_key: str
    to_key: Optional[str] = None
    original: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"action": self.action.value, "from": self.from_key}
        if self.to_key is not None:
            data["to"] = self.to_key
        if self.original is not None:
            data["original"] = self.original
        return data


class TrashService:
    """Soft delete, permanent delete, restore and plain moves on a blob store."""

    def __init__(self, store: BlobStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self._clock = clock

    def _first_free_key(self, primary: str, suffixed: Callable[[str], str]) -> str:
        """
        Pick the primary key, or a timestamp-suffixed variant if it is taken.

        A second collision (same key trashed twice within one millisecond)
        falls back to a counter on the suffixed key.
        """
        if self.store.head(primary) is None:
            return primary
        candidate = suffixed(key_suffix(self._clock()))
        if self.store.head(candidate) is None:
            return candidate
        for counter in range(2, MAX_COLLISION_ATTEMPTS + 2):
            numbered = keyspace.with_counter(candidate, counter)
            if self.store.head(numbered) is None:
                return numbered
        raise TargetExistsError(candidate)

    def move_object(self, source: str, target: str, custom_metadata: Optional[Dict[str, str]] = None) -> None:
        """
        Copy source to target with its content type and metadata, then delete source.

        Args:
            source: Existing key
            target: Destination key (caller checks it is free)
            custom_metadata: Replacement user metadata; defaults to the source's

        Raises:
            ObjectNotFoundError: If source does not exist
        """
        obj = self.store.get(source)
        if obj is None:
            raise ObjectNotFoundError(source)
        self.store.put(
            target,
            obj.body,
            content_type=obj.content_type,
            custom_metadata=obj.custom_metadata if custom_metadata is None else custom_metadata,
        )
        self.store.delete(source)
        logger.info(f"Moved object: {source} -> {target}")

    def move_to_trash(self, key: str) -> TrashResult:
        """
        Move a live object to the trash, or permanently delete a trashed one.

        Returns:
            TrashResult with action moved, deleted or missing
        """
        normalized = keyspace.clean_key(key)
        if not normalized:
            return TrashResult(action=TrashAction.missing, from_key=normalized)

        if keyspace.is_trash_key(normalized):
            trashed = self.store.get(normalized)
            if trashed is None:
                return TrashResult(action=TrashAction.missing, from_key=normalized)
            self.store.delete(normalized)
            logger.info(f"Permanently deleted: {normalized}")
            return TrashResult(
                action=TrashAction.deleted,
                from_key=normalized,
                original=self._original_key(normalized, trashed.custom_metadata),
            )

        obj = self.store.get(normalized)
        if obj is None:
            return TrashResult(action=TrashAction.missing, from_key=normalized)

        target = self._first_free_key(
            keyspace.build_trash_key(normalized),
            lambda suffix: keyspace.build_trash_key(normalized, suffix),
        )
        metadata = dict(obj.custom_metadata)
        metadata[keyspace.TRASH_ORIGINAL_KEY_ATTR] = normalized
        metadata[keyspace.TRASH_DELETED_AT_ATTR] = isoformat_z(self._clock())

        self.store.put(target, obj.body, content_type=obj.content_type, custom_metadata=metadata)
        self.store.delete(normalized)
        logger.info(f"Moved to trash: {normalized} -> {target}")
        return TrashResult(action=TrashAction.moved, from_key=normalized, to_key=target)

    def _original_key(self, trash_key: str, custom_metadata: Dict[str, str]) -> str:
        stored = custom_metadata.get(keyspace.TRASH_ORIGINAL_KEY_ATTR)
        if stored:
            check = keyspace.ensure_safe_object_key(stored)
            if check.ok and not keyspace.is_trash_key(check.key):
                return check.key
            logger.warning(f"Ignoring unsafe original key {stored!r} on {trash_key}")
        return keyspace.derive_original_key(trash_key)

    def restore_from_trash(self, key: str) -> TrashResult:
        """
        Move a trashed object back to its original key.

        Returns:
            TrashResult with action restored, missing or not_trash
        """
        normalized = keyspace.clean_key(key)
        if not keyspace.is_trash_key(normalized):
            return TrashResult(action=TrashAction.not_trash, from_key=normalized)

        obj = self.store.get(normalized)
        if obj is None:
            return TrashResult(action=TrashAction.missing, from_key=normalized)

        original = self._original_key(normalized, obj.custom_metadata)
        target = self._first_free_key(
            keyspace.build_restore_key(original),
            lambda suffix: keyspace.build_restore_key(original, suffix),
        )
        metadata = {
            name: value
            for name, value in obj.custom_metadata.items()
            if name not in (keyspace.TRASH_ORIGINAL_KEY_ATTR, keyspace.TRASH_DELETED_AT_ATTR)
        }

        self.store.put(target, obj.body, content_type=obj.content_type, custom_metadata=metadata)
        self.store.delete(normalized)
        logger.info(f"Restored from trash: {normalized} -> {target}")
        return TrashResult(action=TrashAction.restored, from_key=normalized, to_key=target, original=original)
