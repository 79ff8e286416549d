"""
Cascade coordinator for mutating image operations.

Each operation validates its input keys, performs the object-store action
per item (recording the outcome in an OperationTracker), then applies the
resulting key changes to every metadata document that references them,
reading and writing each document once.

Object-store state is authoritative. Metadata documents are a derived
index: a failure while saving one is logged and reported as a
MetadataOutcome on the result, never as a failure of the items.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple, Type, Union

from imagehost.core import keys as keyspace
from imagehost.core.context import StoreContext
from imagehost.core.exceptions import ImageHostError, InvalidKeyError, ObjectNotFoundError, TargetExistsError
from imagehost.core.operation import OperationTracker
from imagehost.schemas.meta import FolderMeta, HashMeta, ImageMeta, ImageMetaEntry, MetaDocument, ShareMeta
from imagehost.schemas.operation import CascadeResult, LegacyError, MetadataOutcome, MetadataStatus
from imagehost.services.trash import TrashAction, TrashResult, TrashService
from imagehost.utils.timestamps import isoformat_z

logger = logging.getLogger(__name__)

RenamePair = Union[Tuple[str, str], Dict[str, Any]]


@dataclass
class KeyChangeSet:
    """Key changes produced by the item-level actions of one request."""
    moves: Dict[str, str] = field(default_factory=dict)
    removals: Set[str] = field(default_factory=set)
    share_moves: Dict[str, str] = field(default_factory=dict)
    share_removals: Set[str] = field(default_factory=set)
    folders_added: Set[str] = field(default_factory=set)
    folders_removed: Set[str] = field(default_factory=set)
    folder_renames: Dict[str, str] = field(default_factory=dict)

    @property
    def touches_objects(self) -> bool:
        return bool(self.moves or self.removals)

    @property
    def touches_shares(self) -> bool:
        return bool(self.share_moves or self.share_removals or self.folder_renames)

    @property
    def touches_folders(self) -> bool:
        return bool(self.folders_added or self.folders_removed or self.folder_renames)


# ---------------------------------------------------------------------
# Metadata cascade
# ---------------------------------------------------------------------

def apply_document_edit(
    ctx: StoreContext,
    doc_type: Type[MetaDocument],
    mutate: Callable[[Any], bool],
) -> MetadataOutcome:
    """
    Read-modify-write one document; mutate returns True if it changed anything.

    Store and version errors are logged and returned as a failed outcome.
    """
    document = doc_type.BLOB_KEY
    try:
        with ctx.meta.edit(doc_type) as edit:
            if mutate(edit.doc):
                edit.mark_changed()
    except ImageHostError as e:
        logger.warning(f"Metadata cascade failed for {document}: {e}")
        return MetadataOutcome(document=document, status=MetadataStatus.failed, error=str(e))

    status = MetadataStatus.saved if edit.saved else MetadataStatus.unchanged
    return MetadataOutcome(document=document, status=status)


def _migrate_entries(entries: Dict[str, Any], changes: KeyChangeSet) -> bool:
    changed = False
    # Pop every source first so chained moves (a->b, b->c) do not overwrite each other.
    moved = {new: entries.pop(old) for old, new in changes.moves.items() if old in entries}
    if moved:
        entries.update(moved)
        changed = True
    for key in changes.removals:
        if entries.pop(key, None) is not None:
            changed = True
    return changed


def _map_folder(folder: str, renames: Dict[str, str]) -> str:
    for source, target in renames.items():
        if folder == source:
            return target
        if folder.startswith(f"{source}/"):
            return target + folder[len(source):]
    return folder


def _dedupe(items: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(items))


def _cascade_shares(ctx: StoreContext, changes: KeyChangeSet) -> Callable[[ShareMeta], bool]:
    def mutate(meta: ShareMeta) -> bool:
        changed = False
        now = isoformat_z(ctx.clock())
        for share in meta.shares.values():
            items = _dedupe(
                changes.share_moves.get(key, key)
                for key in share.items
                if key not in changes.share_removals
            )
            folder = _map_folder(share.folder, changes.folder_renames) if share.folder else share.folder
            if items != share.items or folder != share.folder:
                share.items = items
                share.folder = folder
                share.updated_at = now
                changed = True
        return changed
    return mutate


def _cascade_folders(changes: KeyChangeSet) -> Callable[[FolderMeta], bool]:
    def mutate(meta: FolderMeta) -> bool:
        folders = {_map_folder(folder, changes.folder_renames) for folder in meta.folders}
        folders -= changes.folders_removed
        folders |= {folder for folder in changes.folders_added if folder}
        updated = sorted(folders)
        if updated == meta.folders:
            return False
        meta.folders = updated
        return True
    return mutate


def apply_metadata_cascade(ctx: StoreContext, changes: KeyChangeSet) -> List[MetadataOutcome]:
    """Apply a change set to every affected document, one read and at most one write each."""
    outcomes: List[MetadataOutcome] = []
    if changes.touches_objects:
        outcomes.append(apply_document_edit(ctx, ImageMeta, lambda meta: _migrate_entries(meta.images, changes)))
        outcomes.append(apply_document_edit(ctx, HashMeta, lambda meta: _migrate_entries(meta.hashes, changes)))
    if changes.touches_shares:
        outcomes.append(apply_document_edit(ctx, ShareMeta, _cascade_shares(ctx, changes)))
    if changes.touches_folders:
        outcomes.append(apply_document_edit(ctx, FolderMeta, _cascade_folders(changes)))
    return outcomes


# ---------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------

def _label(raw: Any) -> str:
    return raw if isinstance(raw, str) else repr(raw)


def validated_keys(raw_keys: Iterable[Any], tracker: OperationTracker) -> List[str]:
    """Clean and validate keys; invalid and duplicate keys are recorded as skipped."""
    valid: List[str] = []
    seen: Set[str] = set()
    for raw in raw_keys:
        check = keyspace.ensure_safe_object_key(raw)
        if not check.ok:
            tracker.add_skipped(_label(raw), check.reason)
        elif check.key in seen:
            tracker.add_skipped(check.key, "Duplicate key")
        else:
            seen.add(check.key)
            valid.append(check.key)
    return valid


def build_result(
    tracker: OperationTracker,
    metadata: Sequence[MetadataOutcome],
    errors: Sequence[LegacyError] = (),
    **counters: int,
) -> CascadeResult:
    base = tracker.get_result()
    result = CascadeResult(**dict(base), metadata=list(metadata), errors=list(errors), **counters)
    logger.info(
        f"Operation {result.operation_id}: {result.succeeded} succeeded, "
        f"{result.failed} failed, {result.skipped} skipped"
    )
    for outcome in result.metadata:
        if outcome.degraded:
            logger.warning(f"Operation {result.operation_id} left {outcome.document} stale: {outcome.error}")
    return result


def trash_keys(ctx: StoreContext, keys: Iterable[str], tracker: OperationTracker, changes: KeyChangeSet,
                permanent: bool = False) -> Tuple[int, int]:
    """Trash (or permanently delete) each key. Returns (trashed, deleted) counts."""
    trash = TrashService(ctx.store, ctx.clock)
    trashed = deleted = 0
    for key in keys:
        try:
            if permanent and not keyspace.is_trash_key(key):
                if ctx.store.head(key) is None:
                    result = TrashResult(action=TrashAction.missing, from_key=key)
                else:
                    ctx.store.delete(key)
                    result = TrashResult(action=TrashAction.deleted, from_key=key)
            else:
                result = trash.move_to_trash(key)
        except ImageHostError as e:
            logger.warning(f"Delete failed for {key}: {e}")
            tracker.add_failed(key, e.message, retryable=e.retryable)
            continue

        if result.action == TrashAction.missing:
            tracker.add_skipped(key, "Object not found")
            continue
        if result.action == TrashAction.moved:
            changes.moves[key] = result.to_key
            trashed += 1
        else:
            changes.removals.add(key)
            changes.share_removals.add(result.original or key)
            deleted += 1
        tracker.add_success(key, result.as_dict())
    return trashed, deleted


def relocate_pairs(
    ctx: StoreContext,
    pairs: Sequence[Tuple[str, str]],
    tracker: OperationTracker,
    changes: KeyChangeSet,
    errors: List[LegacyError],
) -> int:
    """
    Move each (source, target) pair, refusing to overwrite existing targets.

    Pairs are validated as a whole before any store call: identical source
    and target, unsafe targets and duplicate targets are skipped.
    """
    valid: List[Tuple[str, str]] = []
    seen_targets: Set[str] = set()
    for source, target in pairs:
        reason = None
        check = keyspace.ensure_safe_object_key(target)
        if source == target:
            reason = "Same source and target"
        elif not check.ok:
            reason = f"Invalid target: {check.reason}"
        elif keyspace.is_trash_key(source) or keyspace.is_trash_key(target):
            reason = "Trash keys can only be restored or deleted"
        elif check.key in seen_targets:
            reason = "Duplicate target"
        if reason:
            tracker.add_skipped(source, reason)
            errors.append(LegacyError(from_key=source, to_key=target, error=reason))
            continue
        seen_targets.add(check.key)
        valid.append((source, check.key))

    trash = TrashService(ctx.store, ctx.clock)
    moved = 0
    for source, target in valid:
        try:
            if ctx.store.head(target) is not None:
                raise TargetExistsError(target)
            trash.move_object(source, target)
        except ImageHostError as e:
            logger.warning(f"Move failed {source} -> {target}: {e}")
            tracker.add_failed(source, e.message, retryable=e.retryable)
            errors.append(LegacyError(from_key=source, to_key=target, error=e.message))
            continue
        changes.moves[source] = target
        changes.share_moves[source] = target
        moved += 1
        tracker.add_success(source, {"action": "moved", "from": source, "to": target})
    return moved


# ---------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------

def delete_objects(ctx: StoreContext, keys: Iterable[Any], permanent: bool = False) -> CascadeResult:
    """
    Move objects to the trash; keys already in the trash are deleted for good.

    With permanent=True live keys are deleted without passing through the trash.
    Trashed keys keep their image/hash metadata under the trash key; share
    items keep pointing at the live key so a restore reconnects them.
    """
    tracker = OperationTracker()
    changes = KeyChangeSet()
    trashed, deleted = trash_keys(ctx, validated_keys(keys, tracker), tracker, changes, permanent=permanent)
    metadata = apply_metadata_cascade(ctx, changes)
    return build_result(tracker, metadata, trashed=trashed, deleted=deleted)


def restore_objects(ctx: StoreContext, keys: Iterable[Any]) -> CascadeResult:
    """Restore trashed objects to their original keys (suffixed on collision)."""
    tracker = OperationTracker()
    changes = KeyChangeSet()
    trash = TrashService(ctx.store, ctx.clock)
    restored = 0

    for key in validated_keys(keys, tracker):
        try:
            result = trash.restore_from_trash(key)
        except ImageHostError as e:
            logger.warning(f"Restore failed for {key}: {e}")
            tracker.add_failed(key, e.message, retryable=e.retryable)
            continue

        if result.action == TrashAction.not_trash:
            tracker.add_skipped(key, "Not in trash")
            continue
        if result.action == TrashAction.missing:
            tracker.add_failed(key, ObjectNotFoundError(key).message, retryable=False)
            continue

        changes.moves[key] = result.to_key
        if result.original != result.to_key:
            changes.share_moves[result.original] = result.to_key
        folder = keyspace.parent_folder(result.to_key)
        if folder:
            changes.folders_added.add(folder)
        restored += 1
        tracker.add_success(key, result.as_dict())

    metadata = apply_metadata_cascade(ctx, changes)
    return build_result(tracker, metadata, restored=restored)


def move_objects(ctx: StoreContext, keys: Iterable[Any], target_folder: Any = "") -> CascadeResult:
    """
    Move objects into a folder, keeping their file names.

    Raises:
        InvalidKeyError: If the target folder is not a valid folder path
    """
    folder = keyspace.normalize_folder_path(target_folder)
    if not keyspace.is_valid_folder_path(folder):
        raise InvalidKeyError(f"Invalid folder: {target_folder!r}")

    tracker = OperationTracker()
    changes = KeyChangeSet()
    errors: List[LegacyError] = []
    pairs = []
    for key in validated_keys(keys, tracker):
        name = keyspace.base_name(key)
        pairs.append((key, f"{folder}/{name}" if folder else name))

    moved = relocate_pairs(ctx, pairs, tracker, changes, errors)
    if moved and folder:
        changes.folders_added.add(folder)
    metadata = apply_metadata_cascade(ctx, changes)
    return build_result(tracker, metadata, errors, moved=moved)


def _rename_pair(raw: RenamePair) -> Tuple[Any, Any]:
    if isinstance(raw, dict):
        return raw.get("from"), raw.get("to")
    source, target = raw
    return source, target


def rename_objects(ctx: StoreContext, renames: Iterable[RenamePair]) -> CascadeResult:
    """Rename objects; accepts (from, to) tuples or {"from", "to"} dicts."""
    tracker = OperationTracker()
    changes = KeyChangeSet()
    errors: List[LegacyError] = []
    pairs = []
    seen_sources: Set[str] = set()

    for raw in renames:
        raw_source, raw_target = _rename_pair(raw)
        check = keyspace.ensure_safe_object_key(raw_source)
        if not check.ok:
            tracker.add_skipped(_label(raw_source), check.reason)
            continue
        if check.key in seen_sources:
            tracker.add_skipped(check.key, "Duplicate key")
            continue
        seen_sources.add(check.key)
        pairs.append((check.key, keyspace.clean_key(raw_target)))

    renamed = relocate_pairs(ctx, pairs, tracker, changes, errors)
    for target in changes.moves.values():
        folder = keyspace.parent_folder(target)
        if folder:
            changes.folders_added.add(folder)
    metadata = apply_metadata_cascade(ctx, changes)
    return build_result(tracker, metadata, errors, renamed=renamed)


def _clean_tags(tags: Optional[Iterable[Any]]) -> List[str]:
    if not tags:
        return []
    return _dedupe(tag.strip() for tag in tags if isinstance(tag, str) and tag.strip())


def retag_objects(
    ctx: StoreContext,
    keys: Iterable[Any],
    add_tags: Optional[Iterable[Any]] = None,
    remove_tags: Optional[Iterable[Any]] = None,
    favorite: Optional[bool] = None,
) -> CascadeResult:
    """
    Add/remove tags and optionally set the favorite flag on many objects.

    Here the image-meta document is the primary target, so a failed save
    fails every pending item (retryable for version conflicts).
    """
    adds = _clean_tags(add_tags)
    removes = set(_clean_tags(remove_tags))
    tracker = OperationTracker()

    existing: List[str] = []
    for key in validated_keys(keys, tracker):
        try:
            if ctx.store.head(key) is None:
                raise ObjectNotFoundError(key)
        except ImageHostError as e:
            tracker.add_failed(key, e.message, retryable=e.retryable)
            continue
        existing.append(key)

    if not existing:
        return build_result(tracker, [], updated=0)

    entries: Dict[str, Optional[ImageMetaEntry]] = {}

    def mutate(meta: ImageMeta) -> bool:
        changed = False
        for key in existing:
            current = meta.images.get(key) or ImageMetaEntry()
            tags = [tag for tag in _dedupe([*current.tags, *adds]) if tag not in removes]
            entry = ImageMetaEntry(tags=tags, favorite=current.favorite if favorite is None else favorite)
            if entry.is_empty:
                entries[key] = None
                if key in meta.images:
                    del meta.images[key]
                    changed = True
            else:
                entries[key] = entry
                if entry != meta.images.get(key):
                    meta.images[key] = entry
                    changed = True
        return changed

    outcome = apply_document_edit(ctx, ImageMeta, mutate)
    updated = 0
    for key in existing:
        if outcome.degraded:
            tracker.add_failed(key, outcome.error or "Metadata save failed", retryable=True)
            continue
        entry = entries.get(key)
        updated += 1
        tracker.add_success(key, {"tags": entry.tags if entry else [], "favorite": entry.favorite if entry else False})
    return build_result(tracker, [outcome], updated=updated)
