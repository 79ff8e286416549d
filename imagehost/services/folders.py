"""Folder operations built on the cascade coordinator."""
import logging
from typing import Any, List

from imagehost.core import keys as keyspace
from imagehost.core.context import StoreContext
from imagehost.core.exceptions import InvalidKeyError, TargetExistsError
from imagehost.core.operation import OperationTracker
from imagehost.schemas.meta import FolderMeta
from imagehost.schemas.operation import CascadeResult, LegacyError
from imagehost.services.cascade import (
    KeyChangeSet,
    relocate_pairs,
    trash_keys,
    apply_document_edit,
    apply_metadata_cascade,
    build_result,
)

logger = logging.getLogger(__name__)

FOLDER_MODES = ("rename", "merge")


def _require_folder(value: Any) -> str:
    folder = keyspace.normalize_folder_path(value)
    if not folder or not keyspace.is_valid_folder_path(folder):
        raise InvalidKeyError(f"Invalid folder name: {value!r}")
    if folder == keyspace.TRASH_PREFIX.rstrip("/"):
        raise InvalidKeyError("The trash folder is managed by delete/restore")
    return folder


def list_folders(ctx: StoreContext) -> List[str]:
    """Folders inferred from object keys plus explicit (possibly empty) folders."""
    folders = set(ctx.meta.get_folder_meta().folders)
    for obj in ctx.meta.list_all_objects():
        folder = keyspace.parent_folder(obj.key).split("/", 1)[0]
        if folder:
            folders.add(folder)
    trash_root = keyspace.TRASH_PREFIX.rstrip("/")
    return sorted(f for f in folders if f and not f.startswith(".") and f != trash_root)


def create_folder(ctx: StoreContext, name: Any) -> str:
    """
    Register an explicit folder.

    Raises:
        InvalidKeyError: If the name is not a valid folder path
        VersionConflictError: If the folder document changed concurrently
    """
    folder = _require_folder(name)
    with ctx.meta.edit(FolderMeta) as edit:
        if folder not in edit.doc.folders:
            edit.doc.folders = sorted([*edit.doc.folders, folder])
            edit.mark_changed()
    logger.info(f"Folder created: {folder}")
    return folder


def rename_folder(ctx: StoreContext, source: Any, target: Any, mode: str = "rename") -> CascadeResult:
    """
    Rename a folder, or merge it into another one.

    rename refuses a target folder that already holds objects; merge moves
    objects across and fails only the items whose target key is taken.

    Raises:
        InvalidKeyError: If a folder name or the mode is invalid
        TargetExistsError: In rename mode, if the target folder is not empty
    """
    if mode not in FOLDER_MODES:
        raise InvalidKeyError(f"Unknown folder mode: {mode!r}")
    source_folder = _require_folder(source)
    target_folder = _require_folder(target)
    if source_folder == target_folder:
        raise InvalidKeyError("Source and target folders are the same")

    objects = ctx.meta.list_all_objects(f"{source_folder}/")
    if mode == "rename" and objects and ctx.meta.list_objects_page(f"{target_folder}/", limit=1).objects:
        raise TargetExistsError(target_folder)

    tracker = OperationTracker()
    changes = KeyChangeSet()
    errors: List[LegacyError] = []
    pairs = [
        (obj.key, f"{target_folder}/{obj.key[len(source_folder) + 1:]}")
        for obj in objects
        if not keyspace.is_reserved_key(obj.key)
    ]
    moved = relocate_pairs(ctx, pairs, tracker, changes, errors)

    changes.folder_renames[source_folder] = target_folder
    changes.folders_added.add(target_folder)
    metadata = apply_metadata_cascade(ctx, changes)
    return build_result(tracker, metadata, errors, moved=moved)


def delete_folder(ctx: StoreContext, name: Any) -> CascadeResult:
    """Trash every object in a folder and forget the folder."""
    folder = _require_folder(name)
    tracker = OperationTracker()
    changes = KeyChangeSet()

    keys: List[str] = []
    for obj in ctx.meta.list_all_objects(f"{folder}/"):
        check = keyspace.ensure_safe_object_key(obj.key)
        if check.ok:
            keys.append(check.key)
        else:
            # hidden objects never enter the trash
            tracker.add_skipped(obj.key, check.reason)
    trashed, deleted = trash_keys(ctx, keys, tracker, changes)

    metadata = apply_metadata_cascade(ctx, changes)

    def forget(meta: FolderMeta) -> bool:
        remaining = [f for f in meta.folders if f != folder and not f.startswith(f"{folder}/")]
        if remaining == meta.folders:
            return False
        meta.folders = remaining
        return True

    metadata.append(apply_document_edit(ctx, FolderMeta, forget))
    return build_result(tracker, metadata, trashed=trashed, deleted=deleted)
