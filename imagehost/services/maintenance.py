"""Maintenance jobs that reconcile metadata documents with the object store."""
import hashlib
import logging
from typing import Dict, List, Optional

from pydantic import Field

from imagehost.core import keys as keyspace
from imagehost.core.context import StoreContext
from imagehost.schemas.meta import HashMeta, HashMetaEntry, ImageMeta, MaintenanceMeta
from imagehost.schemas.operation import CamelModel, MetadataOutcome
from imagehost.services.cascade import apply_document_edit
from imagehost.utils.timestamps import isoformat_z

logger = logging.getLogger(__name__)

ORPHAN_CLEANUP_JOB = "orphanCleanup"
DUPLICATE_SCAN_JOB = "duplicateScan"
DEFAULT_HASH_LIMIT = 200


class OrphanCleanupResult(CamelModel):
    ok: bool
    scanned: int
    removed_meta: int = 0
    removed_hashes: int = 0
    metadata: List[MetadataOutcome] = Field(default_factory=list)


class MissingReferences(CamelModel):
    meta: List[str] = Field(default_factory=list)
    hashes: List[str] = Field(default_factory=list)
    shares: Dict[str, List[str]] = Field(default_factory=dict)


class BrokenLinksResult(CamelModel):
    ok: bool = True
    scanned: int
    missing: MissingReferences
    counts: Dict[str, int]


class DuplicateGroup(CamelModel):
    hash: str
    size: Optional[int] = None
    keys: List[str]


class DuplicateScanResult(CamelModel):
    ok: bool
    computed: int = 0
    total_hashes: int = 0
    duplicates: List[DuplicateGroup] = Field(default_factory=list)
    metadata: List[MetadataOutcome] = Field(default_factory=list)


def _live_keys(ctx: StoreContext) -> set:
    return {
        obj.key for obj in ctx.meta.list_all_objects()
        if not keyspace.is_reserved_key(obj.key)
    }


def _drop_missing(entries: dict, live_keys: set) -> int:
    orphans = [key for key in entries if key not in live_keys]
    for key in orphans:
        del entries[key]
    return len(orphans)


def prune_orphan_metadata(ctx: StoreContext) -> OrphanCleanupResult:
    """Remove image/hash metadata entries whose object no longer exists."""
    live_keys = _live_keys(ctx)
    removed = {"meta": 0, "hashes": 0}

    def prune_images(meta: ImageMeta) -> bool:
        removed["meta"] = _drop_missing(meta.images, live_keys)
        return removed["meta"] > 0

    def prune_hashes(meta: HashMeta) -> bool:
        removed["hashes"] = _drop_missing(meta.hashes, live_keys)
        return removed["hashes"] > 0

    def stamp(meta: MaintenanceMeta) -> bool:
        meta.last_runs[ORPHAN_CLEANUP_JOB] = isoformat_z(ctx.clock())
        return True

    outcomes = [
        apply_document_edit(ctx, ImageMeta, prune_images),
        apply_document_edit(ctx, HashMeta, prune_hashes),
    ]
    outcomes.append(apply_document_edit(ctx, MaintenanceMeta, stamp))

    degraded = [outcome for outcome in outcomes if outcome.degraded]
    logger.info(
        f"Orphan cleanup scanned {len(live_keys)} objects, removed {removed['meta']} meta "
        f"and {removed['hashes']} hash entries"
    )
    return OrphanCleanupResult(
        ok=not degraded,
        scanned=len(live_keys),
        removed_meta=removed["meta"] if not outcomes[0].degraded else 0,
        removed_hashes=removed["hashes"] if not outcomes[1].degraded else 0,
        metadata=outcomes,
    )


def find_broken_links(ctx: StoreContext) -> BrokenLinksResult:
    """
    Report metadata entries that reference keys missing from the store.

    Read-only. Share items point at live keys, so an item whose object is
    currently in the trash is reported as missing too.
    """
    live_keys = _live_keys(ctx)
    missing = MissingReferences(
        meta=[key for key in ctx.meta.get_image_meta().images if key not in live_keys],
        hashes=[key for key in ctx.meta.get_hash_meta().hashes if key not in live_keys],
    )
    for share in ctx.meta.get_share_meta().shares.values():
        absent = [key for key in share.items if key not in live_keys]
        if absent:
            missing.shares[share.id] = absent

    counts = {"meta": len(missing.meta), "hashes": len(missing.hashes), "shares": len(missing.shares)}
    logger.info(f"Broken link check scanned {len(live_keys)} objects: {counts}")
    return BrokenLinksResult(scanned=len(live_keys), missing=missing, counts=counts)


def _hash_missing_objects(ctx: StoreContext, known: Dict[str, HashMetaEntry], limit: int) -> Dict[str, HashMetaEntry]:
    computed: Dict[str, HashMetaEntry] = {}
    for info in ctx.meta.list_all_objects():
        if len(computed) >= limit:
            break
        if keyspace.is_hidden_object_key(info.key) or info.key in known:
            continue
        obj = ctx.store.get(info.key)
        if obj is None:
            continue
        computed[info.key] = HashMetaEntry(
            hash=hashlib.sha256(obj.body).hexdigest(),
            size=obj.size,
            uploaded_at=isoformat_z(info.uploaded) if info.uploaded else None,
        )
    return computed


def find_duplicates(ctx: StoreContext, compute: bool = False, limit: int = DEFAULT_HASH_LIMIT) -> DuplicateScanResult:
    """
    Group keys of the hash index that share a content hash.

    Args:
        ctx: Store context
        compute: Hash up to `limit` objects missing from the index first
        limit: Maximum number of objects to download and hash
    """
    hashes = dict(ctx.meta.get_hash_meta().hashes)
    outcomes: List[MetadataOutcome] = []

    computed: Dict[str, HashMetaEntry] = {}
    if compute:
        computed = _hash_missing_objects(ctx, hashes, max(0, limit))
    if computed:
        def add_hashes(meta: HashMeta) -> bool:
            added = [key for key in computed if key not in meta.hashes]
            for key in added:
                meta.hashes[key] = computed[key]
            return bool(added)

        outcomes.append(apply_document_edit(ctx, HashMeta, add_hashes))
        for key, entry in computed.items():
            hashes.setdefault(key, entry)

    groups: Dict[str, DuplicateGroup] = {}
    for key, entry in hashes.items():
        if not entry.hash:
            continue
        group = groups.setdefault(entry.hash, DuplicateGroup(hash=entry.hash, size=entry.size, keys=[]))
        group.keys.append(key)
        if not group.size and entry.size:
            group.size = entry.size

    def stamp(meta: MaintenanceMeta) -> bool:
        meta.last_runs[DUPLICATE_SCAN_JOB] = isoformat_z(ctx.clock())
        return True

    outcomes.append(apply_document_edit(ctx, MaintenanceMeta, stamp))

    duplicates = [group for group in groups.values() if len(group.keys) > 1]
    logger.info(f"Duplicate scan hashed {len(computed)} objects, found {len(duplicates)} duplicate groups")
    return DuplicateScanResult(
        ok=not any(outcome.degraded for outcome in outcomes),
        computed=len(computed),
        total_hashes=len(hashes),
        duplicates=duplicates,
        metadata=outcomes,
    )
