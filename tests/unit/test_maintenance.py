import hashlib

from imagehost.schemas.meta import (
    HashMeta,
    HashMetaEntry,
    ImageMeta,
    ImageMetaEntry,
    MaintenanceMeta,
    ShareMeta,
    ShareMetaEntry,
)
from imagehost.schemas.operation import MetadataStatus
from imagehost.services import cascade
from imagehost.services.maintenance import (
    DUPLICATE_SCAN_JOB,
    ORPHAN_CLEANUP_JOB,
    find_broken_links,
    find_duplicates,
    prune_orphan_metadata,
)


def test_prune_orphan_metadata(ctx, put_image, now_iso):
    put_image("a.png")
    put_image("trash/b.png")
    ctx.meta.save(ImageMeta(images={
        "a.png": ImageMetaEntry(tags=["keep"]),
        "trash/b.png": ImageMetaEntry(favorite=True),
        "gone.png": ImageMetaEntry(tags=["orphan"]),
    }))
    ctx.meta.save(HashMeta(hashes={
        "a.png": HashMetaEntry(hash="1"),
        "gone.png": HashMetaEntry(hash="2"),
        "also-gone.png": HashMetaEntry(hash="3"),
    }))

    result = prune_orphan_metadata(ctx)

    assert result.ok is True
    assert result.scanned == 2
    assert (result.removed_meta, result.removed_hashes) == (1, 2)
    assert sorted(ctx.meta.get_image_meta().images) == ["a.png", "trash/b.png"]
    assert list(ctx.meta.get_hash_meta().hashes) == ["a.png"]
    assert ctx.meta.get_maintenance_meta().last_runs == {ORPHAN_CLEANUP_JOB: now_iso}


def test_clean_bucket_only_stamps_maintenance(ctx):
    result = prune_orphan_metadata(ctx)

    assert [outcome.status for outcome in result.metadata] == [
        MetadataStatus.unchanged, MetadataStatus.unchanged, MetadataStatus.saved,
    ]


def test_failed_save_is_reported(flaky_ctx, flaky_store):
    flaky_ctx.meta.save(HashMeta(hashes={"gone.png": HashMetaEntry(hash="1")}))
    flaky_store.failing_writes.add(HashMeta.BLOB_KEY)

    result = prune_orphan_metadata(flaky_ctx)

    assert result.ok is False
    assert result.removed_hashes == 0
    assert result.metadata[1].status == MetadataStatus.failed
    assert flaky_store.get(MaintenanceMeta.BLOB_KEY) is not None


def test_find_broken_links(ctx, put_image):
    put_image("a.png")
    ctx.meta.save(ImageMeta(images={"a.png": ImageMetaEntry(tags=["x"]), "gone.png": ImageMetaEntry(tags=["y"])}))
    ctx.meta.save(HashMeta(hashes={"gone.png": HashMetaEntry(hash="1")}))
    ctx.meta.save(ShareMeta(shares={
        "s1": ShareMetaEntry(id="s1", items=["a.png", "gone.png"]),
        "s2": ShareMetaEntry(id="s2", items=["a.png"]),
    }))

    result = find_broken_links(ctx)

    assert result.scanned == 1
    assert result.missing.meta == ["gone.png"]
    assert result.missing.hashes == ["gone.png"]
    assert result.missing.shares == {"s1": ["gone.png"]}
    assert result.counts == {"meta": 1, "hashes": 1, "shares": 1}


def test_broken_links_clear_after_purging_from_trash(ctx, put_image):
    put_image("photos/cat.png")
    ctx.meta.save(ShareMeta(shares={"s1": ShareMetaEntry(id="s1", items=["photos/cat.png"])}))
    cascade.delete_objects(ctx, ["photos/cat.png"])

    assert find_broken_links(ctx).missing.shares == {"s1": ["photos/cat.png"]}

    cascade.delete_objects(ctx, ["trash/photos/cat.png"])

    assert find_broken_links(ctx).counts == {"meta": 0, "hashes": 0, "shares": 0}


def test_find_duplicates_groups_by_hash(ctx, now_iso):
    ctx.meta.save(HashMeta(hashes={
        "a.png": HashMetaEntry(hash="same"),
        "b.png": HashMetaEntry(hash="same", size=9),
        "c.png": HashMetaEntry(hash="other"),
        "d.png": HashMetaEntry(hash=""),
    }))

    result = find_duplicates(ctx)

    assert result.ok is True
    assert (result.computed, result.total_hashes) == (0, 4)
    assert [(group.hash, group.size, group.keys) for group in result.duplicates] == [("same", 9, ["a.png", "b.png"])]
    assert ctx.meta.get_maintenance_meta().last_runs == {DUPLICATE_SCAN_JOB: now_iso}


def test_find_duplicates_computes_missing_hashes(ctx, put_image):
    put_image("a.png", body=b"same")
    put_image("b.png", body=b"same")
    put_image("c.png", body=b"different")
    put_image(".thumbs/a.png", body=b"same")

    result = find_duplicates(ctx, compute=True)

    digest = hashlib.sha256(b"same").hexdigest()
    assert result.computed == 3
    assert [group.keys for group in result.duplicates] == [["a.png", "b.png"]]
    assert result.duplicates[0].hash == digest
    assert ctx.meta.get_hash_meta().hashes["a.png"].hash == digest
    assert ".thumbs/a.png" not in ctx.meta.get_hash_meta().hashes


def test_find_duplicates_respects_limit(ctx, put_image):
    put_image("a.png", body=b"same")
    put_image("b.png", body=b"same")

    result = find_duplicates(ctx, compute=True, limit=1)

    assert result.computed == 1
    assert result.duplicates == []
    assert list(ctx.meta.get_hash_meta().hashes) == ["a.png"]
