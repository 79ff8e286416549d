import json

import pytest

from imagehost.core.exceptions import StoreUnavailableError, VersionConflictError
from imagehost.repositories.meta_repo import (
    MetadataStore,
    normalize_hash_meta,
    normalize_image_meta,
    normalize_maintenance_meta,
    normalize_share_meta,
)
from imagehost.schemas.meta import FolderMeta, ImageMeta, ImageMetaEntry
from imagehost.services.storage.memory import MemoryBlobStore


@pytest.fixture
def meta(store, clock):
    return MetadataStore(store, clock=clock)


def _stored(store, key):
    obj = store.get(key)
    return json.loads(obj.text()) if obj else None


class TestRead:

    def test_missing_document_is_empty_version_one(self, meta, now_iso):
        doc = meta.get_image_meta()
        assert doc.version == 1
        assert doc.images == {}
        assert doc.updated_at == now_iso

    def test_unparsable_document_is_empty(self, meta, store):
        store.put(ImageMeta.BLOB_KEY, b"{not json", content_type="application/json")
        assert meta.get_image_meta().images == {}

    def test_store_errors_propagate(self, clock):
        class BrokenStore(MemoryBlobStore):
            def get(self, key):
                raise StoreUnavailableError("bucket offline")

        with pytest.raises(StoreUnavailableError):
            MetadataStore(BrokenStore(), clock=clock).get_folder_meta()


class TestSave:

    def test_save_bumps_version_and_writes_camel_case(self, meta, store, now_iso):
        doc = meta.get_image_meta()
        doc.images["a.png"] = ImageMetaEntry(tags=["cat"])

        meta.save_image_meta(doc)

        raw = _stored(store, ImageMeta.BLOB_KEY)
        assert raw["version"] == 2
        assert raw["updatedAt"] == now_iso
        assert raw["images"] == {"a.png": {"tags": ["cat"], "favorite": False}}
        assert store.get(ImageMeta.BLOB_KEY).content_type == "application/json"

    def test_stale_write_raises_and_leaves_blob_unchanged(self, meta, store):
        first = meta.get_folder_meta()
        stale = meta.get_folder_meta()
        first.folders = ["albums"]
        meta.save_folder_meta(first)
        before = store.get(FolderMeta.BLOB_KEY).body

        stale.folders = ["other"]
        with pytest.raises(VersionConflictError) as exc_info:
            meta.save_folder_meta(stale)

        assert exc_info.value.retryable is True
        assert FolderMeta.BLOB_KEY in exc_info.value.message
        assert store.get(FolderMeta.BLOB_KEY).body == before

    def test_save_prunes_empty_image_entries(self, meta, store):
        doc = meta.get_image_meta()
        doc.images["kept.png"] = ImageMetaEntry(favorite=True)
        doc.images["empty.png"] = ImageMetaEntry()

        meta.save(doc)

        assert list(_stored(store, ImageMeta.BLOB_KEY)["images"]) == ["kept.png"]

    def test_versions_increase_across_saves(self, meta, store):
        for _ in range(3):
            doc = meta.get_folder_meta()
            doc.folders.append("x")
            meta.save(doc)
        assert _stored(store, FolderMeta.BLOB_KEY)["version"] == 4


class TestEdit:

    def test_unchanged_edit_does_not_write(self, meta, store):
        with meta.edit(FolderMeta) as edit:
            assert edit.doc.folders == []

        assert edit.saved is False
        assert store.get(FolderMeta.BLOB_KEY) is None

    def test_changed_edit_saves_once(self, meta, store):
        with meta.edit(FolderMeta) as edit:
            edit.doc.folders = ["a"]
            edit.mark_changed()

        assert edit.saved is True
        assert _stored(store, FolderMeta.BLOB_KEY)["folders"] == ["a"]


class TestNormalize:

    def test_image_meta_coerces_and_prunes(self):
        doc = normalize_image_meta({
            "version": "3",
            "images": {
                "a.png": {"tags": ["x", 1, None], "favorite": 1},
                "b.png": {"tags": []},
                "c.png": "garbage",
            },
            "unknown": True,
        })
        assert doc.version == 3
        assert doc.images == {"a.png": ImageMetaEntry(tags=["x"], favorite=True)}

    @pytest.mark.parametrize("version", [True, -5, 0, "abc", float("nan"), None])
    def test_bad_versions_become_one(self, version):
        assert normalize_image_meta({"version": version}).version == 1

    def test_non_object_input(self):
        assert normalize_image_meta(["not", "a", "dict"]).images == {}

    def test_hash_meta_sizes(self):
        doc = normalize_hash_meta({"hashes": {
            "a.png": {"hash": "abc", "size": -3, "uploadedAt": "2026-01-01T00:00:00.000Z"},
            "b.png": {"hash": "def", "size": "big"},
        }})
        assert doc.hashes["a.png"].size == 0
        assert doc.hashes["a.png"].uploaded_at == "2026-01-01T00:00:00.000Z"
        assert doc.hashes["b.png"].size is None

    def test_share_meta_defaults(self):
        doc = normalize_share_meta({"shares": {"s1": {
            "title": "Wedding",
            "items": ["a.png", 3],
            "passwordHash": "",
            "domain": "photos.example.com",
        }}})
        share = doc.shares["s1"]
        assert share.id == "s1"
        assert share.items == ["a.png"]
        assert share.password_hash is None
        assert share.domain == "photos.example.com"
        assert share.folder is None

    def test_maintenance_meta_drops_bad_stamps(self):
        doc = normalize_maintenance_meta({"lastRuns": {"orphanCleanup": "2026-01-01", "other": 5}})
        assert doc.last_runs == {"orphanCleanup": "2026-01-01"}


class TestListing:

    @pytest.fixture
    def listed(self, store, meta):
        for key in ("a.png", "b.png", "c.png"):
            store.put(key, b"x")
        return meta

    def test_page_and_cursor(self, listed):
        first = listed.list_objects_page(limit=2)
        assert [obj.key for obj in first.objects] == ["a.png", "b.png"]
        assert first.has_more is True

        second = listed.list_objects_page(cursor=first.cursor, limit=2)
        assert [obj.key for obj in second.objects] == ["c.png"]
        assert second.has_more is False
        assert second.cursor is None

    @pytest.mark.parametrize("limit, expected", [(0, 3), (None, 3), (-5, 1), ("2", 2), (5000, 3)])
    def test_limit_clamping(self, listed, limit, expected):
        assert len(listed.list_objects_page(limit=limit).objects) == expected

    def test_list_all_objects_follows_pages(self, store, meta):
        for index in range(1203):
            store.put(f"bulk/{index:05d}.png", b"x")
        assert len(meta.list_all_objects("bulk/")) == 1203
