import io
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from imagehost.core.context import StoreContext
from imagehost.core.exceptions import StoreUnavailableError
from imagehost.services import cascade
from imagehost.services.storage.s3 import S3BlobStore


def _client_error(code, operation="GetObject"):
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


@pytest.fixture
def s3_client():
    return MagicMock()


@pytest.fixture
def blob_store(s3_client):
    return S3BlobStore(client=s3_client, bucket_name="test-bucket")


def test_get_returns_body_and_metadata(blob_store, s3_client):
    s3_client.get_object.return_value = {
        "Body": io.BytesIO(b"data"),
        "ContentType": "image/png",
        "Metadata": {"trash-original-key": "a.png"},
        "ContentLength": 4,
    }

    obj = blob_store.get("trash/a.png")

    s3_client.get_object.assert_called_once_with(Bucket="test-bucket", Key="trash/a.png")
    assert obj.body == b"data"
    assert obj.content_type == "image/png"
    assert obj.custom_metadata == {"trash-original-key": "a.png"}
    assert obj.size == 4


@pytest.mark.parametrize("code", ["NoSuchKey", "404", "NotFound"])
def test_missing_key_is_none(blob_store, s3_client, code):
    s3_client.get_object.side_effect = _client_error(code)
    s3_client.head_object.side_effect = _client_error(code, "HeadObject")

    assert blob_store.get("a.png") is None
    assert blob_store.head("a.png") is None


def test_other_client_errors_are_store_unavailable(blob_store, s3_client):
    s3_client.head_object.side_effect = _client_error("AccessDenied", "HeadObject")

    with pytest.raises(StoreUnavailableError) as exc_info:
        blob_store.head("a.png")

    assert exc_info.value.retryable is True


def test_connection_errors_are_store_unavailable(blob_store, s3_client):
    s3_client.get_object.side_effect = EndpointConnectionError(endpoint_url="https://r2.example.com")

    with pytest.raises(StoreUnavailableError):
        blob_store.get("a.png")


def test_put_sends_content_type_and_metadata(blob_store, s3_client):
    blob_store.put("a.png", b"xyz", content_type="image/png", custom_metadata={"k": "v"})

    s3_client.put_object.assert_called_once_with(
        Bucket="test-bucket", Key="a.png", Body=b"xyz", ContentType="image/png", Metadata={"k": "v"},
    )


def test_put_percent_encodes_non_ascii_metadata(blob_store, s3_client):
    blob_store.put("trash/photos/café.png", b"xyz", custom_metadata={"trash-original-key": "photos/café.png"})

    sent = s3_client.put_object.call_args.kwargs["Metadata"]
    assert sent == {"trash-original-key": "photos/caf%C3%A9.png"}
    assert all(value.isascii() for value in sent.values())


def test_get_decodes_percent_encoded_metadata(blob_store, s3_client):
    s3_client.get_object.return_value = {
        "Body": io.BytesIO(b"data"),
        "Metadata": {"trash-original-key": "photos/caf%C3%A9.png"},
    }

    obj = blob_store.get("trash/photos/café.png")

    assert obj.custom_metadata == {"trash-original-key": "photos/café.png"}


def test_trash_and_restore_non_ascii_key_over_s3(s3_client):
    objects = {}

    def put_object(Bucket, Key, Body, ContentType=None, Metadata=None):
        assert all(value.isascii() for value in (Metadata or {}).values())
        objects[Key] = {"Body": Body, "ContentType": ContentType, "Metadata": dict(Metadata or {})}

    def get_object(Bucket, Key):
        if Key not in objects:
            raise _client_error("NoSuchKey")
        stored = objects[Key]
        return {
            "Body": io.BytesIO(stored["Body"]),
            "ContentType": stored["ContentType"],
            "Metadata": dict(stored["Metadata"]),
            "ContentLength": len(stored["Body"]),
        }

    def head_object(Bucket, Key):
        if Key not in objects:
            raise _client_error("404", "HeadObject")
        return {"ContentLength": len(objects[Key]["Body"])}

    def delete_object(Bucket, Key):
        objects.pop(Key, None)

    s3_client.put_object.side_effect = put_object
    s3_client.get_object.side_effect = get_object
    s3_client.head_object.side_effect = head_object
    s3_client.delete_object.side_effect = delete_object
    ctx = StoreContext(store=S3BlobStore(client=s3_client, bucket_name="test-bucket"))
    objects["photos/café.png"] = {"Body": b"img", "ContentType": "image/png", "Metadata": {}}

    deleted = cascade.delete_objects(ctx, ["photos/café.png"])
    restored = cascade.restore_objects(ctx, ["trash/photos/café.png"])

    assert deleted.retryable == []
    assert (deleted.succeeded, restored.succeeded) == (1, 1)
    assert "photos/café.png" in objects


def test_put_failure(blob_store, s3_client):
    s3_client.put_object.side_effect = _client_error("SlowDown", "PutObject")

    with pytest.raises(StoreUnavailableError):
        blob_store.put("a.png", b"xyz")


def test_delete_single_key(blob_store, s3_client):
    blob_store.delete("a.png")

    s3_client.delete_object.assert_called_once_with(Bucket="test-bucket", Key="a.png")
    s3_client.delete_objects.assert_not_called()


def test_bulk_delete_is_chunked(blob_store, s3_client):
    s3_client.delete_objects.return_value = {}

    blob_store.delete([f"k{i}" for i in range(1500)])

    assert s3_client.delete_objects.call_count == 2
    second_batch = s3_client.delete_objects.call_args_list[1].kwargs["Delete"]["Objects"]
    assert len(second_batch) == 500


def test_bulk_delete_reports_failed_keys(blob_store, s3_client):
    s3_client.delete_objects.return_value = {"Errors": [{"Key": "b.png", "Message": "denied"}]}

    with pytest.raises(StoreUnavailableError) as exc_info:
        blob_store.delete(["a.png", "b.png"])

    assert "b.png" in exc_info.value.message


def test_list_pages_with_continuation_token(blob_store, s3_client):
    s3_client.list_objects_v2.return_value = {
        "Contents": [{"Key": "photos/a.png", "Size": 10}],
        "IsTruncated": True,
        "NextContinuationToken": "token-2",
    }

    page = blob_store.list(prefix="photos/", cursor="token-1", limit=5000)

    s3_client.list_objects_v2.assert_called_once_with(
        Bucket="test-bucket", Prefix="photos/", MaxKeys=1000, ContinuationToken="token-1",
    )
    assert [obj.key for obj in page.objects] == ["photos/a.png"]
    assert page.truncated is True
    assert page.cursor == "token-2"


def test_list_last_page_has_no_cursor(blob_store, s3_client):
    s3_client.list_objects_v2.return_value = {"IsTruncated": False}

    page = blob_store.list()

    assert page.objects == []
    assert page.cursor is None
