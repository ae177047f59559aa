"""
Tests for the storage clients.

The B2 client is exercised against a MagicMock boto3 client: we only
check that calls are shaped right and failures are translated. The mock
client is checked for the provider behaviour the API relies on.
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from shared_gallery.core.gallery import CompletedPart
from shared_gallery.infrastructure.storage.client import (
    B2StorageClient,
    MockStorageClient,
    ObjectNotFoundError,
    StorageConfig,
    StorageError,
    create_storage_client,
)

from ..helpers import run


def _client_error(code: str, message: str, operation: str = "Operation") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


@pytest.fixture
def config() -> StorageConfig:
    return StorageConfig(
        access_key_id="key-id",
        secret_access_key="secret",
        bucket_name="gallery",
        endpoint_url="https://s3.us-west-004.backblazeb2.com",
    )


@pytest.fixture
def s3():
    return MagicMock()


@pytest.fixture
def b2(config, s3):
    with patch("shared_gallery.infrastructure.storage.client.boto3") as mock_boto3:
        mock_boto3.client.return_value = s3
        client = B2StorageClient(config)
    return client


# ---------------------------------------------------------------------------
# B2 Client
# ---------------------------------------------------------------------------

class TestB2Construction:

    def test_configures_boto3_for_b2(self, config):
        with patch("shared_gallery.infrastructure.storage.client.boto3") as mock_boto3:
            B2StorageClient(config)

        args, kwargs = mock_boto3.client.call_args
        assert args == ("s3",)
        assert kwargs["endpoint_url"] == "https://s3.us-west-004.backblazeb2.com"
        assert kwargs["aws_access_key_id"] == "key-id"
        assert kwargs["aws_secret_access_key"] == "secret"
        assert kwargs["region_name"] == "us-west-004"

    def test_factory_requires_config(self):
        with pytest.raises(ValueError, match="config is required"):
            create_storage_client()

    def test_factory_mock_mode(self):
        assert isinstance(create_storage_client(mock_mode=True), MockStorageClient)


class TestB2Listing:

    def test_walks_every_page(self, b2, s3):
        when = datetime(2024, 1, 1, tzinfo=timezone.utc)
        s3.get_paginator.return_value.paginate.return_value = [
            {"Contents": [{"Key": "images/a.jpg", "Size": 3, "LastModified": when}]},
            {"Contents": [{"Key": "images/b.mp4", "Size": 5}, {"Size": 1}]},
            {},
        ]

        objects = run(b2.list_objects("images/"))

        s3.get_paginator.assert_called_once_with("list_objects_v2")
        s3.get_paginator.return_value.paginate.assert_called_once_with(Bucket="gallery", Prefix="images/")
        assert [o.key for o in objects] == ["images/a.jpg", "images/b.mp4"]
        assert objects[0].last_modified == when
        assert objects[1].last_modified is None
        assert objects[1].size == 5

    def test_service_error_keeps_provider_message(self, b2, s3):
        s3.get_paginator.return_value.paginate.side_effect = _client_error("AccessDenied", "Access Denied")

        with pytest.raises(StorageError) as exc_info:
            run(b2.list_objects("images/"))

        assert exc_info.value.service_message == "Access Denied"

    def test_transport_error_has_no_service_message(self, b2, s3):
        s3.get_paginator.return_value.paginate.side_effect = EndpointConnectionError(endpoint_url="https://b2")

        with pytest.raises(StorageError) as exc_info:
            run(b2.list_objects("images/"))

        assert exc_info.value.service_message is None


class TestB2Objects:

    def test_put_object(self, b2, s3):
        run(b2.put_object("images/image-1-a.jpg", b"abc", "image/jpeg"))

        s3.put_object.assert_called_once_with(
            Bucket="gallery",
            Key="images/image-1-a.jpg",
            Body=b"abc",
            ContentType="image/jpeg",
            Metadata={},
        )

    def test_get_object_streams_and_closes_body(self, b2, s3):
        body = MagicMock()
        body.iter_chunks.return_value = iter([b"ab", b"c"])
        s3.get_object.return_value = {"Body": body, "ContentType": "image/png", "ContentLength": 3}

        stream = run(b2.get_object("images/a.png"))

        assert stream.content_type == "image/png"
        assert stream.content_length == 3
        assert list(stream.body) == [b"ab", b"c"]
        body.close.assert_called_once()

    def test_get_object_without_body(self, b2, s3):
        s3.get_object.return_value = {"ContentType": "image/png"}
        assert run(b2.get_object("images/a.png")).body is None

    def test_missing_key_is_not_found(self, b2, s3):
        s3.get_object.side_effect = _client_error("NoSuchKey", "The specified key does not exist.")

        with pytest.raises(ObjectNotFoundError):
            run(b2.get_object("images/missing.png"))

    def test_other_get_failures_are_storage_errors(self, b2, s3):
        s3.get_object.side_effect = _client_error("InternalError", "boom")

        with pytest.raises(StorageError) as exc_info:
            run(b2.get_object("images/a.png"))

        assert not isinstance(exc_info.value, ObjectNotFoundError)

    def test_delete_object(self, b2, s3):
        run(b2.delete_object("images/a.png"))
        s3.delete_object.assert_called_once_with(Bucket="gallery", Key="images/a.png")


class TestB2Multipart:

    def test_create_returns_upload_id(self, b2, s3):
        s3.create_multipart_upload.return_value = {"UploadId": "abc123"}

        upload_id = run(b2.create_multipart_upload(
            "images/video-1-a.mp4", "video/mp4", metadata={"originalname": "a.mp4"}
        ))

        assert upload_id == "abc123"
        s3.create_multipart_upload.assert_called_once_with(
            Bucket="gallery",
            Key="images/video-1-a.mp4",
            ContentType="video/mp4",
            Metadata={"originalname": "a.mp4"},
        )

    def test_create_without_upload_id_fails(self, b2, s3):
        s3.create_multipart_upload.return_value = {}

        with pytest.raises(StorageError, match="Failed to start multipart upload"):
            run(b2.create_multipart_upload("k", "video/mp4"))

    def test_presign_part(self, b2, s3):
        s3.generate_presigned_url.return_value = "https://b2.example/part"

        url = run(b2.presign_upload_part("k", "u", 2, expiry_seconds=3600))

        assert url == "https://b2.example/part"
        s3.generate_presigned_url.assert_called_once_with(
            "upload_part",
            Params={"Bucket": "gallery", "Key": "k", "UploadId": "u", "PartNumber": 2},
            ExpiresIn=3600,
        )

    def test_complete_sends_parts_as_given(self, b2, s3):
        parts = [CompletedPart(1, "e1"), CompletedPart(2, "e2")]

        run(b2.complete_multipart_upload("k", "u", parts))

        s3.complete_multipart_upload.assert_called_once_with(
            Bucket="gallery",
            Key="k",
            UploadId="u",
            MultipartUpload={"Parts": [
                {"PartNumber": 1, "ETag": "e1"},
                {"PartNumber": 2, "ETag": "e2"},
            ]},
        )

    def test_abort_failure_keeps_provider_message(self, b2, s3):
        s3.abort_multipart_upload.side_effect = _client_error("NoSuchUpload", "Upload not found")

        with pytest.raises(StorageError) as exc_info:
            run(b2.abort_multipart_upload("k", "u"))

        assert exc_info.value.service_message == "Upload not found"


# ---------------------------------------------------------------------------
# Mock Client
# ---------------------------------------------------------------------------

class TestMockStorage:

    def test_listing_filters_by_prefix(self):
        storage = MockStorageClient()
        run(storage.put_object("images/a.jpg", b"123", "image/jpeg"))
        run(storage.put_object("other/b.jpg", b"1", "image/jpeg"))

        objects = run(storage.list_objects("images/"))

        assert [(o.key, o.size) for o in objects] == [("images/a.jpg", 3)]
        assert objects[0].last_modified is not None

    def test_delete_missing_key_is_fine(self):
        run(MockStorageClient().delete_object("images/nope.jpg"))

    def test_get_missing_key(self):
        with pytest.raises(ObjectNotFoundError):
            run(MockStorageClient().get_object("images/nope.jpg"))

    def test_multipart_round_trip(self):
        storage = MockStorageClient()

        async def scenario():
            upload_id = await storage.create_multipart_upload("images/video-1-a.mp4", "video/mp4")
            etag1 = await storage.upload_part("images/video-1-a.mp4", upload_id, 1, b"hello ")
            etag2 = await storage.upload_part("images/video-1-a.mp4", upload_id, 2, b"world")
            await storage.complete_multipart_upload(
                "images/video-1-a.mp4",
                upload_id,
                [CompletedPart(1, etag1.strip('"')), CompletedPart(2, etag2.strip('"'))],
            )
            stream = await storage.get_object("images/video-1-a.mp4")
            return b"".join(stream.body), stream.content_type

        data, content_type = run(scenario())
        assert data == b"hello world"
        assert content_type == "video/mp4"
        assert storage.pending_upload_ids == []

    def test_out_of_order_parts_are_rejected(self):
        storage = MockStorageClient()

        async def scenario():
            upload_id = await storage.create_multipart_upload("k", "video/mp4")
            etag1 = await storage.upload_part("k", upload_id, 1, b"a")
            etag2 = await storage.upload_part("k", upload_id, 2, b"b")
            await storage.complete_multipart_upload(
                "k", upload_id, [CompletedPart(2, etag2), CompletedPart(1, etag1)]
            )

        with pytest.raises(StorageError) as exc_info:
            run(scenario())
        assert "ascending order" in exc_info.value.service_message
        assert storage.keys == []

    def test_wrong_etag_is_rejected(self):
        storage = MockStorageClient()

        async def scenario():
            upload_id = await storage.create_multipart_upload("k", "video/mp4")
            await storage.upload_part("k", upload_id, 1, b"a")
            await storage.complete_multipart_upload("k", upload_id, [CompletedPart(1, "nope")])

        with pytest.raises(StorageError, match="Completion failed"):
            run(scenario())

    def test_abort_releases_upload(self):
        storage = MockStorageClient()

        async def scenario():
            upload_id = await storage.create_multipart_upload("k", "video/mp4")
            await storage.abort_multipart_upload("k", upload_id)
            return upload_id

        upload_id = run(scenario())
        assert storage.pending_upload_ids == []
        with pytest.raises(StorageError):
            run(storage.presign_upload_part("k", upload_id, 1))
