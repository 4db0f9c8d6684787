"""
tests/unit/test_storage_client.py — S3 adapter with a mocked boto3 client.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from backend.app.clients.storage_client import S3Storage, make_object_key
from backend.app.errors import ErrorCode, IntegrationError


def _storage(s3=None, **kwargs) -> S3Storage:
    return S3Storage(bucket="photos", region="eu-west-1", s3_client=s3 or MagicMock(), **kwargs)


def _client_error(operation: str) -> ClientError:
    return ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, operation)


# ═══════════════════════════════════════════════════════════════════════════
# Keys and URLs
# ═══════════════════════════════════════════════════════════════════════════

class TestObjectKeys:

    def test_key_is_prefixed_stamped_and_slugged(self):
        assert make_object_key("/avatars/", "My Photo (1).JPG", now_ms=1700000000000) == (
            "avatars/1700000000000-my-photo-1.jpg"
        )

    def test_unusable_stem_falls_back(self):
        assert make_object_key("uploads", "???.png", now_ms=5) == "uploads/5-file.png"

    def test_empty_filename_falls_back(self):
        assert make_object_key("uploads", "", now_ms=5) == "uploads/5-file"

    def test_default_public_url(self):
        storage = _storage()
        assert storage.url_for("a/b.png") == "https://photos.s3.eu-west-1.amazonaws.com/a/b.png"

    def test_custom_public_url_strips_trailing_slash(self):
        storage = _storage(public_base_url="https://cdn.test/")
        assert storage.url_for("a/b.png") == "https://cdn.test/a/b.png"

    @pytest.mark.parametrize("url", [
        "https://photos.s3.eu-west-1.amazonaws.com/avatars/1-me.png",
        "https://elsewhere.test/avatars/1-me.png",
    ])
    def test_key_from_url(self, url):
        assert _storage().key_from_url(url) == "avatars/1-me.png"


# ═══════════════════════════════════════════════════════════════════════════
# Operations
# ═══════════════════════════════════════════════════════════════════════════

class TestOperations:

    def test_upload_passes_content_type(self):
        s3 = MagicMock()
        url = _storage(s3).upload_file(b"data", "me.png", "image/png", prefix="avatars")

        kwargs = s3.upload_fileobj.call_args.kwargs
        assert kwargs["Bucket"] == "photos"
        assert kwargs["Key"].startswith("avatars/")
        assert kwargs["Key"].endswith("-me.png")
        assert kwargs["ExtraArgs"] == {"ContentType": "image/png"}
        assert kwargs["Fileobj"].read() == b"data"
        assert url == f"https://photos.s3.eu-west-1.amazonaws.com/{kwargs['Key']}"

    @pytest.mark.parametrize("error", [
        _client_error("PutObject"),
        EndpointConnectionError(endpoint_url="https://s3.test"),
    ])
    def test_upload_failure_becomes_integration_error(self, error):
        s3 = MagicMock()
        s3.upload_fileobj.side_effect = error

        with pytest.raises(IntegrationError) as exc_info:
            _storage(s3).upload_file(b"data", "me.png", "image/png")
        assert exc_info.value.code == ErrorCode.INTEGRATION_ERROR
        assert exc_info.value.__cause__ is error

    def test_delete_uses_key_from_url(self):
        s3 = MagicMock()
        _storage(s3).delete_file("https://photos.s3.eu-west-1.amazonaws.com/avatars/1-me.png")
        s3.delete_object.assert_called_once_with(Bucket="photos", Key="avatars/1-me.png")

    def test_delete_failure(self):
        s3 = MagicMock()
        s3.delete_object.side_effect = _client_error("DeleteObject")
        with pytest.raises(IntegrationError):
            _storage(s3).delete_file("https://photos.s3.eu-west-1.amazonaws.com/x.png")

    def test_signed_url_defaults_expiry(self):
        s3 = MagicMock()
        s3.generate_presigned_url.return_value = "https://signed"

        assert _storage(s3, signed_url_expires=600).signed_url("exports/a.gpx") == "https://signed"
        s3.generate_presigned_url.assert_called_once_with(
            "get_object",
            Params={"Bucket": "photos", "Key": "exports/a.gpx"},
            ExpiresIn=600,
        )


# ═══════════════════════════════════════════════════════════════════════════
# Batch upload
# ═══════════════════════════════════════════════════════════════════════════

class TestUploadMany:

    def test_empty_batch_makes_no_calls(self):
        s3 = MagicMock()
        assert _storage(s3).upload_many([]) == []
        s3.upload_fileobj.assert_not_called()

    def test_urls_follow_input_order(self):
        s3 = MagicMock()
        files = [(b"1", "first.jpg", "image/jpeg"), (b"2", "second.jpg", "image/jpeg"), (b"3", "third.png", "image/png")]

        urls = _storage(s3, max_concurrency=3).upload_many(files, prefix="trips/7")

        assert [url.rsplit("-", 1)[1] for url in urls] == ["first.jpg", "second.jpg", "third.png"]
        assert all("/trips/7/" in url for url in urls)
        assert s3.upload_fileobj.call_count == 3

    def test_one_failure_fails_the_batch(self):
        s3 = MagicMock()

        def upload(Fileobj, Bucket, Key, ExtraArgs):
            if Key.endswith("-bad.jpg"):
                raise _client_error("PutObject")

        s3.upload_fileobj.side_effect = upload

        with pytest.raises(IntegrationError):
            _storage(s3, max_concurrency=1).upload_many([
                (b"1", "good.jpg", "image/jpeg"),
                (b"2", "bad.jpg", "image/jpeg"),
            ])
