"""S3 Storage Uploader: verifies public URLs and boto error mapping against a fake client."""

import pytest
from botocore.exceptions import ClientError

from jewelpreview.core.errors import ProviderError
from jewelpreview.infrastructure.storage import S3StorageUploader


class _FakeS3:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.uploads: list[dict] = []
        self.deleted: list[str] = []

    def upload_fileobj(self, fileobj, bucket, key, ExtraArgs=None):
        if self.error:
            raise self.error
        self.uploads.append({
            "bucket": bucket, "key": key, "body": fileobj.read(), "extra": ExtraArgs,
        })

    def delete_object(self, Bucket, Key):
        self.deleted.append(Key)


def _uploader(**kwargs) -> S3StorageUploader:
    kwargs.setdefault("client", _FakeS3())
    return S3StorageUploader("previews", **kwargs)


async def test_upload_bytes_returns_public_url():
    s3 = _FakeS3()
    uploader = _uploader(client=s3, public_base_url="https://cdn.example/")

    url = await uploader.upload(b"png", "ai-previews/s/j/preview.png", "image/png")

    assert url == "https://cdn.example/ai-previews/s/j/preview.png"
    assert s3.uploads[0]["body"] == b"png"
    assert s3.uploads[0]["extra"] == {"ContentType": "image/png", "ACL": "public-read"}


def test_public_url_path_style_endpoint():
    uploader = _uploader(service_url="http://minio:9000")
    assert uploader.public_url("k.png") == "http://minio:9000/previews/k.png"


def test_public_url_virtual_host_endpoint():
    uploader = _uploader(service_url="https://r2.example", force_path_style=False)
    assert uploader.public_url("k.png") == "https://previews.r2.example/k.png"


def test_public_url_defaults_to_aws():
    uploader = _uploader(region="eu-west-1")
    assert uploader.public_url("k.png") == "https://previews.s3.eu-west-1.amazonaws.com/k.png"


async def test_client_error_becomes_provider_error():
    error = ClientError({"Error": {"Code": "AccessDenied", "Message": "no"}}, "PutObject")
    uploader = _uploader(client=_FakeS3(error=error))

    with pytest.raises(ProviderError) as exc_info:
        await uploader.upload(b"png", "k.png", "image/png")

    assert exc_info.value.provider == "storage"


async def test_delete_removes_object():
    s3 = _FakeS3()
    await _uploader(client=s3).delete("k.png")
    assert s3.deleted == ["k.png"]
