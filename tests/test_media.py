import boto3
import pytest
from botocore.stub import ANY, Stubber

from recipeshare.exceptions import MediaHostError
from recipeshare.media import (
    LocalMediaHost,
    S3MediaHost,
    StoredImage,
    Upload,
    thumbnail_url,
    upload_all,
)


def test_thumbnail_url_substitutes_size_once():
    url = "https://img.example.com/upload/recipeshare/abc.jpg"
    assert thumbnail_url(url) == "https://img.example.com/upload/w_200/recipeshare/abc.jpg"
    assert thumbnail_url(url, 80) == "https://img.example.com/upload/w_80/recipeshare/abc.jpg"
    assert thumbnail_url("/media/upload/a/upload/b.jpg").count("w_200") == 1


def test_local_upload_and_destroy(tmp_path):
    host = LocalMediaHost(tmp_path, base_url="/media/", folder="pics")
    image = host.upload(Upload("Photo.JPG", "image/jpeg", b"bytes"))

    assert image.filename.startswith("pics/")
    assert image.filename.endswith(".jpg")
    assert image.url == f"/media/upload/{image.filename}"
    assert host.open(image.filename).read_bytes() == b"bytes"

    host.destroy(image.filename)
    assert host.open(image.filename) is None
    # destroying twice is not an error
    host.destroy(image.filename)


def test_local_rejects_paths_outside_root(tmp_path):
    host = LocalMediaHost(tmp_path)
    with pytest.raises(MediaHostError):
        host.destroy("../secrets.txt")
    assert host.open("../secrets.txt") is None


class FlakyHost:
    def __init__(self, fail_on):
        self.fail_on = fail_on
        self.stored = []
        self.destroyed = []

    def upload(self, upload):
        if len(self.stored) == self.fail_on:
            raise MediaHostError("quota exceeded")
        image = StoredImage(url=f"/upload/{upload.original_name}", filename=upload.original_name)
        self.stored.append(image)
        return image

    def destroy(self, filename):
        self.destroyed.append(filename)


def test_upload_all_is_all_or_nothing():
    host = FlakyHost(fail_on=1)
    uploads = [Upload("a.jpg", "image/jpeg", b"a"), Upload("b.jpg", "image/jpeg", b"b")]
    with pytest.raises(MediaHostError):
        upload_all(host, uploads)
    assert host.destroyed == ["a.jpg"]

    ok = FlakyHost(fail_on=5)
    assert [img.filename for img in upload_all(ok, uploads)] == ["a.jpg", "b.jpg"]
    assert ok.destroyed == []


@pytest.fixture
def s3_client():
    return boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="test",
        aws_secret_access_key="test",
    )


def make_s3_host(client):
    return S3MediaHost(
        endpoint_url=None,
        region_name="us-east-1",
        access_key_id="test",
        secret_access_key="test",
        bucket="recipes",
        public_base_url="https://cdn.example.com/recipes/",
        folder="rs",
        client=client,
    )


def test_s3_upload_and_destroy(s3_client):
    host = make_s3_host(s3_client)
    with Stubber(s3_client) as stub:
        stub.add_response(
            "put_object",
            {},
            {"Bucket": "recipes", "Key": ANY, "Body": b"png", "ContentType": "image/png"},
        )
        image = host.upload(Upload("a.png", "image/png", b"png"))
        stub.add_response(
            "delete_object", {}, {"Bucket": "recipes", "Key": f"upload/{image.filename}"}
        )
        host.destroy(image.filename)
        stub.assert_no_pending_responses()

    assert image.filename.startswith("rs/") and image.filename.endswith(".png")
    assert image.url == f"https://cdn.example.com/recipes/upload/{image.filename}"


def test_s3_errors_become_media_host_errors(s3_client):
    host = make_s3_host(s3_client)
    with Stubber(s3_client) as stub:
        stub.add_client_error("delete_object", service_error_code="AccessDenied")
        with pytest.raises(MediaHostError):
            host.destroy("rs/a.png")
