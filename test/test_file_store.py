from __future__ import annotations

import io
import re
from unittest import mock

import pytest
from botocore.exceptions import ClientError

from storage.file_store import LocalFileStore, generate_handle, validate_handle
from storage.s3_store import S3FileStore


def test_generate_handle_shape() -> None:
    handle = generate_handle(".JPG")
    assert re.fullmatch(r"\d+-\d+\.jpg", handle)
    assert generate_handle("png").endswith(".png")
    assert generate_handle(".jpg") != generate_handle(".jpg")


@pytest.mark.parametrize("handle", ["", "..", ".", "../etc/passwd", "a/b.jpg", "a\\b.jpg", "a\x00.jpg"])
def test_validate_handle_rejects_paths(handle: str) -> None:
    with pytest.raises(ValueError):
        validate_handle(handle)


def test_local_store_round_trip(tmp_path) -> None:
    store = LocalFileStore(tmp_path / "uploads")

    handle = store.save(io.BytesIO(b"hello world"), ".jpg")

    assert handle.endswith(".jpg")
    assert store.exists(handle)
    assert store.stat(handle).size_bytes == 11
    assert b"".join(store.open(handle)) == b"hello world"
    assert store.delete(handle)
    assert not store.exists(handle)
    assert not store.delete(handle)


def test_local_store_missing_and_escaping_handles(tmp_path) -> None:
    store = LocalFileStore(tmp_path / "uploads")
    (tmp_path / "secret.txt").write_text("secret", encoding="utf-8")

    with pytest.raises(FileNotFoundError):
        store.stat("123-456.jpg")
    with pytest.raises(FileNotFoundError):
        store.open("123-456.jpg")
    with pytest.raises(ValueError):
        store.open("../secret.txt")
    assert not store.exists("../secret.txt")


def _client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "HeadObject")


def test_s3_store_creates_missing_bucket() -> None:
    client = mock.Mock()
    client.head_bucket.side_effect = _client_error("404")

    S3FileStore("media", client=client, region_name="eu-west-1")

    client.create_bucket.assert_called_once_with(
        Bucket="media", CreateBucketConfiguration={"LocationConstraint": "eu-west-1"}
    )


def test_s3_store_save_stat_open() -> None:
    client = mock.Mock()
    client.head_object.return_value = {"ContentLength": 42}
    body = mock.Mock()
    body.iter_chunks.return_value = iter([b"ab", b"cd"])
    client.get_object.return_value = {"Body": body}
    store = S3FileStore("media", prefix="uploads/", client=client)

    handle = store.save(io.BytesIO(b"data"), ".mp4")

    args = client.upload_fileobj.call_args[0]
    assert args[1:] == ("media", f"uploads/{handle}")
    assert store.stat(handle).size_bytes == 42
    assert b"".join(store.open(handle)) == b"abcd"
    client.get_object.assert_called_once_with(Bucket="media", Key=f"uploads/{handle}")


def test_s3_store_maps_missing_object() -> None:
    client = mock.Mock()
    client.head_object.side_effect = _client_error("404")
    client.get_object.side_effect = _client_error("NoSuchKey")
    store = S3FileStore("media", client=client)

    with pytest.raises(FileNotFoundError):
        store.stat("1-2.jpg")
    with pytest.raises(FileNotFoundError):
        store.open("1-2.jpg")
    assert not store.exists("1-2.jpg")


def test_s3_store_other_errors_are_os_errors() -> None:
    client = mock.Mock()
    client.head_object.side_effect = _client_error("AccessDenied")
    client.upload_fileobj.side_effect = _client_error("AccessDenied")
    store = S3FileStore("media", client=client)

    with pytest.raises(OSError):
        store.stat("1-2.jpg")
    with pytest.raises(OSError):
        store.save(io.BytesIO(b"x"), ".jpg")
    with pytest.raises(ValueError):
        store.stat("../1-2.jpg")
