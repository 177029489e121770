from __future__ import annotations

import pytest

from filegate.services.object_storage import (
    CAP_GET,
    CAP_LIST,
    CAP_PUT,
    ObjectStorageError,
    S3BlobStore,
    UnsupportedOperationError,
)
from filegate.services.legacy_host import TelegramFileHost
from tests.mocks import ClientError, FakeS3Client


def _store(fake: FakeS3Client) -> S3BlobStore:
    return S3BlobStore("bucket", "http://minio:9000", "a", "b", "us-east-1", client=fake)


def test_bucket_creation_idempotent():
    fake = FakeS3Client()
    fake.bucket_exists = False
    store = _store(fake)

    store.ensure_bucket()
    assert fake.created_bucket is True

    fake.created_bucket = False
    store.ensure_bucket()
    assert fake.created_bucket is False


def test_put_get_keeps_content_type_and_custom_metadata():
    fake = FakeS3Client()
    store = _store(fake)

    store.put(
        "1700_abc.png",
        b"png-bytes",
        content_type="image/png",
        metadata={"fileName": "résumé photo.png", "fileSize": 9},
    )

    # Header-safe on the wire.
    assert all(value.isascii() for value in fake.metadata["1700_abc.png"].values())
    obj = store.get("1700_abc.png")
    assert obj is not None
    assert obj.read() == b"png-bytes"
    assert obj.content_type == "image/png"
    assert obj.content_length == 9
    assert obj.metadata == {"fileName": "résumé photo.png", "fileSize": "9"}


def test_get_missing_is_none_and_other_failures_raise():
    fake = FakeS3Client()
    store = _store(fake)
    assert store.get("missing") is None

    fake.fail_with = ClientError("AccessDenied")
    with pytest.raises(ObjectStorageError):
        store.get("missing")


def test_delete_removes_object():
    fake = FakeS3Client()
    store = _store(fake)
    store.put("k", b"v")
    store.delete("k")
    assert "k" not in fake.objects
    assert store.get("k") is None


def test_list_translates_truncation_into_page_shape():
    fake = FakeS3Client()
    store = _store(fake)
    for name in ("a.png", "b.png", "c.png"):
        store.put(name, b"x", metadata={"fileName": name})

    first = store.list(limit=2)
    assert [item.name for item in first.keys] == ["a.png", "b.png"]
    assert first.keys[0].metadata == {"fileName": "a.png"}
    assert first.list_complete is False
    assert first.cursor

    second = store.list(limit=2, cursor=first.cursor)
    assert [item.name for item in second.keys] == ["c.png"]
    assert second.list_complete is True
    assert second.cursor is None


def test_list_by_prefix_without_metadata():
    fake = FakeS3Client()
    store = _store(fake)
    store.put("img/a", b"1")
    store.put("doc/b", b"2")
    page = store.list(prefix="img/", include_metadata=False)
    assert [(item.name, item.metadata) for item in page.keys] == [("img/a", {})]


def test_legacy_host_is_read_only():
    store = _store(FakeS3Client())
    assert CAP_PUT in store.capabilities
    legacy = TelegramFileHost(bot_token=None)
    assert legacy.capabilities == frozenset({CAP_GET})
    assert CAP_LIST not in legacy.capabilities
    with pytest.raises(UnsupportedOperationError):
        legacy.put("k", b"v")
    with pytest.raises(UnsupportedOperationError):
        legacy.list()

