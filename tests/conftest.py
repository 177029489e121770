from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from filegate.main import create_app
from filegate.services.legacy_host import TelegramFileHost
from filegate.services.metadata_index import RedisMetadataIndex
from filegate.services.object_storage import S3BlobStore
from filegate.services.storage import StorageManager
from tests.mocks import (
    LEGACY_URL,
    TELEGRAM_URL,
    FakeRedis,
    FakeS3Client,
    legacy_transport,
    make_settings,
)


@pytest.fixture()
def fake_redis():
    return FakeRedis()


@pytest.fixture()
def fake_s3():
    return FakeS3Client()


@pytest.fixture()
def index(fake_redis):
    return RedisMetadataIndex(fake_redis, namespace="img_url")


@pytest.fixture()
def blob(fake_s3):
    return S3BlobStore("files", None, None, None, "auto", client=fake_s3)


@pytest.fixture()
def legacy_routes():
    return {}


@pytest.fixture()
def legacy_calls():
    return []


@pytest.fixture()
def legacy(legacy_routes, legacy_calls):
    client = httpx.Client(transport=legacy_transport(legacy_routes, legacy_calls))
    return TelegramFileHost(
        bot_token="123:token",
        api_url=TELEGRAM_URL,
        legacy_host_url=LEGACY_URL,
        client=client,
    )


@pytest.fixture()
def storage(index, blob, legacy):
    return StorageManager(index=index, blob=blob, legacy=legacy, use_r2=True)


@pytest.fixture()
def settings():
    return make_settings(redis_url="redis://fake", s3_bucket_name="files", use_r2=True)


@pytest.fixture()
def client(settings, storage):
    app = create_app(settings=settings, storage=storage)
    return TestClient(app, raise_server_exceptions=False)
