"""Holds the configured backends and the record-level operations built on them."""

from __future__ import annotations

import logging
from typing import Any

from filegate.config import Settings
from filegate.models.file_record import FileRecord, ListType, StorageKind
from filegate.services import key_namespace
from filegate.services.legacy_host import TelegramFileHost
from filegate.services.metadata_index import RedisMetadataIndex
from filegate.services.object_storage import (
    BackendUnavailableError,
    ListPage,
    S3BlobStore,
    StorageBackend,
    StoredObject,
)

logger = logging.getLogger(__name__)


class StorageManager:
    def __init__(
        self,
        *,
        index: RedisMetadataIndex | None = None,
        blob: S3BlobStore | None = None,
        legacy: TelegramFileHost | None = None,
        use_r2: bool = False,
    ) -> None:
        self.index = index
        self.blob = blob
        self.legacy = legacy
        self.use_r2 = bool(use_r2 and blob is not None)

    @classmethod
    def from_settings(cls, settings: Settings) -> StorageManager:
        index = None
        if settings.index_configured:
            index = RedisMetadataIndex.from_url(settings.redis_url, settings.kv_namespace)
        blob = None
        if settings.blob_configured:
            blob = S3BlobStore(
                bucket_name=settings.s3_bucket_name,
                endpoint_url=settings.s3_endpoint_url,
                access_key=settings.s3_access_key,
                secret_key=settings.s3_secret_key,
                region=settings.s3_region,
            )
        legacy = TelegramFileHost(
            bot_token=settings.tg_bot_token,
            api_url=settings.telegram_api_url,
            legacy_host_url=settings.legacy_host_url,
            timeout=settings.http_timeout_seconds,
        )
        return cls(index=index, blob=blob, legacy=legacy, use_r2=settings.use_r2)

    @property
    def primary(self) -> StorageBackend | None:
        return self.blob if self.use_r2 else self.index

    def require_index(self) -> RedisMetadataIndex:
        if self.index is None:
            raise BackendUnavailableError("kv", "KV namespace not configured")
        return self.index

    def require_blob(self) -> S3BlobStore:
        if self.blob is None:
            raise BackendUnavailableError("r2", "R2 storage not configured")
        return self.blob

    def require_legacy(self) -> TelegramFileHost:
        if self.legacy is None:
            raise BackendUnavailableError("telegram", "Legacy file host not configured")
        return self.legacy

    def read_record(self, key: str, identifier: str = "") -> FileRecord | None:
        entry = self.require_index().get_with_metadata(key)
        if entry is None or not entry.metadata:
            return None
        return FileRecord.from_metadata(entry.metadata, identifier or key_namespace.strip_prefix(key))

    def write_record(self, key: str, record: FileRecord) -> None:
        self.require_index().put(key, "", metadata=record.to_metadata())

    def find_record(self, identifier: str) -> tuple[str, FileRecord] | None:
        """First record across the historical key formats, in lookup order."""
        for key in key_namespace.candidate_keys(identifier):
            record = self.read_record(key, identifier)
            if record is not None:
                return key, record
        return None

    def put_metadata(self, identifier: str, file_name: str, record: FileRecord) -> str:
        key = key_namespace.key_for(identifier, file_name)
        self.write_record(key, record)
        return key

    def put_file(
        self,
        key: str,
        content: bytes,
        *,
        content_type: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Write file bytes to the primary target; only the blob store holds content."""
        target = self.primary
        if target is None or target is not self.blob:
            raise BackendUnavailableError("r2", "R2 storage is not the primary write target")
        target.put(key, content, content_type=content_type, metadata=metadata)

    def get_file(self, key: str) -> StoredObject | None:
        return self.require_blob().get(key)

    def set_list_type(self, identifier: str, list_type: ListType) -> FileRecord | None:
        found = self.find_record(identifier)
        if found is None:
            return None
        key, record = found
        updated = record.with_list_type(list_type)
        self.write_record(key, updated)
        logger.info("file_list_type_set id=%s key=%s list_type=%s", identifier, key, list_type.value)
        return updated

    def delete_file(self, identifier: str) -> bool:
        found = self.find_record(identifier)
        if found is None:
            return False
        key, record = found
        self.require_index().delete(key)
        if record.storage is StorageKind.r2:
            self.require_blob().delete(record.r2_key or identifier)
        logger.info("file_deleted id=%s key=%s storage=%s", identifier, key, record.storage.value)
        return True

    def list_files(
        self,
        file_category: str = "all",
        *,
        limit: int | None = None,
        cursor: str | None = None,
    ) -> ListPage:
        page = self.require_index().list(
            prefix=key_namespace.type_prefix(file_category), limit=limit, cursor=cursor
        )
        system_prefixes = tuple(
            key_namespace.KEY_PREFIXES[name] for name in ("SESSION", "UPLOAD", "CHUNK")
        )
        page.keys = [item for item in page.keys if not item.name.startswith(system_prefixes)]
        return page
