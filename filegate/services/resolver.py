"""Decides which backend holds an identifier's bytes and which record governs it."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from filegate.models.file_record import FileRecord, StorageKind
from filegate.services.key_namespace import BLOB_MARKER
from filegate.services.legacy_host import is_legacy_path
from filegate.services.storage import StorageManager

logger = logging.getLogger(__name__)


class BackendVariant(enum.Enum):
    blob = "r2"
    legacy = "telegram"


@dataclass
class Resolution:
    variant: BackendVariant
    storage_key: str
    # Index key the governing record lives at (or will be created at);
    # None when there is no index to hold one.
    record_key: str | None
    record: FileRecord | None = None
    passthrough: bool = False


class StorageResolver:
    def __init__(self, storage: StorageManager) -> None:
        self.storage = storage

    def resolve(self, identifier: str) -> Resolution | None:
        if identifier.startswith(BLOB_MARKER):
            return self._resolve_marked_blob(identifier)

        index = self.storage.index
        if index is not None:
            found = self.storage.find_record(identifier)
            if found is not None:
                key, record = found
                if record.storage is StorageKind.r2:
                    self.storage.require_blob()
                    return Resolution(
                        variant=BackendVariant.blob,
                        storage_key=record.r2_key or identifier,
                        record_key=key,
                        record=record,
                    )
                return self._legacy(identifier, record_key=key, record=record)

        record_key = identifier if index is not None else None
        if is_legacy_path(identifier):
            return self._legacy(identifier, record_key=record_key, passthrough=True)
        return self._legacy(identifier, record_key=record_key)

    def _resolve_marked_blob(self, identifier: str) -> Resolution:
        self.storage.require_blob()
        blob_key = identifier[len(BLOB_MARKER):]
        record = None
        record_key = None
        if self.storage.index is not None:
            record_key = identifier
            record = self.storage.read_record(record_key, blob_key)
        return Resolution(
            variant=BackendVariant.blob,
            storage_key=blob_key,
            record_key=record_key,
            record=record,
        )

    def _legacy(
        self,
        identifier: str,
        *,
        record_key: str | None,
        record: FileRecord | None = None,
        passthrough: bool = False,
    ) -> Resolution | None:
        if self.storage.legacy is None:
            logger.debug("resolve_miss id=%s reason=no_legacy_host", identifier)
            return None
        return Resolution(
            variant=BackendVariant.legacy,
            storage_key=identifier,
            record_key=record_key,
            record=record,
            passthrough=passthrough,
        )
