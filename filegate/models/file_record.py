"""Access-control and bookkeeping record kept in the metadata index for every file."""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field, replace
from typing import Any

UNLABELLED = "None"
ADULT_LABEL = "adult"


class ListType(enum.Enum):
    none = "None"
    white = "White"
    block = "Block"


class StorageKind(enum.Enum):
    kv_legacy = "kv-legacy"
    r2 = "r2"


def now_ms() -> int:
    return int(time.time() * 1000)


def _parse_list_type(value: Any) -> ListType:
    try:
        return ListType(value)
    except ValueError:
        return ListType.none


def _parse_int(value: Any, default: int = 0) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass
class FileRecord:
    list_type: ListType = ListType.none
    label: str = UNLABELLED
    timestamp: int = field(default_factory=now_ms)
    file_name: str = ""
    file_size: int = 0
    liked: bool = False
    storage: StorageKind = StorageKind.kv_legacy
    r2_key: str | None = None
    content_type: str | None = None

    @classmethod
    def bootstrap(cls, identifier: str) -> FileRecord:
        """Default record for an identifier observed for the first time."""
        return cls(file_name=identifier)

    @classmethod
    def from_metadata(cls, metadata: dict[str, Any] | None, identifier: str = "") -> FileRecord:
        data = metadata or {}
        is_r2 = data.get("storage") == "r2" or data.get("storageType") == "r2"
        return cls(
            list_type=_parse_list_type(data.get("ListType")),
            label=str(data.get("Label") or UNLABELLED),
            timestamp=_parse_int(data.get("TimeStamp"), now_ms()),
            file_name=str(data.get("fileName") or identifier),
            file_size=_parse_int(data.get("fileSize")),
            liked=bool(data.get("liked", False)),
            storage=StorageKind.r2 if is_r2 else StorageKind.kv_legacy,
            r2_key=data.get("r2Key") or None,
            content_type=data.get("contentType") or None,
        )

    def to_metadata(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "ListType": self.list_type.value,
            "Label": self.label,
            "TimeStamp": self.timestamp,
            "liked": self.liked,
            "fileName": self.file_name,
            "fileSize": self.file_size,
        }
        if self.storage is StorageKind.r2:
            payload["storage"] = StorageKind.r2.value
        if self.r2_key:
            payload["r2Key"] = self.r2_key
        if self.content_type:
            payload["contentType"] = self.content_type
        return payload

    @property
    def is_adult(self) -> bool:
        return self.label == ADULT_LABEL

    @property
    def is_moderated(self) -> bool:
        return self.label != UNLABELLED

    def with_label(self, label: str) -> FileRecord:
        return replace(self, label=label)

    def with_list_type(self, list_type: ListType) -> FileRecord:
        return replace(self, list_type=list_type)
