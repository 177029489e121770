"""Redis-backed key/value index holding file records and sessions."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

import redis

from filegate.services.object_storage import (
    ALL_CAPABILITIES,
    ListedKey,
    ListPage,
    ObjectStorageError,
    StoredObject,
)

logger = logging.getLogger(__name__)

_VALUE_FIELD = "value"
_METADATA_FIELD = "metadata"
_GLOB_CHARS = re.compile(r"([\\*?\[\]])")
_DEFAULT_LIST_LIMIT = 1000


def _escape_glob(value: str) -> str:
    return _GLOB_CHARS.sub(r"\\\1", value)


def _load_metadata(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("index_metadata_corrupt raw=%.80s", raw)
        return {}
    return data if isinstance(data, dict) else {}


class RedisMetadataIndex:
    """Metadata-only records are the normal case: the value is usually empty."""

    name = "kv"
    capabilities = ALL_CAPABILITIES

    def __init__(self, client: Any, namespace: str = "img_url") -> None:
        self.client = client
        self.namespace = namespace

    @classmethod
    def from_url(cls, url: str, namespace: str = "img_url") -> RedisMetadataIndex:
        return cls(redis.Redis.from_url(url, decode_responses=True), namespace)

    def _redis_key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def _index_key(self, redis_key: str) -> str:
        return redis_key[len(self.namespace) + 1:]

    def put(
        self,
        key: str,
        data: bytes | str = "",
        *,
        content_type: str | None = None,
        metadata: dict[str, Any] | None = None,
        ttl: int | None = None,
    ) -> None:
        value = data.decode("utf-8") if isinstance(data, bytes) else data
        mapping = {
            _VALUE_FIELD: value or "",
            _METADATA_FIELD: json.dumps(metadata) if metadata is not None else "",
        }
        redis_key = self._redis_key(key)
        try:
            pipe = self.client.pipeline()
            pipe.delete(redis_key)
            pipe.hset(redis_key, mapping=mapping)
            if ttl:
                pipe.expire(redis_key, max(1, int(ttl)))
            pipe.execute()
        except redis.RedisError as exc:
            raise ObjectStorageError(f"Failed to write index key {key}") from exc

    def get(self, key: str) -> StoredObject | None:
        try:
            entry = self.client.hgetall(self._redis_key(key))
        except redis.RedisError as exc:
            raise ObjectStorageError(f"Failed to read index key {key}") from exc
        if not entry:
            return None
        value = entry.get(_VALUE_FIELD) or ""
        body = value.encode("utf-8")
        return StoredObject(
            key=key,
            chunks=iter([body]) if body else iter(()),
            content_length=len(body),
            metadata=_load_metadata(entry.get(_METADATA_FIELD)),
        )

    get_with_metadata = get

    def get_value(self, key: str) -> str | None:
        try:
            value = self.client.hget(self._redis_key(key), _VALUE_FIELD)
        except redis.RedisError as exc:
            raise ObjectStorageError(f"Failed to read index key {key}") from exc
        return value if value else None

    def delete(self, key: str) -> None:
        try:
            self.client.delete(self._redis_key(key))
        except redis.RedisError as exc:
            raise ObjectStorageError(f"Failed to delete index key {key}") from exc

    def list(
        self,
        *,
        prefix: str | None = None,
        limit: int | None = None,
        cursor: str | None = None,
    ) -> ListPage:
        limit = limit or _DEFAULT_LIST_LIMIT
        match = f"{_escape_glob(self.namespace)}:{_escape_glob(prefix or '')}*"
        scan_cursor = int(cursor) if cursor else 0
        names: list[str] = []
        try:
            # SCAN batch sizes are approximate, so a page can run slightly past limit.
            while True:
                scan_cursor, batch = self.client.scan(
                    cursor=scan_cursor, match=match, count=limit
                )
                names.extend(batch)
                if scan_cursor == 0 or len(names) >= limit:
                    break
            pipe = self.client.pipeline()
            for name in names:
                pipe.hget(name, _METADATA_FIELD)
            raw_metadata = pipe.execute() if names else []
        except redis.RedisError as exc:
            raise ObjectStorageError("Failed to list index keys") from exc

        keys = [
            ListedKey(name=self._index_key(name), metadata=_load_metadata(raw))
            for name, raw in zip(names, raw_metadata)
        ]
        complete = scan_cursor == 0
        return ListPage(
            keys=keys,
            list_complete=complete,
            cursor=None if complete else str(scan_cursor),
        )
