"""Uniform storage contract and the S3-compatible blob store."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any, Protocol
from urllib.parse import quote, unquote

logger = logging.getLogger(__name__)

CAP_PUT = "put"
CAP_GET = "get"
CAP_DELETE = "delete"
CAP_LIST = "list"
ALL_CAPABILITIES = frozenset({CAP_PUT, CAP_GET, CAP_DELETE, CAP_LIST})

_STREAM_CHUNK_SIZE = 1024 * 1024


class ObjectStorageError(Exception):
    """Generic object storage failure."""


class ObjectNotFoundError(ObjectStorageError):
    """Raised when object is missing."""


class BackendUnavailableError(ObjectStorageError):
    """Raised when a required backend binding is not configured."""

    def __init__(self, backend: str, message: str | None = None):
        self.backend = backend
        super().__init__(message or f"{backend} storage not configured")


class UnsupportedOperationError(ObjectStorageError):
    """Raised when a backend variant lacks the requested capability."""


class UpstreamError(ObjectStorageError):
    """Remote host failure; carries the upstream response when there was one."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        content: bytes = b"",
        headers: dict[str, str] | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}

    @property
    def has_response(self) -> bool:
        return self.status_code is not None


@dataclass
class StoredObject:
    """Object body plus whatever metadata the backend keeps alongside it."""

    key: str
    chunks: Iterator[bytes] = field(default_factory=lambda: iter(()))
    content_type: str | None = None
    content_length: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    status_code: int = 200

    def read(self) -> bytes:
        return b"".join(self.chunks)


@dataclass
class ListedKey:
    name: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ListPage:
    keys: list[ListedKey]
    list_complete: bool
    cursor: str | None = None


class StorageBackend(Protocol):
    """Capability-set contract each backend variant implements."""

    name: str
    capabilities: frozenset[str]

    def put(
        self,
        key: str,
        data: bytes | str,
        *,
        content_type: str | None = None,
        metadata: dict[str, Any] | None = None,
        ttl: int | None = None,
    ) -> None: ...

    def get(self, key: str) -> StoredObject | None: ...

    def delete(self, key: str) -> None: ...

    def list(
        self,
        *,
        prefix: str | None = None,
        limit: int | None = None,
        cursor: str | None = None,
    ) -> ListPage: ...


# Custom metadata travels as HTTP headers: S3 lowercases the names and only
# accepts ASCII values.
_CUSTOM_METADATA_KEYS = ("fileName", "fileSize", "uploadTime", "fileType")


def _encode_metadata(metadata: dict[str, Any]) -> dict[str, str]:
    return {key: quote(str(value), safe="") for key, value in metadata.items()}


def _decode_metadata(raw: dict[str, str] | None) -> dict[str, Any]:
    restored = {name.lower(): name for name in _CUSTOM_METADATA_KEYS}
    return {restored.get(key.lower(), key): unquote(value) for key, value in (raw or {}).items()}


class S3BlobStore:
    """S3/MinIO/R2-backed blob store."""

    name = "r2"
    capabilities = ALL_CAPABILITIES

    def __init__(
        self,
        bucket_name: str,
        endpoint_url: str | None,
        access_key: str | None,
        secret_key: str | None,
        region: str,
        client: Any | None = None,
    ) -> None:
        self.bucket_name = bucket_name
        self.region = region
        if client is not None:
            self.client = client
            return
        try:
            import boto3
        except ImportError as exc:
            raise ObjectStorageError("boto3 is required for S3 storage") from exc
        self.client = boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
        )

    @staticmethod
    def _error_code(exc: Exception) -> str:
        response = getattr(exc, "response", None)
        if isinstance(response, dict):
            err = response.get("Error", {})
            if isinstance(err, dict):
                return str(err.get("Code", ""))
        return ""

    def ensure_bucket(self) -> None:
        """Create bucket if missing (safe to call repeatedly)."""
        try:
            self.client.head_bucket(Bucket=self.bucket_name)
            return
        except Exception as exc:
            code = self._error_code(exc)
            if code not in {"404", "NoSuchBucket"}:
                raise ObjectStorageError("Unable to check storage bucket") from exc

        kwargs: dict = {"Bucket": self.bucket_name}
        if self.region and self.region not in {"us-east-1", "auto"}:
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
        self.client.create_bucket(**kwargs)
        logger.info("Created storage bucket: %s", self.bucket_name)

    def put(
        self,
        key: str,
        data: bytes | str,
        *,
        content_type: str | None = None,
        metadata: dict[str, Any] | None = None,
        ttl: int | None = None,
    ) -> None:
        kwargs: dict = {
            "Bucket": self.bucket_name,
            "Key": key,
            "Body": data.encode("utf-8") if isinstance(data, str) else data,
        }
        if content_type:
            kwargs["ContentType"] = content_type
        if metadata:
            kwargs["Metadata"] = _encode_metadata(metadata)
        try:
            self.client.put_object(**kwargs)
        except Exception as exc:
            raise ObjectStorageError("Failed to upload object") from exc

    def get(self, key: str) -> StoredObject | None:
        try:
            obj = self.client.get_object(Bucket=self.bucket_name, Key=key)
        except Exception as exc:
            code = self._error_code(exc)
            if code in {"404", "NoSuchKey"}:
                return None
            raise ObjectStorageError("Failed to fetch object") from exc

        body = obj["Body"]
        return StoredObject(
            key=key,
            chunks=iter(lambda: body.read(_STREAM_CHUNK_SIZE), b""),
            content_type=obj.get("ContentType"),
            content_length=obj.get("ContentLength"),
            metadata=_decode_metadata(obj.get("Metadata")),
        )

    def delete(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket_name, Key=key)
        except Exception as exc:
            raise ObjectStorageError("Failed to delete object") from exc

    def _object_metadata(self, key: str) -> dict[str, Any]:
        try:
            head = self.client.head_object(Bucket=self.bucket_name, Key=key)
        except Exception as exc:
            logger.warning("blob_head_failed key=%s error=%s", key, exc)
            return {}
        return _decode_metadata(head.get("Metadata"))

    def list(
        self,
        *,
        prefix: str | None = None,
        limit: int | None = None,
        cursor: str | None = None,
        include_metadata: bool = True,
    ) -> ListPage:
        kwargs: dict = {"Bucket": self.bucket_name}
        if prefix:
            kwargs["Prefix"] = prefix
        if limit:
            kwargs["MaxKeys"] = limit
        if cursor:
            kwargs["ContinuationToken"] = cursor
        try:
            result = self.client.list_objects_v2(**kwargs)
        except Exception as exc:
            raise ObjectStorageError("Failed to list objects") from exc

        keys = [
            ListedKey(
                name=item["Key"],
                metadata=self._object_metadata(item["Key"]) if include_metadata else {},
            )
            for item in result.get("Contents", [])
        ]
        truncated = bool(result.get("IsTruncated"))
        return ListPage(
            keys=keys,
            list_complete=not truncated,
            cursor=result.get("NextContinuationToken") if truncated else None,
        )
