"""Per-request delivery: resolve, fetch, gate, lazily moderate, persist, serve."""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from urllib.parse import quote

from filegate.config import Settings
from filegate.metrics import observe_delivery, observe_moderation
from filegate.models.file_record import FileRecord, ListType, StorageKind, now_ms
from filegate.services.moderation import ModerateContentClient, ModerationError
from filegate.services.object_storage import (
    BackendUnavailableError,
    ObjectStorageError,
    StoredObject,
    UpstreamError,
)
from filegate.services.resolver import BackendVariant, Resolution, StorageResolver
from filegate.services.session_gate import AuthResult
from filegate.services.storage import StorageManager

logger = logging.getLogger(__name__)

CACHE_FOREVER = "public, max-age=31536000"
BLOCK_PAGE = "/block-img.html"
WHITELIST_PAGE = "/whitelist-on.html"
ADMIN_PAGE = "/admin"

# Upstream response headers that still describe the body after proxying.
_PASSTHROUGH_HEADERS = ("content-range", "accept-ranges", "etag", "last-modified")


class DeliveryOutcome(enum.Enum):
    served = "served"
    redirected = "redirected"
    denied = "denied"
    not_found = "not_found"
    unavailable = "unavailable"
    upstream_error = "upstream_error"
    error = "error"


@dataclass
class DeliveryRequest:
    identifier: str
    origin: str
    url: str
    referer: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    auth: AuthResult | None = None


@dataclass
class Delivery:
    outcome: DeliveryOutcome
    status_code: int
    chunks: Iterator[bytes] | None = None
    content: bytes | None = None
    media_type: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    location: str | None = None
    message: str | None = None

    @classmethod
    def redirect(cls, outcome: DeliveryOutcome, location: str) -> Delivery:
        return cls(outcome=outcome, status_code=302, location=location)

    @classmethod
    def failure(cls, outcome: DeliveryOutcome, status_code: int, message: str) -> Delivery:
        return cls(outcome=outcome, status_code=status_code, message=message)


def content_disposition(file_name: str) -> str:
    return f'inline; filename="{quote(file_name, safe="")}"'


class DeliveryPipeline:
    def __init__(
        self,
        storage: StorageManager,
        settings: Settings,
        *,
        resolver: StorageResolver | None = None,
        moderation: ModerateContentClient | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.storage = storage
        self.settings = settings
        self.resolver = resolver or StorageResolver(storage)
        self.moderation = moderation
        self.clock = clock

    def deliver(self, request: DeliveryRequest) -> Delivery:
        delivery = self._deliver(request)
        observe_delivery(delivery.outcome.value)
        logger.debug(
            "file_delivery id=%s outcome=%s status=%s",
            request.identifier,
            delivery.outcome.value,
            delivery.status_code,
        )
        return delivery

    def _deliver(self, request: DeliveryRequest) -> Delivery:
        identifier = request.identifier
        try:
            resolution = self.resolver.resolve(identifier)
            if resolution is None:
                return Delivery.failure(DeliveryOutcome.not_found, 404, "File not found")
            obj = self._fetch(resolution, request)
        except BackendUnavailableError as exc:
            logger.warning("file_backend_unavailable id=%s backend=%s", identifier, exc.backend)
            return Delivery.failure(DeliveryOutcome.unavailable, 503, str(exc))
        except UpstreamError as exc:
            logger.warning("file_upstream_error id=%s status=%s error=%s", identifier, exc.status_code, exc)
            if exc.has_response:
                return Delivery(
                    outcome=DeliveryOutcome.upstream_error,
                    status_code=exc.status_code,
                    content=exc.content,
                    headers=_forwardable(exc.headers),
                )
            return Delivery.failure(DeliveryOutcome.upstream_error, 502, str(exc))
        except ObjectStorageError:
            logger.exception("file_fetch_failed id=%s", identifier)
            return Delivery.failure(DeliveryOutcome.error, 500, "Internal Server Error")
        if obj is None:
            return Delivery.failure(DeliveryOutcome.not_found, 404, "File not found")

        if self._admin_bypass(request):
            return self._serve(obj, resolution.record)

        if self.storage.index is None or resolution.record_key is None:
            return self._serve(obj, None)

        record = resolution.record
        if record is None:
            record = self._bootstrap(resolution)

        if record.list_type is ListType.white:
            return self._serve(obj, record)
        if record.list_type is ListType.block or record.is_adult:
            return Delivery.redirect(DeliveryOutcome.denied, self._block_location(request))
        if self.settings.whitelist_mode:
            return Delivery.redirect(
                DeliveryOutcome.redirected, f"{request.origin}{WHITELIST_PAGE}"
            )

        record = self._moderate(resolution, record, request)
        self._persist(resolution.record_key, record)
        if record.is_adult:
            return Delivery.redirect(DeliveryOutcome.denied, f"{request.origin}{BLOCK_PAGE}")
        return self._serve(obj, record)

    def _fetch(self, resolution: Resolution, request: DeliveryRequest) -> StoredObject | None:
        if resolution.variant is BackendVariant.blob:
            return self.storage.require_blob().get(resolution.storage_key)
        return self.storage.require_legacy().get(resolution.storage_key, headers=request.headers)

    def _admin_bypass(self, request: DeliveryRequest) -> bool:
        if not request.referer or not request.referer.startswith(f"{request.origin}{ADMIN_PAGE}"):
            return False
        if self.settings.admin_referer_bypass:
            return True
        return request.auth is not None and request.auth.has_credential

    def _block_location(self, request: DeliveryRequest) -> str:
        if request.referer:
            return self.settings.block_placeholder_url
        return f"{request.origin}{BLOCK_PAGE}"

    def _bootstrap(self, resolution: Resolution) -> FileRecord:
        record = FileRecord.bootstrap(resolution.storage_key)
        record.timestamp = self.clock()
        if resolution.variant is BackendVariant.blob:
            record.storage = StorageKind.r2
            record.r2_key = resolution.storage_key
        self._persist(resolution.record_key, record)
        logger.info("file_record_created key=%s", resolution.record_key)
        return record

    def _persist(self, key: str, record: FileRecord) -> None:
        # The bytes are already fetched; bookkeeping failures must not block the response.
        try:
            self.storage.write_record(key, record)
        except ObjectStorageError as exc:
            logger.warning("file_record_persist_failed key=%s error=%s", key, exc)

    def _moderate(
        self, resolution: Resolution, record: FileRecord, request: DeliveryRequest
    ) -> FileRecord:
        if self.moderation is None or record.is_moderated:
            return record
        if resolution.variant is BackendVariant.blob or self.storage.legacy is None:
            file_url = request.url
        else:
            file_url = self.storage.legacy.public_url(request.identifier)
        try:
            label = self.moderation.classify(file_url)
        except ModerationError as exc:
            observe_moderation("failed")
            logger.warning("moderation_failed id=%s error=%s", request.identifier, exc)
            return record
        if not label:
            observe_moderation("failed")
            logger.warning("moderation_no_label id=%s", request.identifier)
            return record
        record = record.with_label(label)
        observe_moderation("adult" if record.is_adult else "labelled")
        logger.info("file_moderated id=%s label=%s", request.identifier, label)
        return record

    def _serve(self, obj: StoredObject, record: FileRecord | None) -> Delivery:
        file_name = obj.metadata.get("fileName") or (record.file_name if record else "") or obj.key
        headers = {
            "Cache-Control": CACHE_FOREVER,
            "Content-Disposition": content_disposition(str(file_name)),
        }
        if obj.content_length is not None:
            headers["Content-Length"] = str(obj.content_length)
        for name, value in obj.headers.items():
            if name.lower() in _PASSTHROUGH_HEADERS:
                headers[name] = value
        return Delivery(
            outcome=DeliveryOutcome.served,
            status_code=obj.status_code,
            chunks=obj.chunks,
            media_type=obj.content_type or "application/octet-stream",
            headers=headers,
        )


def _forwardable(headers: dict[str, str]) -> dict[str, str]:
    # httpx has already decoded the body, so framing headers no longer apply.
    dropped = {"content-length", "content-encoding", "transfer-encoding", "connection"}
    return {name: value for name, value in headers.items() if name.lower() not in dropped}
