"""Legacy third-party file host: Telegram bot file references and telegra.ph paths."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from filegate.services.object_storage import (
    CAP_GET,
    BackendUnavailableError,
    StoredObject,
    UnsupportedOperationError,
    UpstreamError,
)

logger = logging.getLogger(__name__)

# Identifiers longer than this are bot API file references, not local short IDs.
LEGACY_PATH_THRESHOLD = 39

FORWARDED_REQUEST_HEADERS = (
    "range",
    "accept",
    "if-none-match",
    "if-modified-since",
    "user-agent",
)


def is_legacy_path(identifier: str) -> bool:
    return len(identifier) > LEGACY_PATH_THRESHOLD


def bot_file_id(identifier: str) -> str:
    """`AgACAgEAAx...A.png` -> `AgACAgEAAx...A`."""
    return identifier.split(".", 1)[0]


class TelegramFileHost:
    """HTTP proxy over the legacy host; only `get` is supported."""

    name = "telegram"
    capabilities = frozenset({CAP_GET})

    def __init__(
        self,
        *,
        bot_token: str | None,
        api_url: str = "https://api.telegram.org",
        legacy_host_url: str = "https://telegra.ph",
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.bot_token = bot_token
        self.api_url = api_url.rstrip("/")
        self.legacy_host_url = legacy_host_url.rstrip("/")
        self.client = client or httpx.Client(timeout=timeout, follow_redirects=True)

    def public_url(self, identifier: str) -> str:
        return f"{self.legacy_host_url}/file/{identifier}"

    def _require_token(self) -> str:
        if not self.bot_token:
            raise BackendUnavailableError(self.name, "Telegram bot token not configured")
        return self.bot_token

    def resolve_file_path(self, file_id: str) -> str | None:
        """Translate a bot file id into its download path; None when Telegram refuses."""
        token = self._require_token()
        try:
            response = self.client.get(
                f"{self.api_url}/bot{token}/getFile", params={"file_id": file_id}
            )
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Telegram getFile request failed: {exc}") from exc
        if not response.is_success:
            logger.warning("telegram_get_file_failed file_id=%s status=%s", file_id, response.status_code)
            return None
        try:
            data = response.json()
        except ValueError:
            logger.warning("telegram_get_file_invalid_json file_id=%s", file_id)
            return None
        result = data.get("result") if isinstance(data, dict) else None
        if not isinstance(result, dict) or not data.get("ok"):
            logger.warning("telegram_get_file_rejected file_id=%s response=%s", file_id, data)
            return None
        return result.get("file_path")

    def object_url(self, identifier: str) -> str | None:
        if not is_legacy_path(identifier):
            return self.public_url(identifier)
        file_path = self.resolve_file_path(bot_file_id(identifier))
        if not file_path:
            return None
        return f"{self.api_url}/file/bot{self._require_token()}/{file_path}"

    def get(self, key: str, *, headers: dict[str, str] | None = None) -> StoredObject | None:
        url = self.object_url(key)
        if url is None:
            return None
        forwarded = {
            name: value
            for name, value in (headers or {}).items()
            if name.lower() in FORWARDED_REQUEST_HEADERS
        }
        try:
            response = self.client.get(url, headers=forwarded)
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Legacy host request failed: {exc}") from exc
        if not response.is_success:
            raise UpstreamError(
                f"Legacy host returned {response.status_code}",
                status_code=response.status_code,
                content=response.content,
                headers=dict(response.headers),
            )
        content = response.content
        return StoredObject(
            key=key,
            chunks=iter([content]),
            content_type=response.headers.get("content-type"),
            content_length=len(content),
            headers=dict(response.headers),
            status_code=response.status_code,
        )

    def bot_info(self) -> dict[str, Any]:
        token = self._require_token()
        try:
            response = self.client.get(f"{self.api_url}/bot{token}/getMe")
            return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise UpstreamError(f"Telegram getMe failed: {exc}") from exc

    def put(self, key: str, data: bytes | str, **kwargs: Any) -> None:
        raise UnsupportedOperationError("legacy host is read-only")

    def delete(self, key: str) -> None:
        raise UnsupportedOperationError("legacy host is read-only")

    def list(self, **kwargs: Any):
        raise UnsupportedOperationError("legacy host cannot be listed")
