from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)


class ModerationError(Exception):
    """Moderation provider call failed or returned something unusable."""


class ModerateContentClient:
    """Classifies a publicly reachable file URL via moderatecontent.com."""

    def __init__(
        self,
        api_key: str,
        *,
        api_url: str = "https://api.moderatecontent.com/moderate/",
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.api_key = api_key
        self.api_url = api_url
        self.client = client or httpx.Client(timeout=timeout)

    def classify(self, file_url: str) -> str | None:
        """Return the provider's rating label, or None when it gave none."""
        try:
            response = self.client.get(
                self.api_url, params={"key": self.api_key, "url": file_url}
            )
        except httpx.HTTPError as exc:
            raise ModerationError(f"Moderation request failed: {exc}") from exc
        if not response.is_success:
            raise ModerationError(f"Moderation API returned {response.status_code}")
        try:
            data = response.json()
        except ValueError as exc:
            raise ModerationError("Moderation API returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise ModerationError("Moderation API returned unexpected payload")
        label = data.get("rating_label")
        logger.debug("moderation_result url=%s label=%s", file_url, label)
        return str(label) if label else None
