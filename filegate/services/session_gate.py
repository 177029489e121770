"""Cookie-session and basic-credential authentication for non-public requests."""

from __future__ import annotations

import base64
import binascii
import json
import logging
import re
import secrets
import unicodedata
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from starlette.requests import Request
from starlette.responses import Response

from filegate.config import Settings
from filegate.models.file_record import now_ms
from filegate.services.key_namespace import KEY_PREFIXES
from filegate.services.metadata_index import RedisMetadataIndex
from filegate.services.object_storage import BackendUnavailableError, ObjectStorageError

logger = logging.getLogger(__name__)

REASON_NO_AUTH = "no-auth-required"
REASON_SESSION = "session"
REASON_BASIC = "basic-auth"

SESSION_TOKEN_BYTES = 32
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")

PUBLIC_PATHS = (
    "/api/auth/login",
    "/api/auth/check",
    "/api/auth/logout",
    "/login.html",
    "/favicon.ico",
    "/_nuxt/",
    "/api/bing/",
    "/health",
    "/metrics",
)
STATIC_EXTENSIONS = (".css", ".js", ".svg", ".png", ".jpg", ".ico", ".woff", ".woff2", ".ttf")
_GATED_PREFIXES = ("/api/", "/upload")


def is_public_path(path: str) -> bool:
    if any(path.startswith(prefix) for prefix in PUBLIC_PATHS):
        return True
    # Served files and API routes keep their extension but still go through the gate.
    if path.startswith(_GATED_PREFIXES) or "/file/" in path:
        return False
    return path.endswith(STATIC_EXTENSIONS)


@dataclass(frozen=True)
class AuthResult:
    authenticated: bool
    reason: str | None = None
    principal: str | None = None
    token: str | None = None

    @property
    def has_credential(self) -> bool:
        return self.authenticated and self.reason in (REASON_SESSION, REASON_BASIC)


def _is_https_request(request: Request | None) -> bool:
    if not request:
        return False
    forwarded_proto = request.headers.get("x-forwarded-proto", "")
    if forwarded_proto:
        return forwarded_proto.split(",")[0].strip().lower() == "https"
    return request.url.scheme == "https"


class SessionGate:
    def __init__(
        self,
        settings: Settings,
        index: RedisMetadataIndex | None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.settings = settings
        self.index = index
        self.clock = clock

    @property
    def auth_required(self) -> bool:
        return self.settings.auth_required

    @staticmethod
    def _session_key(token: str) -> str:
        return f"{KEY_PREFIXES['SESSION']}{token}"

    def check_credentials(self, username: str, password: str) -> bool:
        if not self.auth_required:
            return False
        user_ok = secrets.compare_digest(
            username.encode("utf-8"), self.settings.basic_user.encode("utf-8")
        )
        pass_ok = secrets.compare_digest(
            password.encode("utf-8"), self.settings.basic_pass.encode("utf-8")
        )
        return user_ok and pass_ok

    def session_token_from_cookie(self, request: Request) -> str | None:
        return request.cookies.get(self.settings.session_cookie_name) or None

    def verify_session(self, token: str) -> dict[str, Any] | None:
        """Session payload for a live token; expired sessions are deleted on sight."""
        if not token or self.index is None:
            return None
        try:
            raw = self.index.get_value(self._session_key(token))
        except ObjectStorageError as exc:
            logger.warning("session_read_failed error=%s", exc)
            return None
        if not raw:
            return None
        try:
            payload = json.loads(raw)
            expires_at = int(payload["expiresAt"])
        except (json.JSONDecodeError, KeyError, TypeError, ValueError):
            logger.warning("session_payload_corrupt token=%s...", token[:8])
            return None
        if self.clock() >= expires_at:
            self.delete_session(token)
            return None
        return payload

    def verify_basic_auth(self, authorization: str | None) -> str | None:
        if not authorization or not self.auth_required:
            return None
        parts = authorization.split(" ", 1)
        if len(parts) != 2 or parts[0].lower() != "basic" or not parts[1].strip():
            return None
        try:
            decoded = base64.b64decode(parts[1].strip(), validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            logger.debug("basic_auth_decode_failed")
            return None
        decoded = unicodedata.normalize("NFC", decoded)
        if ":" not in decoded or _CONTROL_CHARS.search(decoded):
            return None
        user, password = decoded.split(":", 1)
        if self.check_credentials(user, password):
            return user
        return None

    def authenticate(self, request: Request) -> AuthResult:
        if not self.auth_required:
            return AuthResult(authenticated=True, reason=REASON_NO_AUTH)

        token = self.session_token_from_cookie(request)
        if token:
            payload = self.verify_session(token)
            if payload is not None:
                return AuthResult(
                    authenticated=True,
                    reason=REASON_SESSION,
                    principal=payload.get("user"),
                    token=token,
                )

        user = self.verify_basic_auth(request.headers.get("authorization"))
        if user is not None:
            return AuthResult(authenticated=True, reason=REASON_BASIC, principal=user)

        return AuthResult(authenticated=False)

    def create_session(self, principal: str) -> str:
        if self.index is None:
            raise BackendUnavailableError("kv", "Session storage not configured")
        token = secrets.token_hex(SESSION_TOKEN_BYTES)
        created_at = self.clock()
        ttl_seconds = self.settings.session_ttl_seconds
        payload = {
            "user": principal,
            "createdAt": created_at,
            "expiresAt": created_at + ttl_seconds * 1000,
        }
        self.index.put(self._session_key(token), json.dumps(payload), ttl=ttl_seconds)
        logger.info("session_created user=%s", principal)
        return token

    def delete_session(self, token: str | None) -> None:
        if not token or self.index is None:
            return
        try:
            self.index.delete(self._session_key(token))
        except ObjectStorageError as exc:
            logger.warning("session_delete_failed error=%s", exc)

    def set_session_cookie(self, response: Response, token: str, request: Request | None = None) -> None:
        response.set_cookie(
            key=self.settings.session_cookie_name,
            value=token,
            max_age=self.settings.session_ttl_seconds,
            path="/",
            httponly=True,
            samesite="strict",
            secure=self.settings.secure_cookies and _is_https_request(request),
        )

    def clear_session_cookie(self, response: Response, request: Request | None = None) -> None:
        response.set_cookie(
            key=self.settings.session_cookie_name,
            value="",
            max_age=0,
            path="/",
            httponly=True,
            samesite="strict",
            secure=self.settings.secure_cookies and _is_https_request(request),
        )
