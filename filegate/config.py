import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("true", "1", "yes", "on")


class Settings(BaseModel):
    # Auth gate: both values must be present to enable it
    basic_user: Optional[str] = Field(default=os.getenv("BASIC_USER"))
    basic_pass: Optional[str] = Field(default=os.getenv("BASIC_PASS"))
    session_cookie_name: str = Field(
        default=os.getenv("SESSION_COOKIE_NAME", "filegate_session")
    )
    session_ttl_seconds: int = Field(
        default=int(os.getenv("SESSION_TTL_SECONDS", str(24 * 60 * 60)))
    )
    secure_cookies: bool = Field(default=_env_bool("SECURE_COOKIES", "true"))
    admin_referer_bypass: bool = Field(default=_env_bool("ADMIN_REFERER_BYPASS"))

    # Metadata index (Redis)
    redis_url: Optional[str] = Field(default=os.getenv("REDIS_URL"))
    kv_namespace: str = Field(default=os.getenv("KV_NAMESPACE", "img_url"))

    # Blob store (S3-compatible, e.g. Cloudflare R2)
    s3_bucket_name: Optional[str] = Field(default=os.getenv("R2_BUCKET"))
    s3_endpoint_url: Optional[str] = Field(default=os.getenv("R2_ENDPOINT_URL"))
    s3_access_key: Optional[str] = Field(default=os.getenv("R2_ACCESS_KEY_ID"))
    s3_secret_key: Optional[str] = Field(default=os.getenv("R2_SECRET_ACCESS_KEY"))
    s3_region: str = Field(default=os.getenv("R2_REGION", "auto"))
    use_r2: bool = Field(default=_env_bool("USE_R2"))

    # Legacy file host (Telegram bot API + telegra.ph passthrough)
    tg_bot_token: Optional[str] = Field(default=os.getenv("TG_BOT_TOKEN"))
    tg_chat_id: Optional[str] = Field(default=os.getenv("TG_CHAT_ID"))
    telegram_api_url: str = Field(
        default=os.getenv("TELEGRAM_API_URL", "https://api.telegram.org")
    )
    legacy_host_url: str = Field(default=os.getenv("LEGACY_HOST_URL", "https://telegra.ph"))

    # Access control / moderation
    whitelist_mode: bool = Field(default=_env_bool("WHITELIST_MODE"))
    moderate_content_api_key: Optional[str] = Field(
        default=os.getenv("MODERATE_CONTENT_API_KEY")
    )
    moderation_api_url: str = Field(
        default=os.getenv(
            "MODERATION_API_URL", "https://api.moderatecontent.com/moderate/"
        )
    )
    block_placeholder_url: str = Field(
        default=os.getenv(
            "BLOCK_PLACEHOLDER_URL",
            "https://static-res.pages.dev/teleimage/img-block-compressed.png",
        )
    )

    http_timeout_seconds: float = Field(
        default=float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))
    )

    log_level: str = Field(default=os.getenv("LOG_LEVEL", "INFO"))
    log_json: bool = Field(default=_env_bool("LOG_JSON"))

    @property
    def auth_required(self) -> bool:
        return bool(self.basic_user and self.basic_pass)

    @property
    def index_configured(self) -> bool:
        return bool(self.redis_url)

    @property
    def blob_configured(self) -> bool:
        return bool(self.s3_bucket_name)

    @property
    def moderation_enabled(self) -> bool:
        return bool(self.moderate_content_api_key)

    class Config:
        frozen = True


settings = Settings()
