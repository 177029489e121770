from fastapi import Request

from filegate.config import Settings
from filegate.services.delivery import DeliveryPipeline
from filegate.services.session_gate import AuthResult, SessionGate
from filegate.services.storage import StorageManager


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> StorageManager:
    return request.app.state.storage


def get_session_gate(request: Request) -> SessionGate:
    return request.app.state.session_gate


def get_delivery_pipeline(request: Request) -> DeliveryPipeline:
    return request.app.state.delivery


def get_auth(request: Request) -> AuthResult | None:
    """Gate result stored by the auth middleware; None on public paths."""
    return getattr(request.state, "auth", None)


__all__ = [
    "get_auth",
    "get_delivery_pipeline",
    "get_session_gate",
    "get_settings",
    "get_storage",
]
