from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from filegate.api.deps import get_session_gate
from filegate.schemas.auth import AuthCheckResponse, LoginRequest, LoginResponse, LogoutResponse
from filegate.services.object_storage import BackendUnavailableError, ObjectStorageError
from filegate.services.session_gate import SessionGate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.get("/check", response_model=AuthCheckResponse, response_model_exclude_none=True)
def check_auth(request: Request, gate: SessionGate = Depends(get_session_gate)):
    if not gate.auth_required:
        return AuthCheckResponse(
            authenticated=True, authRequired=False, message="No login required"
        )
    result = gate.authenticate(request)
    return AuthCheckResponse(
        authenticated=result.authenticated, authRequired=True, reason=result.reason
    )


@router.get("/login")
def login_status(gate: SessionGate = Depends(get_session_gate)):
    return {"authRequired": gate.auth_required}


def _login_response(status_code: int, message: str, **extra) -> JSONResponse:
    payload = LoginResponse(success=status_code == 200, message=message, **extra)
    return JSONResponse(status_code=status_code, content=payload.model_dump(exclude_none=True))


@router.post("/login")
async def login(request: Request, gate: SessionGate = Depends(get_session_gate)):
    if not gate.auth_required:
        return _login_response(200, "No login required", authRequired=False)

    try:
        payload = LoginRequest.model_validate(json.loads(await request.body()))
    except (json.JSONDecodeError, UnicodeDecodeError, ValidationError):
        return _login_response(400, "Malformed login request")

    if not gate.check_credentials(payload.username, payload.password):
        logger.info("login_failed user=%s", payload.username)
        return _login_response(401, "Invalid username or password")

    try:
        token = gate.create_session(payload.username)
    except BackendUnavailableError:
        return _login_response(503, "Session storage not configured")
    except ObjectStorageError:
        logger.exception("session_create_failed user=%s", payload.username)
        return _login_response(500, "Login failed")

    response = _login_response(200, "Logged in")
    gate.set_session_cookie(response, token, request)
    return response


@router.post("/logout", response_model=LogoutResponse)
def logout(request: Request, gate: SessionGate = Depends(get_session_gate)):
    gate.delete_session(gate.session_token_from_cookie(request))
    response = JSONResponse(
        content=LogoutResponse(success=True, message="Logged out").model_dump()
    )
    gate.clear_session_cookie(response, request)
    return response
