"""File retrieval through the delivery pipeline."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse, RedirectResponse, Response, StreamingResponse

from filegate.api.deps import get_auth, get_delivery_pipeline
from filegate.services.delivery import Delivery, DeliveryPipeline, DeliveryRequest
from filegate.services.legacy_host import FORWARDED_REQUEST_HEADERS
from filegate.services.session_gate import AuthResult

router = APIRouter(tags=["files"])


def _origin(request: Request) -> str:
    return f"{request.url.scheme}://{request.url.netloc}"


def _to_response(delivery: Delivery) -> Response:
    if delivery.location:
        return RedirectResponse(url=delivery.location, status_code=delivery.status_code)
    if delivery.chunks is not None:
        return StreamingResponse(
            delivery.chunks,
            status_code=delivery.status_code,
            media_type=delivery.media_type,
            headers=delivery.headers,
        )
    if delivery.content is not None:
        return Response(
            content=delivery.content,
            status_code=delivery.status_code,
            headers=delivery.headers,
        )
    return PlainTextResponse(delivery.message or "", status_code=delivery.status_code)


@router.get("/file/{identifier:path}")
def get_file(
    identifier: str,
    request: Request,
    pipeline: DeliveryPipeline = Depends(get_delivery_pipeline),
    auth: AuthResult | None = Depends(get_auth),
):
    forwarded = {
        name: value
        for name, value in request.headers.items()
        if name.lower() in FORWARDED_REQUEST_HEADERS
    }
    delivery = pipeline.deliver(
        DeliveryRequest(
            identifier=identifier,
            origin=_origin(request),
            url=str(request.url),
            referer=request.headers.get("referer"),
            headers=forwarded,
            auth=auth,
        )
    )
    return _to_response(delivery)
