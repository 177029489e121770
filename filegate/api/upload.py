"""Direct blob-store upload and read."""

from __future__ import annotations

import logging
import secrets
import string

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse

from filegate.api.deps import get_storage
from filegate.models.file_record import FileRecord, StorageKind, now_ms
from filegate.schemas.files import UploadResult
from filegate.services.delivery import CACHE_FOREVER, content_disposition
from filegate.services.key_namespace import file_type
from filegate.services.object_storage import BackendUnavailableError, ObjectStorageError
from filegate.services.storage import StorageManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/r2", tags=["upload"])

_ID_ALPHABET = string.digits + string.ascii_lowercase
_DEFAULT_CONTENT_TYPE = "application/octet-stream"


def generate_file_id(file_name: str, timestamp: int) -> str:
    """`<epoch-ms>_<8 random [0-9a-z]>` plus the original extension, if any."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(8))
    ext = file_name.rsplit(".", 1)[1] if "." in file_name else ""
    return f"{timestamp}_{suffix}{'.' + ext if ext else ''}"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post("/upload")
def upload_file(
    file: UploadFile | None = File(default=None),
    storage: StorageManager = Depends(get_storage),
):
    if storage.blob is None:
        return _error(503, "R2 storage not configured")
    if file is None or not file.filename:
        return _error(400, "No file provided")

    timestamp = now_ms()
    file_name = file.filename
    file_id = generate_file_id(file_name, timestamp)
    content = file.file.read()
    content_type = file.content_type or _DEFAULT_CONTENT_TYPE

    try:
        storage.put_file(
            file_id,
            content,
            content_type=content_type,
            metadata={
                "fileName": file_name,
                "fileSize": len(content),
                "uploadTime": timestamp,
                "fileType": file_type(file_name),
            },
        )
        key = None
        if storage.index is not None:
            record = FileRecord(
                timestamp=timestamp,
                file_name=file_name,
                file_size=len(content),
                storage=StorageKind.r2,
                content_type=content_type,
            )
            key = storage.put_metadata(file_id, file_name, record)
    except BackendUnavailableError as exc:
        logger.warning("file_upload_unavailable id=%s reason=%s", file_id, exc)
        return _error(503, str(exc))
    except ObjectStorageError as exc:
        logger.exception("file_upload_failed id=%s", file_id)
        return _error(500, str(exc) or "Upload failed")

    logger.info("file_upload_success id=%s key=%s size=%s", file_id, key, len(content))
    result = UploadResult(src=f"/file/{file_id}", storage=StorageKind.r2.value)
    return JSONResponse(content=[result.model_dump()])


@router.get("/upload")
def read_uploaded_file(
    id: str | None = None,
    storage: StorageManager = Depends(get_storage),
):
    if storage.blob is None:
        return PlainTextResponse("R2 storage not configured", status_code=503)
    if not id:
        return PlainTextResponse("File ID required", status_code=400)
    try:
        obj = storage.get_file(id)
    except ObjectStorageError:
        logger.exception("blob_read_failed id=%s", id)
        return PlainTextResponse("Error retrieving file", status_code=500)
    if obj is None:
        return PlainTextResponse("File not found", status_code=404)

    headers = {"Cache-Control": CACHE_FOREVER}
    if obj.content_length is not None:
        headers["Content-Length"] = str(obj.content_length)
    if obj.metadata.get("fileName"):
        headers["Content-Disposition"] = content_disposition(obj.metadata["fileName"])
    return StreamingResponse(
        obj.chunks,
        media_type=obj.content_type or _DEFAULT_CONTENT_TYPE,
        headers=headers,
    )
