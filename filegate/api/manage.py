"""Administrative listing, list-type overrides and deletion."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse

from filegate.api.deps import get_storage
from filegate.models.file_record import ListType
from filegate.schemas.files import ListTypeUpdate, ManagedFile, ManagedFilePage
from filegate.services import key_namespace
from filegate.services.storage import StorageManager

router = APIRouter(prefix="/api/manage", tags=["manage"])


@router.get("/list", response_model=ManagedFilePage)
def list_files(
    file_type: str = Query(default="all", alias="type"),
    limit: int = Query(default=100, ge=1, le=1000),
    cursor: str | None = None,
    storage: StorageManager = Depends(get_storage),
):
    if file_type != "all" and file_type not in key_namespace.FILE_CATEGORIES:
        raise HTTPException(status_code=400, detail=f"Unknown file type: {file_type}")
    page = storage.list_files(file_type, limit=limit, cursor=cursor)
    return ManagedFilePage(
        keys=[
            ManagedFile(
                name=item.name,
                id=key_namespace.strip_prefix(item.name),
                metadata=item.metadata,
            )
            for item in page.keys
        ],
        list_complete=page.list_complete,
        cursor=page.cursor,
    )


def _set_list_type(identifier: str, list_type: ListType, storage: StorageManager) -> ListTypeUpdate:
    record = storage.set_list_type(identifier, list_type)
    if record is None:
        raise HTTPException(status_code=404, detail="File not found")
    return ListTypeUpdate(success=True, id=identifier, listType=record.list_type.value)


@router.post("/block/{identifier:path}", response_model=ListTypeUpdate)
def block_file(identifier: str, storage: StorageManager = Depends(get_storage)):
    return _set_list_type(identifier, ListType.block, storage)


@router.post("/white/{identifier:path}", response_model=ListTypeUpdate)
def whitelist_file(identifier: str, storage: StorageManager = Depends(get_storage)):
    return _set_list_type(identifier, ListType.white, storage)


@router.post("/none/{identifier:path}", response_model=ListTypeUpdate)
def clear_list_type(identifier: str, storage: StorageManager = Depends(get_storage)):
    return _set_list_type(identifier, ListType.none, storage)


@router.delete("/delete/{identifier:path}")
def delete_file(identifier: str, storage: StorageManager = Depends(get_storage)):
    if not storage.delete_file(identifier):
        raise HTTPException(status_code=404, detail="File not found")
    return {"success": True, "id": identifier}


@router.api_route("/logout", methods=["GET", "POST"])
def manage_logout():
    """Drop browser-cached basic credentials by answering 401 with a fresh challenge."""
    response = PlainTextResponse("Logged out.", status_code=401)
    response.headers["WWW-Authenticate"] = 'Basic realm="filegate admin"'
    response.set_cookie(
        key="auth", value="", max_age=0, path="/", httponly=True, samesite="strict"
    )
    return response
