from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class UploadResult(BaseModel):
    src: str
    storage: str = "r2"


class ManagedFile(BaseModel):
    name: str
    id: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class ManagedFilePage(BaseModel):
    keys: list[ManagedFile]
    list_complete: bool
    cursor: str | None = None


class ListTypeUpdate(BaseModel):
    success: bool
    id: str
    listType: str
