"""Index key layout: type prefixes per file category and legacy lookup formats."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

KEY_PREFIXES: dict[str, str] = {
    # file categories
    "IMAGE": "img:",
    "VIDEO": "vid:",
    "AUDIO": "aud:",
    "DOCUMENT": "doc:",
    # blob-store marker
    "R2": "r2:",
    # system keys sharing the index
    "SESSION": "session:",
    "UPLOAD": "upload:",
    "CHUNK": "chunk:",
    # pre-migration records
    "DEFAULT": "",
}

FILE_TYPE_MAP: dict[str, str] = {
    **dict.fromkeys(
        ("jpg", "jpeg", "png", "gif", "webp", "bmp", "svg", "ico", "heic", "heif", "avif", "tiff"),
        "IMAGE",
    ),
    **dict.fromkeys(
        ("mp4", "webm", "ogg", "avi", "mov", "wmv", "flv", "mkv", "m4v", "3gp", "ts"),
        "VIDEO",
    ),
    **dict.fromkeys(
        ("mp3", "wav", "flac", "aac", "m4a", "wma", "ape", "opus"),
        "AUDIO",
    ),
}

BLOB_MARKER = KEY_PREFIXES["R2"]


@dataclass(frozen=True)
class KeyFormat:
    """One historical way an identifier was written into the index."""

    version: int
    prefix: str
    description: str


# Lookup order is part of the data contract: the first format holding a
# record wins. New formats go in front of the legacy entries without
# reordering the ones already here.
KEY_FORMATS: tuple[KeyFormat, ...] = (
    KeyFormat(3, KEY_PREFIXES["IMAGE"], "typed key, image"),
    KeyFormat(3, KEY_PREFIXES["VIDEO"], "typed key, video"),
    KeyFormat(3, KEY_PREFIXES["AUDIO"], "typed key, audio"),
    KeyFormat(3, KEY_PREFIXES["DOCUMENT"], "typed key, document"),
    KeyFormat(2, KEY_PREFIXES["R2"], "blob-store marker key"),
    KeyFormat(1, KEY_PREFIXES["DEFAULT"], "bare identifier"),
)


def _extension(file_name: str) -> str:
    if "." not in file_name:
        return ""
    return file_name.rsplit(".", 1)[-1].lower()


def key_prefix(file_name: str | None) -> str:
    """Prefix for a freshly stored file; unknown or missing extensions are documents."""
    if not file_name:
        return KEY_PREFIXES["DEFAULT"]
    ext = _extension(file_name)
    if not ext:
        return KEY_PREFIXES["DOCUMENT"]
    type_key = FILE_TYPE_MAP.get(ext)
    return KEY_PREFIXES[type_key] if type_key else KEY_PREFIXES["DOCUMENT"]


def file_type(file_name: str | None) -> str:
    if not file_name:
        return "document"
    ext = _extension(file_name)
    type_key = FILE_TYPE_MAP.get(ext) if ext else None
    return type_key.lower() if type_key else "document"


def key_for(identifier: str, file_name: str | None) -> str:
    return f"{key_prefix(file_name)}{identifier}"


def candidate_keys(
    identifier: str, formats: Sequence[KeyFormat] = KEY_FORMATS
) -> list[str]:
    return [f"{fmt.prefix}{identifier}" for fmt in formats]


def strip_prefix(key: str) -> str:
    for prefix in KEY_PREFIXES.values():
        if prefix and key.startswith(prefix):
            return key[len(prefix):]
    return key


FILE_CATEGORIES = ("image", "video", "audio", "document")


def type_prefix(file_category: str) -> str:
    """Listing prefix for a file category; `all` and unknown categories list everything."""
    if file_category.lower() not in FILE_CATEGORIES:
        return KEY_PREFIXES["DEFAULT"]
    return KEY_PREFIXES[file_category.upper()]
