from filegate.models.file_record import (
    ADULT_LABEL,
    UNLABELLED,
    FileRecord,
    ListType,
    StorageKind,
)

__all__ = ["ADULT_LABEL", "UNLABELLED", "FileRecord", "ListType", "StorageKind"]
