"""Course media storage on Firebase Storage."""

from src.storage.dependencies import StorageServiceDep, get_storage_service
from src.storage.service import (
    FileTooLargeError,
    FirebaseStorageService,
    InvalidContentTypeError,
    SignedUrl,
    StorageNotConfiguredError,
    StorageUploadError,
    UploadedFileData,
)


__all__ = [
    "FileTooLargeError",
    "FirebaseStorageService",
    "InvalidContentTypeError",
    "SignedUrl",
    "StorageNotConfiguredError",
    "StorageServiceDep",
    "StorageUploadError",
    "UploadedFileData",
    "get_storage_service",
]
