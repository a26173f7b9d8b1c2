"""Dependencies for storage module."""

from collections.abc import Callable
from typing import Annotated

from fastapi import Depends

from src.storage.service import FirebaseStorageService


_storage_service_getter: Callable[[], FirebaseStorageService] | None = None


def set_storage_service_getter(getter: Callable[[], FirebaseStorageService]) -> None:
    """Set the storage service getter function (called by main.py)."""
    global _storage_service_getter  # noqa: PLW0603
    _storage_service_getter = getter


def get_storage_service() -> FirebaseStorageService:
    """Get the storage service built at startup."""
    if _storage_service_getter is None:
        msg = "FirebaseStorageService not configured"
        raise RuntimeError(msg)
    return _storage_service_getter()


StorageServiceDep = Annotated[FirebaseStorageService, Depends(get_storage_service)]
