"""Firebase Storage service for course media.

Handles:
- Upload validation (content type allow-lists and size limits per media kind)
- Storage path generation: ``{course}/...`` for thumbnails,
  ``{course}/{section}/{lecture}/resources|video`` for lecture media
- V4 signed retrieval URLs with a bounded lifetime

The google-cloud-storage client is synchronous, so every network call runs in
a worker thread.
"""

import asyncio
import re
import threading
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any, BinaryIO
from uuid import UUID, uuid4

from src.config.settings import Settings
from src.core.exceptions import (
    AppError,
    MediaUnavailableError,
    UpstreamFailureError,
    ValidationError,
)
from src.core.logging import get_logger


if TYPE_CHECKING:
    from google.cloud.storage import Bucket


logger = get_logger(__name__)

FIREBASE_APP_NAME = "coursehub-storage"
MB = 1024 * 1024


class StorageNotConfiguredError(UpstreamFailureError):
    """Firebase Storage is not configured."""

    def __init__(self, message: str = "Firebase Storage is not configured") -> None:
        super().__init__(message, "storage_not_configured")


class StorageUploadError(UpstreamFailureError):
    """Upload to the bucket failed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "upload_error")


class FileTooLargeError(ValidationError):
    """File exceeds the size limit for its media kind."""

    def __init__(self, size: int, max_size: int) -> None:
        message = (
            f"File size ({size / MB:.2f} MB) exceeds "
            f"maximum allowed ({max_size / MB:.2f} MB)"
        )
        super().__init__(message, "file_too_large")


class InvalidContentTypeError(ValidationError):
    """Content type is not allowed for this media kind."""

    def __init__(self, content_type: str | None, allowed: list[str]) -> None:
        message = (
            f"Content type '{content_type}' is not allowed. "
            f"Allowed: {', '.join(allowed)}"
        )
        super().__init__(message, "invalid_content_type")


@dataclass(frozen=True)
class UploadedFileData:
    """A file received from a multipart request.

    ``stream`` is the spooled upload; it is read only while being stored.
    """

    stream: BinaryIO
    size: int
    content_type: str | None
    filename: str | None


@dataclass(frozen=True)
class SignedUrl:
    """Time-limited retrieval link."""

    url: str
    expires_at: datetime


def _safe_filename(filename: str | None) -> str:
    name = Path(filename or "file").name
    return re.sub(r"[^A-Za-z0-9._-]", "_", name) or "file"


class FirebaseStorageService:
    """Blob store backed by a Firebase (Google Cloud Storage) bucket."""

    def __init__(self, settings: Settings) -> None:
        """Initialize storage service.

        Args:
            settings: Application settings.
        """
        self.settings = settings
        self._app: Any = None
        self._bucket: Bucket | None = None
        self._init_lock = threading.Lock()

    @property
    def is_configured(self) -> bool:
        """Check if Firebase Storage is configured."""
        return self.settings.firebase_configured

    @property
    def signed_url_ttl(self) -> timedelta:
        return timedelta(seconds=self.settings.storage_signed_url_expiry_seconds)

    # ==========================================================================
    # Bucket
    # ==========================================================================

    def _get_bucket(self) -> "Bucket":
        """Initialize this service's Firebase app on first use.

        Blocking: reads the credentials file, so call it from a worker thread.

        Raises:
            StorageNotConfiguredError: Missing settings or credentials file.
        """
        if self._bucket is not None:
            return self._bucket
        with self._init_lock:
            if self._bucket is None:
                self._bucket = self._init_bucket()
        return self._bucket

    def _init_bucket(self) -> "Bucket":
        if not self.is_configured:
            raise StorageNotConfiguredError

        # Lazy import to avoid loading Firebase SDK unless needed
        import firebase_admin  # noqa: PLC0415
        from firebase_admin import credentials, storage  # noqa: PLC0415

        creds_path = Path(self.settings.firebase_credentials_path or "")
        if not creds_path.is_absolute():
            creds_path = Path(__file__).parent.parent.parent / creds_path
        if not creds_path.exists():
            raise StorageNotConfiguredError(
                f"Firebase credentials file not found: {creds_path}"
            )

        try:
            try:
                self._app = firebase_admin.get_app(FIREBASE_APP_NAME)
            except ValueError:
                self._app = firebase_admin.initialize_app(
                    credentials.Certificate(str(creds_path)),
                    {
                        "storageBucket": self.settings.firebase_storage_bucket,
                        "projectId": self.settings.firebase_project_id,
                    },
                    name=FIREBASE_APP_NAME,
                )
            bucket = storage.bucket(app=self._app)
        except Exception as e:
            logger.exception("firebase_init_failed", error=str(e))
            raise StorageNotConfiguredError(f"Failed to initialize Firebase: {e}") from e

        logger.info(
            "firebase_initialized",
            project_id=self.settings.firebase_project_id,
            bucket=self.settings.firebase_storage_bucket,
        )
        return bucket

    # ==========================================================================
    # Validation and paths
    # ==========================================================================

    @staticmethod
    def validate(file: UploadedFileData, allowed: list[str], max_bytes: int) -> None:
        """Reject files with a disallowed type or above the size limit."""
        if file.size == 0:
            raise ValidationError("No file provided", "empty_file")
        if file.content_type not in allowed:
            raise InvalidContentTypeError(file.content_type, allowed)
        if file.size > max_bytes:
            raise FileTooLargeError(file.size, max_bytes)

    @staticmethod
    def build_key(prefix: str, filename: str | None) -> str:
        """``{prefix}/{uuid}-{filename}``; unique per upload."""
        return f"{prefix}/{uuid4()}-{_safe_filename(filename)}"

    # ==========================================================================
    # Uploads
    # ==========================================================================

    async def upload(self, file: UploadedFileData, key: str) -> str:
        """Stream ``file`` to ``key`` and return the key.

        Raises:
            StorageNotConfiguredError: If Firebase is not configured.
            StorageUploadError: If the upload fails.
        """

        def _upload() -> None:
            blob = self._get_bucket().blob(key)
            blob.upload_from_file(
                file.stream,
                rewind=True,
                size=file.size,
                content_type=file.content_type,
            )

        try:
            await asyncio.to_thread(_upload)
        except AppError:
            raise
        except Exception as e:
            logger.exception("upload_failed", storage_key=key, error=str(e))
            raise StorageUploadError(f"Failed to upload file: {e}") from e

        logger.info(
            "file_uploaded",
            storage_key=key,
            content_type=file.content_type,
            file_size=file.size,
        )
        return key

    async def upload_thumbnail(self, course_id: UUID, file: UploadedFileData) -> str:
        """Validate and store a course thumbnail."""
        self.validate(
            file,
            self.settings.upload_thumbnail_types,
            self.settings.upload_thumbnail_max_size_mb * MB,
        )
        return await self.upload(file, self.build_key(str(course_id), file.filename))

    async def upload_lecture_resources(
        self,
        course_id: UUID,
        section_id: UUID,
        lecture_id: UUID,
        files: list[UploadedFileData],
    ) -> list[str]:
        """Validate every file first, then store them one by one."""
        if not files:
            raise ValidationError("No file provided", "empty_file")
        if len(files) > self.settings.upload_resource_max_files:
            raise ValidationError(
                f"At most {self.settings.upload_resource_max_files} files per upload",
                "too_many_files",
            )
        for file in files:
            self.validate(
                file,
                self.settings.upload_resource_types,
                self.settings.upload_resource_max_size_mb * MB,
            )

        prefix = f"{course_id}/{section_id}/{lecture_id}/resources"
        return [await self.upload(f, self.build_key(prefix, f.filename)) for f in files]

    async def upload_lecture_video(
        self,
        course_id: UUID,
        section_id: UUID,
        lecture_id: UUID,
        file: UploadedFileData,
    ) -> str:
        """Validate and store a lecture video."""
        self.validate(
            file,
            self.settings.upload_video_types,
            self.settings.upload_video_max_size_mb * MB,
        )
        prefix = f"{course_id}/{section_id}/{lecture_id}/video"
        return await self.upload(file, self.build_key(prefix, file.filename))

    # ==========================================================================
    # Retrieval
    # ==========================================================================

    async def get_signed_url(self, key: str) -> SignedUrl:
        """Create a V4 signed GET URL for ``key``.

        Raises:
            MediaUnavailableError: If signing fails for any reason.
        """
        expires_at = datetime.now(UTC) + self.signed_url_ttl

        def _sign() -> str:
            return self._get_bucket().blob(key).generate_signed_url(
                version="v4",
                expiration=self.signed_url_ttl,
                method="GET",
            )

        try:
            url = await asyncio.to_thread(_sign)
        except AppError as e:
            raise MediaUnavailableError(key, e.code) from e
        except Exception as e:
            logger.warning("signed_url_failed", storage_key=key, error=str(e))
            raise MediaUnavailableError(key) from e

        return SignedUrl(url=url, expires_at=expires_at)
