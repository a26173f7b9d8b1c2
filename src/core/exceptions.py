"""Domain error taxonomy.

Every service raises a subclass of ``AppError``. Each carries a stable
machine-readable ``code`` and the HTTP status it maps to, so routers never
translate errors by hand; ``src.main`` installs a single handler for the
whole hierarchy.
"""

from fastapi import status


class AppError(Exception):
    """Base application error."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, code: str = "app_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(AppError):
    """Input is structurally valid but violates a domain rule."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "Invalid request", code: str = "validation_error"):
        super().__init__(message, code)


class NotFoundError(AppError):
    """Referenced entity does not exist."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "Resource not found", code: str = "not_found"):
        super().__init__(message, code)


class ForbiddenError(AppError):
    """Caller is authenticated but may not perform the action."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        code: str = "forbidden",
    ):
        super().__init__(message, code)


class ConflictError(AppError):
    """Action conflicts with current state."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str = "Conflict", code: str = "conflict"):
        super().__init__(message, code)


class InvalidSignatureError(AppError):
    """Webhook payload failed signature verification."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str = "Invalid webhook signature",
        code: str = "invalid_signature",
    ):
        super().__init__(message, code)


class UpstreamFailureError(AppError):
    """A required external collaborator failed."""

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(
        self,
        message: str = "Upstream service unavailable",
        code: str = "upstream_failure",
    ):
        super().__init__(message, code)


class MediaUnavailableError(AppError):
    """A stored object could not be turned into a signed URL.

    Never reaches a client: the access filter catches it and degrades the
    single media field instead of failing the request.
    """

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, key: str, reason: str = "unavailable"):
        self.key = key
        super().__init__(f"Media '{key}' is {reason}", "media_unavailable")
