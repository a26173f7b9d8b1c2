"""CourseHub API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.config import get_settings
from src.core.context import get_request_id
from src.core.database import init_cassandra, shutdown_cassandra
from src.core.exceptions import AppError, UpstreamFailureError
from src.core.logging import configure_structlog, get_logger
from src.core.middleware import RequestContextMiddleware
from src.core.redis import init_redis, shutdown_redis
from src.courses.repository import CourseRepository
from src.courses.router import router as courses_router
from src.courses.service import CourseService
from src.email.service import EmailService
from src.enrollments.repository import EnrollmentRepository
from src.enrollments.router import router as enrollments_router
from src.enrollments.service import EnrollmentService
from src.health import router as health_router
from src.payments.gateway import StripeGateway
from src.payments.repository import PaymentRepository
from src.payments.router import router as payments_router
from src.payments.service import PaymentService
from src.storage.service import FirebaseStorageService


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


# Application state for dependency injection
class AppState:
    """Application state container."""

    cassandra_session: Any = None
    course_service: CourseService | None = None
    enrollment_service: EnrollmentService | None = None
    payment_service: PaymentService | None = None
    storage_service: FirebaseStorageService | None = None
    email_service: EmailService | None = None


app_state = AppState()


def get_course_service() -> CourseService:
    """Get CourseService instance from app state."""
    if app_state.course_service is None:
        msg = "CourseService not initialized"
        raise RuntimeError(msg)
    return app_state.course_service


def get_enrollment_service() -> EnrollmentService:
    """Get EnrollmentService instance from app state."""
    if app_state.enrollment_service is None:
        msg = "EnrollmentService not initialized"
        raise RuntimeError(msg)
    return app_state.enrollment_service


def get_payment_service() -> PaymentService:
    """Get PaymentService instance from app state."""
    if app_state.payment_service is None:
        if not get_settings().stripe_configured:
            raise UpstreamFailureError("Payment gateway is not configured")
        msg = "PaymentService not initialized"
        raise RuntimeError(msg)
    return app_state.payment_service


def get_storage_service() -> FirebaseStorageService:
    """Get FirebaseStorageService instance from app state."""
    if app_state.storage_service is None:
        msg = "FirebaseStorageService not initialized"
        raise RuntimeError(msg)
    return app_state.storage_service


def get_sign_timeout() -> float:
    return get_settings().storage_signed_url_timeout_seconds


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    # Initialize Redis (non-critical - app works without it)
    redis_client = None
    if settings.redis_enabled:
        try:
            redis_client = await init_redis()
            logger.info("redis_initialized")
        except Exception as e:
            logger.warning(
                "redis_init_skipped",
                error=str(e),
                message="Running without Redis - enrollment cache disabled",
            )

    # Collaborators that do not need the database
    app_state.storage_service = FirebaseStorageService(settings)
    app_state.email_service = EmailService(
        credentials_path=settings.email_credentials_path,
        sender_address=settings.email_sender_address,
        sender_name=settings.email_sender_name,
        frontend_url=settings.frontend_url,
        enabled=settings.email_configured,
    )
    logger.info(
        "collaborators_initialized",
        storage_configured=settings.firebase_configured,
        email_configured=settings.email_configured,
        stripe_configured=settings.stripe_configured,
    )

    # Initialize Cassandra
    try:
        app_state.cassandra_session = await init_cassandra()
        logger.info("cassandra_initialized")

        keyspace = settings.cassandra_keyspace
        session = app_state.cassandra_session

        app_state.course_service = CourseService(
            CourseRepository(session, keyspace),
            max_retries=settings.course_update_max_retries,
        )
        app_state.enrollment_service = EnrollmentService(
            EnrollmentRepository(session, keyspace),
            redis_client=redis_client,
            cache_ttl=settings.enrollment_cache_ttl_seconds,
        )
        logger.info("course_services_initialized")

        if settings.stripe_configured:
            app_state.payment_service = PaymentService(
                PaymentRepository(session, keyspace),
                course_service=app_state.course_service,
                enrollment_service=app_state.enrollment_service,
                gateway=StripeGateway(
                    secret_key=settings.stripe_secret_key,
                    webhook_secret=settings.stripe_webhook_secret,
                    timeout=settings.stripe_timeout_seconds,
                ),
                notifier=app_state.email_service,
                currency=settings.stripe_currency,
                success_url=settings.checkout_success_url,
                cancel_url=settings.checkout_cancel_url,
                notification_timeout=settings.notification_timeout_seconds,
            )
            logger.info("payment_service_initialized")
        else:
            logger.warning(
                "payment_service_skipped",
                message="Stripe keys missing - payment endpoints disabled",
            )
    except Exception as e:
        logger.warning(
            "database_init_skipped",
            error=str(e),
            message="Running without database connection",
        )

    yield

    # Shutdown
    logger.info("shutting_down_application")
    await shutdown_redis()
    await shutdown_cassandra()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # Starlette debug mode would put stack traces in responses
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Online course marketplace - API",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Request context middleware (must be added first - outermost)
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    def _get_request_id_safe(request: Request) -> str | None:
        if hasattr(request.state, "request_id"):
            return request.state.request_id
        return get_request_id()

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> ORJSONResponse:
        """Map the domain error hierarchy to its HTTP status."""
        log = logger.error if exc.status_code >= 500 else logger.info
        log(
            "app_error",
            code=exc.code,
            status_code=exc.status_code,
            detail=exc.message,
            path=request.url.path,
            method=request.method,
        )
        return ORJSONResponse(
            status_code=exc.status_code,
            content={
                "error": True,
                "message": exc.message,
                "code": exc.code,
                "status_code": exc.status_code,
                "request_id": _get_request_id_safe(request),
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions with safe error messages."""
        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )
        return ORJSONResponse(
            status_code=exc.status_code,
            content={
                "error": True,
                "message": str(exc.detail)
                if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
                else "Internal server error",
                "status_code": exc.status_code,
                "request_id": _get_request_id_safe(request),
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle request validation errors (field details are safe to expose)."""
        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )
        return ORJSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": True,
                "message": "Validation error",
                "code": "request_validation_error",
                "status_code": 422,
                "request_id": _get_request_id_safe(request),
                "details": [
                    {
                        "field": ".".join(str(loc) for loc in err.get("loc", [])),
                        "message": err.get("msg", "Invalid value"),
                    }
                    for err in exc.errors()
                ],
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler; details are logged, never returned."""
        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )
        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": True,
                "message": "An unexpected error occurred. Please try again later.",
                "status_code": 500,
                "request_id": _get_request_id_safe(request),
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(courses_router)
    app.include_router(enrollments_router)
    app.include_router(payments_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "CourseHub API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


# Configure router dependencies before creating app
from src.courses.dependencies import (  # noqa: E402
    set_course_service_getter,
    set_sign_timeout_getter,
)
from src.enrollments.dependencies import set_enrollment_service_getter  # noqa: E402
from src.payments.dependencies import set_payment_service_getter  # noqa: E402
from src.storage.dependencies import set_storage_service_getter  # noqa: E402


set_course_service_getter(get_course_service)
set_sign_timeout_getter(get_sign_timeout)
set_enrollment_service_getter(get_enrollment_service)
set_payment_service_getter(get_payment_service)
set_storage_service_getter(get_storage_service)


app = create_app()
