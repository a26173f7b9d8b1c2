"""Shared fixtures: in-memory repositories, fake collaborators and API clients.

The fakes keep the conditional-write semantics of the Cassandra
repositories (version check on courses, ``IF status = 'pending'`` on
payments, ``IF NOT EXISTS`` on enrollments) so service tests exercise the
same races the database arbitrates.
"""

import asyncio
import dataclasses
from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

import orjson
import pytest
from fastapi.testclient import TestClient

from src.auth.permissions import UserRole
from src.auth.schemas import AuthenticatedUser
from src.auth.security import create_access_token
from src.core.exceptions import (
    InvalidSignatureError,
    MediaUnavailableError,
    UpstreamFailureError,
)
from src.courses.models import (
    Course,
    CourseCategory,
    CourseDifficulty,
    Lecture,
    Section,
)
from src.courses.service import CourseService
from src.email.schemas import SendEmailResponse
from src.enrollments.models import Enrollment
from src.enrollments.service import EnrollmentService
from src.payments.gateway import CheckoutSession
from src.payments.models import Payment, PaymentStatus
from src.payments.service import PaymentService
from src.storage.service import SignedUrl


VALID_SIGNATURE = "t=1,v1=valid"


# ==============================================================================
# Repositories
# ==============================================================================


class FakeCourseRepository:
    """Course rows keyed by id; ``replace`` honours the version check."""

    def __init__(self) -> None:
        self.rows: dict[UUID, Course] = {}
        self.replace_calls = 0
        # Number of upcoming replace() calls that lose the race
        self.lose_next_writes = 0

    def add(self, course: Course) -> Course:
        self.rows[course.id] = course.clone()
        return course

    async def insert(self, course: Course) -> Course:
        return self.add(course)

    async def get(self, course_id: UUID) -> Course | None:
        row = self.rows.get(course_id)
        return row.clone() if row else None

    async def list_all(self) -> list[Course]:
        return [row.clone() for row in self.rows.values()]

    async def replace(self, course: Course, expected_version: int) -> bool:
        self.replace_calls += 1
        if self.lose_next_writes > 0:
            self.lose_next_writes -= 1
            return False
        current = self.rows.get(course.id)
        if current is None or current.version != expected_version:
            return False
        course.updated_at = datetime.now(UTC)
        self.rows[course.id] = course.clone()
        return True


class FakeEnrollmentRepository:
    def __init__(self) -> None:
        self.rows: dict[tuple[UUID, UUID], Enrollment] = {}
        # Suspend before the conditional write so concurrent callers interleave
        self.yielding = False

    async def insert_if_absent(self, enrollment: Enrollment) -> bool:
        if self.yielding:
            await asyncio.sleep(0)
        key = (enrollment.user_id, enrollment.course_id)
        if key in self.rows:
            return False
        self.rows[key] = enrollment
        return True

    async def get(self, user_id: UUID, course_id: UUID) -> Enrollment | None:
        return self.rows.get((user_id, course_id))

    async def list_for_user(self, user_id: UUID) -> list[Enrollment]:
        return [e for (u, _), e in self.rows.items() if u == user_id]


class FakePaymentRepository:
    """Payments keyed by id; status changes only leave ``pending``."""

    def __init__(self) -> None:
        self.rows: dict[UUID, Payment] = {}
        self.yielding = False

    def _transition(self, payment_id: UUID, **changes: Any) -> bool:
        current = self.rows.get(payment_id)
        if current is None or current.status != PaymentStatus.PENDING:
            return False
        self.rows[payment_id] = dataclasses.replace(
            current, updated_at=datetime.now(UTC), **changes
        )
        return True

    async def insert(self, payment: Payment) -> Payment:
        self.rows[payment.id] = dataclasses.replace(payment)
        return payment

    async def get(self, payment_id: UUID) -> Payment | None:
        row = self.rows.get(payment_id)
        return dataclasses.replace(row) if row else None

    async def set_session_id(self, payment_id: UUID, session_id: str) -> bool:
        return self._transition(payment_id, gateway_session_id=session_id)

    async def complete(self, payment_id: UUID, payment_intent_id: str | None) -> bool:
        if self.yielding:
            await asyncio.sleep(0)
        return self._transition(
            payment_id,
            status=PaymentStatus.COMPLETED,
            gateway_payment_intent_id=payment_intent_id,
            completed_at=datetime.now(UTC),
        )

    async def mark_failed(self, payment_id: UUID) -> bool:
        return self._transition(payment_id, status=PaymentStatus.FAILED)

    async def list_for_user(self, user_id: UUID) -> list[Payment]:
        return [dataclasses.replace(p) for p in self.rows.values() if p.user_id == user_id]


# ==============================================================================
# Collaborators
# ==============================================================================


class FakeGateway:
    """Stripe stand-in: numbered sessions, signature must equal VALID_SIGNATURE."""

    def __init__(self) -> None:
        self.sessions: list[dict[str, Any]] = []
        self.fail = False

    async def create_checkout_session(self, **params: Any) -> CheckoutSession:
        if self.fail:
            raise UpstreamFailureError("Payment gateway rejected the request")
        self.sessions.append(params)
        session_id = f"cs_test_{len(self.sessions)}"
        return CheckoutSession(
            id=session_id, url=f"https://checkout.stripe.test/{session_id}"
        )

    def construct_event(self, payload: bytes, signature: str) -> dict[str, Any]:
        if signature != VALID_SIGNATURE:
            raise InvalidSignatureError
        return orjson.loads(payload)


class FakeNotifier:
    def __init__(self) -> None:
        self.sent: list[tuple[str, dict[str, Any]]] = []
        self.fail = False
        self.delay = 0.0

    async def _record(self, kind: str, **kwargs: Any) -> SendEmailResponse:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("smtp down")
        self.sent.append((kind, kwargs))
        return SendEmailResponse(success=True, message_id=f"msg-{len(self.sent)}")

    async def send_payment_confirmation(self, **kwargs: Any) -> SendEmailResponse:
        return await self._record("payment", **kwargs)

    async def send_enrollment_confirmation(self, **kwargs: Any) -> SendEmailResponse:
        return await self._record("enrollment", **kwargs)


class FakeBlobStore:
    """Signs every key except those listed in ``broken`` or ``slow``."""

    def __init__(self) -> None:
        self.broken: set[str] = set()
        self.slow: set[str] = set()
        self.signed: list[str] = []
        self.uploads: list[tuple[str, Any]] = []

    async def get_signed_url(self, key: str) -> SignedUrl:
        if key in self.slow:
            await asyncio.sleep(1)
        if key in self.broken:
            raise MediaUnavailableError(key)
        self.signed.append(key)
        return SignedUrl(
            url=f"https://storage.test/{key}?sig=abc",
            expires_at=datetime.now(UTC) + timedelta(hours=6),
        )

    async def upload_thumbnail(self, course_id: UUID, file: Any) -> str:
        key = f"{course_id}/{uuid4()}-{file.filename}"
        self.uploads.append((key, file))
        return key

    async def upload_lecture_resources(
        self, course_id: UUID, section_id: UUID, lecture_id: UUID, files: list[Any]
    ) -> list[str]:
        keys = []
        for file in files:
            key = f"{course_id}/{section_id}/{lecture_id}/resources/{uuid4()}-{file.filename}"
            self.uploads.append((key, file))
            keys.append(key)
        return keys

    async def upload_lecture_video(
        self, course_id: UUID, section_id: UUID, lecture_id: UUID, file: Any
    ) -> str:
        key = f"{course_id}/{section_id}/{lecture_id}/video/{uuid4()}-{file.filename}"
        self.uploads.append((key, file))
        return key


# ==============================================================================
# Users
# ==============================================================================


def make_user(role: UserRole, email: str | None = None) -> AuthenticatedUser:
    return AuthenticatedUser(
        id=uuid4(), email=email or f"{role.value}@example.com", role=role
    )


@pytest.fixture
def student() -> AuthenticatedUser:
    return make_user(UserRole.STUDENT, "student@example.com")


@pytest.fixture
def other_student() -> AuthenticatedUser:
    return make_user(UserRole.STUDENT, "other.student@example.com")


@pytest.fixture
def instructor() -> AuthenticatedUser:
    return make_user(UserRole.INSTRUCTOR, "instructor@example.com")


@pytest.fixture
def other_instructor() -> AuthenticatedUser:
    return make_user(UserRole.INSTRUCTOR, "other.instructor@example.com")


@pytest.fixture
def admin() -> AuthenticatedUser:
    return make_user(UserRole.ADMIN, "admin@example.com")


def auth_headers(user: AuthenticatedUser) -> dict[str, str]:
    token = create_access_token(
        {"sub": str(user.id), "email": str(user.email), "role": user.role.value}
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for() -> Callable[[AuthenticatedUser], dict[str, str]]:
    return auth_headers


# ==============================================================================
# Services
# ==============================================================================


@pytest.fixture
def course_repo() -> FakeCourseRepository:
    return FakeCourseRepository()


@pytest.fixture
def course_service(course_repo: FakeCourseRepository) -> CourseService:
    return CourseService(course_repo, max_retries=3)


@pytest.fixture
def enrollment_repo() -> FakeEnrollmentRepository:
    return FakeEnrollmentRepository()


@pytest.fixture
def enrollment_service(enrollment_repo: FakeEnrollmentRepository) -> EnrollmentService:
    return EnrollmentService(enrollment_repo)


@pytest.fixture
def payment_repo() -> FakePaymentRepository:
    return FakePaymentRepository()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def payment_service(
    payment_repo: FakePaymentRepository,
    course_service: CourseService,
    enrollment_service: EnrollmentService,
    gateway: FakeGateway,
    notifier: FakeNotifier,
) -> PaymentService:
    return PaymentService(
        payment_repo,
        course_service=course_service,
        enrollment_service=enrollment_service,
        gateway=gateway,
        notifier=notifier,
        currency="usd",
        success_url="http://localhost:3000/payment/success",
        cancel_url="http://localhost:3000/payment/cancel",
        notification_timeout=0.5,
    )


@pytest.fixture
def make_course(
    course_repo: FakeCourseRepository,
) -> Callable[..., Course]:
    """Store a course with one section holding one lecture."""

    def _make(instructor_id: UUID, **overrides: Any) -> Course:
        lecture = Lecture(
            title="Welcome",
            content="Lecture notes",
            duration=300,
            video_key="videos/welcome.mp4",
            resource_keys=["docs/slides.pdf"],
        )
        fields: dict[str, Any] = {
            "title": "Python for Data Science",
            "description": "Pandas, NumPy and plotting",
            "price": Decimal("49.99"),
            "instructor_id": instructor_id,
            "category": CourseCategory.DEVELOPMENT,
            "difficulty": CourseDifficulty.BEGINNER,
            "tags": ["python", "data"],
            "thumbnail_key": "thumbs/python.png",
            "sections": [Section(title="Intro", order=1, lectures=[lecture])],
        }
        fields.update(overrides)
        return course_repo.add(Course(**fields))

    return _make


def completed_event(payment: Payment, **session_overrides: Any) -> bytes:
    """checkout.session.completed payload for ``payment``."""
    session: dict[str, Any] = {
        "id": payment.gateway_session_id or "cs_test_1",
        "object": "checkout.session",
        "payment_status": "paid",
        "payment_intent": "pi_test_123",
        "metadata": {
            "course_id": str(payment.course_id),
            "user_id": str(payment.user_id),
            "payment_id": str(payment.id),
        },
    }
    session.update(session_overrides)
    return orjson.dumps(
        {
            "id": f"evt_{uuid4().hex[:12]}",
            "type": "checkout.session.completed",
            "data": {"object": session},
        }
    )


@pytest.fixture
def event_for() -> Callable[..., bytes]:
    return completed_event


# ==============================================================================
# HTTP
# ==============================================================================


@pytest.fixture
def client() -> TestClient:
    """Client without lifespan: no database or Redis connection is attempted."""
    from src.main import app

    return TestClient(app)


@pytest.fixture
def api_client(
    course_service: CourseService,
    enrollment_service: EnrollmentService,
    payment_service: PaymentService,
    blob_store: FakeBlobStore,
) -> Iterator[TestClient]:
    """Client wired to the in-memory services."""
    from src.courses.dependencies import get_course_service
    from src.enrollments.dependencies import get_enrollment_service
    from src.main import app
    from src.payments.dependencies import get_payment_service
    from src.storage.dependencies import get_storage_service

    app.dependency_overrides[get_course_service] = lambda: course_service
    app.dependency_overrides[get_enrollment_service] = lambda: enrollment_service
    app.dependency_overrides[get_payment_service] = lambda: payment_service
    app.dependency_overrides[get_storage_service] = lambda: blob_store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
