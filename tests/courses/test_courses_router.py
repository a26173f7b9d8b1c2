"""HTTP tests for the course endpoints, wired to in-memory services."""

from collections.abc import Callable
from uuid import uuid4

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from src.auth.schemas import AuthenticatedUser
from src.courses.models import Course
from src.enrollments.models import Enrollment


@pytest.fixture
def course(make_course: Callable[..., Course], instructor: AuthenticatedUser) -> Course:
    return make_course(instructor.id)


class TestAuthentication:
    def test_reads_require_token(self, api_client: TestClient, course: Course):
        response = api_client.get(f"/courses/{course.id}")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        body = response.json()
        assert body["error"] is True
        assert body["status_code"] == 401

    def test_garbage_token_is_rejected(self, api_client: TestClient):
        response = api_client.get(
            "/courses", headers={"Authorization": "Bearer not-a-jwt"}
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestReadCourse:
    def test_non_enrolled_student_sees_outline_only(
        self,
        api_client: TestClient,
        headers_for,
        course: Course,
        student: AuthenticatedUser,
    ):
        response = api_client.get(f"/courses/{course.id}", headers=headers_for(student))

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["title"] == "Python for Data Science"
        assert data["instructorId"] == str(course.instructor_id)
        assert data["sections"][0]["title"] == "Intro"
        assert data["sections"][0]["lectures"] == []
        assert data["thumbnail"]["status"] == "available"

    def test_enrolled_student_sees_lectures(
        self,
        api_client: TestClient,
        headers_for,
        enrollment_repo,
        course: Course,
        student: AuthenticatedUser,
    ):
        enrollment_repo.rows[(student.id, course.id)] = Enrollment(
            user_id=student.id, course_id=course.id
        )

        response = api_client.get(f"/courses/{course.id}", headers=headers_for(student))

        lecture = response.json()["sections"][0]["lectures"][0]
        assert lecture["title"] == "Welcome"
        assert lecture["video"]["url"].startswith("https://storage.test/videos/welcome.mp4")

    def test_owner_sees_lectures(
        self,
        api_client: TestClient,
        headers_for,
        course: Course,
        instructor: AuthenticatedUser,
    ):
        response = api_client.get(
            f"/courses/{course.id}", headers=headers_for(instructor)
        )

        assert len(response.json()["sections"][0]["lectures"]) == 1

    def test_broken_media_degrades_field_only(
        self,
        api_client: TestClient,
        headers_for,
        blob_store,
        course: Course,
        instructor: AuthenticatedUser,
    ):
        blob_store.broken.add("videos/welcome.mp4")

        response = api_client.get(
            f"/courses/{course.id}", headers=headers_for(instructor)
        )

        assert response.status_code == status.HTTP_200_OK
        video = response.json()["sections"][0]["lectures"][0]["video"]
        assert video == {"url": None, "expiresAt": None, "status": "unavailable"}

    def test_unknown_course_returns_error_envelope(
        self, api_client: TestClient, headers_for, student: AuthenticatedUser
    ):
        response = api_client.get(f"/courses/{uuid4()}", headers=headers_for(student))

        assert response.status_code == status.HTTP_404_NOT_FOUND
        body = response.json()
        assert body["code"] == "course_not_found"
        assert body["message"] == "Course not found"
        assert "request_id" in body

    def test_sections_listing_is_redacted(
        self,
        api_client: TestClient,
        headers_for,
        course: Course,
        student: AuthenticatedUser,
    ):
        response = api_client.get(
            f"/courses/{course.id}/sections", headers=headers_for(student)
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()[0]["lectures"] == []

    def test_single_section_has_no_lectures_even_for_owner(
        self,
        api_client: TestClient,
        headers_for,
        course: Course,
        instructor: AuthenticatedUser,
    ):
        section_id = course.sections[0].id

        response = api_client.get(
            f"/courses/{course.id}/sections/{section_id}",
            headers=headers_for(instructor),
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["lectures"] == []

    def test_unknown_section(
        self,
        api_client: TestClient,
        headers_for,
        course: Course,
        student: AuthenticatedUser,
    ):
        response = api_client.get(
            f"/courses/{course.id}/sections/{uuid4()}", headers=headers_for(student)
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["code"] == "section_not_found"


class TestCatalog:
    def test_list_paginates(
        self,
        api_client: TestClient,
        headers_for,
        make_course: Callable[..., Course],
        instructor: AuthenticatedUser,
        student: AuthenticatedUser,
    ):
        for i in range(3):
            make_course(instructor.id, title=f"Course {i}")

        response = api_client.get(
            "/courses", params={"page": 2, "limit": 2}, headers=headers_for(student)
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert len(data["items"]) == 1
        assert data["meta"] == {
            "totalItems": 3,
            "itemsPerPage": 2,
            "totalPages": 2,
            "currentPage": 2,
        }

    def test_limit_above_maximum_is_rejected(
        self, api_client: TestClient, headers_for, student: AuthenticatedUser
    ):
        response = api_client.get(
            "/courses", params={"limit": 101}, headers=headers_for(student)
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert response.json()["code"] == "request_validation_error"

    def test_search_matches_tags(
        self,
        api_client: TestClient,
        headers_for,
        make_course: Callable[..., Course],
        instructor: AuthenticatedUser,
        student: AuthenticatedUser,
    ):
        make_course(instructor.id, title="Rust Basics", description="", tags=["systems"])
        make_course(instructor.id, title="Pandas", tags=["DATA"])

        response = api_client.get("/courses/search/data", headers=headers_for(student))

        titles = [item["title"] for item in response.json()["items"]]
        assert titles == ["Pandas"]


class TestAuthoring:
    def test_instructor_creates_course(
        self, api_client: TestClient, headers_for, instructor: AuthenticatedUser
    ):
        response = api_client.post(
            "/courses",
            json={
                "title": "Async Python",
                "description": "asyncio from the ground up",
                "price": "19.99",
                "category": "development",
                "difficulty": "intermediate",
                "tags": ["asyncio"],
            },
            headers=headers_for(instructor),
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["instructorId"] == str(instructor.id)
        assert data["sections"] == []
        assert data["thumbnail"] is None

    def test_student_cannot_create_course(
        self, api_client: TestClient, headers_for, student: AuthenticatedUser
    ):
        response = api_client.post(
            "/courses",
            json={
                "title": "Nope",
                "description": "",
                "price": "1.00",
                "category": "other",
                "difficulty": "beginner",
            },
            headers=headers_for(student),
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_negative_price_is_rejected(
        self, api_client: TestClient, headers_for, instructor: AuthenticatedUser
    ):
        response = api_client.post(
            "/courses",
            json={
                "title": "Free money",
                "description": "",
                "price": "-5",
                "category": "business",
                "difficulty": "beginner",
            },
            headers=headers_for(instructor),
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["code"] == "validation_error"

    def test_foreign_instructor_cannot_append_section(
        self,
        api_client: TestClient,
        headers_for,
        course_repo,
        course: Course,
        other_instructor: AuthenticatedUser,
    ):
        response = api_client.post(
            f"/courses/{course.id}/sections",
            json={"title": "Hijack", "order": 2},
            headers=headers_for(other_instructor),
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["code"] == "course_forbidden"
        assert len(course_repo.rows[course.id].sections) == 1

    def test_admin_appends_lecture(
        self,
        api_client: TestClient,
        headers_for,
        course: Course,
        admin: AuthenticatedUser,
    ):
        section_id = course.sections[0].id

        response = api_client.post(
            f"/courses/{course.id}/sections/{section_id}/lectures",
            json={"title": "Setup", "content": "Install tools", "duration": 120},
            headers=headers_for(admin),
        )

        assert response.status_code == status.HTTP_201_CREATED
        titles = [lec["title"] for lec in response.json()["sections"][0]["lectures"]]
        assert titles == ["Welcome", "Setup"]


class TestUploads:
    def test_thumbnail_upload_replaces_key(
        self,
        api_client: TestClient,
        headers_for,
        blob_store,
        course_repo,
        course: Course,
        instructor: AuthenticatedUser,
    ):
        response = api_client.post(
            f"/courses/{course.id}/upload_thumbnail",
            files={"thumbnail": ("cover.png", b"\x89PNG fake", "image/png")},
            headers=headers_for(instructor),
        )

        assert response.status_code == status.HTTP_200_OK
        (key, upload), = blob_store.uploads
        assert upload.size == len(b"\x89PNG fake")
        assert upload.content_type == "image/png"
        assert course_repo.rows[course.id].thumbnail_key == key
        assert response.json()["thumbnail"]["url"].startswith(f"https://storage.test/{key}")

    def test_upload_by_stranger_stores_nothing(
        self,
        api_client: TestClient,
        headers_for,
        blob_store,
        course: Course,
        other_instructor: AuthenticatedUser,
    ):
        response = api_client.post(
            f"/courses/{course.id}/upload_thumbnail",
            files={"thumbnail": ("cover.png", b"\x89PNG fake", "image/png")},
            headers=headers_for(other_instructor),
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert blob_store.uploads == []

    def test_resources_append_to_lecture(
        self,
        api_client: TestClient,
        headers_for,
        course_repo,
        course: Course,
        instructor: AuthenticatedUser,
    ):
        section = course.sections[0]
        lecture = section.lectures[0]

        response = api_client.post(
            f"/courses/{course.id}/sections/{section.id}/lectures/{lecture.id}/upload_resources",
            files=[
                ("resources", ("a.pdf", b"%PDF-1", "application/pdf")),
                ("resources", ("b.pdf", b"%PDF-2", "application/pdf")),
            ],
            headers=headers_for(instructor),
        )

        assert response.status_code == status.HTTP_200_OK
        stored = course_repo.rows[course.id].sections[0].lectures[0]
        assert len(stored.resource_keys) == 3
        assert stored.resource_keys[0] == "docs/slides.pdf"

    def test_video_upload_to_unknown_lecture(
        self,
        api_client: TestClient,
        headers_for,
        blob_store,
        course: Course,
        instructor: AuthenticatedUser,
    ):
        section = course.sections[0]

        response = api_client.post(
            f"/courses/{course.id}/sections/{section.id}/lectures/{uuid4()}/upload_video",
            files={"video": ("intro.mp4", b"\x00\x00\x00\x18ftyp", "video/mp4")},
            headers=headers_for(instructor),
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["code"] == "lecture_not_found"
        assert blob_store.uploads == []
