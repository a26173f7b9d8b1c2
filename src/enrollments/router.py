"""Enrollment API endpoints."""

from uuid import UUID

from fastapi import APIRouter

from src.auth.dependencies import CurrentUser
from src.enrollments.dependencies import EnrollmentServiceDep
from src.enrollments.schemas import EnrollmentCheckResponse, EnrollmentResponse


router = APIRouter(prefix="/enrollments", tags=["enrollments"])


@router.get(
    "/me",
    response_model=list[EnrollmentResponse],
    summary="List my enrollments",
)
async def list_my_enrollments(
    current_user: CurrentUser,
    service: EnrollmentServiceDep,
) -> list[EnrollmentResponse]:
    enrollments = await service.list_for_user(current_user.id)
    return [EnrollmentResponse.model_validate(e) for e in enrollments]


@router.get(
    "/check/{course_id}",
    response_model=EnrollmentCheckResponse,
    summary="Check enrollment in a course",
)
async def check_enrollment(
    course_id: UUID,
    current_user: CurrentUser,
    service: EnrollmentServiceDep,
) -> EnrollmentCheckResponse:
    enrolled = await service.is_enrolled(current_user.id, course_id)
    return EnrollmentCheckResponse(course_id=course_id, enrolled=enrolled)
