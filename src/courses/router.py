"""Course API endpoints.

Provides routes for:
- Catalog listing and search
- Course, section and single-section reads (lectures redacted per viewer)
- Course, section and lecture creation (instructor owner or admin)
- Thumbnail, lecture resource and lecture video uploads
"""

import os
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, File, Query, UploadFile, status

from src.auth.dependencies import CurrentUser, InstructorUser
from src.courses.access import (
    project_course,
    project_courses,
    project_section,
    project_sections,
)
from src.courses.dependencies import CourseServiceDep, EnrolledCourseIds, SignTimeout
from src.courses.schemas import (
    CoursePageResponse,
    CourseResponse,
    CreateCourseRequest,
    CreateLectureRequest,
    CreateSectionRequest,
    PageMeta,
    SectionResponse,
)
from src.courses.service import Page, SectionNotFoundError
from src.storage.dependencies import StorageServiceDep
from src.storage.service import UploadedFileData


router = APIRouter(prefix="/courses", tags=["courses"])

PageParam = Annotated[int, Query(ge=1, description="Page number, starts at 1")]
LimitParam = Annotated[int, Query(ge=1, le=100, description="Items per page")]


def _as_upload(file: UploadFile) -> UploadedFileData:
    """Hand the spooled upload to storage without reading it."""
    size = file.size
    if size is None:
        file.file.seek(0, os.SEEK_END)
        size = file.file.tell()
        file.file.seek(0)
    return UploadedFileData(
        stream=file.file,
        size=size,
        content_type=file.content_type,
        filename=file.filename,
    )


def _page_meta(page: Page) -> PageMeta:
    return PageMeta(
        total_items=page.total_items,
        items_per_page=page.items_per_page,
        total_pages=page.total_pages,
        current_page=page.current_page,
    )


# ==============================================================================
# Catalog
# ==============================================================================


@router.get(
    "",
    response_model=CoursePageResponse,
    summary="List courses",
)
async def list_courses(
    service: CourseServiceDep,
    storage: StorageServiceDep,
    current_user: CurrentUser,
    enrolled: EnrolledCourseIds,
    sign_timeout: SignTimeout,
    page: PageParam = 1,
    limit: LimitParam = 10,
) -> CoursePageResponse:
    result = await service.list_courses(page=page, limit=limit)
    items = await project_courses(
        result.items, current_user, enrolled, storage, sign_timeout
    )
    return CoursePageResponse(items=items, meta=_page_meta(result))


@router.get(
    "/search/{query}",
    response_model=CoursePageResponse,
    summary="Search courses",
)
async def search_courses(
    query: str,
    service: CourseServiceDep,
    storage: StorageServiceDep,
    current_user: CurrentUser,
    enrolled: EnrolledCourseIds,
    sign_timeout: SignTimeout,
    page: PageParam = 1,
    limit: LimitParam = 10,
) -> CoursePageResponse:
    """Case-insensitive match on title, description or any tag."""
    result = await service.search_courses(query, page=page, limit=limit)
    items = await project_courses(
        result.items, current_user, enrolled, storage, sign_timeout
    )
    return CoursePageResponse(items=items, meta=_page_meta(result))


# ==============================================================================
# Reads
# ==============================================================================


@router.get(
    "/{course_id}",
    response_model=CourseResponse,
    summary="Get course",
)
async def get_course(
    course_id: UUID,
    service: CourseServiceDep,
    storage: StorageServiceDep,
    current_user: CurrentUser,
    enrolled: EnrolledCourseIds,
    sign_timeout: SignTimeout,
) -> CourseResponse:
    course = await service.get_course(course_id)
    return await project_course(course, current_user, enrolled, storage, sign_timeout)


@router.get(
    "/{course_id}/sections",
    response_model=list[SectionResponse],
    summary="List course sections",
)
async def list_sections(
    course_id: UUID,
    service: CourseServiceDep,
    storage: StorageServiceDep,
    current_user: CurrentUser,
    enrolled: EnrolledCourseIds,
    sign_timeout: SignTimeout,
) -> list[SectionResponse]:
    course = await service.get_course(course_id)
    return await project_sections(
        course, current_user, enrolled, storage, sign_timeout
    )


@router.get(
    "/{course_id}/sections/{section_id}",
    response_model=SectionResponse,
    summary="Get one section",
)
async def get_section(
    course_id: UUID,
    section_id: UUID,
    service: CourseServiceDep,
    current_user: CurrentUser,
) -> SectionResponse:
    """Section outline only; lectures are listed through the course."""
    course = await service.get_course(course_id)
    section = course.find_section(section_id)
    if section is None:
        raise SectionNotFoundError
    return project_section(section)


# ==============================================================================
# Authoring
# ==============================================================================


@router.post(
    "",
    response_model=CourseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create course",
)
async def create_course(
    data: CreateCourseRequest,
    service: CourseServiceDep,
    storage: StorageServiceDep,
    current_user: InstructorUser,
    sign_timeout: SignTimeout,
) -> CourseResponse:
    course = await service.create_course(data, current_user.id)
    return await project_course(course, current_user, set(), storage, sign_timeout)


@router.post(
    "/{course_id}/sections",
    response_model=CourseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Append section",
)
async def create_section(
    course_id: UUID,
    data: CreateSectionRequest,
    service: CourseServiceDep,
    storage: StorageServiceDep,
    current_user: InstructorUser,
    sign_timeout: SignTimeout,
) -> CourseResponse:
    course = await service.append_section(course_id, data, current_user)
    return await project_course(course, current_user, set(), storage, sign_timeout)


@router.post(
    "/{course_id}/sections/{section_id}/lectures",
    response_model=CourseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Append lecture",
)
async def create_lecture(
    course_id: UUID,
    section_id: UUID,
    data: CreateLectureRequest,
    service: CourseServiceDep,
    storage: StorageServiceDep,
    current_user: InstructorUser,
    sign_timeout: SignTimeout,
) -> CourseResponse:
    course = await service.append_lecture(course_id, section_id, data, current_user)
    return await project_course(course, current_user, set(), storage, sign_timeout)


# ==============================================================================
# Uploads
# ==============================================================================
# Access and the target path are checked before anything is stored.


@router.post(
    "/{course_id}/upload_thumbnail",
    response_model=CourseResponse,
    summary="Upload course thumbnail",
)
async def upload_thumbnail(
    course_id: UUID,
    service: CourseServiceDep,
    storage: StorageServiceDep,
    current_user: InstructorUser,
    sign_timeout: SignTimeout,
    thumbnail: UploadFile = File(..., description="JPEG or PNG image"),
) -> CourseResponse:
    await service.ensure_can_modify(course_id, current_user)
    key = await storage.upload_thumbnail(course_id, _as_upload(thumbnail))
    course = await service.set_thumbnail(course_id, key)
    return await project_course(course, current_user, set(), storage, sign_timeout)


@router.post(
    "/{course_id}/sections/{section_id}/lectures/{lecture_id}/upload_resources",
    response_model=CourseResponse,
    summary="Upload lecture resources",
)
async def upload_resources(
    course_id: UUID,
    section_id: UUID,
    lecture_id: UUID,
    service: CourseServiceDep,
    storage: StorageServiceDep,
    current_user: InstructorUser,
    sign_timeout: SignTimeout,
    resources: list[UploadFile] = File(..., description="Up to 10 files"),
) -> CourseResponse:
    await service.ensure_can_modify_lecture(
        course_id, section_id, lecture_id, current_user
    )
    files = [_as_upload(f) for f in resources]
    keys = await storage.upload_lecture_resources(
        course_id, section_id, lecture_id, files
    )
    course = await service.append_lecture_resources(
        course_id, section_id, lecture_id, keys
    )
    return await project_course(course, current_user, set(), storage, sign_timeout)


@router.post(
    "/{course_id}/sections/{section_id}/lectures/{lecture_id}/upload_video",
    response_model=CourseResponse,
    summary="Upload lecture video",
)
async def upload_video(
    course_id: UUID,
    section_id: UUID,
    lecture_id: UUID,
    service: CourseServiceDep,
    storage: StorageServiceDep,
    current_user: InstructorUser,
    sign_timeout: SignTimeout,
    video: UploadFile = File(..., description="MP4 or AVI video"),
) -> CourseResponse:
    await service.ensure_can_modify_lecture(
        course_id, section_id, lecture_id, current_user
    )
    key = await storage.upload_lecture_video(
        course_id, section_id, lecture_id, _as_upload(video)
    )
    course = await service.set_lecture_video(course_id, section_id, lecture_id, key)
    return await project_course(course, current_user, set(), storage, sign_timeout)
