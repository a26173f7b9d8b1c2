"""Course catalog: courses, sections and lectures."""

from src.courses.models import Course, CourseCategory, CourseDifficulty, Lecture, Section
from src.courses.router import router
from src.courses.service import CourseService


__all__ = [
    "Course",
    "CourseCategory",
    "CourseDifficulty",
    "CourseService",
    "Lecture",
    "Section",
    "router",
]
