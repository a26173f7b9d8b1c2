"""Enrollment ledger: which users may see which courses."""

from src.enrollments.models import Enrollment
from src.enrollments.router import router
from src.enrollments.service import EnrollmentService


__all__ = ["Enrollment", "EnrollmentService", "router"]
