"""
Entitlement checks for course content.

A user is entitled to a course iff the course is free or the course is in
the user's purchased set. Unknown users, students and courses are never
entitled.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from supabase import Client  # type: ignore[import-not-found]

from domain.course import Course, Student
from repositories.course_repository import get_course_by_id, get_student_by_id


def has_entitlement(course: Course, user_id: Optional[UUID], student: Optional[Student]) -> bool:
    """
    Pure check.

    `user_id` is None for anonymous callers. `student` is None when the
    caller has no student record yet; that still opens a free course.
    """

    if user_id is None:
        return False
    if course.is_free:
        return True
    if student is None or student.student_id != user_id:
        return False
    return student.owns(course.course_id)


def is_entitled(db: Client, user_id: Optional[UUID], course_id: UUID) -> bool:
    """
    Whether `user_id` may access the content of `course_id`.

    Fails closed: anonymous callers and missing records are not entitled.
    A free course only requires an authenticated user, not a student record.
    """

    if user_id is None:
        return False

    course = get_course_by_id(db, course_id)
    if course is None:
        return False

    student = None if course.is_free else get_student_by_id(db, user_id)
    return has_entitlement(course, user_id, student)


__all__ = ["has_entitlement", "is_entitled"]
