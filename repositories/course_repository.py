"""
Course and student repository.

Fetches courses and students' purchased-course sets. Mutations of the
purchaser and purchased-course sets happen only inside the atomic database
functions called by the settlement and enrollment repositories.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping, Optional
from uuid import UUID

from supabase import Client  # type: ignore[import-not-found]

from domain.course import Course, Student
from domain.time import parse_utc_datetime

_COURSES_TABLE: str = "courses"
_STUDENTS_TABLE: str = "students"


def _row_to_course(row: Mapping[str, Any]) -> Course:
    """Convert a Supabase row into a Course."""

    return Course(
        course_id=UUID(str(row["course_id"])),
        title=str(row["title"]),
        price=Decimal(str(row["price"])),
        teacher_id=UUID(str(row["teacher_id"])),
        currency=str(row.get("currency") or "INR"),
        is_published=bool(row.get("is_published", False)),
        purchaser_ids=frozenset(UUID(str(v)) for v in (row.get("purchaser_ids") or [])),
        students_count=int(row.get("students_count") or 0),
        revenue=Decimal(str(row.get("revenue") or "0")),
        category=row.get("category"),
        duration=row.get("duration"),
        created_at=parse_utc_datetime(row["created_at_utc"]) if row.get("created_at_utc") else None,
    )


def get_course_by_id(db: Client, course_id: UUID) -> Optional[Course]:
    """
    Get a course by its ID.

    Returns:
        Course or None if not found
    """

    response = (
        db.table(_COURSES_TABLE)
        .select("*")
        .eq("course_id", str(course_id))
        .limit(1)
        .execute()
    )

    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to fetch course: {error}")

    rows = getattr(response, "data", None) or []
    if not rows:
        return None

    return _row_to_course(rows[0])


def get_student_by_id(db: Client, student_id: UUID) -> Optional[Student]:
    """
    Get a student and their purchased-course set.

    Returns:
        Student or None if the student has no record yet
    """

    response = (
        db.table(_STUDENTS_TABLE)
        .select("student_id, purchased_courses")
        .eq("student_id", str(student_id))
        .limit(1)
        .execute()
    )

    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to fetch student: {error}")

    rows = getattr(response, "data", None) or []
    if not rows:
        return None

    row = rows[0]
    return Student(
        student_id=UUID(str(row["student_id"])),
        purchased_courses=frozenset(UUID(str(v)) for v in (row.get("purchased_courses") or [])),
    )


def enroll_free_course_atomic(db: Client, student_id: UUID, course_id: UUID) -> bool:
    """
    Grant a free course via the enroll_free_course() PostgreSQL function.

    The function adds the course to the student's purchased set and the
    student to the course's purchaser set in one transaction.

    Returns:
        True if the enrollment was new, False if the student already held it
    """

    response = db.rpc(
        "enroll_free_course",
        {
            "p_student_id": str(student_id),
            "p_course_id": str(course_id),
        },
    ).execute()

    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to enroll student: {error}")

    result = getattr(response, "data", None) or {}
    return bool(result.get("enrolled"))


__all__ = [
    "get_course_by_id",
    "get_student_by_id",
    "enroll_free_course_atomic",
]
