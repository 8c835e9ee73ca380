"""Course groups: cohorts of students taking a course version with a teacher."""
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from courseflow.assignments import ASSIGNABLE_ROLES
from courseflow.exceptions import ConstraintViolationError, NotFoundError
from courseflow.models import CourseGroup, CourseGroupStudent, User, UserRole
from courseflow.queries import get_version

logger = logging.getLogger(__name__)


@dataclass
class GroupSummary:
    """A group with the ids of its enrolled students."""

    group: CourseGroup
    student_ids: list = field(default_factory=list)


def _user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User", user_id)
    return user


def _check_teacher(db: Session, teacher_id: Optional[int]) -> None:
    if teacher_id is None:
        return
    if _user(db, teacher_id).role not in ASSIGNABLE_ROLES:
        raise ConstraintViolationError(f"User {teacher_id} is not a teacher or editor")


def get_group(db: Session, group_id: int, course_id: Optional[int] = None) -> CourseGroup:
    """Load a group, optionally requiring it to belong to ``course_id``."""
    group = db.query(CourseGroup).filter(CourseGroup.id == group_id).first()
    if not group:
        raise NotFoundError("Course group", group_id)
    if course_id is not None and get_version(db, group.course_version_id).course_id != course_id:
        raise NotFoundError(f"Course group in course {course_id}", group_id)
    return group


def group_student_ids(db: Session, group_id: int) -> list:
    return [
        student_id
        for (student_id,) in db.query(CourseGroupStudent.student_id)
        .filter(CourseGroupStudent.group_id == group_id)
        .order_by(CourseGroupStudent.enrolled_at, CourseGroupStudent.id)
    ]


def list_groups(db: Session, course_id: int, version_id: int) -> list:
    """Groups of a version in creation order, each with its students."""
    version = get_version(db, version_id)
    if version.course_id != course_id:
        raise NotFoundError(f"Course version in course {course_id}", version_id)

    groups = (
        db.query(CourseGroup)
        .filter(CourseGroup.course_version_id == version_id)
        .order_by(CourseGroup.created_at, CourseGroup.id)
        .all()
    )
    return [GroupSummary(group, group_student_ids(db, group.id)) for group in groups]


def create_group(
    db: Session,
    course_id: int,
    version_id: int,
    name: str,
    teacher_id: Optional[int] = None,
) -> GroupSummary:
    version = get_version(db, version_id)
    if version.course_id != course_id:
        raise NotFoundError(f"Course version in course {course_id}", version_id)

    name = (name or "").strip()
    if not name:
        raise ConstraintViolationError("Group name is required")
    taken = (
        db.query(CourseGroup.id)
        .filter(CourseGroup.course_version_id == version_id, CourseGroup.name == name)
        .first()
    )
    if taken:
        raise ConstraintViolationError(f"Group '{name}' already exists in version {version_id}")
    _check_teacher(db, teacher_id)

    group = CourseGroup(course_version_id=version_id, name=name, teacher_id=teacher_id)
    db.add(group)
    db.flush()

    logger.info("Created group %s (%s) on version %s", group.id, name, version_id)
    return GroupSummary(group, [])


def assign_group_teacher(
    db: Session, course_id: int, group_id: int, teacher_id: Optional[int]
) -> GroupSummary:
    """Set the group's teacher; ``None`` leaves the group without one."""
    group = get_group(db, group_id, course_id)
    _check_teacher(db, teacher_id)

    group.teacher_id = teacher_id
    db.flush()

    logger.info("Group %s teacher set to %s", group.id, teacher_id)
    return GroupSummary(group, group_student_ids(db, group.id))


def add_student_to_group(
    db: Session, course_id: int, group_id: int, student_id: int
) -> CourseGroupStudent:
    group = get_group(db, group_id, course_id)
    if _user(db, student_id).role != UserRole.student:
        raise ConstraintViolationError(f"User {student_id} is not a student")

    enrolled = (
        db.query(CourseGroupStudent.id)
        .filter(CourseGroupStudent.group_id == group.id, CourseGroupStudent.student_id == student_id)
        .first()
    )
    if enrolled:
        raise ConstraintViolationError(f"Student {student_id} is already in group {group.id}")

    enrolment = CourseGroupStudent(group_id=group.id, student_id=student_id)
    db.add(enrolment)
    db.flush()

    logger.info("Enrolled student %s in group %s", student_id, group.id)
    return enrolment


def remove_student_from_group(db: Session, course_id: int, group_id: int, student_id: int) -> None:
    group = get_group(db, group_id, course_id)
    removed = (
        db.query(CourseGroupStudent)
        .filter(CourseGroupStudent.group_id == group.id, CourseGroupStudent.student_id == student_id)
        .delete(synchronize_session=False)
    )
    if not removed:
        raise NotFoundError(f"Student in group {group.id}", student_id)


def delete_version_groups(db: Session, version_ids: Iterable) -> None:
    """Remove the groups of the given versions together with their enrolments."""
    group_ids = [
        group_id
        for (group_id,) in db.query(CourseGroup.id).filter(
            CourseGroup.course_version_id.in_(list(version_ids))
        )
    ]
    db.query(CourseGroupStudent).filter(CourseGroupStudent.group_id.in_(group_ids)).delete(
        synchronize_session=False
    )
    db.query(CourseGroup).filter(CourseGroup.id.in_(group_ids)).delete(synchronize_session=False)
