"""Teacher and editor assignments to course versions."""
import logging

from sqlalchemy.orm import Session

from courseflow.exceptions import ConstraintViolationError, NotFoundError
from courseflow.models import CourseVersion, CourseVersionTeacher, User, UserRole
from courseflow.queries import get_course, get_version

logger = logging.getLogger(__name__)

ASSIGNABLE_ROLES = (UserRole.teacher, UserRole.editor)


def assign_teacher(db: Session, course_id: int, version_id: int, teacher_id: int) -> CourseVersionTeacher:
    version = get_version(db, version_id)
    if version.course_id != course_id:
        raise NotFoundError(f"Course version in course {course_id}", version_id)

    teacher = db.query(User).filter(User.id == teacher_id).first()
    if not teacher:
        raise NotFoundError("User", teacher_id)
    if teacher.role not in ASSIGNABLE_ROLES:
        raise ConstraintViolationError(f"User {teacher_id} is not a teacher or editor")

    if is_teacher_assigned(db, version_id, teacher_id):
        raise ConstraintViolationError(f"User {teacher_id} is already assigned to version {version_id}")

    assignment = CourseVersionTeacher(
        course_id=course_id, course_version_id=version_id, teacher_id=teacher_id
    )
    db.add(assignment)
    db.flush()

    logger.info("Assigned user %s to version %s", teacher_id, version_id)
    return assignment


def remove_teacher(db: Session, course_id: int, version_id: int, teacher_id: int) -> None:
    removed = (
        db.query(CourseVersionTeacher)
        .filter(
            CourseVersionTeacher.course_id == course_id,
            CourseVersionTeacher.course_version_id == version_id,
            CourseVersionTeacher.teacher_id == teacher_id,
        )
        .delete(synchronize_session=False)
    )
    if not removed:
        raise NotFoundError(f"Assignment of user {teacher_id} to version", version_id)


def is_teacher_assigned(db: Session, version_id: int, teacher_id: int) -> bool:
    return (
        db.query(CourseVersionTeacher.id)
        .filter(
            CourseVersionTeacher.course_version_id == version_id,
            CourseVersionTeacher.teacher_id == teacher_id,
        )
        .first()
        is not None
    )


def list_version_teachers(db: Session, version_id: int) -> list:
    return [
        teacher_id
        for (teacher_id,) in db.query(CourseVersionTeacher.teacher_id)
        .filter(CourseVersionTeacher.course_version_id == version_id)
        .order_by(CourseVersionTeacher.teacher_id)
    ]


def list_course_assignments(db: Session, course_id: int) -> list:
    """Every version of the course with the ids of the users working on it."""
    get_course(db, course_id)
    versions = (
        db.query(CourseVersion)
        .filter(CourseVersion.course_id == course_id)
        .order_by(CourseVersion.created_at, CourseVersion.id)
        .all()
    )
    return [(version, list_version_teachers(db, version.id)) for version in versions]
