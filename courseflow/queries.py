"""Lookups shared by the lifecycle services."""
from typing import Optional

from sqlalchemy.orm import Session

from courseflow.exceptions import NotFoundError
from courseflow.models import Course, CourseBranch, CourseMergeRequest, CourseVersion


def get_course(db: Session, course_id: int) -> Course:
    course = db.query(Course).filter(Course.id == course_id).first()
    if not course:
        raise NotFoundError("Course", course_id)
    return course


def get_version(db: Session, version_id: int) -> CourseVersion:
    version = db.query(CourseVersion).filter(CourseVersion.id == version_id).first()
    if not version:
        raise NotFoundError("Course version", version_id)
    return version


def get_branch(db: Session, branch_id: int, course_id: Optional[int] = None) -> CourseBranch:
    """Load a branch, optionally requiring it to belong to ``course_id``."""
    query = db.query(CourseBranch).filter(CourseBranch.id == branch_id)
    if course_id is not None:
        query = query.filter(CourseBranch.course_id == course_id)
    branch = query.first()
    if not branch:
        raise NotFoundError("Branch", branch_id)
    return branch


def get_merge_request(db: Session, request_id: int) -> CourseMergeRequest:
    request = db.query(CourseMergeRequest).filter(CourseMergeRequest.id == request_id).first()
    if not request:
        raise NotFoundError("Merge request", request_id)
    return request


def default_branch(db: Session, course: Course) -> CourseBranch:
    return get_branch(db, course.default_branch_id, course.id)


def tip_version(db: Session, branch_id: int) -> Optional[CourseVersion]:
    """The version a branch currently points at, if any."""
    return (
        db.query(CourseVersion)
        .filter(CourseVersion.branch_id == branch_id, CourseVersion.is_tip == True)  # noqa: E712
        .order_by(CourseVersion.id.desc())
        .first()
    )
