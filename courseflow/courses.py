"""Course CRUD and the read-side projections used by dashboards."""
import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.orm import Session

from courseflow.branches import list_branches
from courseflow.config import settings
from courseflow.exceptions import ConstraintViolationError, InvalidTransitionError, NotFoundError
from courseflow.groups import delete_version_groups
from courseflow.models import (
    Course,
    CourseBranch,
    CourseMergeRequest,
    CourseResource,
    CourseTopic,
    CourseVersion,
    CourseVersionTeacher,
    MergeRequestStatus,
    StudentProgress,
)
from courseflow.queries import get_course, tip_version
from courseflow.unit_of_work import track_step
from courseflow.versions import create_initial_version

logger = logging.getLogger(__name__)

COURSE_FIELDS = ("title", "summary", "description", "visibility_override")


@dataclass
class CourseView:
    """A course with its graph reconstructed for one read."""

    course: Course
    primary_version: Optional[CourseVersion]
    visible_for_students: bool
    visibility_override: bool
    branches: list = field(default_factory=list)
    pending_merge_requests: list = field(default_factory=list)


def primary_version(db: Session, course: Course) -> Optional[CourseVersion]:
    """The active version, or the default branch tip when nothing is live."""
    if course.active_version_id:
        version = db.query(CourseVersion).filter(CourseVersion.id == course.active_version_id).first()
        if version:
            return version
    if course.default_branch_id:
        return tip_version(db, course.default_branch_id)
    return None


def build_course_view(db: Session, course: Course, with_graph: bool = True) -> CourseView:
    primary = primary_version(db, course)
    live = bool(primary and primary.is_published_and_visible())
    view = CourseView(
        course=course,
        primary_version=primary,
        visible_for_students=live or bool(course.visibility_override),
        # The override is only reported while it actually changes visibility
        visibility_override=bool(course.visibility_override) and not live,
    )
    if with_graph:
        view.branches = list_branches(db, course.id)
        view.pending_merge_requests = (
            db.query(CourseMergeRequest)
            .filter(
                CourseMergeRequest.course_id == course.id,
                CourseMergeRequest.status.in_(
                    [MergeRequestStatus.open, MergeRequestStatus.approved]
                ),
            )
            .order_by(CourseMergeRequest.opened_at.desc())
            .all()
        )
    return view


def get_course_view(db: Session, course_id: int) -> CourseView:
    return build_course_view(db, get_course(db, course_id))


def list_courses(db: Session, visible_only: bool = False) -> list:
    courses = db.query(Course).order_by(Course.title, Course.id).all()
    views = [build_course_view(db, course, with_graph=False) for course in courses]
    if visible_only:
        views = [view for view in views if view.visible_for_students]
    return views


def create_course(
    db: Session,
    title: str,
    actor_id: Optional[int],
    summary: Optional[str] = None,
    description: Optional[str] = None,
    visibility_override: bool = False,
    initial_version_label: Optional[str] = None,
    initial_version_summary: Optional[str] = None,
) -> Course:
    """Create a course with its default branch and, optionally, a first live version."""
    title = (title or "").strip()
    if not title:
        raise ConstraintViolationError("Course title is required")

    track_step(db, "insert_course")
    course = Course(
        title=title,
        summary=summary,
        description=description,
        visibility_override=visibility_override,
        created_by=actor_id,
    )
    db.add(course)
    db.flush()

    track_step(db, "insert_default_branch")
    branch = CourseBranch(
        course_id=course.id,
        name=settings.DEFAULT_BRANCH_NAME,
        description="Default branch",
        is_default=True,
        created_by=actor_id,
    )
    db.add(branch)
    db.flush()
    course.default_branch_id = branch.id
    db.flush()

    if initial_version_label:
        track_step(db, "insert_initial_version")
        create_initial_version(db, course.id, initial_version_label, initial_version_summary, actor_id)

    logger.info("Created course %s (%s) with default branch %s", course.id, title, branch.id)
    return course


def update_course(db: Session, course_id: int, changes: dict) -> Course:
    course = get_course(db, course_id)

    for name in COURSE_FIELDS:
        if name in changes:
            value = changes[name]
            if name == "title":
                value = (value or "").strip()
                if not value:
                    raise ConstraintViolationError("Course title is required")
            setattr(course, name, value)

    if "active_version_id" in changes:
        version_id = changes["active_version_id"]
        if version_id is not None:
            version = db.query(CourseVersion).filter(CourseVersion.id == version_id).first()
            if not version or version.course_id != course.id:
                raise NotFoundError(f"Course version in course {course.id}", version_id)
            if not version.is_active:
                raise InvalidTransitionError(
                    version.status.value, "active", "only a published version can be active"
                )
            if version.branch_id != course.default_branch_id:
                raise ConstraintViolationError(
                    f"Version {version.id} is not on the default branch of course {course.id}"
                )
        course.active_version_id = version_id

    db.flush()
    return course


def delete_course(db: Session, course_id: int) -> None:
    """Remove a course and every row that belongs to it."""
    course = get_course(db, course_id)

    version_ids = [
        version_id
        for (version_id,) in db.query(CourseVersion.id).filter(CourseVersion.course_id == course.id)
    ]
    topic_ids = [
        topic_id
        for (topic_id,) in db.query(CourseTopic.id).filter(
            CourseTopic.course_version_id.in_(version_ids)
        )
    ]

    track_step(db, "detach_course")
    course.active_version_id = None
    course.default_branch_id = None
    db.query(CourseBranch).filter(CourseBranch.course_id == course.id).update(
        {CourseBranch.base_version_id: None, CourseBranch.parent_branch_id: None},
        synchronize_session=False,
    )
    db.query(CourseVersion).filter(CourseVersion.course_id == course.id).update(
        {
            CourseVersion.parent_version_id: None,
            CourseVersion.based_on_version_id: None,
            CourseVersion.merged_into_version_id: None,
            CourseVersion.merge_request_id: None,
        },
        synchronize_session=False,
    )
    db.flush()

    track_step(db, "delete_content")
    db.query(StudentProgress).filter(StudentProgress.topic_id.in_(topic_ids)).delete(
        synchronize_session=False
    )
    db.query(CourseResource).filter(CourseResource.topic_id.in_(topic_ids)).delete(
        synchronize_session=False
    )
    db.query(CourseTopic).filter(CourseTopic.id.in_(topic_ids)).delete(synchronize_session=False)
    db.query(CourseVersionTeacher).filter(CourseVersionTeacher.course_id == course.id).delete(
        synchronize_session=False
    )
    delete_version_groups(db, version_ids)

    track_step(db, "delete_history")
    db.query(CourseMergeRequest).filter(CourseMergeRequest.course_id == course.id).delete(
        synchronize_session=False
    )
    db.query(CourseVersion).filter(CourseVersion.course_id == course.id).delete(
        synchronize_session=False
    )
    db.query(CourseBranch).filter(CourseBranch.course_id == course.id).delete(
        synchronize_session=False
    )

    track_step(db, "delete_course")
    db.delete(course)
    db.flush()
    db.expire_all()

    logger.info("Deleted course %s", course_id)
