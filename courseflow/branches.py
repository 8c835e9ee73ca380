"""Branch management: fork a course version, list and delete branches."""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from courseflow.content import clone_version_content
from courseflow.exceptions import (
    ConstraintViolationError,
    InvalidTransitionError,
    NotFoundError,
)
from courseflow.groups import delete_version_groups
from courseflow.models import (
    CourseBranch,
    CourseMergeRequest,
    CourseResource,
    CourseTopic,
    CourseVersion,
    CourseVersionTeacher,
    StudentProgress,
    VersionStatus,
)
from courseflow.queries import get_branch, get_course, get_version, tip_version
from courseflow.unit_of_work import track_step
from courseflow.versions import require_free_label

logger = logging.getLogger(__name__)


@dataclass
class BranchSummary:
    """A branch with the versions it points at."""

    branch: CourseBranch
    tip_version: Optional[CourseVersion]
    base_version: Optional[CourseVersion]


def branch_name_taken(db: Session, course_id: int, name: str) -> bool:
    return (
        db.query(CourseBranch.id)
        .filter(CourseBranch.course_id == course_id, CourseBranch.name == name)
        .first()
        is not None
    )


def list_branches(db: Session, course_id: int) -> list:
    get_course(db, course_id)
    branches = (
        db.query(CourseBranch)
        .filter(CourseBranch.course_id == course_id)
        .order_by(CourseBranch.is_default.desc(), CourseBranch.created_at, CourseBranch.id)
        .all()
    )
    summaries = []
    for branch in branches:
        base = None
        if branch.base_version_id:
            base = db.query(CourseVersion).filter(CourseVersion.id == branch.base_version_id).first()
        summaries.append(BranchSummary(branch=branch, tip_version=tip_version(db, branch.id), base_version=base))
    return summaries


def create_branch_with_version(
    db: Session,
    course_id: int,
    name: str,
    description: Optional[str],
    base_version: CourseVersion,
    version_label: str,
    actor_id: Optional[int],
):
    """Insert the branch row and its first draft tip in one transaction."""
    with db.begin_nested():
        branch = CourseBranch(
            course_id=course_id,
            name=name,
            description=description,
            parent_branch_id=base_version.branch_id,
            base_version_id=base_version.id,
            is_default=False,
            created_by=actor_id,
        )
        db.add(branch)
        db.flush()

        version = CourseVersion(
            course_id=course_id,
            branch_id=branch.id,
            version_label=version_label,
            summary=base_version.summary,
            status=VersionStatus.draft,
            is_tip=True,
            parent_version_id=base_version.id,
            based_on_version_id=base_version.id,
            created_by=actor_id,
        )
        db.add(version)
        db.flush()
    return branch, version


def create_branch(
    db: Session,
    course_id: int,
    name: str,
    description: Optional[str],
    base_version_id: int,
    new_version_label: str,
    actor_id: Optional[int],
) -> BranchSummary:
    """Fork ``base_version_id`` into a new branch with a full copy of its content."""
    course = get_course(db, course_id)

    name = (name or "").strip()
    if not name:
        raise ConstraintViolationError("Branch name is required")
    if branch_name_taken(db, course.id, name):
        raise ConstraintViolationError(f"Branch '{name}' already exists in course {course.id}")

    base = get_version(db, base_version_id)
    if base.course_id != course.id:
        raise NotFoundError(f"Course version in course {course.id}", base_version_id)

    label = require_free_label(db, course.id, new_version_label)

    track_step(db, "create_branch")
    branch, version = create_branch_with_version(
        db, course.id, name, description, base, label, actor_id
    )

    track_step(db, "clone_content")
    clone_version_content(db, base.id, version.id)

    logger.info(
        "Created branch %s (%s) in course %s from version %s",
        branch.id, name, course.id, base.id,
    )
    return BranchSummary(branch=branch, tip_version=version, base_version=base)


def delete_branch(db: Session, course_id: int, branch_id: int) -> None:
    """Delete a branch and everything hanging off its versions.

    Every precondition is checked before the first row is removed.
    """
    course = get_course(db, course_id)
    branch = get_branch(db, branch_id, course.id)

    if branch.is_default:
        raise InvalidTransitionError("default", "deleted", "the default branch cannot be deleted")

    children = (
        db.query(CourseBranch.id).filter(CourseBranch.parent_branch_id == branch.id).count()
    )
    if children:
        raise ConstraintViolationError(
            f"Branch {branch.id} has {children} derived branch(es) and cannot be deleted"
        )

    version_ids = [
        version_id
        for (version_id,) in db.query(CourseVersion.id).filter(CourseVersion.branch_id == branch.id)
    ]
    if course.active_version_id in version_ids:
        raise ConstraintViolationError(
            f"Branch {branch.id} holds the active version of course {course.id}"
        )

    topic_ids = [
        topic_id
        for (topic_id,) in db.query(CourseTopic.id).filter(
            CourseTopic.course_version_id.in_(version_ids)
        )
    ]

    track_step(db, "delete_progress")
    db.query(StudentProgress).filter(StudentProgress.topic_id.in_(topic_ids)).delete(
        synchronize_session=False
    )

    track_step(db, "delete_resources")
    db.query(CourseResource).filter(CourseResource.topic_id.in_(topic_ids)).delete(
        synchronize_session=False
    )

    track_step(db, "delete_topics")
    db.query(CourseTopic).filter(CourseTopic.id.in_(topic_ids)).delete(synchronize_session=False)

    track_step(db, "delete_assignments")
    db.query(CourseVersionTeacher).filter(
        CourseVersionTeacher.course_version_id.in_(version_ids)
    ).delete(synchronize_session=False)

    track_step(db, "delete_groups")
    delete_version_groups(db, version_ids)

    track_step(db, "delete_merge_requests")
    request_ids = [
        request_id
        for (request_id,) in db.query(CourseMergeRequest.id).filter(
            or_(
                CourseMergeRequest.source_branch_id == branch.id,
                CourseMergeRequest.target_branch_id == branch.id,
                CourseMergeRequest.source_version_id.in_(version_ids),
                CourseMergeRequest.target_version_id.in_(version_ids),
            )
        )
    ]
    db.query(CourseVersion).filter(CourseVersion.merge_request_id.in_(request_ids)).update(
        {CourseVersion.merge_request_id: None}, synchronize_session=False
    )
    db.query(CourseMergeRequest).filter(CourseMergeRequest.id.in_(request_ids)).delete(
        synchronize_session=False
    )

    track_step(db, "detach_versions")
    for column in (
        CourseVersion.parent_version_id,
        CourseVersion.based_on_version_id,
        CourseVersion.merged_into_version_id,
    ):
        db.query(CourseVersion).filter(
            column.in_(version_ids), CourseVersion.branch_id != branch.id
        ).update({column: None}, synchronize_session=False)
    db.query(CourseVersion).filter(CourseVersion.branch_id == branch.id).update(
        {
            CourseVersion.parent_version_id: None,
            CourseVersion.based_on_version_id: None,
            CourseVersion.merged_into_version_id: None,
        },
        synchronize_session=False,
    )

    track_step(db, "delete_versions")
    db.query(CourseVersion).filter(CourseVersion.id.in_(version_ids)).delete(
        synchronize_session=False
    )

    track_step(db, "delete_branch")
    db.delete(branch)
    db.flush()
    db.expire_all()

    logger.info(
        "Deleted branch %s of course %s with %d version(s)", branch_id, course_id, len(version_ids)
    )
