"""Version lifecycle: draft -> pending_review -> published -> archived."""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from courseflow.content import clone_version_content
from courseflow.exceptions import (
    ConcurrentModificationError,
    ConstraintViolationError,
    InvalidTransitionError,
)
from courseflow.models import CourseVersion, VersionStatus
from courseflow.queries import default_branch, get_branch, get_course, get_version
from courseflow.unit_of_work import track_step

logger = logging.getLogger(__name__)

PUBLISHABLE = (VersionStatus.draft, VersionStatus.pending_review)
DRAFT_FIELDS = ("version_label", "summary")


def label_exists(db: Session, course_id: int, label: str) -> bool:
    return (
        db.query(CourseVersion.id)
        .filter(CourseVersion.course_id == course_id, CourseVersion.version_label == label)
        .first()
        is not None
    )


def unique_version_label(db: Session, course_id: int, wanted: str) -> str:
    """Return ``wanted``, or ``wanted-1``, ``wanted-2``... whichever is free."""
    taken = {
        label
        for (label,) in db.query(CourseVersion.version_label)
        .filter(
            CourseVersion.course_id == course_id,
            (CourseVersion.version_label == wanted)
            | CourseVersion.version_label.like(f"{wanted}-%"),
        )
        .all()
    }
    if wanted not in taken:
        return wanted
    suffix = 1
    while f"{wanted}-{suffix}" in taken:
        suffix += 1
    return f"{wanted}-{suffix}"


def require_free_label(db: Session, course_id: int, label: str) -> str:
    label = (label or "").strip()
    if not label:
        raise ConstraintViolationError("Version label is required")
    if label_exists(db, course_id, label):
        raise ConstraintViolationError(f"Version label '{label}' already exists in course {course_id}")
    return label


def clear_tip(db: Session, branch_id: int) -> None:
    """Drop the tip flag from whichever version of the branch holds it."""
    db.query(CourseVersion).filter(
        CourseVersion.branch_id == branch_id,
        CourseVersion.is_tip == True,  # noqa: E712
    ).update({CourseVersion.is_tip: False}, synchronize_session="fetch")


def archive_published(db: Session, branch_id: int, keep_id: Optional[int] = None) -> None:
    """Archive the published version(s) of a branch, except ``keep_id``."""
    query = db.query(CourseVersion).filter(
        CourseVersion.branch_id == branch_id,
        CourseVersion.status == VersionStatus.published,
    )
    if keep_id is not None:
        query = query.filter(CourseVersion.id != keep_id)
    query.update({CourseVersion.status: VersionStatus.archived}, synchronize_session="fetch")


def list_versions(db: Session, course_id: int, branch_id: Optional[int] = None) -> list:
    query = db.query(CourseVersion).filter(CourseVersion.course_id == course_id)
    if branch_id is not None:
        query = query.filter(CourseVersion.branch_id == branch_id)
    return query.order_by(CourseVersion.created_at, CourseVersion.id).all()


def create_initial_version(
    db: Session,
    course_id: int,
    version_label: str,
    summary: Optional[str],
    actor_id: Optional[int],
) -> CourseVersion:
    """First version of a course. Goes live immediately on the default branch."""
    course = get_course(db, course_id)
    if course.has_active_version():
        raise ConstraintViolationError(f"Course {course_id} already has an active version")

    label = require_free_label(db, course_id, version_label)
    branch = default_branch(db, course)

    clear_tip(db, branch.id)
    archive_published(db, branch.id)

    now = datetime.utcnow()
    version = CourseVersion(
        course_id=course.id,
        branch_id=branch.id,
        version_label=label,
        summary=summary,
        status=VersionStatus.published,
        is_tip=True,
        created_by=actor_id,
        reviewed_by=actor_id,
        approved_at=now,
    )
    db.add(version)
    db.flush()

    course.active_version_id = version.id
    db.flush()

    logger.info("Course %s went live with initial version %s (%s)", course.id, version.id, label)
    return version


def create_draft_from_version(
    db: Session,
    base_version_id: int,
    actor_id: Optional[int],
    version_label: Optional[str] = None,
    summary: Optional[str] = None,
    branch_id: Optional[int] = None,
) -> CourseVersion:
    """Open a draft on top of an existing version.

    The draft becomes the tip of its branch (the base's branch unless one
    is given) and starts with a copy of the base's topics and resources.
    """
    base = get_version(db, base_version_id)
    branch = get_branch(db, branch_id or base.branch_id)
    if branch.course_id != base.course_id:
        raise ConstraintViolationError(
            f"Branch {branch.id} does not belong to course {base.course_id}"
        )

    if version_label:
        label = require_free_label(db, base.course_id, version_label)
    else:
        label = unique_version_label(db, base.course_id, base.version_label)

    track_step(db, "clear_tip")
    clear_tip(db, branch.id)

    track_step(db, "insert_draft")
    draft = CourseVersion(
        course_id=base.course_id,
        branch_id=branch.id,
        version_label=label,
        summary=summary if summary is not None else base.summary,
        status=VersionStatus.draft,
        is_tip=True,
        parent_version_id=base.id,
        based_on_version_id=base.id,
        created_by=actor_id,
    )
    db.add(draft)
    db.flush()

    track_step(db, "clone_content")
    clone_version_content(db, base.id, draft.id)

    logger.info("Opened draft %s (%s) from version %s on branch %s", draft.id, label, base.id, branch.id)
    return draft


def update_draft(db: Session, version_id: int, changes: dict) -> CourseVersion:
    """Edit label/summary of a draft. Other states are read-only."""
    version = get_version(db, version_id)
    if not version.is_draft():
        raise InvalidTransitionError(version.status.value, "edit", "only drafts can be edited")

    if "version_label" in changes and changes["version_label"] != version.version_label:
        version.version_label = require_free_label(db, version.course_id, changes["version_label"])
    if "summary" in changes:
        version.summary = changes["summary"]

    db.flush()
    return version


def submit_for_review(db: Session, version_id: int, actor_id: Optional[int]) -> CourseVersion:
    version = get_version(db, version_id)
    if not version.is_draft():
        raise InvalidTransitionError(version.status.value, VersionStatus.pending_review.value)

    version.status = VersionStatus.pending_review
    db.flush()

    logger.info("Version %s submitted for review by %s", version.id, actor_id)
    return version


def publish(db: Session, version_id: int, actor_id: Optional[int]) -> CourseVersion:
    """Make a draft or pending version the live version of its branch."""
    version = get_version(db, version_id)
    if version.status not in PUBLISHABLE:
        raise InvalidTransitionError(version.status.value, VersionStatus.published.value)

    updated = (
        db.query(CourseVersion)
        .filter(CourseVersion.id == version.id, CourseVersion.status == version.status)
        .update(
            {
                CourseVersion.status: VersionStatus.published,
                CourseVersion.approved_at: datetime.utcnow(),
                CourseVersion.reviewed_by: actor_id,
            },
            synchronize_session="fetch",
        )
    )
    if updated == 0:
        raise ConcurrentModificationError("Course version", version.id)

    archive_published(db, version.branch_id, keep_id=version.id)

    branch = get_branch(db, version.branch_id)
    if branch.is_default:
        course = get_course(db, version.course_id)
        course.active_version_id = version.id

    db.flush()
    db.refresh(version)

    logger.info("Published version %s on branch %s", version.id, branch.id)
    return version


def archive(db: Session, version_id: int, actor_id: Optional[int]) -> CourseVersion:
    """Retire the active version. It stays flagged as once-published."""
    version = get_version(db, version_id)
    if not version.is_active:
        raise InvalidTransitionError(
            version.status.value,
            VersionStatus.archived.value,
            "only the active version can be archived",
        )

    version.status = VersionStatus.archived

    course = get_course(db, version.course_id)
    if course.active_version_id == version.id:
        course.active_version_id = None

    db.flush()

    logger.info("Archived version %s by %s", version.id, actor_id)
    return version
