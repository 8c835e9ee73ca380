"""Merge requests between course branches.

State machine::

    open --approve--> approved --merge--> merged
    open --reject--> rejected
    approved --reject--> rejected

``merged`` and ``rejected`` are terminal. Merging straight from ``open``
is only allowed when ``ALLOW_MERGE_FROM_OPEN`` is set.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from courseflow.config import settings
from courseflow.content import clone_version_content
from courseflow.exceptions import (
    AlreadyClosedError,
    ConstraintViolationError,
    InvalidTransitionError,
    NoTipVersionError,
)
from courseflow.models import (
    CourseMergeRequest,
    CourseVersion,
    MergeRequestStatus,
    VersionStatus,
)
from courseflow.queries import get_branch, get_course, get_merge_request, get_version, tip_version
from courseflow.unit_of_work import track_step
from courseflow.versions import archive_published, unique_version_label

logger = logging.getLogger(__name__)

APPROVE = "approve"
REJECT = "reject"


def list_merge_requests(
    db: Session, course_id: int, status: Optional[MergeRequestStatus] = None
) -> list:
    get_course(db, course_id)
    query = db.query(CourseMergeRequest).filter(CourseMergeRequest.course_id == course_id)
    if status is not None:
        query = query.filter(CourseMergeRequest.status == status)
    return query.order_by(CourseMergeRequest.opened_at.desc(), CourseMergeRequest.id.desc()).all()


def open_merge_request(
    db: Session,
    course_id: int,
    source_branch_id: int,
    target_branch_id: int,
    title: str,
    summary: Optional[str],
    actor_id: Optional[int],
    payload: Optional[dict] = None,
) -> CourseMergeRequest:
    """Propose folding the source branch tip into the target branch."""
    if source_branch_id == target_branch_id:
        raise ConstraintViolationError("Source and target branch must differ")

    course = get_course(db, course_id)
    source_branch = get_branch(db, source_branch_id, course.id)
    target_branch = get_branch(db, target_branch_id, course.id)

    title = (title or "").strip()
    if not title:
        raise ConstraintViolationError("Merge request title is required")

    source_version = tip_version(db, source_branch.id)
    if not source_version:
        raise NoTipVersionError(source_branch.id)
    if source_version.merge_request_id is not None:
        raise ConstraintViolationError(
            f"Version {source_version.id} is already claimed by merge request "
            f"{source_version.merge_request_id}"
        )
    if source_version.is_merged():
        raise ConstraintViolationError(f"Version {source_version.id} has already been merged")

    target_version = tip_version(db, target_branch.id)

    request = CourseMergeRequest(
        course_id=course.id,
        source_branch_id=source_branch.id,
        target_branch_id=target_branch.id,
        source_version_id=source_version.id,
        target_version_id=target_version.id if target_version else None,
        title=title,
        summary=summary,
        status=MergeRequestStatus.open,
        opened_by=actor_id,
        opened_at=datetime.utcnow(),
        payload=payload,
    )
    db.add(request)
    db.flush()

    source_version.merge_request_id = request.id
    db.flush()

    logger.info(
        "Opened merge request %s: branch %s -> %s (version %s)",
        request.id, source_branch.id, target_branch.id, source_version.id,
    )
    return request


def _release_source(db: Session, request: CourseMergeRequest) -> None:
    version = db.query(CourseVersion).filter(CourseVersion.id == request.source_version_id).first()
    if version and version.merge_request_id == request.id:
        version.merge_request_id = None


def review_merge_request(
    db: Session, request_id: int, decision: str, reviewer_id: Optional[int]
) -> CourseMergeRequest:
    """Approve or reject. Rejection frees the source version for a new request."""
    request = get_merge_request(db, request_id)
    if request.is_closed():
        raise AlreadyClosedError(request.id, request.status.value)

    if decision == APPROVE:
        if not request.is_open():
            raise InvalidTransitionError(request.status.value, MergeRequestStatus.approved.value)
        request.status = MergeRequestStatus.approved
        request.reviewer_id = reviewer_id
    elif decision == REJECT:
        request.status = MergeRequestStatus.rejected
        request.reviewer_id = reviewer_id
        request.closed_at = datetime.utcnow()
        _release_source(db, request)
    else:
        raise ConstraintViolationError(f"Unknown review decision: {decision}")

    db.flush()
    logger.info("Merge request %s %s by %s", request.id, request.status.value, reviewer_id)
    return request


def merge(db: Session, request_id: int, actor_id: Optional[int]) -> CourseMergeRequest:
    """Fold the source version into a new tip version on the target branch."""
    request = get_merge_request(db, request_id)
    if request.is_closed():
        raise AlreadyClosedError(request.id, request.status.value)
    if request.is_open() and not settings.ALLOW_MERGE_FROM_OPEN:
        raise InvalidTransitionError(
            request.status.value,
            MergeRequestStatus.merged.value,
            "merge request must be approved first",
        )

    course = get_course(db, request.course_id)
    target_branch = get_branch(db, request.target_branch_id, course.id)
    get_branch(db, request.source_branch_id, course.id)
    source_version = get_version(db, request.source_version_id)
    target_tip = tip_version(db, target_branch.id)

    track_step(db, "unset_target_tip")
    if target_tip:
        target_tip.is_tip = False
        db.flush()

    label = unique_version_label(db, course.id, source_version.version_label)
    status = VersionStatus.published if target_branch.is_default else source_version.status
    now = datetime.utcnow()

    track_step(db, "insert_merged_version")
    merged_version = CourseVersion(
        course_id=course.id,
        branch_id=target_branch.id,
        version_label=label,
        summary=source_version.summary,
        status=status,
        is_tip=True,
        parent_version_id=target_tip.id if target_tip else source_version.id,
        based_on_version_id=source_version.id,
        merge_request_id=None,
        created_by=actor_id,
        reviewed_by=actor_id if status == VersionStatus.published else None,
        approved_at=now if status == VersionStatus.published else None,
    )
    db.add(merged_version)
    db.flush()
    if status == VersionStatus.published:
        archive_published(db, target_branch.id, keep_id=merged_version.id)

    track_step(db, "clone_content")
    clone_version_content(db, source_version.id, merged_version.id)

    track_step(db, "consume_source")
    source_version.merge_request_id = None
    source_version.merged_into_version_id = merged_version.id

    track_step(db, "update_course")
    if target_branch.is_default:
        course.active_version_id = merged_version.id

    track_step(db, "close_request")
    request.status = MergeRequestStatus.merged
    request.reviewer_id = actor_id or request.reviewer_id
    request.closed_at = now
    request.merged_at = now
    request.target_version_id = merged_version.id
    db.flush()

    logger.info(
        "Merged request %s: version %s -> %s (%s) on branch %s",
        request.id, source_version.id, merged_version.id, label, target_branch.id,
    )
    return request
