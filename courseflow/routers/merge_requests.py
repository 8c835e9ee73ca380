"""Merge request routes."""
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from courseflow.database import get_db
from courseflow.dependencies import require_admin, require_author
from courseflow.exceptions import NotFoundError
from courseflow.merge_requests import list_merge_requests, merge, open_merge_request, review_merge_request
from courseflow.models import MergeRequestStatus, User
from courseflow.notifications import invalidate_course_views
from courseflow.queries import get_merge_request
from courseflow.routers.common import unwrap
from courseflow.schemas import MergeRequestCreate, MergeRequestResponse, MergeRequestReview
from courseflow.unit_of_work import perform

router = APIRouter(prefix="/courses/{course_id}/merge-requests", tags=["merge-requests"])


def in_course(fn, course_id: int):
    """Wrap a merge request operation so it only acts inside ``course_id``."""

    def run(db: Session, request_id: int, *args):
        if get_merge_request(db, request_id).course_id != course_id:
            raise NotFoundError(f"Merge request in course {course_id}", request_id)
        return fn(db, request_id, *args)

    return run


@router.get("", response_model=list[MergeRequestResponse])
async def get_merge_requests(
    course_id: int,
    status: Optional[MergeRequestStatus] = None,
    db: Session = Depends(get_db),
    user: User = Depends(require_author),
):
    return unwrap(perform(db, "list_merge_requests", list_merge_requests, course_id, status))


@router.post("", response_model=MergeRequestResponse, status_code=201)
async def post_merge_request(
    course_id: int,
    data: MergeRequestCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_author),
):
    """Propose merging the source branch tip into the target branch."""
    request = unwrap(
        perform(
            db,
            "open_merge_request",
            open_merge_request,
            course_id,
            data.source_branch_id,
            data.target_branch_id,
            data.title,
            data.summary,
            user.id,
            payload=data.payload,
            ids={
                "course_id": course_id,
                "source_branch_id": data.source_branch_id,
                "target_branch_id": data.target_branch_id,
            },
        )
    )
    background_tasks.add_task(invalidate_course_views, course_id, "merge_request.opened")
    return request


@router.post("/{request_id}/review", response_model=MergeRequestResponse)
async def post_review(
    course_id: int,
    request_id: int,
    data: MergeRequestReview,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
):
    request = unwrap(
        perform(
            db,
            "review_merge_request",
            in_course(review_merge_request, course_id),
            request_id,
            data.decision,
            user.id,
            ids={"course_id": course_id, "request_id": request_id},
        )
    )
    background_tasks.add_task(invalidate_course_views, course_id, f"merge_request.{request.status.value}")
    return request


@router.post("/{request_id}/merge", response_model=MergeRequestResponse)
async def post_merge(
    course_id: int,
    request_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
):
    """Merge an approved request into its target branch."""
    request = unwrap(
        perform(
            db,
            "merge",
            in_course(merge, course_id),
            request_id,
            user.id,
            ids={"course_id": course_id, "request_id": request_id},
        )
    )
    background_tasks.add_task(invalidate_course_views, course_id, "merge_request.merged")
    return request
