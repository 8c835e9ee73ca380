"""Student progress routes. Always act on the signed-in user."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from courseflow.database import get_db
from courseflow.dependencies import require_user
from courseflow.models import User
from courseflow.progress import (
    list_progress,
    mark_topic_complete,
    mark_topic_incomplete,
    touch_topic,
    version_completion,
)
from courseflow.routers.common import unwrap
from courseflow.routers.content import check_topic, check_version
from courseflow.schemas import CompletionResponse, ProgressResponse
from courseflow.unit_of_work import perform

router = APIRouter(prefix="/courses/{course_id}", tags=["progress"])


def _on_topic(fn, course_id: int, user: User):
    def run(db: Session, topic_id: int):
        check_topic(db, course_id, topic_id, user)
        return fn(db, user.id, topic_id)

    return run


@router.get("/versions/{version_id}/progress", response_model=list[ProgressResponse])
async def get_progress(
    course_id: int,
    version_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    def _list(db: Session):
        check_version(db, course_id, version_id, user)
        return list_progress(db, user.id, version_id)

    return unwrap(perform(db, "list_progress", _list))


@router.get("/versions/{version_id}/completion", response_model=CompletionResponse)
async def get_completion(
    course_id: int,
    version_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    def _summary(db: Session):
        check_version(db, course_id, version_id, user)
        return version_completion(db, user.id, version_id)

    summary = unwrap(perform(db, "version_completion", _summary))
    return CompletionResponse(
        total_topics=summary.total_topics,
        completed_topics=summary.completed_topics,
        percentage=summary.percentage,
    )


@router.post("/topics/{topic_id}/visit", response_model=ProgressResponse)
async def post_visit(
    course_id: int,
    topic_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    return unwrap(
        perform(db, "touch_topic", _on_topic(touch_topic, course_id, user), topic_id)
    )


@router.post("/topics/{topic_id}/complete", response_model=ProgressResponse)
async def post_complete(
    course_id: int,
    topic_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    return unwrap(
        perform(
            db,
            "mark_topic_complete",
            _on_topic(mark_topic_complete, course_id, user),
            topic_id,
            ids={"student_id": user.id, "topic_id": topic_id},
        )
    )


@router.delete("/topics/{topic_id}/complete", response_model=ProgressResponse)
async def delete_complete(
    course_id: int,
    topic_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    return unwrap(
        perform(
            db,
            "mark_topic_incomplete",
            _on_topic(mark_topic_incomplete, course_id, user),
            topic_id,
            ids={"student_id": user.id, "topic_id": topic_id},
        )
    )
