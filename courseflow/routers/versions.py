"""Version lifecycle routes: initial version, drafts, review, publish, archive."""
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from courseflow.database import get_db
from courseflow.dependencies import require_admin, require_author
from courseflow.exceptions import NotFoundError
from courseflow.models import User
from courseflow.notifications import invalidate_course_views
from courseflow.queries import get_course, get_version
from courseflow.routers.common import unwrap
from courseflow.schemas import DraftCreate, DraftUpdate, InitialVersionCreate, VersionResponse
from courseflow.unit_of_work import perform
from courseflow.versions import (
    archive,
    create_draft_from_version,
    create_initial_version,
    list_versions,
    publish,
    submit_for_review,
    update_draft,
)

router = APIRouter(prefix="/courses/{course_id}/versions", tags=["versions"])


def in_course(fn, course_id: int):
    """Wrap a version operation so it only touches versions of ``course_id``."""

    def run(db: Session, version_id: int, *args, **kwargs):
        get_course(db, course_id)
        if get_version(db, version_id).course_id != course_id:
            raise NotFoundError(f"Course version in course {course_id}", version_id)
        return fn(db, version_id, *args, **kwargs)

    return run


def _versions(db: Session, course_id: int, branch_id: Optional[int]):
    get_course(db, course_id)
    return list_versions(db, course_id, branch_id)


@router.get("", response_model=list[VersionResponse])
async def get_versions(
    course_id: int,
    branch_id: Optional[int] = None,
    db: Session = Depends(get_db),
    user: User = Depends(require_author),
):
    return unwrap(perform(db, "list_versions", _versions, course_id, branch_id))


@router.post("/initial", response_model=VersionResponse, status_code=201)
async def post_initial_version(
    course_id: int,
    data: InitialVersionCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
):
    """Create the first version of a course; it goes live immediately."""
    version = unwrap(
        perform(
            db,
            "create_initial_version",
            create_initial_version,
            course_id,
            data.version_label,
            data.summary,
            user.id,
            ids={"course_id": course_id},
        )
    )
    background_tasks.add_task(invalidate_course_views, course_id, "version.published")
    return version


@router.post("/drafts", response_model=VersionResponse, status_code=201)
async def post_draft(
    course_id: int,
    data: DraftCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_author),
):
    """Open a draft on top of an existing version of this course."""
    draft = unwrap(
        perform(
            db,
            "create_draft",
            in_course(create_draft_from_version, course_id),
            data.base_version_id,
            user.id,
            version_label=data.version_label,
            summary=data.summary,
            branch_id=data.branch_id,
            ids={"course_id": course_id, "base_version_id": data.base_version_id},
        )
    )
    background_tasks.add_task(invalidate_course_views, course_id, "version.drafted")
    return draft


@router.patch("/{version_id}", response_model=VersionResponse)
async def patch_draft(
    course_id: int,
    version_id: int,
    data: DraftUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_author),
):
    return unwrap(
        perform(
            db,
            "update_draft",
            in_course(update_draft, course_id),
            version_id,
            data.model_dump(exclude_unset=True),
            ids={"course_id": course_id, "version_id": version_id},
        )
    )


@router.post("/{version_id}/submit", response_model=VersionResponse)
async def post_submit(
    course_id: int,
    version_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_author),
):
    return unwrap(
        perform(
            db,
            "submit_for_review",
            in_course(submit_for_review, course_id),
            version_id,
            user.id,
            ids={"course_id": course_id, "version_id": version_id},
        )
    )


@router.post("/{version_id}/publish", response_model=VersionResponse)
async def post_publish(
    course_id: int,
    version_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
):
    version = unwrap(
        perform(
            db,
            "publish",
            in_course(publish, course_id),
            version_id,
            user.id,
            ids={"course_id": course_id, "version_id": version_id},
        )
    )
    background_tasks.add_task(invalidate_course_views, course_id, "version.published")
    return version


@router.post("/{version_id}/archive", response_model=VersionResponse)
async def post_archive(
    course_id: int,
    version_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
):
    version = unwrap(
        perform(
            db,
            "archive",
            in_course(archive, course_id),
            version_id,
            user.id,
            ids={"course_id": course_id, "version_id": version_id},
        )
    )
    background_tasks.add_task(invalidate_course_views, course_id, "version.archived")
    return version
