"""Branch routes."""
from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from courseflow.branches import create_branch, delete_branch, list_branches
from courseflow.database import get_db
from courseflow.dependencies import require_admin, require_author, require_maintainer
from courseflow.models import User
from courseflow.notifications import invalidate_course_views
from courseflow.routers.common import branch_response, unwrap
from courseflow.schemas import BranchCreate, BranchResponse
from courseflow.unit_of_work import perform

router = APIRouter(prefix="/courses/{course_id}/branches", tags=["branches"])


@router.get("", response_model=list[BranchResponse])
async def get_branches(
    course_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_author),
):
    """Branches of a course, default first, each with its tip and base version."""
    summaries = unwrap(perform(db, "list_branches", list_branches, course_id))
    return [branch_response(summary) for summary in summaries]


@router.post("", response_model=BranchResponse, status_code=201)
async def post_branch(
    course_id: int,
    data: BranchCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_maintainer),
):
    """Fork a version into a new branch."""
    summary = unwrap(
        perform(
            db,
            "create_branch",
            create_branch,
            course_id,
            data.name,
            data.description,
            data.base_version_id,
            data.new_version_label,
            user.id,
            ids={"course_id": course_id, "base_version_id": data.base_version_id},
        )
    )
    background_tasks.add_task(invalidate_course_views, course_id, "branch.created")
    return branch_response(summary)


@router.delete("/{branch_id}", status_code=204)
async def remove_branch(
    course_id: int,
    branch_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
):
    unwrap(
        perform(
            db,
            "delete_branch",
            delete_branch,
            course_id,
            branch_id,
            ids={"course_id": course_id, "branch_id": branch_id},
        )
    )
    background_tasks.add_task(invalidate_course_views, course_id, "branch.deleted")
