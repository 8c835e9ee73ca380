"""Teacher/editor assignment routes."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from courseflow.assignments import assign_teacher, list_course_assignments, remove_teacher
from courseflow.database import get_db
from courseflow.dependencies import require_admin, require_author
from courseflow.models import User
from courseflow.routers.common import unwrap
from courseflow.schemas import AssignmentCreate, AssignmentResponse, VersionResponse
from courseflow.unit_of_work import perform

router = APIRouter(prefix="/courses/{course_id}", tags=["assignments"])


@router.get("/assignments", response_model=list[AssignmentResponse])
async def get_assignments(
    course_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_author),
):
    """Every version of the course with the users assigned to it."""
    rows = unwrap(perform(db, "list_course_assignments", list_course_assignments, course_id))
    return [
        AssignmentResponse(version=VersionResponse.model_validate(version), teacher_ids=teacher_ids)
        for version, teacher_ids in rows
    ]


@router.post("/versions/{version_id}/teachers", status_code=201)
async def post_assignment(
    course_id: int,
    version_id: int,
    data: AssignmentCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
):
    unwrap(
        perform(
            db,
            "assign_teacher",
            assign_teacher,
            course_id,
            version_id,
            data.teacher_id,
            ids={"course_id": course_id, "version_id": version_id, "teacher_id": data.teacher_id},
        )
    )
    return {"course_id": course_id, "version_id": version_id, "teacher_id": data.teacher_id}


@router.delete("/versions/{version_id}/teachers/{teacher_id}", status_code=204)
async def remove_assignment(
    course_id: int,
    version_id: int,
    teacher_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
):
    unwrap(
        perform(
            db,
            "remove_teacher",
            remove_teacher,
            course_id,
            version_id,
            teacher_id,
            ids={"course_id": course_id, "version_id": version_id, "teacher_id": teacher_id},
        )
    )
