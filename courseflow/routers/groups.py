"""Course group routes: cohorts, their teacher and enrolled students."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from courseflow.database import get_db
from courseflow.dependencies import require_admin, require_author
from courseflow.groups import (
    GroupSummary,
    add_student_to_group,
    assign_group_teacher,
    create_group,
    list_groups,
    remove_student_from_group,
)
from courseflow.models import User
from courseflow.routers.common import unwrap
from courseflow.schemas import GroupCreate, GroupResponse, GroupStudentCreate, GroupTeacherUpdate
from courseflow.unit_of_work import perform

router = APIRouter(prefix="/courses/{course_id}", tags=["groups"])


def group_response(summary: GroupSummary) -> GroupResponse:
    group = summary.group
    return GroupResponse(
        id=group.id,
        course_version_id=group.course_version_id,
        name=group.name,
        teacher_id=group.teacher_id,
        student_ids=summary.student_ids,
        created_at=group.created_at,
        updated_at=group.updated_at,
    )


@router.get("/versions/{version_id}/groups", response_model=list[GroupResponse])
async def get_groups(
    course_id: int,
    version_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_author),
):
    summaries = unwrap(perform(db, "list_groups", list_groups, course_id, version_id))
    return [group_response(summary) for summary in summaries]


@router.post("/versions/{version_id}/groups", response_model=GroupResponse, status_code=201)
async def post_group(
    course_id: int,
    version_id: int,
    data: GroupCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
):
    summary = unwrap(
        perform(
            db,
            "create_group",
            create_group,
            course_id,
            version_id,
            data.name,
            data.teacher_id,
            ids={"course_id": course_id, "version_id": version_id},
        )
    )
    return group_response(summary)


@router.put("/groups/{group_id}/teacher", response_model=GroupResponse)
async def put_group_teacher(
    course_id: int,
    group_id: int,
    data: GroupTeacherUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
):
    """Assign the group's teacher, or clear it with a null ``teacher_id``."""
    summary = unwrap(
        perform(
            db,
            "assign_group_teacher",
            assign_group_teacher,
            course_id,
            group_id,
            data.teacher_id,
            ids={"course_id": course_id, "group_id": group_id, "teacher_id": data.teacher_id},
        )
    )
    return group_response(summary)


@router.post("/groups/{group_id}/students", status_code=201)
async def post_group_student(
    course_id: int,
    group_id: int,
    data: GroupStudentCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
):
    unwrap(
        perform(
            db,
            "add_student_to_group",
            add_student_to_group,
            course_id,
            group_id,
            data.student_id,
            ids={"course_id": course_id, "group_id": group_id, "student_id": data.student_id},
        )
    )
    return {"group_id": group_id, "student_id": data.student_id}


@router.delete("/groups/{group_id}/students/{student_id}", status_code=204)
async def remove_group_student(
    course_id: int,
    group_id: int,
    student_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
):
    unwrap(
        perform(
            db,
            "remove_student_from_group",
            remove_student_from_group,
            course_id,
            group_id,
            student_id,
            ids={"course_id": course_id, "group_id": group_id, "student_id": student_id},
        )
    )
