"""Course CRUD routes."""
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from courseflow.courses import (
    build_course_view,
    create_course,
    delete_course,
    get_course_view,
    list_courses,
    update_course,
)
from courseflow.database import get_db
from courseflow.dependencies import require_admin, require_user
from courseflow.models import User, UserRole
from courseflow.notifications import invalidate_course_views
from courseflow.routers.common import course_response, unwrap
from courseflow.schemas import CourseCreate, CourseResponse, CourseUpdate
from courseflow.unit_of_work import perform

router = APIRouter(prefix="/courses", tags=["courses"])


@router.get("", response_model=list[CourseResponse])
async def get_courses(
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    """List courses. Students only see the ones visible to them."""
    views = list_courses(db, visible_only=user.role == UserRole.student)
    return [course_response(view) for view in views]


@router.post("", response_model=CourseResponse, status_code=201)
async def post_course(
    data: CourseCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
):
    """Create a course with its default branch."""
    course = unwrap(
        perform(
            db,
            "create_course",
            create_course,
            data.title,
            user.id,
            summary=data.summary,
            description=data.description,
            visibility_override=data.visibility_override,
            initial_version_label=data.initial_version_label,
            initial_version_summary=data.initial_version_summary,
        )
    )
    background_tasks.add_task(invalidate_course_views, course.id, "course.created")
    return course_response(build_course_view(db, course))


@router.get("/{course_id}", response_model=CourseResponse)
async def get_course_detail(
    course_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    """Course with its primary version, branches and pending merge requests."""
    view = unwrap(perform(db, "get_course", get_course_view, course_id, ids={"course_id": course_id}))
    if user.role == UserRole.student and not view.visible_for_students:
        raise HTTPException(status_code=404, detail="Course not found")
    return course_response(view)


@router.patch("/{course_id}", response_model=CourseResponse)
async def patch_course(
    course_id: int,
    data: CourseUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
):
    course = unwrap(
        perform(
            db,
            "update_course",
            update_course,
            course_id,
            data.model_dump(exclude_unset=True),
            ids={"course_id": course_id},
        )
    )
    background_tasks.add_task(invalidate_course_views, course.id, "course.updated")
    return course_response(build_course_view(db, course))


@router.delete("/{course_id}", status_code=204)
async def remove_course(
    course_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_admin),
):
    unwrap(perform(db, "delete_course", delete_course, course_id, ids={"course_id": course_id}))
    background_tasks.add_task(invalidate_course_views, course_id, "course.deleted")
