"""Topic and resource routes."""
from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from courseflow.content import (
    create_resource,
    create_topic,
    delete_resource,
    delete_topic,
    get_resource,
    get_topic,
    list_resources,
    list_topics,
    reorder_resources,
    reorder_topics,
    update_resource,
    update_topic,
)
from courseflow.database import get_db
from courseflow.dependencies import require_author, require_user
from courseflow.exceptions import NotFoundError
from courseflow.models import User, UserRole
from courseflow.notifications import invalidate_course_views
from courseflow.queries import get_course, get_version
from courseflow.routers.common import unwrap
from courseflow.schemas import (
    ReorderRequest,
    ResourceCreate,
    ResourceResponse,
    ResourceUpdate,
    TopicCreate,
    TopicResponse,
    TopicUpdate,
)
from courseflow.unit_of_work import perform

router = APIRouter(prefix="/courses/{course_id}", tags=["content"])


def check_version(db: Session, course_id: int, version_id: int, user: User = None):
    """Ensure the version is part of the course and readable by ``user``."""
    version = get_version(db, version_id)
    if version.course_id != course_id:
        raise NotFoundError(f"Course version in course {course_id}", version_id)
    # Students only ever see the course's live version
    if user is not None and user.role == UserRole.student:
        if version.id != get_course(db, course_id).active_version_id:
            raise NotFoundError("Course version", version_id)
    return version


def check_topic(db: Session, course_id: int, topic_id: int, user: User = None):
    topic = get_topic(db, topic_id)
    check_version(db, course_id, topic.course_version_id, user)
    return topic


def check_resource(db: Session, course_id: int, resource_id: int):
    resource = get_resource(db, resource_id)
    check_topic(db, course_id, resource.topic_id)
    return resource


def scoped(check, fn, course_id: int):
    """Run ``fn`` only after ``check`` accepted its first argument."""

    def run(db: Session, item_id: int, *args, **kwargs):
        check(db, course_id, item_id)
        return fn(db, item_id, *args, **kwargs)

    return run


# ==================== Topics ====================


@router.get("/versions/{version_id}/topics", response_model=list[TopicResponse])
async def get_topics(
    course_id: int,
    version_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    def _list(db: Session):
        check_version(db, course_id, version_id, user)
        return list_topics(db, version_id)

    return unwrap(perform(db, "list_topics", _list))


@router.post("/versions/{version_id}/topics", response_model=TopicResponse, status_code=201)
async def post_topic(
    course_id: int,
    version_id: int,
    data: TopicCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_author),
):
    topic = unwrap(
        perform(
            db,
            "create_topic",
            scoped(check_version, create_topic, course_id),
            version_id,
            data.title,
            description=data.description,
            order_index=data.order_index,
            ids={"course_id": course_id, "version_id": version_id},
        )
    )
    background_tasks.add_task(invalidate_course_views, course_id, "content.changed")
    return topic


@router.put("/versions/{version_id}/topics/order", response_model=list[TopicResponse])
async def put_topic_order(
    course_id: int,
    version_id: int,
    data: ReorderRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_author),
):
    """Reorder topics of a version in one call."""
    topics = unwrap(
        perform(
            db,
            "reorder_topics",
            scoped(check_version, reorder_topics, course_id),
            version_id,
            data.as_pairs(),
            ids={"course_id": course_id, "version_id": version_id},
        )
    )
    background_tasks.add_task(invalidate_course_views, course_id, "content.reordered")
    return topics


@router.patch("/topics/{topic_id}", response_model=TopicResponse)
async def patch_topic(
    course_id: int,
    topic_id: int,
    data: TopicUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_author),
):
    topic = unwrap(
        perform(
            db,
            "update_topic",
            scoped(check_topic, update_topic, course_id),
            topic_id,
            data.model_dump(exclude_unset=True),
            ids={"course_id": course_id, "topic_id": topic_id},
        )
    )
    background_tasks.add_task(invalidate_course_views, course_id, "content.changed")
    return topic


@router.delete("/topics/{topic_id}", status_code=204)
async def remove_topic(
    course_id: int,
    topic_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_author),
):
    unwrap(
        perform(
            db,
            "delete_topic",
            scoped(check_topic, delete_topic, course_id),
            topic_id,
            ids={"course_id": course_id, "topic_id": topic_id},
        )
    )
    background_tasks.add_task(invalidate_course_views, course_id, "content.changed")


# ==================== Resources ====================


@router.get("/topics/{topic_id}/resources", response_model=list[ResourceResponse])
async def get_resources(
    course_id: int,
    topic_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
):
    def _list(db: Session):
        check_topic(db, course_id, topic_id, user)
        return list_resources(db, topic_id)

    return unwrap(perform(db, "list_resources", _list))


@router.post("/topics/{topic_id}/resources", response_model=ResourceResponse, status_code=201)
async def post_resource(
    course_id: int,
    topic_id: int,
    data: ResourceCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_author),
):
    values = data.model_dump()
    resource = unwrap(
        perform(
            db,
            "create_resource",
            scoped(check_topic, create_resource, course_id),
            topic_id,
            values.pop("title"),
            values.pop("resource_type"),
            **values,
            ids={"course_id": course_id, "topic_id": topic_id},
        )
    )
    background_tasks.add_task(invalidate_course_views, course_id, "content.changed")
    return resource


@router.put("/topics/{topic_id}/resources/order", response_model=list[ResourceResponse])
async def put_resource_order(
    course_id: int,
    topic_id: int,
    data: ReorderRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_author),
):
    resources = unwrap(
        perform(
            db,
            "reorder_resources",
            scoped(check_topic, reorder_resources, course_id),
            topic_id,
            data.as_pairs(),
            ids={"course_id": course_id, "topic_id": topic_id},
        )
    )
    background_tasks.add_task(invalidate_course_views, course_id, "content.reordered")
    return resources


@router.patch("/resources/{resource_id}", response_model=ResourceResponse)
async def patch_resource(
    course_id: int,
    resource_id: int,
    data: ResourceUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_author),
):
    resource = unwrap(
        perform(
            db,
            "update_resource",
            scoped(check_resource, update_resource, course_id),
            resource_id,
            data.model_dump(exclude_unset=True),
            ids={"course_id": course_id, "resource_id": resource_id},
        )
    )
    background_tasks.add_task(invalidate_course_views, course_id, "content.changed")
    return resource


@router.delete("/resources/{resource_id}", status_code=204)
async def remove_resource(
    course_id: int,
    resource_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_author),
):
    unwrap(
        perform(
            db,
            "delete_resource",
            scoped(check_resource, delete_resource, course_id),
            resource_id,
            ids={"course_id": course_id, "resource_id": resource_id},
        )
    )
    background_tasks.add_task(invalidate_course_views, course_id, "content.changed")
