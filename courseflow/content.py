"""Topic and resource management within course versions."""
import logging
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from courseflow.exceptions import (
    ConstraintViolationError,
    InvalidTransitionError,
    NotFoundError,
)
from courseflow.models import (
    CourseResource,
    CourseTopic,
    CourseVersion,
    ResourceType,
    StudentProgress,
)
from courseflow.ordering import (
    make_room,
    next_order,
    normalize_order,
    reorder_batch,
    resource_scope,
    topic_scope,
)

logger = logging.getLogger(__name__)

TOPIC_FIELDS = ("title", "description")
RESOURCE_FIELDS = (
    "title",
    "description",
    "resource_type",
    "file_url",
    "file_name",
    "file_size",
    "mime_type",
    "external_url",
)
FILE_FIELDS = ("file_url", "file_name", "file_size", "mime_type")


def _require_title(title: Optional[str]) -> str:
    if title is None or not title.strip():
        raise ConstraintViolationError("Title is required")
    return title.strip()


def _editable_version(db: Session, version_id: int) -> CourseVersion:
    """Load a version whose content may still change."""
    version = db.query(CourseVersion).filter(CourseVersion.id == version_id).first()
    if not version:
        raise NotFoundError("Course version", version_id)
    if version.is_merged():
        raise InvalidTransitionError(
            version.status.value, "edit", "content of a merged version is immutable"
        )
    return version


def _place(db: Session, scope, order_index: Optional[int]) -> int:
    if order_index is None:
        return next_order(db, scope)
    if order_index < 1:
        raise ConstraintViolationError("Order index must be 1 or greater")
    make_room(db, scope, order_index)
    return order_index


# ==================== Topics ====================


def get_topic(db: Session, topic_id: int) -> CourseTopic:
    topic = db.query(CourseTopic).filter(CourseTopic.id == topic_id).first()
    if not topic:
        raise NotFoundError("Topic", topic_id)
    return topic


def list_topics(db: Session, version_id: int) -> list:
    return (
        db.query(CourseTopic)
        .filter(CourseTopic.course_version_id == version_id)
        .order_by(CourseTopic.order_index, CourseTopic.id)
        .all()
    )


def create_topic(
    db: Session,
    version_id: int,
    title: str,
    description: Optional[str] = None,
    order_index: Optional[int] = None,
) -> CourseTopic:
    """Create a topic, appending it unless an explicit position is given."""
    _editable_version(db, version_id)
    scope = topic_scope(version_id)

    topic = CourseTopic(
        course_version_id=version_id,
        title=_require_title(title),
        description=description,
        order_index=_place(db, scope, order_index),
    )
    db.add(topic)
    normalize_order(db, scope)

    logger.info("Created topic %s in version %s at %s", topic.id, version_id, topic.order_index)
    return topic


def update_topic(db: Session, topic_id: int, changes: dict) -> CourseTopic:
    topic = get_topic(db, topic_id)
    _editable_version(db, topic.course_version_id)

    for field in TOPIC_FIELDS:
        if field in changes:
            value = changes[field]
            if field == "title":
                value = _require_title(value)
            setattr(topic, field, value)

    db.flush()
    return topic


def delete_topic(db: Session, topic_id: int) -> None:
    """Hard delete a topic with its resources and progress rows."""
    topic = get_topic(db, topic_id)
    version_id = topic.course_version_id
    _editable_version(db, version_id)

    db.query(StudentProgress).filter(StudentProgress.topic_id == topic_id).delete(
        synchronize_session=False
    )
    db.query(CourseResource).filter(CourseResource.topic_id == topic_id).delete(
        synchronize_session=False
    )
    db.delete(topic)
    normalize_order(db, topic_scope(version_id))

    logger.info("Deleted topic %s from version %s", topic_id, version_id)


def reorder_topics(db: Session, version_id: int, order: Iterable) -> list:
    """Reorder topics with ``[(topic_id, order_index), ...]``."""
    _editable_version(db, version_id)
    return reorder_batch(db, topic_scope(version_id), order)


# ==================== Resources ====================


def _check_backing(values: dict) -> None:
    """Links carry an external URL only; everything else carries a file."""
    if values.get("resource_type") == ResourceType.link:
        if not values.get("external_url"):
            raise ConstraintViolationError("Link resources require an external URL")
        if any(values.get(field) for field in FILE_FIELDS):
            raise ConstraintViolationError("Link resources cannot carry file data")
    else:
        if not values.get("file_url"):
            raise ConstraintViolationError("File resources require a file URL")
        if values.get("external_url"):
            raise ConstraintViolationError("File resources cannot carry an external URL")


def get_resource(db: Session, resource_id: int) -> CourseResource:
    resource = db.query(CourseResource).filter(CourseResource.id == resource_id).first()
    if not resource:
        raise NotFoundError("Resource", resource_id)
    return resource


def list_resources(db: Session, topic_id: int) -> list:
    return (
        db.query(CourseResource)
        .filter(CourseResource.topic_id == topic_id)
        .order_by(CourseResource.order_index, CourseResource.id)
        .all()
    )


def create_resource(
    db: Session,
    topic_id: int,
    title: str,
    resource_type: ResourceType,
    description: Optional[str] = None,
    file_url: Optional[str] = None,
    file_name: Optional[str] = None,
    file_size: Optional[int] = None,
    mime_type: Optional[str] = None,
    external_url: Optional[str] = None,
    order_index: Optional[int] = None,
) -> CourseResource:
    topic = get_topic(db, topic_id)
    _editable_version(db, topic.course_version_id)

    values = {
        "title": _require_title(title),
        "description": description,
        "resource_type": ResourceType(resource_type),
        "file_url": file_url,
        "file_name": file_name,
        "file_size": file_size,
        "mime_type": mime_type,
        "external_url": external_url,
    }
    _check_backing(values)

    scope = resource_scope(topic_id)
    resource = CourseResource(topic_id=topic_id, order_index=_place(db, scope, order_index), **values)
    db.add(resource)
    normalize_order(db, scope)

    logger.info("Created resource %s in topic %s", resource.id, topic_id)
    return resource


def update_resource(db: Session, resource_id: int, changes: dict) -> CourseResource:
    resource = get_resource(db, resource_id)
    topic = get_topic(db, resource.topic_id)
    _editable_version(db, topic.course_version_id)

    values = {field: getattr(resource, field) for field in RESOURCE_FIELDS}
    for field in RESOURCE_FIELDS:
        if field in changes:
            values[field] = changes[field]
    values["title"] = _require_title(values["title"])
    values["resource_type"] = ResourceType(values["resource_type"])
    _check_backing(values)

    for field, value in values.items():
        setattr(resource, field, value)
    db.flush()
    return resource


def delete_resource(db: Session, resource_id: int) -> None:
    resource = get_resource(db, resource_id)
    topic = get_topic(db, resource.topic_id)
    _editable_version(db, topic.course_version_id)

    db.delete(resource)
    normalize_order(db, resource_scope(topic.id))


def reorder_resources(db: Session, topic_id: int, order: Iterable) -> list:
    """Reorder resources with ``[(resource_id, order_index), ...]``."""
    topic = get_topic(db, topic_id)
    _editable_version(db, topic.course_version_id)
    return reorder_batch(db, resource_scope(topic_id), order)


# ==================== Cloning ====================


def clone_version_content(db: Session, source_version_id: int, target_version_id: int) -> int:
    """Deep copy every topic and resource of one version into another.

    Order indices are preserved; no rows are shared. Returns the number of
    topics copied.
    """
    topics = list_topics(db, source_version_id)
    for topic in topics:
        copy = CourseTopic(
            course_version_id=target_version_id,
            title=topic.title,
            description=topic.description,
            order_index=topic.order_index,
        )
        db.add(copy)
        db.flush()

        for resource in list_resources(db, topic.id):
            db.add(
                CourseResource(
                    topic_id=copy.id,
                    order_index=resource.order_index,
                    **{field: getattr(resource, field) for field in RESOURCE_FIELDS},
                )
            )
    db.flush()

    logger.info(
        "Cloned %d topics from version %s into %s",
        len(topics), source_version_id, target_version_id,
    )
    return len(topics)
