"""Ordering of topics within a version and resources within a topic."""
import logging
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from courseflow.exceptions import NotFoundError
from courseflow.models import CourseResource, CourseTopic

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderScope:
    """A set of rows sharing one ordering sequence."""

    model: type
    column: str
    value: int
    label: str

    @property
    def scope_column(self):
        return getattr(self.model, self.column)

    def query(self, db: Session):
        return db.query(self.model).filter(self.scope_column == self.value)


def topic_scope(version_id: int) -> OrderScope:
    return OrderScope(CourseTopic, "course_version_id", version_id, "Topic")


def resource_scope(topic_id: int) -> OrderScope:
    return OrderScope(CourseResource, "topic_id", topic_id, "Resource")


def next_order(db: Session, scope: OrderScope) -> int:
    """Return max(order_index) + 1 in the scope, or 1 when it is empty."""
    current = (
        db.query(func.max(scope.model.order_index))
        .filter(scope.scope_column == scope.value)
        .scalar()
    )
    return current + 1 if current is not None else 1


def make_room(db: Session, scope: OrderScope, position: int) -> None:
    """Shift items at or after ``position`` down by one."""
    scope.query(db).filter(scope.model.order_index >= position).update(
        {scope.model.order_index: scope.model.order_index + 1},
        synchronize_session="fetch",
    )


def normalize_order(db: Session, scope: OrderScope) -> list:
    """Collapse the scope to a dense 1..n sequence. Returns the ordered rows."""
    db.flush()
    items = scope.query(db).order_by(scope.model.order_index, scope.model.id).all()
    for position, item in enumerate(items, start=1):
        if item.order_index != position:
            item.order_index = position
    db.flush()
    return items


def _batch_update(db: Session, scope: OrderScope, mapping: dict) -> int:
    """Single UPDATE ... CASE over every item in ``mapping``."""
    return (
        scope.query(db)
        .filter(scope.model.id.in_(list(mapping)))
        .update(
            {scope.model.order_index: case(mapping, value=scope.model.id)},
            synchronize_session="fetch",
        )
    )


def _sequential_update(db: Session, scope: OrderScope, mapping: dict) -> None:
    for item_id, order_index in mapping.items():
        scope.query(db).filter(scope.model.id == item_id).update(
            {scope.model.order_index: order_index},
            synchronize_session="fetch",
        )


def _planned_order(items: list, mapping: dict) -> dict:
    """Final 1..n positions: moved items land where asked, the rest fill the gaps.

    Moved items are inserted in ascending requested position into the
    untouched items (kept in their current order); positions past the end
    are clamped to the end.
    """
    sequence = [item.id for item in items if item.id not in mapping]
    moved = sorted(mapping.items(), key=lambda pair: (pair[1], pair[0]))
    for item_id, order_index in moved:
        sequence.insert(min(order_index - 1, len(sequence)), item_id)
    return {item_id: position for position, item_id in enumerate(sequence, start=1)}


def reorder_batch(db: Session, scope: OrderScope, order: Iterable) -> list:
    """Apply ``[(item_id, new_order), ...]`` to the scope.

    Every listed item ends up at the position it asked for; untouched items
    keep their relative order around them. The batched statement runs
    inside a SAVEPOINT; if the store rejects it the savepoint is rolled back
    and items are updated one by one. Errors from the one-by-one path
    propagate.
    """
    mapping = {int(item_id): int(order_index) for item_id, order_index in order}
    if not mapping:
        return normalize_order(db, scope)

    known = {
        row_id
        for (row_id,) in db.query(scope.model.id)
        .filter(scope.scope_column == scope.value, scope.model.id.in_(list(mapping)))
        .all()
    }
    missing = sorted(set(mapping) - known)
    if missing:
        raise NotFoundError(f"{scope.label} in scope {scope.value}", missing)

    db.flush()
    current = scope.query(db).order_by(scope.model.order_index, scope.model.id).all()
    before = {item.id: item.order_index for item in current}
    planned = {
        item_id: position
        for item_id, position in _planned_order(current, mapping).items()
        if item_id in mapping or before[item_id] != position
    }

    try:
        with db.begin_nested():
            _batch_update(db, scope, planned)
    except SQLAlchemyError as exc:
        logger.warning(
            "Batch reorder of %s scope %s unavailable, updating one by one: %s",
            scope.label, scope.value, exc,
        )
        _sequential_update(db, scope, planned)

    return normalize_order(db, scope)
