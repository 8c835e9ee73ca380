"""Transaction boundary for lifecycle operations.

Service functions never commit. ``perform`` runs one of them inside the
session's transaction and commits once at the end, so a multi-step
workflow (merge, branch creation with cloning, cascade deletion) either
lands completely or not at all.
"""
import logging
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from courseflow.exceptions import DomainError, PartialFailureError, UpstreamError
from courseflow.results import Result

logger = logging.getLogger(__name__)

STEPS_KEY = "courseflow.steps"


def track_step(db: Session, name: str) -> None:
    """Record that a workflow is entering step ``name``."""
    db.info.setdefault(STEPS_KEY, []).append(name)


def perform(
    db: Session,
    operation: str,
    fn: Callable,
    *args,
    ids: Optional[dict] = None,
    **kwargs,
) -> Result:
    """Run ``fn(db, *args, **kwargs)`` as one unit of work.

    Domain errors roll back and come back as a failed ``Result``. Storage
    errors roll back and raise ``PartialFailureError`` when the workflow had
    already completed a step, ``UpstreamError`` otherwise.
    """
    ids = ids or {}
    db.info[STEPS_KEY] = []
    try:
        value = fn(db, *args, **kwargs)
        db.commit()
    except DomainError as exc:
        db.rollback()
        db.info.pop(STEPS_KEY, None)
        logger.info("%s rejected (%s): %s", operation, ids, exc)
        return Result.failure(exc)
    except SQLAlchemyError as exc:
        db.rollback()
        steps = db.info.pop(STEPS_KEY, [])
        if len(steps) > 1:
            logger.exception(
                "%s failed at step %s after %s (%s)", operation, steps[-1], steps[:-1], ids
            )
            raise PartialFailureError(operation, steps[-1], steps[:-1], ids) from exc
        logger.exception("%s failed in storage (%s)", operation, ids)
        raise UpstreamError(operation, str(exc)) from exc

    db.info.pop(STEPS_KEY, None)
    logger.info("%s succeeded (%s)", operation, ids)
    return Result.success(value)
