"""Student progress through the topics of a course version."""
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from courseflow.content import get_topic
from courseflow.models import CourseTopic, StudentProgress


@dataclass
class CompletionSummary:
    """How far a student is through one version."""

    total_topics: int
    completed_topics: int

    @property
    def percentage(self) -> float:
        if not self.total_topics:
            return 0.0
        return round(self.completed_topics * 100.0 / self.total_topics, 1)


def _progress_row(db: Session, student_id: int, topic_id: int) -> StudentProgress:
    """Fetch the (student, topic) row, creating it on first interaction."""
    get_topic(db, topic_id)
    progress = (
        db.query(StudentProgress)
        .filter(StudentProgress.student_id == student_id, StudentProgress.topic_id == topic_id)
        .first()
    )
    if not progress:
        progress = StudentProgress(student_id=student_id, topic_id=topic_id, completed=False)
        db.add(progress)
    progress.last_accessed_at = datetime.utcnow()
    return progress


def touch_topic(db: Session, student_id: int, topic_id: int) -> StudentProgress:
    progress = _progress_row(db, student_id, topic_id)
    db.flush()
    return progress


def mark_topic_complete(db: Session, student_id: int, topic_id: int) -> StudentProgress:
    progress = _progress_row(db, student_id, topic_id)
    if not progress.completed:
        progress.completed = True
        progress.completed_at = datetime.utcnow()
    db.flush()
    return progress


def mark_topic_incomplete(db: Session, student_id: int, topic_id: int) -> StudentProgress:
    progress = _progress_row(db, student_id, topic_id)
    progress.completed = False
    progress.completed_at = None
    db.flush()
    return progress


def list_progress(db: Session, student_id: int, version_id: int) -> list:
    return (
        db.query(StudentProgress)
        .join(CourseTopic, CourseTopic.id == StudentProgress.topic_id)
        .filter(
            StudentProgress.student_id == student_id,
            CourseTopic.course_version_id == version_id,
        )
        .order_by(CourseTopic.order_index)
        .all()
    )


def version_completion(db: Session, student_id: int, version_id: int) -> CompletionSummary:
    total = db.query(CourseTopic).filter(CourseTopic.course_version_id == version_id).count()
    completed = sum(1 for progress in list_progress(db, student_id, version_id) if progress.completed)
    return CompletionSummary(total_topics=total, completed_topics=completed)
