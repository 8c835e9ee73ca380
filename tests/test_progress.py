"""Tests for student progress and version assignments."""
import pytest

from courseflow.assignments import (
    assign_teacher,
    is_teacher_assigned,
    list_course_assignments,
    list_version_teachers,
    remove_teacher,
)
from courseflow.content import create_topic
from courseflow.exceptions import ConstraintViolationError, NotFoundError
from courseflow.models import StudentProgress
from courseflow.progress import (
    list_progress,
    mark_topic_complete,
    mark_topic_incomplete,
    touch_topic,
    version_completion,
)
from courseflow.versions import create_draft_from_version


@pytest.fixture
def topics(db_session, live_course):
    created = [
        create_topic(db_session, live_course.active_version_id, title)
        for title in ("Intro", "Tools", "Memory", "Evaluation")
    ]
    db_session.commit()
    return created


@pytest.mark.progress
class TestProgress:
    def test_complete_creates_single_row(self, db_session, student_user, topics):
        mark_topic_complete(db_session, student_user.id, topics[0].id)
        first = mark_topic_complete(db_session, student_user.id, topics[0].id)
        db_session.commit()

        assert first.completed is True
        assert first.completed_at is not None
        assert db_session.query(StudentProgress).count() == 1

    def test_incomplete_clears_completion(self, db_session, student_user, topics):
        mark_topic_complete(db_session, student_user.id, topics[0].id)
        progress = mark_topic_incomplete(db_session, student_user.id, topics[0].id)

        assert progress.completed is False
        assert progress.completed_at is None

    def test_touch_refreshes_last_access(self, db_session, student_user, topics):
        progress = touch_topic(db_session, student_user.id, topics[1].id)
        first_seen = progress.last_accessed_at
        touch_topic(db_session, student_user.id, topics[1].id)

        assert progress.completed is False
        assert progress.last_accessed_at >= first_seen

    def test_unknown_topic(self, db_session, student_user):
        with pytest.raises(NotFoundError):
            mark_topic_complete(db_session, student_user.id, 999)

    def test_completion_summary(self, db_session, student_user, live_course, topics):
        mark_topic_complete(db_session, student_user.id, topics[0].id)
        mark_topic_complete(db_session, student_user.id, topics[2].id)
        touch_topic(db_session, student_user.id, topics[3].id)
        db_session.commit()

        summary = version_completion(db_session, student_user.id, live_course.active_version_id)
        assert (summary.total_topics, summary.completed_topics) == (4, 2)
        assert summary.percentage == 50.0

        rows = list_progress(db_session, student_user.id, live_course.active_version_id)
        assert [row.topic_id for row in rows] == [topics[0].id, topics[2].id, topics[3].id]

    def test_empty_version_is_zero_percent(self, db_session, student_user, live_course):
        summary = version_completion(db_session, student_user.id, live_course.active_version_id)
        assert summary.percentage == 0.0


@pytest.mark.progress
class TestAssignments:
    def test_assign_and_list(self, db_session, teacher_user, editor_user, live_course):
        version_id = live_course.active_version_id
        assign_teacher(db_session, live_course.id, version_id, teacher_user.id)
        assign_teacher(db_session, live_course.id, version_id, editor_user.id)
        db_session.commit()

        assert is_teacher_assigned(db_session, version_id, teacher_user.id) is True
        assert list_version_teachers(db_session, version_id) == sorted([teacher_user.id, editor_user.id])

    def test_students_cannot_be_assigned(self, db_session, student_user, live_course):
        with pytest.raises(ConstraintViolationError):
            assign_teacher(db_session, live_course.id, live_course.active_version_id, student_user.id)

    def test_duplicate_assignment(self, db_session, teacher_user, live_course):
        assign_teacher(db_session, live_course.id, live_course.active_version_id, teacher_user.id)
        with pytest.raises(ConstraintViolationError):
            assign_teacher(db_session, live_course.id, live_course.active_version_id, teacher_user.id)

    def test_version_of_another_course(self, db_session, teacher_user, live_course, empty_course):
        with pytest.raises(NotFoundError):
            assign_teacher(db_session, empty_course.id, live_course.active_version_id, teacher_user.id)

    def test_remove(self, db_session, teacher_user, live_course):
        version_id = live_course.active_version_id
        assign_teacher(db_session, live_course.id, version_id, teacher_user.id)
        remove_teacher(db_session, live_course.id, version_id, teacher_user.id)

        assert is_teacher_assigned(db_session, version_id, teacher_user.id) is False
        with pytest.raises(NotFoundError):
            remove_teacher(db_session, live_course.id, version_id, teacher_user.id)

    def test_course_overview(self, db_session, admin_user, teacher_user, live_course):
        draft = create_draft_from_version(db_session, live_course.active_version_id, admin_user.id)
        assign_teacher(db_session, live_course.id, draft.id, teacher_user.id)
        db_session.commit()

        overview = list_course_assignments(db_session, live_course.id)
        assert [(version.id, ids) for version, ids in overview] == [
            (live_course.active_version_id, []),
            (draft.id, [teacher_user.id]),
        ]
