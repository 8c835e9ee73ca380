"""Tests for the transaction boundary around lifecycle operations."""
import logging
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from courseflow.branches import create_branch
from courseflow.content import create_topic
from courseflow.exceptions import NotFoundError, PartialFailureError, UpstreamError
from courseflow.merge_requests import APPROVE, merge, open_merge_request, review_merge_request
from courseflow.models import (
    Course,
    CourseBranch,
    CourseMergeRequest,
    CourseVersion,
    MergeRequestStatus,
)
from courseflow.results import Result
from courseflow.unit_of_work import STEPS_KEY, perform, track_step
from courseflow.versions import publish


def _storage_failure(*args, **kwargs):
    raise OperationalError("INSERT INTO course_topics", {}, Exception("database is locked"))


@pytest.mark.unit_of_work
class TestPerform:
    def test_success_commits(self, db_session, admin_user, live_course):
        result = perform(
            db_session,
            "create_branch",
            create_branch,
            live_course.id,
            "labs",
            None,
            live_course.active_version_id,
            "v1-labs",
            admin_user.id,
            ids={"course_id": live_course.id},
        )

        assert isinstance(result, Result)
        assert result.ok is True
        assert result.error is None
        assert result.value.branch.name == "labs"
        db_session.rollback()
        assert db_session.query(CourseBranch).filter(CourseBranch.name == "labs").count() == 1
        assert STEPS_KEY not in db_session.info

    def test_domain_error_becomes_failed_result(self, db_session, admin_user):
        result = perform(db_session, "publish", publish, 404, admin_user.id, ids={"version_id": 404})

        assert result.ok is False
        assert isinstance(result.error, NotFoundError)
        assert result.error.kind == "not_found"
        assert "404" in result.message

    def test_domain_error_rolls_back_earlier_writes(self, db_session, admin_user, live_course):
        def rename_then_fail(db, course_id):
            db.get(Course, course_id).title = "Half done"
            db.flush()
            raise NotFoundError("Branch", 1)

        result = perform(db_session, "rename", rename_then_fail, live_course.id)

        assert result.ok is False
        assert db_session.get(Course, live_course.id).title == "Agentic AI Systems"

    def test_failure_before_any_step_is_upstream(self, db_session):
        with pytest.raises(UpstreamError) as exc_info:
            perform(db_session, "lookup", _storage_failure)

        assert exc_info.value.operation == "lookup"

    def test_failure_mid_workflow_is_partial(self, db_session, admin_user, live_course, caplog):
        create_topic(db_session, live_course.active_version_id, "Intro")
        db_session.commit()
        branches_before = db_session.query(CourseBranch).count()

        with caplog.at_level(logging.ERROR, logger="courseflow.unit_of_work"):
            with patch("courseflow.branches.clone_version_content", side_effect=_storage_failure):
                with pytest.raises(PartialFailureError) as exc_info:
                    perform(
                        db_session,
                        "create_branch",
                        create_branch,
                        live_course.id,
                        "labs",
                        None,
                        live_course.active_version_id,
                        "v1-labs",
                        admin_user.id,
                        ids={"course_id": live_course.id},
                    )

        error = exc_info.value
        assert error.step == "clone_content"
        assert error.completed == ["create_branch"]
        assert error.ids == {"course_id": live_course.id}
        assert "clone_content" in caplog.text
        # Nothing from the failed workflow survives
        assert db_session.query(CourseBranch).count() == branches_before
        assert db_session.query(CourseVersion).filter(CourseVersion.version_label == "v1-labs").count() == 0

    def test_failed_merge_leaves_request_and_tips_untouched(
        self, db_session, admin_user, live_course
    ):
        summary = create_branch(
            db_session, live_course.id, "labs", None, live_course.active_version_id, "v1-labs", admin_user.id
        )
        request = open_merge_request(
            db_session, live_course.id, summary.branch.id, live_course.default_branch_id, "Labs", None, admin_user.id
        )
        review_merge_request(db_session, request.id, APPROVE, admin_user.id)
        db_session.commit()
        request_id, main_tip_id = request.id, live_course.active_version_id

        with patch("courseflow.merge_requests.clone_version_content", side_effect=_storage_failure):
            with pytest.raises(PartialFailureError) as exc_info:
                perform(db_session, "merge", merge, request_id, admin_user.id, ids={"request_id": request_id})

        assert exc_info.value.step == "clone_content"
        assert db_session.get(CourseMergeRequest, request_id).status == MergeRequestStatus.approved
        main_tip = db_session.get(CourseVersion, main_tip_id)
        assert main_tip.is_tip is True and main_tip.is_active is True
        assert db_session.get(Course, live_course.id).active_version_id == main_tip_id

    def test_track_step_records_in_order(self, db_session):
        db_session.info[STEPS_KEY] = []
        track_step(db_session, "first")
        track_step(db_session, "second")

        assert db_session.info[STEPS_KEY] == ["first", "second"]
