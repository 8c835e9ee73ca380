"""Tests for the version lifecycle."""
from unittest.mock import patch

import pytest

from courseflow.branches import create_branch
from courseflow.content import create_topic, list_topics
from courseflow.courses import create_course
from courseflow.exceptions import (
    ConcurrentModificationError,
    ConstraintViolationError,
    InvalidTransitionError,
    NotFoundError,
)
from courseflow.models import Course, CourseVersion, VersionStatus
from courseflow.versions import (
    archive,
    create_draft_from_version,
    create_initial_version,
    list_versions,
    publish,
    submit_for_review,
    unique_version_label,
    update_draft,
)


def _active_on_branch(db_session, branch_id):
    return (
        db_session.query(CourseVersion)
        .filter(CourseVersion.branch_id == branch_id, CourseVersion.is_active)
        .all()
    )


def _tips_on_branch(db_session, branch_id):
    return (
        db_session.query(CourseVersion)
        .filter(CourseVersion.branch_id == branch_id, CourseVersion.is_tip == True)  # noqa: E712
        .all()
    )


@pytest.mark.versions
class TestInitialVersion:
    def test_initial_version_goes_live(self, db_session, admin_user):
        course = create_course(db_session, "Intro", admin_user.id)
        version = create_initial_version(db_session, course.id, "v1.0.0", "Launch", admin_user.id)
        db_session.commit()

        assert version.status == VersionStatus.published
        assert version.is_active is True
        assert version.is_published is True
        assert version.is_tip is True
        assert version.branch_id == course.default_branch_id
        assert version.approved_at is not None
        assert course.active_version_id == version.id

    def test_rejected_when_course_already_live(self, db_session, admin_user, live_course):
        with pytest.raises(ConstraintViolationError):
            create_initial_version(db_session, live_course.id, "v2", None, admin_user.id)

    def test_unknown_course(self, db_session, admin_user):
        with pytest.raises(NotFoundError):
            create_initial_version(db_session, 404, "v1", None, admin_user.id)

    def test_label_must_be_unique(self, db_session, admin_user, live_course):
        live_course.active_version_id = None
        db_session.flush()
        with pytest.raises(ConstraintViolationError):
            create_initial_version(db_session, live_course.id, "v1", None, admin_user.id)


@pytest.mark.versions
class TestDrafts:
    def test_draft_becomes_only_tip(self, db_session, admin_user, live_course):
        base_id = live_course.active_version_id
        draft = create_draft_from_version(db_session, base_id, admin_user.id, version_label="v2")
        db_session.commit()

        assert draft.status == VersionStatus.draft
        assert draft.is_active is False
        assert draft.is_published is False
        assert draft.parent_version_id == base_id
        assert draft.based_on_version_id == base_id
        assert [v.id for v in _tips_on_branch(db_session, draft.branch_id)] == [draft.id]

        base = db_session.get(CourseVersion, base_id)
        assert base.is_active is True

    def test_draft_copies_base_content(self, db_session, admin_user, live_course):
        base_id = live_course.active_version_id
        create_topic(db_session, base_id, "Intro")
        create_topic(db_session, base_id, "Memory")
        db_session.commit()

        draft = create_draft_from_version(db_session, base_id, admin_user.id)
        db_session.commit()

        copied = list_topics(db_session, draft.id)
        original = list_topics(db_session, base_id)
        assert [t.title for t in copied] == ["Intro", "Memory"]
        assert {t.id for t in copied}.isdisjoint({t.id for t in original})

    def test_default_label_is_derived_from_base(self, db_session, admin_user, live_course):
        draft = create_draft_from_version(db_session, live_course.active_version_id, admin_user.id)
        second = create_draft_from_version(db_session, live_course.active_version_id, admin_user.id)

        assert draft.version_label == "v1-1"
        assert second.version_label == "v1-2"

    def test_explicit_label_must_be_free(self, db_session, admin_user, live_course):
        with pytest.raises(ConstraintViolationError):
            create_draft_from_version(
                db_session, live_course.active_version_id, admin_user.id, version_label="v1"
            )

    def test_only_drafts_are_editable(self, db_session, admin_user, live_course):
        with pytest.raises(InvalidTransitionError):
            update_draft(db_session, live_course.active_version_id, {"summary": "changed"})

    def test_update_draft(self, db_session, admin_user, live_course):
        draft = create_draft_from_version(db_session, live_course.active_version_id, admin_user.id)
        update_draft(db_session, draft.id, {"version_label": "v2-beta", "summary": "New labs"})

        assert draft.version_label == "v2-beta"
        assert draft.summary == "New labs"

    def test_submit_for_review(self, db_session, admin_user, live_course):
        draft = create_draft_from_version(db_session, live_course.active_version_id, admin_user.id)
        submit_for_review(db_session, draft.id, admin_user.id)
        assert draft.status == VersionStatus.pending_review

        with pytest.raises(InvalidTransitionError):
            submit_for_review(db_session, draft.id, admin_user.id)


@pytest.mark.versions
class TestPublish:
    def test_publish_unseats_previous_version(self, db_session, admin_user, live_course):
        old_id = live_course.active_version_id
        draft = create_draft_from_version(db_session, old_id, admin_user.id, version_label="v2")
        db_session.commit()

        published = publish(db_session, draft.id, admin_user.id)
        db_session.commit()

        old = db_session.get(CourseVersion, old_id)
        assert published.status == VersionStatus.published
        assert published.reviewed_by == admin_user.id
        assert old.status == VersionStatus.archived
        assert old.is_active is False
        assert old.is_published is True
        assert [v.id for v in _active_on_branch(db_session, draft.branch_id)] == [draft.id]

        course = db_session.get(Course, live_course.id)
        assert course.active_version_id == draft.id

    def test_publish_from_pending_review(self, db_session, admin_user, live_course):
        draft = create_draft_from_version(db_session, live_course.active_version_id, admin_user.id)
        submit_for_review(db_session, draft.id, admin_user.id)

        assert publish(db_session, draft.id, admin_user.id).is_active is True

    @pytest.mark.parametrize("status", [VersionStatus.published, VersionStatus.archived])
    def test_publish_rejects_settled_versions(self, db_session, admin_user, live_course, status):
        version = db_session.get(CourseVersion, live_course.active_version_id)
        version.status = status
        db_session.flush()

        with pytest.raises(InvalidTransitionError):
            publish(db_session, version.id, admin_user.id)

    def test_concurrent_state_change_is_detected(self, db_session, admin_user, live_course):
        draft = create_draft_from_version(db_session, live_course.active_version_id, admin_user.id)
        db_session.commit()
        assert draft.status == VersionStatus.draft

        # Another request submits the draft between our read and our write
        db_session.query(CourseVersion).filter(CourseVersion.id == draft.id).update(
            {CourseVersion.status: VersionStatus.pending_review}, synchronize_session=False
        )
        with patch("courseflow.versions.get_version", return_value=draft):
            with pytest.raises(ConcurrentModificationError):
                publish(db_session, draft.id, admin_user.id)

    def test_publish_on_side_branch_keeps_course_pointer(self, db_session, admin_user, live_course):
        summary = create_branch(
            db_session, live_course.id, "experimental", None, live_course.active_version_id, "v1-exp", admin_user.id
        )
        publish(db_session, summary.tip_version.id, admin_user.id)
        db_session.commit()

        course = db_session.get(Course, live_course.id)
        main_version = db_session.query(CourseVersion).filter_by(version_label="v1").one()
        assert course.active_version_id == main_version.id
        assert main_version.is_active is True


@pytest.mark.versions
class TestArchive:
    def test_archive_active_version(self, db_session, admin_user, live_course):
        version = archive(db_session, live_course.active_version_id, admin_user.id)
        db_session.commit()

        assert version.status == VersionStatus.archived
        assert version.is_active is False
        assert version.is_published is True
        assert db_session.get(Course, live_course.id).active_version_id is None

    def test_archive_requires_active_version(self, db_session, admin_user, live_course):
        draft = create_draft_from_version(db_session, live_course.active_version_id, admin_user.id)
        with pytest.raises(InvalidTransitionError):
            archive(db_session, draft.id, admin_user.id)


@pytest.mark.versions
class TestLabels:
    def test_unique_label_suffixes(self, db_session, admin_user, live_course):
        assert unique_version_label(db_session, live_course.id, "v2") == "v2"
        assert unique_version_label(db_session, live_course.id, "v1") == "v1-1"

    def test_list_versions_by_branch(self, db_session, admin_user, live_course):
        create_draft_from_version(db_session, live_course.active_version_id, admin_user.id)
        db_session.commit()

        versions = list_versions(db_session, live_course.id, live_course.default_branch_id)
        assert [v.version_label for v in versions] == ["v1", "v1-1"]
        assert list_versions(db_session, live_course.id, branch_id=9999) == []
