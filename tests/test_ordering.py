"""Tests for topic and resource ordering."""
import logging
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from courseflow.content import create_resource, create_topic, delete_topic, list_resources, list_topics
from courseflow.exceptions import NotFoundError
from courseflow.models import ResourceType
from courseflow.ordering import (
    make_room,
    next_order,
    normalize_order,
    reorder_batch,
    resource_scope,
    topic_scope,
)


def _titles(topics):
    return [topic.title for topic in topics]


def _indices(items):
    return [item.order_index for item in items]


@pytest.fixture
def version_id(live_course):
    return live_course.active_version_id


@pytest.fixture
def three_topics(db_session, version_id):
    topics = [create_topic(db_session, version_id, title) for title in ("Intro", "Tools", "Agents")]
    db_session.commit()
    return topics


@pytest.mark.ordering
class TestNextOrder:
    def test_empty_scope_starts_at_one(self, db_session, version_id):
        assert next_order(db_session, topic_scope(version_id)) == 1

    def test_appends_after_highest(self, db_session, version_id, three_topics):
        assert next_order(db_session, topic_scope(version_id)) == 4

    def test_created_topics_are_numbered_in_sequence(self, db_session, version_id, three_topics):
        topics = list_topics(db_session, version_id)
        assert _titles(topics) == ["Intro", "Tools", "Agents"]
        assert _indices(topics) == [1, 2, 3]

    def test_scopes_are_independent(self, db_session, version_id, three_topics):
        first, second = three_topics[0], three_topics[1]
        create_resource(db_session, first.id, "Slides", ResourceType.pdf, file_url="s3://slides.pdf")
        create_resource(db_session, first.id, "Notes", ResourceType.document, file_url="s3://notes.md")
        db_session.commit()

        assert next_order(db_session, resource_scope(first.id)) == 3
        assert next_order(db_session, resource_scope(second.id)) == 1


@pytest.mark.ordering
class TestExplicitPlacement:
    def test_insert_at_position_shifts_later_items(self, db_session, version_id, three_topics):
        create_topic(db_session, version_id, "Setup", order_index=2)
        db_session.commit()

        topics = list_topics(db_session, version_id)
        assert _titles(topics) == ["Intro", "Setup", "Tools", "Agents"]
        assert _indices(topics) == [1, 2, 3, 4]

    def test_insert_past_end_is_compacted(self, db_session, version_id, three_topics):
        create_topic(db_session, version_id, "Wrap-up", order_index=10)
        db_session.commit()

        topics = list_topics(db_session, version_id)
        assert _titles(topics)[-1] == "Wrap-up"
        assert _indices(topics) == [1, 2, 3, 4]

    def test_make_room_only_moves_items_at_or_after_position(self, db_session, version_id, three_topics):
        make_room(db_session, topic_scope(version_id), 2)
        db_session.commit()

        assert _indices(list_topics(db_session, version_id)) == [1, 3, 4]


@pytest.mark.ordering
class TestNormalizeOrder:
    def test_delete_leaves_dense_sequence(self, db_session, version_id, three_topics):
        delete_topic(db_session, three_topics[1].id)
        db_session.commit()

        topics = list_topics(db_session, version_id)
        assert _titles(topics) == ["Intro", "Agents"]
        assert _indices(topics) == [1, 2]

    def test_gaps_and_ties_collapse_by_index_then_id(self, db_session, version_id, three_topics):
        intro, tools, agents = three_topics
        intro.order_index = 5
        tools.order_index = 5
        agents.order_index = 1
        db_session.flush()

        items = normalize_order(db_session, topic_scope(version_id))
        assert _titles(items) == ["Agents", "Intro", "Tools"]
        assert _indices(items) == [1, 2, 3]


@pytest.mark.ordering
class TestReorderBatch:
    def test_full_permutation_is_applied(self, db_session, version_id, three_topics):
        intro, tools, agents = three_topics
        reorder_batch(
            db_session,
            topic_scope(version_id),
            [(agents.id, 1), (intro.id, 2), (tools.id, 3)],
        )
        db_session.commit()

        topics = list_topics(db_session, version_id)
        assert _titles(topics) == ["Agents", "Intro", "Tools"]
        assert _indices(topics) == [1, 2, 3]

    def test_moved_item_takes_requested_slot(self, db_session, version_id, three_topics):
        agents = three_topics[2]
        reorder_batch(db_session, topic_scope(version_id), [(agents.id, 1)])
        db_session.commit()

        topics = list_topics(db_session, version_id)
        assert _titles(topics) == ["Agents", "Intro", "Tools"]
        assert _indices(topics) == [1, 2, 3]

    def test_moving_down_takes_requested_slot(self, db_session, version_id, three_topics):
        intro = three_topics[0]
        reorder_batch(db_session, topic_scope(version_id), [(intro.id, 3)])
        db_session.commit()

        topics = list_topics(db_session, version_id)
        assert _titles(topics) == ["Tools", "Agents", "Intro"]
        assert _indices(topics) == [1, 2, 3]

    def test_move_into_the_middle(self, db_session, version_id, three_topics):
        intro, tools, agents = three_topics
        setup = create_topic(db_session, version_id, "Setup")
        db_session.commit()

        reorder_batch(db_session, topic_scope(version_id), [(setup.id, 2), (intro.id, 4)])
        db_session.commit()

        topics = list_topics(db_session, version_id)
        assert _titles(topics) == ["Tools", "Setup", "Agents", "Intro"]
        assert _indices(topics) == [1, 2, 3, 4]

    def test_position_past_end_is_clamped(self, db_session, version_id, three_topics):
        intro = three_topics[0]
        reorder_batch(db_session, topic_scope(version_id), [(intro.id, 10)])
        db_session.commit()

        topics = list_topics(db_session, version_id)
        assert _titles(topics) == ["Tools", "Agents", "Intro"]
        assert _indices(topics) == [1, 2, 3]

    def test_unknown_id_is_rejected_before_any_change(self, db_session, version_id, three_topics):
        intro = three_topics[0]
        with pytest.raises(NotFoundError) as exc_info:
            reorder_batch(db_session, topic_scope(version_id), [(intro.id, 3), (9999, 1)])

        assert exc_info.value.identifier == [9999]
        db_session.rollback()
        assert _titles(list_topics(db_session, version_id)) == ["Intro", "Tools", "Agents"]

    def test_item_from_another_scope_is_rejected(self, db_session, version_id, three_topics):
        slides = create_resource(
            db_session, three_topics[0].id, "Slides", ResourceType.pdf, file_url="s3://slides.pdf"
        )
        db_session.flush()

        with pytest.raises(NotFoundError):
            reorder_batch(db_session, resource_scope(three_topics[1].id), [(slides.id, 1)])

    def test_falls_back_to_one_by_one_updates(self, db_session, version_id, three_topics, caplog):
        intro, tools, agents = three_topics
        failure = OperationalError("UPDATE course_topics", {}, Exception("CASE not supported"))

        with caplog.at_level(logging.WARNING, logger="courseflow.ordering"):
            with patch("courseflow.ordering._batch_update", side_effect=failure):
                reorder_batch(
                    db_session,
                    topic_scope(version_id),
                    [(tools.id, 1), (agents.id, 2), (intro.id, 3)],
                )
        db_session.commit()

        assert _titles(list_topics(db_session, version_id)) == ["Tools", "Agents", "Intro"]
        assert "updating one by one" in caplog.text

    def test_fallback_failure_propagates(self, db_session, version_id, three_topics):
        intro = three_topics[0]
        failure = OperationalError("UPDATE course_topics", {}, Exception("disk I/O error"))

        with patch("courseflow.ordering._batch_update", side_effect=failure), patch(
            "courseflow.ordering._sequential_update", side_effect=failure
        ):
            with pytest.raises(OperationalError):
                reorder_batch(db_session, topic_scope(version_id), [(intro.id, 2)])

    def test_resources_reorder_within_their_topic(self, db_session, three_topics):
        topic = three_topics[0]
        slides = create_resource(db_session, topic.id, "Slides", ResourceType.pdf, file_url="s3://a.pdf")
        video = create_resource(db_session, topic.id, "Lecture", ResourceType.video, file_url="s3://b.mp4")
        link = create_resource(
            db_session, topic.id, "Paper", ResourceType.link, external_url="https://arxiv.org/abs/1"
        )
        db_session.commit()

        reorder_batch(db_session, resource_scope(topic.id), [(link.id, 1), (slides.id, 2), (video.id, 3)])
        db_session.commit()

        resources = list_resources(db_session, topic.id)
        assert [r.title for r in resources] == ["Paper", "Slides", "Lecture"]
        assert _indices(resources) == [1, 2, 3]
