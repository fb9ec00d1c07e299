"""Tests for schedule identifiers."""

from __future__ import annotations

from camp_planner.identifiers import SCHEDULE_ID_LENGTH, generate_schedule_id, is_schedule_id


def test_generated_ids_have_schedule_shape():
    for _ in range(50):
        schedule_id = generate_schedule_id()
        assert len(schedule_id) == SCHEDULE_ID_LENGTH
        assert is_schedule_id(schedule_id)


def test_is_schedule_id_rejects_other_shapes():
    assert not is_schedule_id("abc123")
    assert not is_schedule_id("ABC12")
    assert not is_schedule_id("ABC1234")
    assert not is_schedule_id("ABC-12")
