"""Tests for RosterSyncEngine: camp re-keying and kid pruning."""

from __future__ import annotations

import pytest

from camp_planner.roster_sync import RosterSyncEngine


@pytest.fixture
def engine():
    return RosterSyncEngine()


class TestSyncCamps:
    def test_removing_first_camp_shifts_later_cells_down(self, engine, schedule_factory):
        """Remove "Art" (index 0): Soccer's cell (1,0) becomes (0,0)."""
        doc = schedule_factory(
            camps=["Art", "Soccer"], allKids=["Ann", "Bo"], weekCount=2, schedule={"1-0": ["Bo"], "0-0": ["Ann"]}
        )

        result = engine.remove_camp(doc, "Art")

        assert result.items == ["Soccer"]
        assert result.assignments.get(0, 0) == ["Bo"]
        assert result.assignments.to_dict() == {"0-0": ["Bo"]}
        assert result.removed == ("Art",)
        assert result.dropped_cells == 1
        assert result.remapped_cells == 1

    def test_removing_middle_camp_keeps_lower_and_reindexes_higher(self, engine, schedule_factory):
        doc = schedule_factory(
            camps=["Art", "Chess", "Soccer", "Swim"],
            schedule={"0-0": ["Ava"], "1-0": ["Ava"], "2-1": ["Ava"], "3-2": ["Ava"]},
        )

        result = engine.remove_camp(doc, "Chess")

        assert result.assignments.to_dict() == {"0-0": ["Ava"], "1-1": ["Ava"], "2-2": ["Ava"]}
        assert all(c < len(result.items) for (c, _), _ in result.assignments.cells())

    def test_inserting_camp_that_sorts_first_remaps_existing_cells(self, engine, schedule_factory):
        doc = schedule_factory(camps=["Soccer"], allKids=["Ava", "Bo"], schedule={"0-0": ["Bo"]})

        result = engine.add_camp(doc, "Art")

        assert result.items == ["Art", "Soccer"]
        assert result.assignments.get(1, 0) == ["Bo"]
        assert result.assignments.get(0, 0) == []
        assert result.added == ("Art",)

    def test_full_replace_normalizes_list(self, engine, schedule_factory):
        doc = schedule_factory(camps=["Art"])
        result = engine.sync_camps(doc, [" Swim", "Art", "", "Swim"])
        assert result.items == ["Art", "Swim"]

    def test_out_of_range_cells_are_dropped(self, engine, schedule_factory):
        doc = schedule_factory(camps=["Art"], schedule={"0-0": ["Ava"], "5-0": ["Ava"]})

        result = engine.sync_camps(doc, ["Art"])

        assert result.assignments.to_dict() == {"0-0": ["Ava"]}
        assert result.dropped_cells == 1

    def test_cells_past_the_last_week_are_dropped(self, engine, schedule_factory):
        doc = schedule_factory(camps=["Art"], weekCount=8, schedule={"0-0": ["Ava"], "0-8": ["Ava"]})

        result = engine.add_camp(doc, "Swim")

        assert result.assignments.to_dict() == {"0-0": ["Ava"]}
        assert result.dropped_cells == 1

    def test_names_missing_from_all_kids_are_pruned(self, engine, schedule_factory):
        doc = schedule_factory(camps=["Art"], allKids=["Ava"], schedule={"0-1": ["Ghost", "Ava"]})

        result = engine.sync_camps(doc, ["Art"])

        assert result.assignments.to_dict() == {"0-1": ["Ava"]}
        assert result.pruned_entries == 1
        assert result.changed is True

    def test_rename_loses_attendance(self, engine, schedule_factory):
        doc = schedule_factory(camps=["Art"], schedule={"0-0": ["Ava"]})

        result = engine.sync_camps(doc, ["Arts"])

        assert result.assignments.get(0, 0) == []
        assert result.removed == ("Art",)
        assert result.added == ("Arts",)

    def test_no_change(self, engine, schedule_factory):
        doc = schedule_factory(camps=["Art"], schedule={"0-0": ["Ava"]})
        assert engine.sync_camps(doc, ["Art"]).changed is False


class TestSyncKids:
    def test_removed_kid_is_pruned_from_every_cell(self, engine, schedule_factory):
        doc = schedule_factory(
            camps=["Art", "Soccer"],
            allKids=["Ann", "Ava", "Bo"],
            schedule={"0-0": ["Ann", "Bo"], "1-3": ["Bo"], "0-2": ["Ava"]},
        )

        result = engine.remove_kid(doc, "Bo")

        assert result.items == ["Ann", "Ava"]
        assert all("Bo" not in kids for _, kids in result.assignments.cells())
        assert result.pruned_entries == 2

    def test_emptied_cells_stay_as_explicit_empty(self, engine, schedule_factory):
        doc = schedule_factory(camps=["Art"], allKids=["Ava", "Bo"], schedule={"0-1": ["Bo"]})

        result = engine.remove_kid(doc, "Bo")

        assert result.assignments.to_dict() == {"0-1": []}

    def test_adding_kid_does_not_touch_cells(self, engine, schedule_factory):
        doc = schedule_factory(camps=["Art"], allKids=["Ava"], schedule={"0-0": ["Ava"]})

        result = engine.add_kid(doc, "Aaron")

        assert result.items == ["Aaron", "Ava"]
        assert result.assignments.to_dict() == {"0-0": ["Ava"]}
        assert result.added == ("Aaron",)

    def test_cells_outside_the_grid_are_dropped(self, engine, schedule_factory):
        doc = schedule_factory(
            camps=["Art"], allKids=["Ava", "Bo"], weekCount=8, schedule={"0-8": ["Ava"], "3-0": ["Bo"], "0-7": ["Bo"]}
        )

        result = engine.remove_kid(doc, "Bo")

        assert result.assignments.to_dict() == {"0-7": []}
        assert result.dropped_cells == 2
