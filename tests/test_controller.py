"""
Tests for the generic record store.

These cover the properties every book relies on: filtering, sorting,
persistence round trips, toggling, deletion and rejection of bad input.
"""

import pytest
from datetime import date
from typing import Optional

from pydantic import ValidationInfo, field_validator

from keepr.controller import Period, RecordStore, in_bounds, most_common, period_bounds
from keepr.record import Record, RecordValidationError, optional_text, required_text


class Chore(Record):
    title: str
    room: Optional[str] = None
    day: Optional[date] = None
    minutes: int = 10
    done: bool = False

    @field_validator("title")
    @classmethod
    def _required(cls, v, info: ValidationInfo):
        return required_text(v, info)

    @field_validator("room")
    @classmethod
    def _optional(cls, v, info: ValidationInfo):
        return optional_text(v, info)


@pytest.fixture
def chores(memory_backend):
    store = RecordStore(Chore, memory_backend, "chores")
    store.add(title="dishes", room="Kitchen", day=date(2025, 1, 10), minutes=20)
    store.add(title="Vacuum", room="living room", day=date(2025, 1, 14), minutes=30)
    store.add(title="laundry", day=date(2024, 12, 30), minutes=45, done=True)
    store.add(title="bins", room="kitchen", minutes=5)
    return store


@pytest.mark.unit
class TestFiltering:
    def test_filter_returns_exactly_the_matching_subset(self, chores):
        long = chores.filtered(lambda c: c.minutes >= 20)
        assert [c.title for c in long] == ["dishes", "Vacuum", "laundry"]
        assert all(c.minutes >= 20 for c in long)
        rest = [c for c in chores if c not in long]
        assert all(c.minutes < 20 for c in rest)

    def test_predicates_are_combined(self, chores):
        found = chores.filtered(lambda c: c.minutes >= 20, lambda c: not c.done)
        assert [c.title for c in found] == ["dishes", "Vacuum"]

    def test_filter_over_given_records(self, chores):
        subset = chores.all()[:2]
        assert chores.filtered(lambda c: True, records=subset) == subset

    def test_search_is_case_insensitive(self, chores):
        found = chores.search("KITCHEN", "title", "room")
        assert [c.title for c in found] == ["dishes", "bins"]

    def test_blank_search_returns_everything(self, chores):
        assert chores.search("   ", "title") == chores.all()


@pytest.mark.unit
class TestSorting:
    def test_sorting_twice_is_idempotent(self, chores):
        once = chores.sorted_by("title")
        twice = chores.sorted_by("title", records=once)
        assert once == twice

    def test_string_keys_ignore_case(self, chores):
        assert [c.title for c in chores.sorted_by("title")] == [
            "bins",
            "dishes",
            "laundry",
            "Vacuum",
        ]

    def test_missing_values_go_last(self, chores):
        ordered = chores.sorted_by("day")
        assert ordered[-1].title == "bins"
        descending = chores.sorted_by("day", descending=True)
        assert descending[-1].title == "bins"
        assert descending[0].title == "Vacuum"

    def test_sort_is_stable(self, chores):
        ordered = chores.sorted_by(lambda c: c.done)
        assert [c.title for c in ordered] == ["dishes", "Vacuum", "bins", "laundry"]


@pytest.mark.unit
class TestRoundTrip:
    def test_save_then_load_is_value_for_value(self, any_backend):
        store = RecordStore(Chore, any_backend, "chores")
        store.add(title="windows", room="hall", day=date(2025, 1, 2), minutes=15)
        store.add(title="plants", done=True)
        reloaded = RecordStore(Chore, any_backend, "chores")
        assert reloaded.all() == store.all()

    def test_keys_do_not_share_records(self, any_backend):
        RecordStore(Chore, any_backend, "upstairs").add(title="beds")
        assert len(RecordStore(Chore, any_backend, "downstairs")) == 0

    def test_stored_data_is_not_revalidated(self, memory_backend):
        memory_backend.save("chores", [{"id": "abc", "title": "", "minutes": 3}])
        store = RecordStore(Chore, memory_backend, "chores")
        assert store.get("abc").title == ""

    def test_malformed_rows_are_skipped(self, memory_backend):
        memory_backend.save(
            "chores",
            [{"id": "ok", "title": "fine"}, {"id": "bad", "minutes": "lots"}],
        )
        store = RecordStore(Chore, memory_backend, "chores")
        assert [c.id for c in store] == ["ok"]


@pytest.mark.unit
class TestMutations:
    def test_toggling_twice_restores_the_record(self, chores):
        chore = chores.all()[0]
        chores.toggle(chore.id, "done")
        assert chores.get(chore.id).done is True
        chores.toggle(chore.id, "done")
        restored = chores.get(chore.id)
        assert restored.model_dump(exclude={"modified"}) == chore.model_dump(
            exclude={"modified"}
        )

    def test_toggle_rejects_non_boolean_fields(self, chores):
        with pytest.raises(TypeError):
            chores.toggle(chores.all()[0].id, "minutes")

    def test_delete_removes_exactly_one_and_keeps_order(self, chores):
        before = chores.all()
        assert chores.delete(before[1].id)
        assert chores.all() == [before[0], before[2], before[3]]

    def test_delete_unknown_id_changes_nothing(self, chores):
        before = chores.all()
        assert chores.delete("nope") is False
        assert chores.all() == before

    def test_empty_required_field_is_rejected(self, chores):
        before = chores.all()
        with pytest.raises(RecordValidationError) as excinfo:
            chores.add(title="   ")
        assert excinfo.value.messages == ["title: must not be empty"]
        assert chores.all() == before

    def test_update_keeps_identity_and_position(self, chores):
        first = chores.all()[0]
        updated = chores.update(first.id, minutes=25)
        assert updated.id == first.id
        assert updated.created == first.created
        assert chores.all()[0].minutes == 25

    def test_update_validates_changes(self, chores):
        first = chores.all()[0]
        with pytest.raises(RecordValidationError):
            chores.update(first.id, title="")
        assert chores.get(first.id) == first

    def test_unknown_id_raises_key_error(self, chores):
        with pytest.raises(KeyError):
            chores.update("missing", minutes=1)
        with pytest.raises(KeyError):
            chores.toggle("missing", "done")

    def test_duplicate_id_is_refused(self, chores):
        with pytest.raises(ValueError):
            chores.add(chores.all()[0])

    def test_add_many_skips_known_ids(self, chores):
        fresh = Chore(title="gutters")
        assert chores.add_many([chores.all()[0], fresh]) == 1
        assert chores.all()[-1] == fresh
        assert chores.add_many([fresh]) == 0

    def test_replace_an_edited_copy(self, chores):
        edited = chores.all()[1].model_copy(update={"minutes": 35})
        replaced = chores.replace(edited)
        assert replaced.minutes == 35
        assert chores.all()[1].id == edited.id

    def test_delete_where(self, chores):
        assert chores.delete_where(lambda c: c.done) == 1
        assert [c.title for c in chores] == ["dishes", "Vacuum", "bins"]

    def test_clear(self, chores):
        assert chores.clear()
        assert len(chores) == 0

    def test_find_by_unique_prefix(self, chores):
        chore = chores.all()[2]
        assert chores.find(chore.id[:12]) == chore
        assert chores.find("") is None


@pytest.mark.unit
class TestFailedSaves:
    def test_failed_save_leaves_the_store_unchanged(self, failing_backend, keepr_home):
        store = RecordStore(Chore, failing_backend, "chores")
        kept = store.add(title="sweep")
        failing_backend.fail = True

        assert store.add(title="mop") is None
        assert store.toggle(kept.id, "done") is None
        assert store.delete(kept.id) is False
        assert store.all() == [kept]

        logs = list((keepr_home / "logs").glob("log_*.md"))
        assert logs, "the failure should be logged"
        assert "change discarded" in logs[0].read_text(encoding="utf-8")

    def test_replace_all_is_a_single_save(self, failing_backend):
        store = RecordStore(Chore, failing_backend, "chores")
        a = store.add(title="sweep")
        b = store.add(title="mop")
        failing_backend.saves_left = 1
        edited = store.revised(a.id, minutes=40)
        assert store.get(a.id).minutes == 10
        assert store.replace_all([edited])
        assert store.all() == [edited]
        assert b.id not in RecordStore(Chore, failing_backend, "chores")

    def test_failed_replace_all_keeps_everything(self, failing_backend):
        store = RecordStore(Chore, failing_backend, "chores")
        kept = [store.add(title="sweep"), store.add(title="mop")]
        failing_backend.fail = True
        assert store.replace_all(kept[:1]) is False
        assert store.all() == kept

    def test_replace_all_refuses_duplicate_ids(self, chores):
        first = chores.all()[0]
        with pytest.raises(ValueError):
            chores.replace_all([first, first])

    def test_unserializable_value_is_not_saved(self, memory_backend, keepr_home):
        store = RecordStore(Chore, memory_backend, "chores")
        chore = store.add(title="dust")
        assert store.set_fields(chore.id, room=object()) is None
        assert store.get(chore.id).room is None


@pytest.mark.unit
class TestPeriods:
    def test_period_bounds(self):
        today = date(2025, 3, 12)
        assert period_bounds(Period.ALL, today) == (None, None)
        assert period_bounds("today", today) == (today, today)
        assert period_bounds("week", today) == (date(2025, 3, 6), None)
        assert period_bounds("month", today) == (date(2025, 3, 1), None)
        assert period_bounds("year", today) == (date(2025, 1, 1), None)

    def test_custom_bounds_are_ordered(self):
        a, b = date(2025, 1, 1), date(2025, 2, 1)
        assert period_bounds("custom", start=b, end=a) == (a, b)

    def test_in_bounds_excludes_missing_values(self):
        assert not in_bounds(None, (None, None))
        assert in_bounds(date(2025, 1, 1), (None, None))

    def test_in_period_uses_today(self, chores, frozen_time):
        found = chores.in_period("day", Period.WEEK)
        assert [c.title for c in found] == ["dishes", "Vacuum"]

    def test_grouped_by_day_is_sorted(self, chores):
        grouped = chores.grouped_by_day("day")
        assert list(grouped) == [date(2024, 12, 30), date(2025, 1, 10), date(2025, 1, 14)]

    def test_count_by_and_most_common(self, chores):
        counts = chores.count_by(lambda c: (c.room or "").casefold())
        assert counts["kitchen"] == 2
        assert most_common(counts) == "kitchen"
        assert most_common(chores.count_by("room", records=[])) is None
