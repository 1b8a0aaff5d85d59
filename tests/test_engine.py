"""Tests for the pure calendar engine components."""

from datetime import datetime, timedelta

import pytest

from mcp_calendar_engine.engine.auto_offset import apply_auto_offset
from mcp_calendar_engine.engine.base import (
    Attachment,
    Attendee,
    CalendarEvent,
    FilterCondition,
    FilterGroup,
    LinkedItem,
    Reminder,
)
from mcp_calendar_engine.engine.conflicts import conflict_signature, detect_conflicts
from mcp_calendar_engine.engine.drag import apply_drag, reschedule, snap_to_interval
from mcp_calendar_engine.engine.filters import (
    evaluate_condition,
    filter_events,
    matches_filter_groups,
    matches_search_tokens,
)
from mcp_calendar_engine.engine.history import CalendarState, commit, redo, set_filters, undo
from mcp_calendar_engine.engine.quick_add import parse_quick_add
from mcp_calendar_engine.engine.ranges import format_range_label, resolve_range, shift_pivot
from mcp_calendar_engine.engine.search import parse_search_tokens

BASE = datetime(2024, 7, 17)  # a Wednesday


def _make_event(
    id: str = "evt-1",
    start: datetime | None = None,
    end: datetime | None = None,
    **kwargs,
) -> CalendarEvent:
    start = start or BASE.replace(hour=14)
    return CalendarEvent(
        id=id,
        calendar_id=kwargs.pop("calendar_id", "calendar.project.apollo"),
        title=kwargs.pop("title", "Sprint review"),
        start=start,
        end=end or start + timedelta(hours=1),
        **kwargs,
    )


def _at(minutes: int) -> datetime:
    return BASE + timedelta(minutes=minutes)


# ---------------------------------------------------------------------------
# RangeResolver
# ---------------------------------------------------------------------------

class TestResolveRange:
    def test_week_is_monday_to_sunday(self):
        window = resolve_range("week", BASE)
        assert window.from_ == datetime(2024, 7, 15)
        assert window.to == datetime(2024, 7, 21, 23, 59, 59, 999999)

    def test_week_contains_any_day(self):
        for offset in range(14):
            day = BASE + timedelta(days=offset, hours=offset)
            window = resolve_range("week", day)
            assert window.from_.weekday() == 0
            assert window.to.weekday() == 6
            assert (window.to.date() - window.from_.date()).days == 6
            assert window.from_ <= day <= window.to

    def test_day(self):
        window = resolve_range("day", BASE.replace(hour=10, minute=30))
        assert window.from_ == BASE
        assert window.to.date() == BASE.date()

    def test_work_week_ends_friday(self):
        window = resolve_range("work-week", datetime(2024, 7, 20))
        assert window.from_ == datetime(2024, 7, 15)
        assert window.to.date() == datetime(2024, 7, 19).date()

    def test_month_leap_february(self):
        window = resolve_range("month", datetime(2024, 2, 10))
        assert window.from_ == datetime(2024, 2, 1)
        assert window.to == datetime(2024, 2, 29, 23, 59, 59, 999999)

    def test_quarter_and_year(self):
        quarter = resolve_range("quarter", datetime(2024, 5, 10))
        assert quarter.from_ == datetime(2024, 4, 1)
        assert quarter.to.date() == datetime(2024, 6, 30).date()
        year = resolve_range("year", datetime(2024, 5, 10))
        assert year.from_ == datetime(2024, 1, 1)
        assert year.to.date() == datetime(2024, 12, 31).date()

    def test_timeline_and_gantt_use_month(self):
        assert resolve_range("timeline", BASE) == resolve_range("month", BASE)
        assert resolve_range("gantt", BASE) == resolve_range("month", BASE)

    def test_people_and_resources_use_week(self):
        assert resolve_range("people", BASE) == resolve_range("week", BASE)
        assert resolve_range("resources", BASE) == resolve_range("week", BASE)

    def test_agenda_runs_to_end_of_week(self):
        window = resolve_range("agenda", BASE.replace(hour=10))
        assert window.from_ == BASE
        assert window.to.date() == datetime(2024, 7, 21).date()

    def test_idempotent(self):
        assert resolve_range("quarter", BASE) == resolve_range("quarter", BASE)

    def test_unknown_view_raises(self):
        with pytest.raises(ValueError, match="Unknown view"):
            resolve_range("fortnight", BASE)

    def test_shift_month_clamps_day(self):
        assert shift_pivot("month", datetime(2024, 1, 31), 1) == datetime(2024, 2, 29)
        assert shift_pivot("week", BASE, -1) == BASE - timedelta(weeks=1)

    def test_labels(self):
        assert format_range_label("week", resolve_range("week", BASE)) == "Jul 15 - Jul 21"
        assert format_range_label("month", resolve_range("month", BASE)) == "July 2024"
        assert format_range_label("day", resolve_range("day", BASE)) == "Wednesday, Jul 17"
        assert format_range_label("quarter", resolve_range("quarter", BASE)) == "Q3 2024"


# ---------------------------------------------------------------------------
# SearchTokenizer
# ---------------------------------------------------------------------------

class TestSearchTokens:
    def test_prefix_types_in_order(self):
        tokens = parse_search_tokens("@alice #proj1 tag:urgent standup")
        assert [(t.type, t.value) for t in tokens] == [
            ("user", "alice"),
            ("project", "proj1"),
            ("tag", "urgent"),
            ("keyword", "standup"),
        ]

    def test_lowercases_value_keeps_display(self):
        token = parse_search_tokens("Tag:Urgent")[0]
        assert token.type == "tag"
        assert token.value == "urgent"
        assert token.display == "Tag:Urgent"

    def test_duplicates_keep_first(self):
        tokens = parse_search_tokens("Review @Bob review @bob")
        assert [(t.type, t.value, t.display) for t in tokens] == [
            ("keyword", "review", "Review"),
            ("user", "bob", "@Bob"),
        ]

    def test_empty_prefixes_dropped(self):
        assert parse_search_tokens("@ # tag:   ") == []
        assert parse_search_tokens("") == []


# ---------------------------------------------------------------------------
# ConditionEvaluator / FilterEngine
# ---------------------------------------------------------------------------

class TestEvaluateCondition:
    def test_string_field_case_insensitive(self):
        event = _make_event(status="confirmed")
        assert evaluate_condition(event, FilterCondition("status", "equals", "Confirmed"))
        assert not evaluate_condition(event, FilterCondition("status", "not-equals", "CONFIRMED"))

    def test_calendar_includes(self):
        event = _make_event(calendar_id="calendar.team.engineering")
        assert evaluate_condition(event, FilterCondition("calendar", "includes", "engineering"))
        assert not evaluate_condition(event, FilterCondition("calendar", "excludes", "team"))

    def test_owner_matches_attendee_fuzzy(self):
        event = _make_event(
            owner_name="Avery",
            attendees=[Attendee("user-jordan", "Jordan Lee")],
        )
        assert evaluate_condition(event, FilterCondition("owner", "equals", "jordan"))
        assert evaluate_condition(event, FilterCondition("owner", "equals", "avery"))
        assert not evaluate_condition(event, FilterCondition("owner", "equals", "taylor"))

    def test_owner_exists_ignores_attendees(self):
        event = _make_event(attendees=[Attendee("user-jordan", "Jordan")])
        assert not evaluate_condition(event, FilterCondition("owner", "exists"))
        assert evaluate_condition(event, FilterCondition("owner", "not-exists"))

    def test_label_set_semantics(self):
        event = _make_event(labels=["Meeting", "sprint"])
        assert evaluate_condition(event, FilterCondition("label", "includes", "meeting"))
        assert not evaluate_condition(event, FilterCondition("label", "excludes", "sprint"))
        assert evaluate_condition(event, FilterCondition("label", "exists"))
        assert evaluate_condition(_make_event(), FilterCondition("label", "not-exists"))

    def test_linked_item_type(self):
        event = _make_event(linked_items=[LinkedItem("task-99", "task", "Finalize demo")])
        assert evaluate_condition(event, FilterCondition("linkedItemType", "includes", "Task"))
        assert not evaluate_condition(event, FilterCondition("linkedItemType", "includes", "release"))

    def test_has_attachments_list_or_flag(self):
        with_list = _make_event(attachments=[Attachment("a1", "plan.pdf")])
        with_flag = _make_event(has_attachments=True)
        without = _make_event()
        cond = FilterCondition("hasAttachments", "exists")
        assert evaluate_condition(with_list, cond)
        assert evaluate_condition(with_flag, cond)
        assert not evaluate_condition(without, cond)
        assert evaluate_condition(without, FilterCondition("hasAttachments", "not-exists"))

    def test_has_reminders(self):
        event = _make_event(reminders=[Reminder(10)])
        assert evaluate_condition(event, FilterCondition("hasReminders", "exists"))
        assert not evaluate_condition(event, FilterCondition("hasReminders", "not-exists"))

    def test_time_range_symbolic(self):
        now = BASE.replace(hour=12)
        soon = _make_event(start=now + timedelta(days=2))
        later = _make_event(start=now + timedelta(days=10))
        before = _make_event(start=now - timedelta(hours=1))
        next7d = FilterCondition("timeRange", "in-range", "next7d")
        assert evaluate_condition(soon, next7d, now)
        assert not evaluate_condition(later, next7d, now)
        assert evaluate_condition(later, FilterCondition("timeRange", "in-range", "upcoming"), now)
        assert evaluate_condition(before, FilterCondition("timeRange", "in-range", "past"), now)
        assert not evaluate_condition(before, FilterCondition("timeRange", "in-range", "upcoming"), now)

    def test_time_range_explicit_bounds(self):
        event = _make_event(start=datetime(2024, 7, 17, 14))
        inside = FilterCondition("timeRange", "in-range", {"from": "2024-07-17", "to": "2024-07-18"})
        outside = FilterCondition("timeRange", "in-range", {"from": "2024-07-18T00:00:00"})
        assert evaluate_condition(event, inside)
        assert not evaluate_condition(event, outside)

    def test_unknown_field_passes(self):
        assert evaluate_condition(_make_event(), FilterCondition("mood", "equals", "grumpy"))


class TestFilterGroups:
    def _conditions(self):
        return [
            FilterCondition("type", "equals", "milestone"),
            FilterCondition("priority", "equals", "critical"),
        ]

    def test_or_needs_one(self):
        event = _make_event(type="milestone", priority="normal")
        assert matches_filter_groups(event, [FilterGroup("OR", self._conditions())])

    def test_and_needs_all(self):
        event = _make_event(type="milestone", priority="normal")
        assert not matches_filter_groups(event, [FilterGroup("AND", self._conditions())])
        critical = _make_event(type="milestone", priority="critical")
        assert matches_filter_groups(critical, [FilterGroup("AND", self._conditions())])

    def test_groups_are_anded(self):
        event = _make_event(type="meeting", priority="critical")
        groups = [
            FilterGroup("OR", [FilterCondition("type", "equals", "meeting")]),
            FilterGroup("OR", [FilterCondition("priority", "equals", "low")]),
        ]
        assert not matches_filter_groups(event, groups)

    def test_empty_group_passes(self):
        assert matches_filter_groups(_make_event(), [FilterGroup("AND", [])])


class TestSearchMatching:
    def test_keyword_in_description(self):
        event = _make_event(description="Review sprint goals and demo progress.")
        assert matches_search_tokens(event, parse_search_tokens("DEMO"))
        assert not matches_search_tokens(event, parse_search_tokens("retro"))

    def test_user_matches_attendee_email(self):
        event = _make_event(attendees=[Attendee("u1", "Jordan", "jordan@example.com")])
        assert matches_search_tokens(event, parse_search_tokens("@jordan@example.com"))
        assert not matches_search_tokens(event, parse_search_tokens("@taylor"))

    def test_project_matches_linked_item(self):
        event = _make_event(project_id="apollo", linked_items=[LinkedItem("task-99", "task")])
        assert matches_search_tokens(event, parse_search_tokens("#apollo"))
        assert matches_search_tokens(event, parse_search_tokens("#task-99"))
        assert not matches_search_tokens(event, parse_search_tokens("#zenith"))

    def test_tag_is_exact(self):
        event = _make_event(labels=["sprint"])
        assert matches_search_tokens(event, parse_search_tokens("tag:Sprint"))
        assert not matches_search_tokens(event, parse_search_tokens("tag:sprin"))

    def test_all_tokens_required(self):
        event = _make_event(title="Sprint review", labels=["sprint"])
        assert not matches_search_tokens(event, parse_search_tokens("sprint tag:release"))

    def test_filtering_is_idempotent(self):
        events = [
            _make_event("e1", type="meeting", labels=["sync"]),
            _make_event("e2", type="milestone", labels=["sync"]),
            _make_event("e3", type="meeting", labels=["focus"]),
        ]
        groups = [FilterGroup("AND", [FilterCondition("type", "equals", "meeting")])]
        tokens = parse_search_tokens("tag:sync")
        once = filter_events(events, groups, tokens)
        assert [e.id for e in once] == ["e1"]
        assert filter_events(once, groups, tokens) == once


# ---------------------------------------------------------------------------
# ConflictDetector
# ---------------------------------------------------------------------------

class TestConflicts:
    def test_overlap_pair(self):
        events = [
            _make_event("C", _at(100), _at(130)),
            _make_event("A", _at(0), _at(60)),
            _make_event("B", _at(30), _at(90)),
        ]
        assert detect_conflicts(events) == {"A", "B"}

    def test_touching_is_not_conflict(self):
        events = [_make_event("A", _at(0), _at(60)), _make_event("B", _at(60), _at(90))]
        assert detect_conflicts(events) == set()

    def test_long_event_covers_later_ones(self):
        events = [
            _make_event("A", _at(0), _at(120)),
            _make_event("B", _at(10), _at(20)),
            _make_event("C", _at(50), _at(60)),
        ]
        assert detect_conflicts(events) == {"A", "B", "C"}

    def test_signature_sorted(self):
        assert conflict_signature({"b", "a"}) == "a|b"


# ---------------------------------------------------------------------------
# DragRescheduler
# ---------------------------------------------------------------------------

class TestDrag:
    def test_move_snaps_to_nearest_and_keeps_duration(self):
        event = _make_event(start=BASE.replace(hour=6), end=BASE.replace(hour=7))
        moved = reschedule(event, "move", BASE.replace(hour=7, minute=23), 15)
        assert moved.start == BASE.replace(hour=7, minute=30)
        assert moved.end - moved.start == timedelta(minutes=60)

    def test_snap_half_rounds_up(self):
        assert snap_to_interval(BASE.replace(hour=7, minute=22, second=30), 15) == BASE.replace(hour=7, minute=30)
        assert snap_to_interval(BASE.replace(hour=7, minute=2), 5) == BASE.replace(hour=7, minute=0)

    def test_clamped_to_original_day(self):
        event = _make_event(start=BASE.replace(hour=22), end=BASE.replace(hour=23))
        moved = reschedule(event, "move", BASE + timedelta(days=1, hours=1), 15)
        assert moved.start.date() == BASE.date()
        early = reschedule(event, "move", BASE - timedelta(minutes=10), 15)
        assert early.start == BASE

    def test_resize_end_minimum_duration(self):
        event = _make_event(start=BASE.replace(hour=9), end=BASE.replace(hour=10))
        resized = reschedule(event, "resize-end", BASE.replace(hour=8), 30)
        assert resized.start == BASE.replace(hour=9)
        assert resized.end == BASE.replace(hour=9, minute=30)

    def test_resize_start_may_invert(self):
        event = _make_event(start=BASE.replace(hour=9), end=BASE.replace(hour=10))
        resized = reschedule(event, "resize-start", BASE.replace(hour=11), 15)
        assert resized.start == BASE.replace(hour=11)
        assert resized.end == BASE.replace(hour=10)

    def test_stamps_updated_at(self):
        now = datetime(2024, 7, 17, 8, 0)
        moved = reschedule(_make_event(), "move", BASE.replace(hour=15), 15, now=now)
        assert moved.updated_at == now

    def test_invalid_mode_and_snap(self):
        with pytest.raises(ValueError, match="drag mode"):
            reschedule(_make_event(), "teleport", BASE, 15)
        with pytest.raises(ValueError, match="snap"):
            reschedule(_make_event(), "move", BASE, 7)

    def test_apply_drag_unknown_id_is_noop(self):
        events = [_make_event("e1")]
        assert apply_drag(events, "missing", "move", BASE.replace(hour=9), 15) == events


# ---------------------------------------------------------------------------
# QuickAddParser
# ---------------------------------------------------------------------------

class TestQuickAdd:
    FALLBACK = datetime(2024, 7, 15, 8, 0)

    def test_full_line(self):
        draft = parse_quick_add("Team sync tomorrow 2pm-3pm #eng", self.FALLBACK)
        assert draft.title == "Team sync"
        assert draft.start == datetime(2024, 7, 16, 14, 0)
        assert draft.end == datetime(2024, 7, 16, 15, 0)
        assert draft.calendar_id == "calendar.eng"

    def test_blank_returns_none(self):
        assert parse_quick_add("", self.FALLBACK) is None
        assert parse_quick_add("   ", self.FALLBACK) is None

    def test_defaults_to_nine_on_fallback_date(self):
        draft = parse_quick_add("Lunch", self.FALLBACK)
        assert draft.start == datetime(2024, 7, 15, 9, 0)
        assert draft.end == datetime(2024, 7, 15, 10, 0)
        assert draft.calendar_id is None

    def test_untitled(self):
        assert parse_quick_add("#ops", self.FALLBACK).title == "Untitled event"

    def test_end_before_start_becomes_one_hour(self):
        draft = parse_quick_add("Review 3pm-2pm", self.FALLBACK)
        assert draft.start.hour == 15
        assert draft.end == draft.start + timedelta(minutes=60)

    def test_minutes_and_noon(self):
        draft = parse_quick_add("Call 10:30am - 11:15am", self.FALLBACK)
        assert (draft.start.hour, draft.start.minute) == (10, 30)
        assert (draft.end.hour, draft.end.minute) == (11, 15)
        noon = parse_quick_add("Lunch 12pm-1pm", self.FALLBACK)
        assert (noon.start.hour, noon.end.hour) == (12, 13)

    def test_start_without_meridiem_stays_morning(self):
        draft = parse_quick_add("Retro 2-3pm", self.FALLBACK)
        assert draft.start == datetime(2024, 7, 15, 2, 0)
        assert draft.end == datetime(2024, 7, 15, 15, 0)

    def test_late_morning_into_afternoon(self):
        draft = parse_quick_add("Standup 11-1pm", self.FALLBACK)
        assert draft.start == datetime(2024, 7, 15, 11, 0)
        assert draft.end == datetime(2024, 7, 15, 13, 0)

    def test_calendar_hint_drops_trailing_punctuation(self):
        draft = parse_quick_add("Sync 2pm-3pm #eng.", self.FALLBACK)
        assert draft.calendar_id == "calendar.eng"
        assert draft.title == "Sync"
        assert parse_quick_add("Sync #ops-", self.FALLBACK).calendar_id == "calendar.ops"

    def test_today_uses_anchor(self):
        draft = parse_quick_add("Standup today 9-9:15", self.FALLBACK, today=datetime(2024, 8, 1, 7))
        assert draft.start == datetime(2024, 8, 1, 9, 0)
        assert draft.end == datetime(2024, 8, 1, 9, 15)
        assert draft.title == "Standup"


# ---------------------------------------------------------------------------
# HistoryManager
# ---------------------------------------------------------------------------

class TestHistory:
    def test_bounded_undo_and_redo_cleared(self):
        state = CalendarState(events=(_make_event("e0"),))
        for i in range(25):
            state = commit(state, lambda events, i=i: events + [_make_event(f"n{i}")])
        assert len(state.undo_stack) == 20
        state = undo(state)
        assert len(state.redo_stack) == 1
        state = commit(state, lambda events: events[:1])
        assert state.redo_stack == ()

    def test_undo_redo_restore(self):
        state = CalendarState(events=(_make_event("e1"),))
        state = commit(state, lambda events: [e for e in events if e.id != "e1"])
        assert state.events == ()
        state = undo(state)
        assert [e.id for e in state.events] == ["e1"]
        state = redo(state)
        assert state.events == ()

    def test_empty_stacks_are_noops(self):
        state = CalendarState()
        assert undo(state) is state
        assert redo(state) is state

    def test_snapshot_is_independent(self):
        state = CalendarState(events=(_make_event("e1"),))
        state = commit(state, lambda events: events)
        state.events[0].labels.append("changed")
        assert state.undo_stack[-1][0].labels == []

    def test_set_filters_keeps_history(self):
        state = commit(CalendarState(), lambda events: [_make_event()])
        state = set_filters(state, [FilterGroup("AND", [])])
        assert len(state.filters) == 1
        assert state.can_undo


# ---------------------------------------------------------------------------
# AutoOffsetPolicy
# ---------------------------------------------------------------------------

class TestAutoOffset:
    def _state(self):
        return CalendarState(events=(
            _make_event("A", _at(540), _at(600)),
            _make_event("B", _at(570), _at(630)),
            _make_event("C", _at(700), _at(720)),
        ))

    def test_new_signature_shifts_once(self):
        state = apply_auto_offset(self._state(), {"A", "B"}, enabled=True)
        by_id = {e.id: e for e in state.events}
        assert by_id["A"].start == _at(545)
        assert by_id["B"].end == _at(635)
        assert by_id["C"].start == _at(700)
        assert state.conflict_signature == "A|B"
        assert len(state.undo_stack) == 1

        again = apply_auto_offset(state, {"A", "B"}, enabled=True)
        assert again is state

    def test_empty_conflicts_clear_signature(self):
        state = apply_auto_offset(self._state(), {"A", "B"}, enabled=True)
        cleared = apply_auto_offset(state, set(), enabled=True)
        assert cleared.conflict_signature is None
        assert cleared.events == state.events

    def test_disabled_does_nothing(self):
        state = self._state()
        assert apply_auto_offset(state, {"A", "B"}, enabled=False) is state
