from datetime import date

import pytest

from examslot.exceptions import GenerationCancelled
from examslot.grouping import group_offerings
from examslot.models import ConflictKind, CourseOffering, ScheduledExam, Venue
from examslot.scheduling.allocation import PlacementContext, allocate, placement_order
from examslot.scheduling.time_slots import enumerate_time_slots

MONDAY = date(2024, 3, 4)
TUESDAY = date(2024, 3, 5)


def off(code, students, dept, lecturer):
    return CourseOffering(code=code, department=dept, lecturer=lecturer, student_count=students)


def run(roster, config, **kw):
    groups = group_offerings(roster)
    return allocate(groups, enumerate_time_slots(config), config.venues, config, **kw)


def test_largest_groups_go_first_and_ties_keep_roster_order():
    groups = group_offerings([off("A101", 30, "Arts", "L1"), off("B101", 90, "Biology", "L2"),
                              off("C101", 30, "Chemistry", "L3")])
    assert [g.key for g in placement_order(groups)] == ["B101", "A101", "C101"]


def test_larger_group_gets_larger_venue(make_config):
    config = make_config([Venue("small", 40), Venue("big", 100)])
    result = run([off("ART101", 30, "Arts", "L1"), off("BIO101", 90, "Biology", "L2")], config)
    assert not result.unplaced
    first, second = result.schedule
    assert (first.group.key, first.venue.id, first.slot.date) == ("BIO101", "big", MONDAY)
    assert (second.group.key, second.venue.id, second.slot.date) == ("ART101", "small", MONDAY)
    assert not any(e.flagged for e in result.schedule)


def test_lecturer_clash_pushes_group_to_next_slot(make_config):
    config = make_config([Venue("r1", 100), Venue("r2", 100)])
    result = run([off("MTH101", 50, "Mathematics", "Dr Ade"),
                  off("PHY101", 40, "Physics", "Dr Ade")], config)
    placed = {e.group.key: e for e in result.schedule}
    assert placed["MTH101"].slot.date == MONDAY
    assert placed["PHY101"].slot.date == TUESDAY
    assert placed["PHY101"].venue.id == "r1"


def test_venue_too_small_is_skipped(make_config):
    config = make_config([Venue("room", 30), Venue("hall", 100)])
    result = run([off("MTH101", 80, "Mathematics", "A"), off("PHY101", 60, "Physics", "B")], config)
    assert [(e.group.key, e.venue.id, e.slot.date) for e in result.schedule] == [
        ("MTH101", "hall", MONDAY), ("PHY101", "hall", TUESDAY)]


def test_unplaced_when_fallbacks_disabled(make_config, hall):
    config = make_config([hall], enable_fallbacks=False)
    roster = [off("ART101", 80, "Arts", "L1"), off("BIO101", 70, "Biology", "L2"),
              off("CHM101", 60, "Chemistry", "L3")]
    result = run(roster, config)
    assert len(result.schedule) == 2
    assert [u.group.key for u in result.unplaced] == ["CHM101"]
    stages = [stage for stage, _ in result.unplaced[0].reasons]
    assert stages == ["strict", "fallbacks"]
    assert "already booked" in result.unplaced[0].reasons[0][1]
    assert not result.fallback_usage


def test_zero_capacity_venues_are_ignored(make_config):
    config = make_config([Venue("closed", 0), Venue("hall", 100)])
    result = run([off("MTH101", 0, "Mathematics", "A")], config)
    assert result.schedule[0].venue.id == "hall"


def test_progress_reports_each_group(make_config, hall):
    calls = []
    config = make_config([hall])
    roster = [off("A101", 10, "Arts", "L1"), off("B101", 20, "Biology", "L2"),
              off("C101", 30, "Chemistry", "L3")]
    run(roster, config, progress=lambda done, total: calls.append((done, total)))
    assert calls == [(1, 3), (2, 3), (3, 3)]


def test_failing_progress_callback_does_not_change_outcome(make_config, hall):
    def boom(done, total):
        raise RuntimeError("ui went away")

    config = make_config([hall])
    roster = [off("A101", 10, "Arts", "L1")]
    assert run(roster, config, progress=boom).schedule == run(roster, config).schedule


def test_cancellation_between_groups(make_config, hall):
    config = make_config([hall])
    roster = [off("A101", 10, "Arts", "L1"), off("B101", 20, "Biology", "L2")]
    seen = []
    with pytest.raises(GenerationCancelled) as exc:
        run(roster, config, progress=lambda d, t: seen.append(d), should_cancel=lambda: len(seen) >= 1)
    assert exc.value.processed == 1
    assert exc.value.total == 2


def test_schedule_is_ordered_by_slot_then_venue(make_config):
    config = make_config([Venue("r2", 50), Venue("r1", 100)])
    roster = [off("A101", 40, "Arts", "L1"), off("B101", 45, "Biology", "L2"),
              off("C101", 90, "Chemistry", "L3"), off("D101", 95, "Drama", "L4")]
    result = run(roster, config)
    assert [(e.group.key, e.slot.date, e.venue.id) for e in result.schedule] == [
        ("D101", MONDAY, "r1"), ("B101", MONDAY, "r2"),
        ("C101", TUESDAY, "r1"), ("A101", TUESDAY, "r2"),
    ]


def test_clashes_only_consider_the_probe_date(make_config, hall):
    config = make_config([hall, Venue("annex", 50)])
    ctx = PlacementContext(enumerate_time_slots(config), config.venues, config)
    monday, tuesday = ctx.slots
    mth, phy, stat = group_offerings([off("MTH101", 40, "Mathematics", "L1"),
                                      off("PHY101", 30, "Physics", "L2"),
                                      off("STA101", 20, "Mathematics", "L3")])
    ctx.book(ScheduledExam(group=mth, slot=monday, venue=hall))
    ctx.book(ScheduledExam(group=phy, slot=tuesday, venue=hall))

    on_monday = ctx.clashes(ScheduledExam(group=stat, slot=monday, venue=config.venues[1]))
    assert [(e.group.key, kinds) for e, kinds in on_monday] == [("MTH101", {ConflictKind.STUDENT_OVERLAP})]
    assert ctx.clashes(ScheduledExam(group=stat, slot=tuesday, venue=config.venues[1])) == []
    assert [e.group.key for e in ctx.by_date[TUESDAY]] == ["PHY101"]
