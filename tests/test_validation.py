from datetime import date, time

from examslot.grouping import group_offerings
from examslot.models import (
    ConflictKind, CourseOffering, FailureReason, GenerationConfig, ScheduledExam, TimeSlot, Venue,
)
from examslot.scheduling.validation import (
    allocation_warnings, capacity_ok, compute_statistics, double_booking_ok, normalize_offering,
    validate,
)

MONDAY = date(2024, 3, 4)


def off(code, students=10, dept="Mathematics", lecturer="Dr Ade", tag=None):
    return CourseOffering(code=code, department=dept, lecturer=lecturer,
                          student_count=students, shared_tag=tag)


def config(**kw):
    params = dict(start_date=MONDAY, end_date=date(2024, 3, 8), venues=[Venue("hall", 100)])
    params.update(kw)
    return GenerationConfig(**params)


def test_empty_roster_is_rejected_first():
    outcome = validate([], config(start_date=None, venues=[]))
    assert not outcome.ok
    assert outcome.failure is FailureReason.EMPTY_ROSTER
    assert outcome.statistics.total_offerings == 0


def test_date_range_must_be_present_and_increasing():
    roster = [off("MTH101")]
    assert validate(roster, config(start_date=None)).failure is FailureReason.INVALID_DATE_RANGE
    assert validate(roster, config(end_date=None)).failure is FailureReason.INVALID_DATE_RANGE
    assert validate(roster, config(end_date=MONDAY)).failure is FailureReason.INVALID_DATE_RANGE
    assert validate(roster, config(end_date=date(2024, 3, 1))).failure is FailureReason.INVALID_DATE_RANGE


def test_date_range_checked_before_venues():
    outcome = validate([off("MTH101")], config(end_date=MONDAY, venues=[]))
    assert outcome.failure is FailureReason.INVALID_DATE_RANGE


def test_needs_a_venue_with_seats():
    assert validate([off("MTH101")], config(venues=[])).failure is FailureReason.NO_VENUES
    assert validate([off("MTH101")], config(venues=[Venue("shed", 0)])).failure is FailureReason.NO_VENUES


def test_valid_inputs_pass_with_statistics():
    outcome = validate([off("MTH101", 50), off("MTH101", 60), off("PHY101", 40)], config())
    assert outcome.ok
    stats = outcome.statistics
    assert stats.unique_courses_count == 2
    assert stats.shared_courses_count == 1
    assert stats.total_students == 150


def test_statistics_tolerate_missing_values():
    roster = [
        CourseOffering(code="MTH101", student_count=50),
        CourseOffering(code="MTH101"),
        CourseOffering(code="PHY201", student_count=40, department="Physics", lecturer="Dr Eze"),
        CourseOffering(code=None, student_count=10),
        CourseOffering(code="   ", student_count=-5),
    ]
    stats = compute_statistics(roster)
    assert stats.total_offerings == 5
    assert stats.unique_courses_count == 2
    assert stats.shared_courses_count == 1
    assert stats.total_students == 100
    assert stats.blank_code_count == 2
    assert stats.department_count == 1
    assert stats.lecturer_count == 1
    assert stats.academic_level_count == 2


def test_normalize_offering():
    raw = CourseOffering(code="  CSC101 ", department=" ", lecturer="Dr Ade ", student_count=-3)
    clean = normalize_offering(raw)
    assert clean.code == "CSC101"
    assert clean.department is None
    assert clean.lecturer == "Dr Ade"
    assert clean.student_count == 0
    assert normalize_offering(CourseOffering()).student_count == 0


def test_level_comes_from_first_digit():
    assert off("MTH101").level == 100
    assert off("CSC 305").level == 300
    assert off("GENERAL").level is None
    assert off("CSC 305").has_valid_code
    assert not off("101").has_valid_code


def test_missing_data_and_workload_warnings():
    roster = [off("CSC10%d" % i, lecturer="Dr Busy") for i in range(6)]
    roster.append(CourseOffering(code="PHY101", department="Physics", student_count=20))
    outcome = validate(roster, config())
    kinds = [w.kind for w in outcome.warnings]
    assert kinds.count("lecturer_workload") == 1
    missing = [w for w in outcome.warnings if w.kind == "missing_data"]
    assert len(missing) == 1
    assert "lecturer" in missing[0].message


def test_allocation_warnings():
    roster = [
        off("CSC101", 150, dept="Computer Science", tag="intro"),
        off("CSC301", 20, dept="Computer Science", tag="intro"),
        off("CSC201", 30, dept="Computer Science", lecturer="B"),
        off("CSC401", 30, dept="Computer Science", lecturer="C"),
    ]
    groups = group_offerings(roster)
    slots = [TimeSlot(MONDAY, time(9, 0)), TimeSlot(MONDAY, time(13, 0))]
    warnings = allocation_warnings(groups, slots, config())
    kinds = {w.kind for w in warnings}
    assert {"cross_level_group", "venue_capacity", "venue_utilization", "slot_lower_bound"} <= kinds


def test_post_hoc_checks():
    g = group_offerings([off("MTH101", 120)])[0]
    h = group_offerings([off("PHY101", 20)])[0]
    slot = TimeSlot(MONDAY, time(9, 0))
    small = Venue("room", 100)
    assert not capacity_ok([ScheduledExam(g, slot, small)])
    assert capacity_ok([ScheduledExam(g, slot, small, flags=frozenset({ConflictKind.CAPACITY_OVERFLOW}))])
    assert not double_booking_ok([ScheduledExam(g, slot, small), ScheduledExam(h, slot, small)])
    assert double_booking_ok([ScheduledExam(g, slot, small), ScheduledExam(h, slot, Venue("lab", 30))])
