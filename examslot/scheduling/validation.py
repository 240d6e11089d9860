import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from ..conflicts import conflicts
from ..graph_build import build_group_conflict_graph, greedy_clique_lb
from ..models import (
    ConflictKind, CourseGroup, CourseOffering, FailureReason, GenerationConfig,
    RosterStatistics, ScheduledExam, TimeSlot, ValidationWarning, Venue,
)

logger = logging.getLogger(__name__)

LECTURER_WORKLOAD_WARNING = 6
UTILISATION_WARNING_RATIO = 0.8


@dataclass(frozen=True)
class ValidationOutcome:
    statistics: RosterStatistics
    failure: Optional[FailureReason] = None
    warnings: Tuple[ValidationWarning, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return self.failure is None


def _clean(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_offering(offering: CourseOffering) -> CourseOffering:
    """Blank text fields become None, a missing or negative count becomes 0."""
    count = offering.student_count
    if count is None or count < 0:
        count = 0
    return CourseOffering(
        code=_clean(offering.code),
        department=_clean(offering.department),
        lecturer=_clean(offering.lecturer),
        student_count=int(count),
        shared_tag=_clean(offering.shared_tag),
        title=_clean(offering.title),
    )


def compute_statistics(offerings: Sequence[CourseOffering]) -> RosterStatistics:
    code_counts = Counter()
    blank = 0
    for off in offerings:
        code = _clean(off.code)
        if code:
            code_counts[code] += 1
        else:
            blank += 1
    levels = {off.level for off in offerings if off.level is not None and 100 <= off.level <= 400}
    return RosterStatistics(
        total_offerings=len(offerings),
        unique_courses_count=len(code_counts),
        shared_courses_count=sum(1 for n in code_counts.values() if n > 1),
        total_students=sum(max(off.student_count or 0, 0) for off in offerings),
        blank_code_count=blank,
        department_count=len({_clean(o.department) for o in offerings} - {None}),
        lecturer_count=len({_clean(o.lecturer) for o in offerings} - {None}),
        academic_level_count=len(levels),
    )


def usable_venues(venues: Sequence[Venue]) -> List[Venue]:
    return [v for v in venues if v.capacity and v.capacity > 0]


def validate(offerings: Sequence[CourseOffering], config: GenerationConfig) -> ValidationOutcome:
    """Pre-flight gate. Stops at the first fatal problem; statistics always come back."""
    stats = compute_statistics(offerings)
    if not offerings:
        return ValidationOutcome(stats, FailureReason.EMPTY_ROSTER)
    if config.start_date is None or config.end_date is None or config.start_date >= config.end_date:
        return ValidationOutcome(stats, FailureReason.INVALID_DATE_RANGE)
    if not usable_venues(config.venues):
        return ValidationOutcome(stats, FailureReason.NO_VENUES)
    return ValidationOutcome(stats, None, tuple(roster_warnings(offerings)))


def roster_warnings(offerings: Sequence[CourseOffering]) -> List[ValidationWarning]:
    warnings: List[ValidationWarning] = []
    for pos, off in enumerate(offerings, start=1):
        missing = []
        if not off.code:
            missing.append("course code")
        elif not off.has_valid_code:
            missing.append("well-formed course code")
        if not off.lecturer:
            missing.append("lecturer")
        if not off.department:
            missing.append("department")
        if not off.student_count:
            missing.append("student count")
        if missing:
            label = off.code or f"row {pos}"
            warnings.append(ValidationWarning(
                "missing_data", f"Course {label} is missing: {', '.join(missing)}",
                (off.code,) if off.code else ()))

    per_lecturer = Counter(off.lecturer for off in offerings if off.lecturer)
    for lecturer in sorted(per_lecturer):
        n = per_lecturer[lecturer]
        if n >= LECTURER_WORKLOAD_WARNING:
            codes = tuple(o.code for o in offerings if o.lecturer == lecturer and o.code)
            warnings.append(ValidationWarning(
                "lecturer_workload", f"Lecturer {lecturer} has {n} courses to invigilate", codes))
    return warnings


def allocation_warnings(groups: Sequence[CourseGroup], slots: Sequence[TimeSlot],
                        config: GenerationConfig) -> List[ValidationWarning]:
    """Warnings that need the grouped roster and the enumerated slots."""
    warnings: List[ValidationWarning] = []
    venues = usable_venues(config.venues)
    largest = max((v.capacity for v in venues), default=0)

    for g in groups:
        if len(g.levels) > 1:
            levels = ", ".join(str(lv) for lv in sorted(g.levels))
            warnings.append(ValidationWarning(
                "cross_level_group", f"Shared course {g.key} spans levels {levels}", g.codes))
        if g.student_count > largest:
            warnings.append(ValidationWarning(
                "venue_capacity",
                f"Course {g.key} has {g.student_count} students but the largest venue holds {largest}",
                g.codes))

    total_seats = len(slots) * sum(v.capacity for v in venues)
    demand = sum(g.student_count for g in groups)
    if total_seats and demand > total_seats * UTILISATION_WARNING_RATIO:
        warnings.append(ValidationWarning(
            "venue_utilization", f"High venue utilization: {demand} seats needed of {total_seats}"))

    lb = greedy_clique_lb(build_group_conflict_graph(groups, config.enable_cross_level_detection))
    if len(slots) < lb:
        warnings.append(ValidationWarning(
            "slot_lower_bound",
            f"{lb} groups share students or lecturers but only {len(slots)} slots exist; "
            f"conflict-free placement is impossible"))
    return warnings


def double_booking_ok(schedule: Sequence[ScheduledExam]) -> bool:
    for i in range(len(schedule)):
        for j in range(i + 1, len(schedule)):
            a, b = schedule[i], schedule[j]
            if a.venue.id == b.venue.id and a.slot.overlaps(b.slot):
                return False
    return True


def capacity_ok(schedule: Sequence[ScheduledExam]) -> bool:
    for exam in schedule:
        if ConflictKind.CAPACITY_OVERFLOW in exam.flags:
            continue
        if exam.venue.capacity < exam.students:
            return False
    return True


def conflicts_flagged_ok(schedule: Sequence[ScheduledExam], cross_level: bool = True) -> bool:
    """Every student/lecturer collision is carried as a flag on the later placement."""
    for i in range(len(schedule)):
        for j in range(i + 1, len(schedule)):
            a, b = schedule[i], schedule[j]
            found = conflicts(a, b, cross_level) - {ConflictKind.TIME_OVERLAP}
            if found and not (found <= a.flags or found <= b.flags):
                return False
    return True


def schedule_is_valid(schedule: Sequence[ScheduledExam], cross_level: bool = True) -> bool:
    return (double_booking_ok(schedule) and capacity_ok(schedule)
            and conflicts_flagged_ok(schedule, cross_level))
