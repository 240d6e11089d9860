from typing import Set

from .models import ConflictKind, CourseGroup, ScheduledExam


def groups_share_students(a: CourseGroup, b: CourseGroup, cross_level: bool = True) -> bool:
    """True when two groups may draw on the same students.

    With cross-level detection any shared department counts, since students
    carry courses across levels; without it the department and level must
    both match.
    """
    if cross_level:
        return not a.departments.isdisjoint(b.departments)
    return not a.cohorts.isdisjoint(b.cohorts)


def groups_share_lecturer(a: CourseGroup, b: CourseGroup) -> bool:
    return not a.lecturers.isdisjoint(b.lecturers)


def conflicts(a: ScheduledExam, b: ScheduledExam, cross_level: bool = True) -> Set[ConflictKind]:
    """Every kind of collision between two placements; empty when compatible."""
    kinds: Set[ConflictKind] = set()
    if a.group.key == b.group.key or not a.slot.overlaps(b.slot):
        return kinds
    if a.venue.id == b.venue.id:
        kinds.add(ConflictKind.TIME_OVERLAP)
    if groups_share_students(a.group, b.group, cross_level):
        kinds.add(ConflictKind.STUDENT_OVERLAP)
    if groups_share_lecturer(a.group, b.group):
        kinds.add(ConflictKind.LECTURER_OVERLAP)
    return kinds
