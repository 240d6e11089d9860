"""Relaxation policies tried when strict placement of a group fails.

Policies run in a fixed order and the first that yields a placement wins:

* capacity overflow: a free, collision-free venue short of seats by no more
  than ``capacity_tolerance_percent``;
* group split: a group larger than every venue is seated across several
  free venues of one collision-free slot, largest venue first;
* soft conflict: a free venue that seats the group (within tolerance) at a
  time where it collides on students or lecturer with as few placed exams as
  possible; venue double-booking is never accepted, and the policy stands
  aside while a clean extended session is still available;
* window extension: one more slot synthesised inside the date range (a
  skipped weekend session or an after-hours session), then one more strict
  attempt on it.

Every placement produced here carries its policy and flags so hosts can
surface it.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from ..models import ConflictKind, CourseGroup, FallbackPolicy, GenerationConfig, ScheduledExam
from .time_slots import next_extension_slot

logger = logging.getLogger(__name__)

Placement = Tuple[ScheduledExam, ...]


@dataclass(frozen=True)
class Defer:
    reasons: Tuple[Tuple[FallbackPolicy, str], ...] = ()


def _within_tolerance(capacity: int, need: int, tolerance: float) -> bool:
    return capacity * (100 + tolerance) >= need * 100


def try_capacity_overflow(group: CourseGroup, ctx, config: GenerationConfig):
    need = group.student_count
    tolerance = config.capacity_tolerance_percent
    if tolerance <= 0:
        return (), "capacity tolerance is 0%"
    for slot, venue in ctx.candidates():
        if venue.capacity >= need or not _within_tolerance(venue.capacity, need, tolerance):
            continue
        probe = ScheduledExam(group=group, slot=slot, venue=venue,
                              flags=frozenset({ConflictKind.CAPACITY_OVERFLOW}),
                              fallback=FallbackPolicy.CAPACITY_OVERFLOW)
        if not ctx.clashes(probe):
            return (probe,), ""
    return (), f"no free collision-free venue within {tolerance:g}% of {need} seats"


def try_group_split(group: CourseGroup, ctx, config: GenerationConfig):
    need = group.student_count
    largest = max((v.capacity for v in ctx.venues), default=0)
    if need <= largest:
        return (), f"{need} students fit the largest venue ({largest} seats)"
    for slot in ctx.slots:
        free = [v for v in ctx.venues if ctx.is_free(slot, v)]
        if sum(v.capacity for v in free) < need:
            continue
        # free venues cannot overlap in time, so only student/lecturer clashes remain
        if ctx.clashes(ScheduledExam(group=group, slot=slot, venue=free[0])):
            continue
        sections = []
        left = need
        for venue in free:
            if left <= 0:
                break
            seated = min(venue.capacity, left)
            sections.append(ScheduledExam(group=group, slot=slot, venue=venue,
                                          fallback=FallbackPolicy.GROUP_SPLIT,
                                          section=len(sections) + 1, seated=seated))
            left -= seated
        return tuple(sections), ""
    return (), f"no collision-free slot has free venues seating {need} students together"


def try_soft_conflict(group: CourseGroup, ctx, config: GenerationConfig):
    need = group.student_count
    extra = next_extension_slot(config, ctx.slots)
    if extra is not None and ctx.find_strict(group, [extra]) is not None:
        return (), f"clean extended session {extra.date} {extra.start:%H:%M} is still available"

    tolerance = config.capacity_tolerance_percent
    best: Optional[ScheduledExam] = None
    best_score = None
    for slot, venue in ctx.candidates():
        if not _within_tolerance(venue.capacity, need, tolerance):
            continue
        probe = ScheduledExam(group=group, slot=slot, venue=venue)
        clashes = ctx.clashes(probe)
        kinds = set()
        for _, found in clashes:
            kinds |= found
        if ConflictKind.TIME_OVERLAP in kinds:
            continue
        if best_score is not None and len(clashes) >= best_score:
            continue
        if venue.capacity < need:
            kinds.add(ConflictKind.CAPACITY_OVERFLOW)
        best = ScheduledExam(group=group, slot=slot, venue=venue, flags=frozenset(kinds),
                             fallback=FallbackPolicy.SOFT_CONFLICT)
        best_score = len(clashes)
    if best is None:
        return (), f"no free venue seats {need} students even with soft conflicts"
    return (best,), ""


def try_window_extension(group: CourseGroup, ctx, config: GenerationConfig):
    slot = next_extension_slot(config, ctx.slots)
    if slot is None:
        return (), "date range has no unused capacity"
    ctx.add_slot(slot)
    logger.info("Extended search window with %s %s (%s)", slot.date, slot.start, slot.label)
    exam = ctx.find_strict(group, [slot])
    if exam is None:
        return (), f"extended slot {slot.date} {slot.start:%H:%M}: {ctx.last_failure}"
    return (ScheduledExam(group=group, slot=exam.slot, venue=exam.venue,
                          fallback=FallbackPolicy.WINDOW_EXTENSION),), ""


STRATEGIES = (
    (FallbackPolicy.CAPACITY_OVERFLOW, try_capacity_overflow),
    (FallbackPolicy.GROUP_SPLIT, try_group_split),
    (FallbackPolicy.SOFT_CONFLICT, try_soft_conflict),
    (FallbackPolicy.WINDOW_EXTENSION, try_window_extension),
)


def relax(group: CourseGroup, failure_context, config: GenerationConfig) -> Union[Placement, Defer]:
    """Apply the policies in order.

    Returns the accepted placement (one exam, or one per section of a split
    group) or a Defer carrying why each policy failed.
    """
    reasons = []
    for policy, strategy in STRATEGIES:
        placement, why = strategy(group, failure_context, config)
        if placement:
            return placement
        logger.debug("%s fallback failed for %s: %s", policy.value, group.key, why)
        reasons.append((policy, why))
    return Defer(reasons=tuple(reasons))
