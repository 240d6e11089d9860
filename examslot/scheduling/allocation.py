import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from ..conflicts import conflicts
from ..exceptions import GenerationCancelled
from ..models import (
    ConflictKind, CourseGroup, FallbackPolicy, GenerationConfig, ScheduledExam,
    TimeSlot, UnplacedGroup, Venue,
)
from .fallback import Defer, relax
from .validation import usable_venues

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
CancelCheck = Callable[[], bool]


@dataclass
class Allocation:
    schedule: List[ScheduledExam] = field(default_factory=list)
    unplaced: List[UnplacedGroup] = field(default_factory=list)
    fallback_usage: Counter = field(default_factory=Counter)
    slots: List[TimeSlot] = field(default_factory=list)


class PlacementContext:
    """Working state of one allocation run: candidate slots, venues and bookings.

    The allocator and the fallback strategist both search through it; nothing
    here outlives the call to :func:`allocate`.
    """

    def __init__(self, slots: Sequence[TimeSlot], venues: Sequence[Venue], config: GenerationConfig):
        self.config = config
        self.slots: List[TimeSlot] = sorted(slots, key=TimeSlot.sort_key)
        # descending capacity, stable on the configured order
        self.venues: List[Venue] = sorted(usable_venues(venues), key=lambda v: -v.capacity)
        self.scheduled: List[ScheduledExam] = []
        self.by_date: Dict[date, List[ScheduledExam]] = {}
        self.booked: Set[Tuple[TimeSlot, str]] = set()
        self.last_failure: str = ""

    def is_free(self, slot: TimeSlot, venue: Venue) -> bool:
        return (slot, venue.id) not in self.booked

    def clashes(self, probe: ScheduledExam) -> List[Tuple[ScheduledExam, Set[ConflictKind]]]:
        found = []
        # exams on other dates never overlap in time
        for exam in self.by_date.get(probe.slot.date, ()):
            kinds = conflicts(probe, exam, self.config.enable_cross_level_detection)
            if kinds:
                found.append((exam, kinds))
        return found

    def candidates(self, slots: Optional[Sequence[TimeSlot]] = None):
        for slot in (self.slots if slots is None else slots):
            for venue in self.venues:
                if self.is_free(slot, venue):
                    yield slot, venue

    def find_strict(self, group: CourseGroup,
                    slots: Optional[Sequence[TimeSlot]] = None) -> Optional[ScheduledExam]:
        """First free pair with enough seats and no collision at all."""
        need = group.student_count
        too_small = clashing = 0
        for slot, venue in self.candidates(slots):
            if venue.capacity < need:
                too_small += 1
                continue
            probe = ScheduledExam(group=group, slot=slot, venue=venue)
            if self.clashes(probe):
                clashing += 1
                continue
            return probe
        if too_small == 0 and clashing == 0:
            self.last_failure = "every slot/venue pair is already booked"
        else:
            self.last_failure = (f"{too_small} free pairs below {need} seats, "
                                 f"{clashing} free pairs collide with placed exams")
        return None

    def add_slot(self, slot: TimeSlot):
        self.slots.append(slot)
        self.slots.sort(key=TimeSlot.sort_key)

    def book(self, exam: ScheduledExam):
        self.scheduled.append(exam)
        self.by_date.setdefault(exam.slot.date, []).append(exam)
        self.booked.add((exam.slot, exam.venue.id))


def placement_order(groups: Sequence[CourseGroup]) -> List[CourseGroup]:
    # largest first; sorted() is stable so ties keep first-seen order
    return sorted(groups, key=lambda g: -g.student_count)


def _notify(progress: Optional[ProgressCallback], done: int, total: int):
    if progress is None:
        return
    try:
        progress(done, total)
    except Exception:
        logger.warning("Progress callback failed at %d/%d", done, total, exc_info=True)


def allocate(groups: Sequence[CourseGroup], slots: Sequence[TimeSlot], venues: Sequence[Venue],
             config: GenerationConfig, progress: Optional[ProgressCallback] = None,
             should_cancel: Optional[CancelCheck] = None) -> Allocation:
    """Greedy placement of every group onto a (slot, venue) pair.

    Groups go largest first. Each takes the first free pair, slots by date and
    time and venues by descending capacity, that seats it and collides with
    nothing already placed. Groups that find none go to the fallback
    strategist when fallbacks are enabled, and are reported unplaced otherwise.
    Raises GenerationCancelled when ``should_cancel`` returns true between
    groups.
    """
    ctx = PlacementContext(slots, venues, config)
    result = Allocation()
    ordered = placement_order(groups)
    total = len(ordered)

    for done, group in enumerate(ordered):
        if should_cancel is not None and should_cancel():
            raise GenerationCancelled(done, total)

        exam = ctx.find_strict(group)
        if exam is not None:
            ctx.book(exam)
            logger.debug("Placed %s (%d students) in %s on %s %s", group.key, group.student_count,
                         exam.venue.id, exam.slot.date, exam.slot.start)
        else:
            reasons: List[Tuple[str, str]] = [("strict", ctx.last_failure)]
            if config.enable_fallbacks:
                outcome = relax(group, ctx, config)
                if isinstance(outcome, Defer):
                    reasons.extend((p.value, why) for p, why in outcome.reasons)
                else:
                    for exam in outcome:
                        ctx.book(exam)
                    result.fallback_usage[exam.fallback] += 1
                    logger.warning("Placed %s via %s fallback in %s on %s %s", group.key,
                                   exam.fallback.value, ", ".join(e.venue.id for e in outcome),
                                   exam.slot.date, exam.slot.start)
            else:
                reasons.append(("fallbacks", "fallback strategies are disabled"))
            if exam is None:
                result.unplaced.append(UnplacedGroup(group=group, reasons=tuple(reasons)))
                logger.warning("Could not place %s (%d students): %s", group.key,
                               group.student_count, "; ".join(why for _, why in reasons))
        _notify(progress, done + 1, total)

    result.schedule = sorted(ctx.scheduled, key=_schedule_key(ctx.venues))
    result.slots = list(ctx.slots)
    return result


def _schedule_key(venues: Sequence[Venue]):
    rank: Dict[str, int] = {v.id: i for i, v in enumerate(venues)}
    return lambda e: (e.slot.sort_key(), rank.get(e.venue.id, len(rank)), e.group.order)
