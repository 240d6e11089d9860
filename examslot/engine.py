import logging
from typing import List, Optional, Sequence

from .conflicts import conflicts
from .exceptions import GenerationCancelled
from .grouping import group_offerings
from .models import (
    ConflictKind, ConflictRecord, CourseOffering, FailureReason, FallbackPolicy,
    GenerationConfig, GenerationReport, GenerationResult, GenerationStatus, ScheduledExam,
)
from .scheduling.allocation import CancelCheck, ProgressCallback, allocate
from .scheduling.time_slots import enumerate_time_slots
from .scheduling.validation import allocation_warnings, normalize_offering, validate

logger = logging.getLogger(__name__)


def flagged_records(schedule: Sequence[ScheduledExam], cross_level: bool = True) -> List[ConflictRecord]:
    records: List[ConflictRecord] = []
    for exam in schedule:
        for kind in sorted(exam.flags, key=lambda k: k.value):
            if kind is ConflictKind.CAPACITY_OVERFLOW:
                records.append(ConflictRecord(exam.group.key, kind, exam.slot, exam.venue.id))
                continue
            for other in schedule:
                if other is not exam and kind in conflicts(exam, other, cross_level):
                    records.append(ConflictRecord(exam.group.key, kind, exam.slot, exam.venue.id,
                                                  other.group.key))
    return records


def generate(offerings: Sequence[CourseOffering], config: GenerationConfig,
             progress: Optional[ProgressCallback] = None,
             should_cancel: Optional[CancelCheck] = None) -> GenerationResult:
    """Run one timetable generation.

    Inputs are normalised and validated first; a failed precondition returns
    a FAILURE result without touching any group. ``progress`` is called with
    ``(groups_processed, groups_total)`` after each group and
    ``should_cancel`` is polled before each one; a cancelled run returns no
    schedule. Nothing is kept between calls.
    """
    roster = [normalize_offering(o) for o in offerings]
    outcome = validate(roster, config)
    if not outcome.ok:
        logger.info("Generation rejected: %s", outcome.failure.value)
        return GenerationResult(status=GenerationStatus.FAILURE, failure=outcome.failure,
                                report=GenerationReport(statistics=outcome.statistics,
                                                        warnings=outcome.warnings))

    groups = group_offerings(roster, enabled=config.enable_course_grouping)
    slots = enumerate_time_slots(config)
    warnings = outcome.warnings + tuple(allocation_warnings(groups, slots, config))
    logger.info("Generating schedule: %d offerings in %d groups, %d slots, %d venues",
                len(roster), len(groups), len(slots), len(config.venues))

    try:
        allocation = allocate(groups, slots, config.venues, config,
                              progress=progress, should_cancel=should_cancel)
    except GenerationCancelled as exc:
        logger.info("Generation cancelled: %s", exc.message)
        return GenerationResult(status=GenerationStatus.CANCELLED,
                                report=GenerationReport(statistics=outcome.statistics,
                                                        groups_total=len(groups),
                                                        warnings=warnings))

    schedule = tuple(allocation.schedule)
    usage = tuple((p, allocation.fallback_usage[p]) for p in FallbackPolicy
                  if allocation.fallback_usage[p])
    report = GenerationReport(
        statistics=outcome.statistics,
        groups_total=len(groups),
        groups_placed=len(groups) - len(allocation.unplaced),
        flagged=tuple(flagged_records(schedule, config.enable_cross_level_detection)),
        unplaced=tuple(allocation.unplaced),
        fallback_usage=usage,
        warnings=warnings,
    )

    failure = None
    if not allocation.unplaced:
        status = GenerationStatus.SUCCESS
    elif schedule:
        status = GenerationStatus.PARTIAL_SUCCESS
    else:
        status = GenerationStatus.FAILURE
        failure = FailureReason.NO_PLACEMENT
    logger.info("Generation finished: %s, %d/%d groups placed, %d flagged",
                status.value, report.groups_placed, report.groups_total,
                sum(1 for e in schedule if e.flagged))
    return GenerationResult(status=status, schedule=schedule, report=report, failure=failure)
