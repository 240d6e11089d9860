import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple

from .exceptions import ConfigurationError

COURSE_CODE_PATTERN = re.compile(r"^[A-Za-z]+\s?\d+$")
_LEVEL_DIGIT = re.compile(r"\d")


class ConflictKind(Enum):
    TIME_OVERLAP = "time_overlap"
    STUDENT_OVERLAP = "student_overlap"
    LECTURER_OVERLAP = "lecturer_overlap"
    CAPACITY_OVERFLOW = "capacity_overflow"


class FallbackPolicy(Enum):
    CAPACITY_OVERFLOW = "capacity_overflow"
    GROUP_SPLIT = "group_split"
    SOFT_CONFLICT = "soft_conflict"
    WINDOW_EXTENSION = "window_extension"


class GenerationStatus(Enum):
    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    FAILURE = "failure"
    CANCELLED = "cancelled"


class FailureReason(Enum):
    EMPTY_ROSTER = "empty_roster"
    INVALID_DATE_RANGE = "invalid_date_range"
    NO_VENUES = "no_venues"
    NO_PLACEMENT = "no_placement"


@dataclass(frozen=True)
class CourseOffering:
    code: Optional[str] = None
    department: Optional[str] = None
    lecturer: Optional[str] = None
    student_count: Optional[int] = None  # enrolled students, None when unknown
    shared_tag: Optional[str] = None     # explicit cross-listing tag
    title: Optional[str] = None

    @property
    def level(self) -> Optional[int]:
        """Academic level from the first digit of the code (MTH101 -> 100)."""
        if not self.code:
            return None
        m = _LEVEL_DIGIT.search(self.code)
        return int(m.group(0)) * 100 if m else None

    @property
    def has_valid_code(self) -> bool:
        return bool(self.code) and COURSE_CODE_PATTERN.match(self.code) is not None


@dataclass(frozen=True)
class CourseGroup:
    key: str
    members: Tuple[CourseOffering, ...]
    order: int = 0  # first-seen position in the roster

    @property
    def student_count(self) -> int:
        return sum(m.student_count or 0 for m in self.members)

    @property
    def codes(self) -> Tuple[str, ...]:
        seen: List[str] = []
        for m in self.members:
            if m.code and m.code not in seen:
                seen.append(m.code)
        return tuple(seen)

    @property
    def departments(self) -> FrozenSet[str]:
        return frozenset(m.department for m in self.members if m.department)

    @property
    def levels(self) -> FrozenSet[int]:
        return frozenset(m.level for m in self.members if m.level is not None)

    @property
    def cohorts(self) -> FrozenSet[Tuple[str, Optional[int]]]:
        # (department, level) pairs; used when cross-level detection is off
        return frozenset((m.department, m.level) for m in self.members if m.department)

    @property
    def lecturers(self) -> FrozenSet[str]:
        return frozenset(m.lecturer for m in self.members if m.lecturer)

    @property
    def is_shared(self) -> bool:
        return len(self.members) > 1


@dataclass(frozen=True)
class SlotTemplate:
    start: time
    duration_min: int = 180
    label: str = ""


@dataclass(frozen=True)
class TimeSlot:
    date: date
    start: time
    duration_min: int = 180
    label: str = ""

    @property
    def start_at(self) -> datetime:
        return datetime.combine(self.date, self.start)

    @property
    def end_at(self) -> datetime:
        return self.start_at + timedelta(minutes=self.duration_min)

    @property
    def end(self) -> time:
        return self.end_at.time()

    def sort_key(self):
        return (self.date, self.start, self.duration_min)

    def overlaps(self, other: "TimeSlot") -> bool:
        if self.date != other.date:
            return False
        return self.start_at < other.end_at and other.start_at < self.end_at


@dataclass(frozen=True)
class Venue:
    id: str
    capacity: int
    name: Optional[str] = None


@dataclass(frozen=True)
class ScheduledExam:
    group: CourseGroup
    slot: TimeSlot
    venue: Venue
    flags: FrozenSet[ConflictKind] = frozenset()
    fallback: Optional[FallbackPolicy] = None
    section: int = 0               # 1-based part number when a group is split across venues
    seated: Optional[int] = None   # students in this venue; None means the whole group

    @property
    def students(self) -> int:
        return self.group.student_count if self.seated is None else self.seated

    @property
    def flagged(self) -> bool:
        return bool(self.flags) or self.fallback is not None


def default_time_slot_template() -> List[SlotTemplate]:
    return [
        SlotTemplate(start=time(8, 0), duration_min=180, label="Morning"),
        SlotTemplate(start=time(12, 0), duration_min=180, label="Midday"),
    ]


@dataclass
class GenerationConfig:
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    venues: List[Venue] = field(default_factory=list)
    time_slot_template: List[SlotTemplate] = field(default_factory=default_time_slot_template)
    enable_course_grouping: bool = True
    enable_fallbacks: bool = True
    capacity_tolerance_percent: float = 10.0
    enable_cross_level_detection: bool = True
    exclude_weekends: bool = False
    break_minutes: int = 60
    day_end: time = time(17, 0)

    def __post_init__(self):
        if self.capacity_tolerance_percent < 0:
            raise ConfigurationError(
                f"capacity tolerance must be >= 0, got {self.capacity_tolerance_percent}")
        if self.break_minutes < 0:
            raise ConfigurationError(f"break between sessions must be >= 0, got {self.break_minutes}")
        for tpl in self.time_slot_template:
            if tpl.duration_min <= 0:
                raise ConfigurationError(f"slot template at {tpl.start} has non-positive duration")


@dataclass(frozen=True)
class RosterStatistics:
    total_offerings: int = 0
    unique_courses_count: int = 0
    shared_courses_count: int = 0
    total_students: int = 0
    blank_code_count: int = 0
    department_count: int = 0
    lecturer_count: int = 0
    academic_level_count: int = 0


@dataclass(frozen=True)
class ValidationWarning:
    kind: str
    message: str
    codes: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ConflictRecord:
    group_key: str
    kind: ConflictKind
    slot: TimeSlot
    venue_id: str
    other_group_key: Optional[str] = None


@dataclass(frozen=True)
class UnplacedGroup:
    group: CourseGroup
    # (stage, reason) in the order the stages were tried
    reasons: Tuple[Tuple[str, str], ...] = ()


def _slot_dict(slot: TimeSlot) -> Dict[str, object]:
    return {
        "date": slot.date.isoformat(),
        "start": slot.start.strftime("%H:%M"),
        "end": slot.end.strftime("%H:%M"),
        "label": slot.label,
    }


@dataclass(frozen=True)
class GenerationReport:
    statistics: RosterStatistics = RosterStatistics()
    groups_total: int = 0
    groups_placed: int = 0
    flagged: Tuple[ConflictRecord, ...] = ()
    unplaced: Tuple[UnplacedGroup, ...] = ()
    fallback_usage: Tuple[Tuple[FallbackPolicy, int], ...] = ()
    warnings: Tuple[ValidationWarning, ...] = ()

    def fallback_count(self, policy: FallbackPolicy) -> int:
        return dict(self.fallback_usage).get(policy, 0)

    def as_dict(self) -> Dict[str, object]:
        s = self.statistics
        return {
            "statistics": {
                "total_offerings": s.total_offerings,
                "unique_courses_count": s.unique_courses_count,
                "shared_courses_count": s.shared_courses_count,
                "total_students": s.total_students,
                "blank_code_count": s.blank_code_count,
                "department_count": s.department_count,
                "lecturer_count": s.lecturer_count,
                "academic_level_count": s.academic_level_count,
            },
            "groups_total": self.groups_total,
            "groups_placed": self.groups_placed,
            "flagged": [
                {
                    "group": r.group_key,
                    "kind": r.kind.value,
                    "other_group": r.other_group_key,
                    "venue": r.venue_id,
                    **_slot_dict(r.slot),
                }
                for r in self.flagged
            ],
            "unplaced": [
                {"group": u.group.key, "students": u.group.student_count,
                 "reasons": [{"stage": st, "reason": why} for st, why in u.reasons]}
                for u in self.unplaced
            ],
            "fallback_usage": {p.value: n for p, n in self.fallback_usage},
            "warnings": [{"kind": w.kind, "message": w.message, "codes": list(w.codes)}
                         for w in self.warnings],
        }


@dataclass(frozen=True)
class GenerationResult:
    status: GenerationStatus
    schedule: Tuple[ScheduledExam, ...] = ()
    report: GenerationReport = GenerationReport()
    failure: Optional[FailureReason] = None

    @property
    def unplaced(self) -> Tuple[UnplacedGroup, ...]:
        return self.report.unplaced
