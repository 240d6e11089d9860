from datetime import date, datetime, timedelta
from typing import Dict, Iterable, Iterator, List, Optional, Set

from ..models import GenerationConfig, SlotTemplate, TimeSlot

EXTENDED_LABEL = "Extended"


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def exam_dates(config: GenerationConfig) -> List[date]:
    """Every date of the configured window, ends inclusive."""
    if config.start_date is None or config.end_date is None:
        return []
    days = (config.end_date - config.start_date).days
    return [config.start_date + timedelta(days=i) for i in range(days + 1)]


def _template(config: GenerationConfig) -> List[SlotTemplate]:
    return sorted(config.time_slot_template, key=lambda t: (t.start, t.duration_min))


def _slots_for_day(day: date, template: Iterable[SlotTemplate]) -> List[TimeSlot]:
    return [TimeSlot(date=day, start=t.start, duration_min=t.duration_min, label=t.label)
            for t in template]


def enumerate_time_slots(config: GenerationConfig) -> List[TimeSlot]:
    """Date range x slot template, ordered by date then start time."""
    template = _template(config)
    slots: List[TimeSlot] = []
    for day in exam_dates(config):
        if config.exclude_weekends and is_weekend(day):
            continue
        slots.extend(_slots_for_day(day, template))
    return sorted(slots, key=TimeSlot.sort_key)


def extension_candidates(config: GenerationConfig, existing: Iterable[TimeSlot]) -> Iterator[TimeSlot]:
    """Slots the window could still hold beyond the enumerated set.

    First the template sessions of every skipped weekend day, in date order;
    then, per date, extra sessions after the day's last session (plus the
    configured break) that still end by ``config.day_end``. Never leaves
    [start_date, end_date].
    """
    template = _template(config)
    if not template:
        return
    taken: Set[TimeSlot] = set(existing)
    last_end: Dict[date, datetime] = {}
    for s in taken:
        if s.date not in last_end or s.end_at > last_end[s.date]:
            last_end[s.date] = s.end_at
    duration = max(t.duration_min for t in template)
    gap = timedelta(minutes=config.break_minutes)

    if config.exclude_weekends:
        for day in exam_dates(config):
            if is_weekend(day):
                for slot in _slots_for_day(day, template):
                    if slot not in taken:
                        yield slot

    for day in exam_dates(config):
        if day not in last_end:
            continue
        limit = datetime.combine(day, config.day_end)
        begin = last_end[day] + gap
        while begin.date() == day and begin + timedelta(minutes=duration) <= limit:
            slot = TimeSlot(date=day, start=begin.time(), duration_min=duration, label=EXTENDED_LABEL)
            if slot not in taken:
                yield slot
            begin += timedelta(minutes=duration) + gap


def next_extension_slot(config: GenerationConfig, existing: Iterable[TimeSlot]) -> Optional[TimeSlot]:
    return next(extension_candidates(config, existing), None)
