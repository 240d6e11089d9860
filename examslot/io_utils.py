import csv
import io
import json
import logging
import os
from datetime import datetime, time
from typing import IO, List, Optional, Union

from .exceptions import ConfigurationError
from .models import CourseOffering, GenerationResult, SlotTemplate, Venue
from .scheduling.evaluation import schedule_frame

logger = logging.getLogger(__name__)

TextOrPath = Union[str, os.PathLike, IO]


def _open_text(src: TextOrPath):
    """Return a text-mode file handle and a flag indicating whether to close it.

    Accepts a filesystem path, a text IO object, or a BytesIO buffer.
    Ensures CSV readers get strings, not bytes.
    """
    if isinstance(src, (str, os.PathLike)):
        f = open(src, 'r', newline='', encoding='utf-8-sig')
        return f, True
    if isinstance(src, io.BytesIO):
        src.seek(0)
        f = io.TextIOWrapper(src, encoding='utf-8-sig', newline='')
        return f, True
    if hasattr(src, 'read'):
        if hasattr(src, 'seek'):
            src.seek(0)
        return src, False
    raise TypeError("Unsupported input type; expected path or file-like object")


def _field(row, *names) -> Optional[str]:
    for name in names:
        value = row.get(name)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def _count(raw: Optional[str], line: int) -> Optional[int]:
    if raw is None:
        return None
    try:
        return int(float(raw))
    except (ValueError, OverflowError):
        logger.warning("Line %d: unreadable student count %r, treated as missing", line, raw)
        return None


def load_offerings(src: TextOrPath) -> List[CourseOffering]:
    """Roster CSV: code,department,lecturer,students[,shared_tag,title].

    Bad rows are kept with the unreadable fields left empty.
    """
    offerings: List[CourseOffering] = []
    f, should_close = _open_text(src)
    try:
        r = csv.DictReader(f)
        for line, row in enumerate(r, start=2):
            offerings.append(CourseOffering(
                code=_field(row, 'code', 'course_code'),
                department=_field(row, 'department'),
                lecturer=_field(row, 'lecturer', 'instructor'),
                student_count=_count(_field(row, 'students', 'student_count'), line),
                shared_tag=_field(row, 'shared_tag', 'shared_group'),
                title=_field(row, 'title', 'course_name'),
            ))
    finally:
        if should_close:
            f.close()
    return offerings


def load_venues(src: TextOrPath) -> List[Venue]:
    venues: List[Venue] = []
    f, should_close = _open_text(src)
    try:
        r = csv.DictReader(f)
        for line, row in enumerate(r, start=2):
            vid = _field(row, 'id', 'venue_id')
            if vid is None:
                raise ConfigurationError(f"venues line {line}: missing id")
            try:
                cap = int(row['capacity'])
            except (KeyError, TypeError, ValueError):
                raise ConfigurationError(f"venues line {line}: capacity must be an integer",
                                         details={"venue": vid})
            venues.append(Venue(id=vid, capacity=cap, name=_field(row, 'name')))
    finally:
        if should_close:
            f.close()
    return venues


def parse_clock(text: str) -> time:
    try:
        return datetime.strptime(str(text).strip(), "%H:%M").time()
    except ValueError:
        raise ConfigurationError(f"invalid time of day {text!r}, expected HH:MM")


def load_slot_template(src: TextOrPath) -> List[SlotTemplate]:
    """Slot template CSV: start,duration_minutes[,label]."""
    template: List[SlotTemplate] = []
    f, should_close = _open_text(src)
    try:
        r = csv.DictReader(f)
        for line, row in enumerate(r, start=2):
            start = parse_clock(row.get('start', ''))
            try:
                duration = int(row.get('duration_minutes', row.get('duration_min', 180)))
            except ValueError:
                raise ConfigurationError(f"slots line {line}: duration must be an integer")
            template.append(SlotTemplate(start=start, duration_min=duration,
                                         label=_field(row, 'label') or ""))
    finally:
        if should_close:
            f.close()
    return template


def save_schedule_csv(path: str, result: GenerationResult):
    schedule_frame(result).to_csv(path, index=False)


def save_report_json(path: str, result: GenerationResult):
    payload = {
        "status": result.status.value,
        "failure": result.failure.value if result.failure else None,
        "report": result.report.as_dict(),
    }
    with open(path, 'w') as f:
        json.dump(payload, f, indent=2)
