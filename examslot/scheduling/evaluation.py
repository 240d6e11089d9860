import pandas as pd

from ..models import GenerationResult
from .validation import capacity_ok, double_booking_ok

SCHEDULE_COLUMNS = [
    "date", "session", "start", "end", "course", "section", "codes", "departments", "lecturers",
    "students", "venue", "capacity", "flags", "fallback",
]


def schedule_frame(result: GenerationResult) -> pd.DataFrame:
    """One row per scheduled exam, in schedule order."""
    rows = []
    for exam in result.schedule:
        g = exam.group
        rows.append({
            "date": exam.slot.date.isoformat(),
            "session": exam.slot.label,
            "start": exam.slot.start.strftime("%H:%M"),
            "end": exam.slot.end.strftime("%H:%M"),
            "course": g.key,
            "section": exam.section or "",
            "codes": " ".join(g.codes),
            "departments": ", ".join(sorted(g.departments)),
            "lecturers": ", ".join(sorted(g.lecturers)),
            "students": exam.students,
            "venue": exam.venue.name or exam.venue.id,
            "capacity": exam.venue.capacity,
            "flags": " ".join(sorted(k.value for k in exam.flags)),
            "fallback": exam.fallback.value if exam.fallback else "",
        })
    return pd.DataFrame(rows, columns=SCHEDULE_COLUMNS)


def summary(result: GenerationResult) -> str:
    report = result.report
    stats = report.statistics
    text = (
        f"Status: {result.status.value}"
        f"{'  (' + result.failure.value + ')' if result.failure else ''}\n"
        f"Offerings: {stats.total_offerings}  Unique courses: {stats.unique_courses_count}  "
        f"Shared courses: {stats.shared_courses_count}  Students: {stats.total_students}\n"
        f"Groups placed: {report.groups_placed}/{report.groups_total}  "
        f"Unplaced: {len(report.unplaced)}  Flagged: {len(report.flagged)}\n"
    )
    if result.schedule:
        frame = schedule_frame(result)
        seat_use = frame["students"].sum() / max(frame["capacity"].sum(), 1)
        text += (
            f"Exam days: {frame['date'].nunique()}  Busiest day: "
            f"{frame.groupby('date').size().max()} exams  Seat utilisation: {seat_use:.0%}\n"
            f"Valid (double-booking): {double_booking_ok(result.schedule)}  "
            f"Valid (capacity): {capacity_ok(result.schedule)}\n"
        )
    for policy, count in report.fallback_usage:
        text += f"Fallback {policy.value}: {count}\n"
    for unplaced in report.unplaced:
        text += f"Unplaced {unplaced.group.key}: {unplaced.reasons[0][1]}\n"
    for warning in report.warnings:
        text += f"Warning: {warning.message}\n"
    return text
