import argparse
import logging
import sys
from datetime import date

from examslot.engine import generate
from examslot.exceptions import ConfigurationError
from examslot.io_utils import (
    load_offerings, load_slot_template, load_venues, parse_clock,
    save_report_json, save_schedule_csv,
)
from examslot.models import GenerationConfig, GenerationStatus, default_time_slot_template
from examslot.scheduling.evaluation import summary


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="ExamSlot – exam timetable generator")
    # Inputs
    p.add_argument('--offerings', type=str, required=True,
                   help='roster CSV with code,department,lecturer,students[,shared_tag,title]')
    p.add_argument('--venues', type=str, required=True, help='venues CSV with id,capacity[,name]')
    p.add_argument('--slots', type=str, default=None,
                   help='optional slot template CSV with start,duration_minutes[,label]')

    # Window
    p.add_argument('--start', type=date.fromisoformat, default=None, help='first exam date (YYYY-MM-DD)')
    p.add_argument('--end', type=date.fromisoformat, default=None, help='last exam date (YYYY-MM-DD)')
    p.add_argument('--exclude-weekends', action='store_true')
    p.add_argument('--day-end', type=str, default='17:00', help='latest end time for extended sessions')
    p.add_argument('--break-minutes', type=int, default=60)

    # Policies
    p.add_argument('--no-grouping', action='store_true', help='schedule every offering on its own')
    p.add_argument('--no-fallbacks', action='store_true')
    p.add_argument('--no-cross-level', action='store_true',
                   help='only same department and level count as shared students')
    p.add_argument('--tolerance', type=float, default=10.0, help='capacity overflow tolerance (%%)')

    # Output
    p.add_argument('--out_schedule', type=str, default='exam_schedule.csv')
    p.add_argument('--out_report', type=str, default='generation_report.json')
    p.add_argument('--verbose', action='store_true')
    return p


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        offerings = load_offerings(args.offerings)
        venues = load_venues(args.venues)
        template = load_slot_template(args.slots) if args.slots else default_time_slot_template()
        config = GenerationConfig(
            start_date=args.start,
            end_date=args.end,
            venues=venues,
            time_slot_template=template,
            enable_course_grouping=not args.no_grouping,
            enable_fallbacks=not args.no_fallbacks,
            capacity_tolerance_percent=args.tolerance,
            enable_cross_level_detection=not args.no_cross_level,
            exclude_weekends=args.exclude_weekends,
            break_minutes=args.break_minutes,
            day_end=parse_clock(args.day_end),
        )
    except ConfigurationError as exc:
        print(f"Configuration error: {exc.message}", file=sys.stderr)
        return 2

    result = generate(offerings, config)
    print(summary(result))

    save_report_json(args.out_report, result)
    if result.schedule:
        save_schedule_csv(args.out_schedule, result)
        print(f"Saved: {args.out_schedule}, {args.out_report}")
    else:
        print(f"Saved: {args.out_report}")
    return 1 if result.status is GenerationStatus.FAILURE else 0


if __name__ == '__main__':
    sys.exit(main())
