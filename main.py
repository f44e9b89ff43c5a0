import argparse
import logging
import os

from examplanner.io_utils import (
    load_exams, load_rooms, load_timeslots, load_invigilators, load_students,
    load_timetable, save_timetable_csv, save_roster_csv, save_trace_csv,
)
from examplanner.models import LockConstraints, SchedulerSettings
from examplanner.graph_build import StudentRegistry
from examplanner.scheduling.agent import schedule_exams
from examplanner.scheduling.evaluation import summary
from examplanner.scheduling.validation import validate_schedule


def _ids(value):
    return tuple(s.strip() for s in value.split(',') if s.strip()) if value else ()


def _progress(done, total):
    logging.getLogger('examplanner.cli').debug("Placing exam %d/%d", done, total)


def main():
    p = argparse.ArgumentParser(description="ExamPlanner – constraint-checked backtracking exam scheduler")
    # Inputs
    p.add_argument('--exams', type=str, required=True, help='exams.csv with id,code,name,duration,students[,student_count]')
    p.add_argument('--rooms', type=str, required=True, help='rooms.csv with id,name,capacity,building,availability')
    p.add_argument('--timeslots', type=str, required=True, help='timeslots.csv with id,date,start_time,end_time,label,is_forbidden')
    p.add_argument('--invigilators', type=str, required=True, help='invigilators.csv with id,name,availability,max_load')
    p.add_argument('--students', type=str, help='(Optional) students.csv with id,student_id,name,exams')

    # Settings
    p.add_argument('--allow-forbidden', action='store_true', help='Allow forbidden timeslots')
    p.add_argument('--no-balance-load', action='store_true', help='Do not prefer least-loaded invigilators')
    p.add_argument('--no-minimize-wastage', action='store_true', help='Do not prefer tightest-fit rooms')
    p.add_argument('--load-scope', type=str, default='run', help="max_load applies per 'run' or per 'day'")

    # Guided scheduling
    p.add_argument('--lock-rooms', type=str, help='Comma-separated room ids')
    p.add_argument('--lock-dates', type=str, help='Comma-separated YYYY-MM-DD dates')
    p.add_argument('--lock-timeslots', type=str, help='Comma-separated timeslot ids')
    p.add_argument('--lock-invigilators', type=str, help='Comma-separated invigilator ids')
    p.add_argument('--priority', type=str, help='Comma-separated exam ids to schedule first')

    # Audit mode
    p.add_argument('--validate', type=str, help='Validate an existing timetable CSV instead of scheduling')
    p.add_argument('--forbidden-invalidates', action='store_true',
                   help='Count forbidden-slot use against validity when validating')

    # Output
    p.add_argument('--out_dir', type=str, default='.')
    p.add_argument('--save_trace', action='store_true', help='Also write trace.csv')
    p.add_argument('--log-level', type=str, default='WARNING')
    args = p.parse_args()

    logging.basicConfig(level=args.log_level.upper(),
                        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    if args.load_scope not in ('run', 'day'):
        raise SystemExit("Unknown --load-scope. Use run | day")

    exams, counts = load_exams(args.exams)
    rooms = load_rooms(args.rooms)
    timeslots = load_timeslots(args.timeslots)
    invigilators = load_invigilators(args.invigilators)
    students = load_students(args.students) if args.students else None

    if args.validate:
        timetable = load_timetable(args.validate)
        report = validate_schedule(timetable, exams, rooms, timeslots, invigilators,
                                   student_counts=counts, forbidden_gates_validity=args.forbidden_invalidates)
        print(f"Student clashes: {report.student_clashes}\n"
              f"Room conflicts: {report.room_conflicts}\n"
              f"Capacity violations: {report.capacity_violations}\n"
              f"Forbidden slot violations: {report.forbidden_slot_violations}\n"
              f"Valid: {report.is_valid}")
        raise SystemExit(0 if report.is_valid else 1)

    settings = SchedulerSettings(
        avoid_forbidden_timeslots=not args.allow_forbidden,
        balance_invigilator_load=not args.no_balance_load,
        minimize_room_wastage=not args.no_minimize_wastage,
        per_day_invigilator_load=args.load_scope == 'day',
    )
    lock = LockConstraints(
        room_ids=_ids(args.lock_rooms),
        dates=_ids(args.lock_dates),
        timeslot_ids=_ids(args.lock_timeslots),
        invigilator_ids=_ids(args.lock_invigilators),
        priority_exam_ids=_ids(args.priority),
    )

    result = schedule_exams(exams, rooms, timeslots, invigilators, settings,
                            lock_constraints=lock, students=students, student_counts=counts,
                            on_progress=_progress)
    report = validate_schedule(result.timetable, exams, rooms, timeslots, invigilators, student_counts=counts)
    G = StudentRegistry.build(exams, students, counts).graph
    print(summary(G, result, timeslots, report, avoid_forbidden=settings.avoid_forbidden_timeslots))

    os.makedirs(args.out_dir, exist_ok=True)
    timetable_path = os.path.join(args.out_dir, 'timetable.csv')
    roster_path = os.path.join(args.out_dir, 'roster.csv')
    save_timetable_csv(timetable_path, result.timetable)
    save_roster_csv(roster_path, result.invigilator_roster)
    saved = [timetable_path, roster_path]
    if args.save_trace:
        trace_path = os.path.join(args.out_dir, 'trace.csv')
        save_trace_csv(trace_path, result.trace)
        saved.append(trace_path)
    print(f"Saved: {', '.join(saved)}")
    if not result.success:
        for c in result.conflicts[-5:]:
            print(f"  step {c.step}: {c.exam_id} -> {c.constraint.value}: {c.message}")
        raise SystemExit(1)


if __name__ == '__main__':
    main()
