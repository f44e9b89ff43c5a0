"""Scheduling agent: turns entity collections into a finished ``ScheduleResult``.

Lock constraints narrow the room, timeslot and invigilator pools before the
search starts and never bypass a hard constraint. Priority exams partition the
exam list: priority exams are placed first, and most-constrained-first
ordering applies inside each partition.
"""
import logging
from typing import Callable, Iterable, List, Mapping, Optional, Sequence, TypeVar

from ..algorithms.backtracking import CancelCheck, ProgressCallback, search
from ..graph_build import StudentRegistry
from ..models import (
    Exam, Invigilator, LockConstraints, Room, ScheduleMetrics, ScheduleResult,
    SchedulerSettings, Student, Timeslot,
)
from .evaluation import build_invigilator_roster, calculate_metrics

logger = logging.getLogger(__name__)

T = TypeVar('T')


def narrow_pool(pool: Sequence[T], keep: Callable[[T], bool], what: str) -> List[T]:
    """Filter ``pool``; an empty result falls back to the whole pool."""
    narrowed = [item for item in pool if keep(item)]
    if not narrowed:
        logger.warning("Lock constraint on %s matched nothing; using all %d %s", what, len(pool), what)
        return list(pool)
    return narrowed


def apply_lock_constraints(exams: Sequence[Exam], rooms: Sequence[Room], timeslots: Sequence[Timeslot],
                           invigilators: Sequence[Invigilator], lock: Optional[LockConstraints]):
    """Return (exams, rooms, timeslots, invigilators) restricted by ``lock``."""
    exams, rooms, timeslots, invigilators = list(exams), list(rooms), list(timeslots), list(invigilators)
    if lock is None:
        return exams, rooms, timeslots, invigilators

    if lock.priority_exam_ids:
        priority = set(lock.priority_exam_ids)
        exams = [e for e in exams if e.id in priority] + [e for e in exams if e.id not in priority]
    if lock.room_ids:
        rooms = narrow_pool(rooms, lambda r: r.id in lock.room_ids, 'rooms')
    if lock.timeslot_ids or lock.dates:
        narrowed = timeslots
        if lock.timeslot_ids:
            narrowed = [t for t in narrowed if t.id in lock.timeslot_ids]
        if lock.dates:
            narrowed = [t for t in narrowed if t.date in lock.dates]
        timeslots = narrow_pool(timeslots, lambda t: t in narrowed, 'timeslots')
    if lock.invigilator_ids:
        invigilators = narrow_pool(invigilators, lambda i: i.id in lock.invigilator_ids, 'invigilators')
    return exams, rooms, timeslots, invigilators


def schedule_exams(exams: Iterable[Exam], rooms: Iterable[Room], timeslots: Iterable[Timeslot],
                   invigilators: Iterable[Invigilator], settings: Optional[SchedulerSettings] = None,
                   lock_constraints: Optional[LockConstraints] = None,
                   students: Optional[Iterable[Student]] = None,
                   student_counts: Optional[Mapping[str, int]] = None,
                   on_progress: Optional[ProgressCallback] = None,
                   should_cancel: Optional[CancelCheck] = None) -> ScheduleResult:
    settings = settings or SchedulerSettings()
    exams, rooms, timeslots, invigilators = list(exams), list(rooms), list(timeslots), list(invigilators)
    registry = StudentRegistry.build(exams, students, student_counts)

    to_schedule, use_rooms, use_slots, use_invigilators = apply_lock_constraints(
        exams, rooms, timeslots, invigilators, lock_constraints)
    priority = lock_constraints.priority_exam_ids if lock_constraints else ()

    result = search(to_schedule, use_rooms, use_slots, use_invigilators, settings, registry,
                    on_progress=on_progress, priority_exam_ids=priority,
                    should_cancel=should_cancel, all_exams=exams)

    utilization, variance = calculate_metrics(result.assignments, rooms)
    roster = build_invigilator_roster(result.assignments, invigilators)
    metrics = ScheduleMetrics(
        total_time=round((result.stats.end_time - result.stats.start_time) * 1000, 3),
        states_explored=result.stats.states_explored,
        backtracks=result.stats.backtracks,
        average_room_utilization=utilization,
        invigilator_load_variance=variance,
    )
    logger.info("Scheduled %d/%d exams (utilization %d%%, load variance %.2f)",
                len(result.assignments), len(to_schedule), utilization, variance)
    return ScheduleResult(
        success=result.success,
        timetable=result.assignments,
        invigilator_roster=roster,
        conflicts=result.conflicts,
        trace=result.trace,
        metrics=metrics,
    )
