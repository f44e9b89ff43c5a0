"""Depth-first backtracking search over the exam list.

State: (index into the MCV-ordered exams, partial timetable, invigilator
load keyed by invigilator and, in per-day mode, by date). Start at
(0, [], {}). Success when every exam is placed; failure when the first exam
runs out of candidates. Each frame receives its own load dict and assignment
list, and every frame appends to the same ``SearchLog`` owned by ``search``.

The search nests one frame per exam. ``search`` raises the interpreter
recursion limit for the duration of a run when the exam count needs it.
"""
import logging
import sys
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ..graph_build import StudentRegistry
from ..models import (
    CandidateRef, ConflictRecord, Exam, Invigilator, Room, ScheduleAssignment,
    SchedulerSettings, SearchResult, SearchStats, Timeslot, TraceAction, TraceEntry,
)
from ..scheduling.candidates import (
    explain_empty_pool, generate_candidates, sort_exams_by_constrainedness,
)
from ..scheduling.constraints import Candidate, ConstraintEvaluator

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
CancelCheck = Callable[[], bool]
LoadKey = Tuple[str, Optional[str]]

# Frames kept free above the search itself for nested calls.
RECURSION_HEADROOM = 200


@dataclass
class SearchLog:
    """Append-only audit trail shared by every recursion frame of one run."""
    trace: List[TraceEntry] = field(default_factory=list)
    conflicts: List[ConflictRecord] = field(default_factory=list)
    step: int = 0
    trials: int = 0
    backtracks: int = 0

    def next_step(self) -> int:
        self.step += 1
        return self.step


class SearchCancelled(Exception):
    pass


def describe_choice(candidate: Candidate) -> str:
    room, slot, inv = candidate.room, candidate.timeslot, candidate.invigilator
    spare = round((room.capacity - candidate.student_count) / room.capacity * 100) if room.capacity else 0
    return ". ".join([
        f"Room {room.name} selected: capacity {room.capacity} for {candidate.student_count} students ({spare}% spare)",
        f"Timeslot {slot.label} ({slot.date}): no student conflicts detected",
        f"{inv.name} assigned: {inv.daily_load}/{inv.max_load} current load",
    ])


def _ref(candidate: Candidate) -> CandidateRef:
    return CandidateRef(candidate.room.id, candidate.timeslot.id, candidate.invigilator.id)


def _stack_depth() -> int:
    depth = 0
    frame = sys._getframe(1)
    while frame is not None:
        depth += 1
        frame = frame.f_back
    return depth


@contextmanager
def recursion_headroom(frames: int):
    """Make room for ``frames`` more nested calls, restoring the limit afterwards."""
    previous = sys.getrecursionlimit()
    needed = _stack_depth() + frames + RECURSION_HEADROOM
    if needed > previous:
        logger.debug("Raising recursion limit from %d to %d", previous, needed)
        sys.setrecursionlimit(needed)
    try:
        yield
    finally:
        sys.setrecursionlimit(previous)


def search(exams: Iterable[Exam], rooms: Sequence[Room], timeslots: Sequence[Timeslot],
           invigilators: Sequence[Invigilator], settings: SchedulerSettings,
           registry: StudentRegistry, on_progress: Optional[ProgressCallback] = None,
           priority_exam_ids: Iterable[str] = (),
           should_cancel: Optional[CancelCheck] = None,
           all_exams: Optional[Iterable[Exam]] = None) -> SearchResult:
    """Find the first complete timetable, or report why none exists.

    ``all_exams`` is only used to name other exams in clash messages; it
    defaults to ``exams``.
    """
    exams = list(exams)
    ordered = sort_exams_by_constrainedness(exams, rooms, registry, priority_exam_ids)
    total = len(ordered)
    positions = {t.id: i for i, t in enumerate(timeslots)}
    per_day = settings.per_day_invigilator_load
    evaluator = ConstraintEvaluator(
        registry,
        exams=all_exams if all_exams is not None else exams,
        timeslots=timeslots,
        check_forbidden=settings.avoid_forbidden_timeslots,
        per_day_load=per_day,
    )
    log = SearchLog()

    def load_key(invigilator_id: str, slot: Timeslot) -> LoadKey:
        return invigilator_id, (slot.date if per_day else None)

    def backtrack(index: int, assignments: List[ScheduleAssignment],
                  loads: Dict[LoadKey, int]) -> Optional[List[ScheduleAssignment]]:
        if should_cancel is not None and should_cancel():
            raise SearchCancelled()
        if index >= total:
            log.trace.append(TraceEntry(log.next_step(), TraceAction.DONE, "ALL",
                                        note=f"Successfully scheduled all {total} exams"))
            return assignments

        exam = ordered[index]
        candidates = generate_candidates(exam, rooms, timeslots, invigilators, settings, registry, positions,
                                         load_for=lambda inv, slot: loads.get(load_key(inv.id, slot), 0))
        if on_progress is not None:
            on_progress(index + 1, total)
        if not candidates:
            constraint, message = explain_empty_pool(rooms, timeslots, invigilators, settings)
            step = log.next_step()
            log.trace.append(TraceEntry(step, TraceAction.REJECT, exam.id, note=f"Rejected: {message}"))
            log.conflicts.append(ConflictRecord(step, exam.id, None, constraint, message))
            return None

        for cand in candidates:
            log.trials += 1
            step = log.next_step()
            ref = _ref(cand)
            log.trace.append(TraceEntry(step, TraceAction.TRY, exam.id, ref,
                                        note=f"Trying {exam.code} in {cand.room.name} at {cand.timeslot.label}"))

            result = evaluator.validate_assignment(cand, assignments)
            if not result.is_valid:
                first = result.violations[0]
                log.trace.append(TraceEntry(step, TraceAction.REJECT, exam.id, ref, result.checks,
                                            note=f"Rejected: {first.message}"))
                log.conflicts.append(ConflictRecord(step, exam.id, ref, first.constraint, first.message))
                continue

            log.trace.append(TraceEntry(step, TraceAction.ACCEPT, exam.id, ref, result.checks,
                                        note=f"Accepted: {exam.code} assigned to {cand.room.name}"))
            assignment = ScheduleAssignment(exam.id, cand.room.id, cand.timeslot.id, cand.invigilator.id,
                                            cand.student_count, describe_choice(cand))
            key = load_key(cand.invigilator.id, cand.timeslot)
            next_loads = dict(loads)
            next_loads[key] = next_loads.get(key, 0) + 1

            found = backtrack(index + 1, assignments + [assignment], next_loads)
            if found is not None:
                return found

            log.backtracks += 1
            logger.debug("Backtracking from %s (depth %d)", exam.id, index)
            log.trace.append(TraceEntry(log.next_step(), TraceAction.BACKTRACK, exam.id,
                                        note=f"Backtracking from {exam.code}, trying next candidate"))
        return None

    logger.info("Search started: %d exams, %d rooms, %d timeslots, %d invigilators",
                total, len(rooms), len(timeslots), len(invigilators))
    start = time.perf_counter()
    cancelled = False
    try:
        with recursion_headroom(total):
            found = backtrack(0, [], {})
    except SearchCancelled:
        found = None
        cancelled = True
        logger.info("Search cancelled after %d trials", log.trials)
    end = time.perf_counter()

    logger.info("Search %s: %d states explored, %d backtracks in %.3fs",
                "succeeded" if found is not None else "failed", log.trials, log.backtracks, end - start)
    return SearchResult(
        success=found is not None,
        assignments=tuple(found or ()),
        trace=tuple(log.trace),
        conflicts=tuple(log.conflicts),
        stats=SearchStats(log.trials, log.backtracks, start, end, cancelled),
    )
