from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ..graph_build import StudentRegistry
from ..models import (
    ConstraintKind, Exam, Invigilator, InvigilatorAvailability, Room, RoomAvailability,
    SchedulerSettings, Timeslot,
)
from .constraints import Candidate

LoadLookup = Callable[[Invigilator, Timeslot], int]

# Least-constraining-value weights. Lower score is tried first.
ROOM_WASTAGE_WEIGHT = 2       # per empty seat
INVIGILATOR_LOAD_WEIGHT = 10  # per assignment already held
TIMESLOT_ORDER_WEIGHT = 1     # per position in the timeslot list


def fitting_room_count(student_count: int, rooms: Iterable[Room]) -> int:
    return sum(1 for r in rooms if r.capacity >= student_count)


def sort_exams_by_constrainedness(exams: Iterable[Exam], rooms: Sequence[Room],
                                  registry: StudentRegistry,
                                  priority_exam_ids: Iterable[str] = ()) -> List[Exam]:
    """Most-constrained-variable ordering.

    Priority exams form the first partition; inside each partition exams with
    fewer fitting rooms come first, then exams with more students.
    """
    priority = set(priority_exam_ids)

    def key(ex: Exam):
        count = registry.student_count(ex)
        return (0 if ex.id in priority else 1, fitting_room_count(count, rooms), -count)

    return sorted(exams, key=key)


def candidate_score(candidate: Candidate, settings: SchedulerSettings, timeslot_position: int) -> int:
    score = 0
    if settings.minimize_room_wastage:
        score += ROOM_WASTAGE_WEIGHT * (candidate.room.capacity - candidate.student_count)
    if settings.balance_invigilator_load:
        score += INVIGILATOR_LOAD_WEIGHT * candidate.invigilator.daily_load
    score += TIMESLOT_ORDER_WEIGHT * timeslot_position
    return score


def sort_candidates_by_score(candidates: Iterable[Candidate], settings: SchedulerSettings,
                             timeslot_positions: Dict[str, int]) -> List[Candidate]:
    # sorted() is stable: equal scores keep room/timeslot/invigilator generation order
    return sorted(candidates,
                  key=lambda c: candidate_score(c, settings, timeslot_positions.get(c.timeslot.id, 0)))


def usable_pools(student_count: int, rooms: Sequence[Room], timeslots: Sequence[Timeslot],
                 invigilators: Sequence[Invigilator],
                 settings: SchedulerSettings) -> Tuple[List[Room], List[Timeslot], List[Invigilator]]:
    """Rooms, timeslots and invigilators an exam of ``student_count`` may use.

    If no open room fits the exam, every open room is returned instead, so the
    failure is recorded as ROOM_CAPACITY rejections instead of an empty trace.
    """
    open_rooms = [r for r in rooms if r.availability == RoomAvailability.AVAILABLE]
    usable_rooms = [r for r in open_rooms if r.capacity >= student_count] or open_rooms
    usable_slots = [t for t in timeslots
                    if not (settings.avoid_forbidden_timeslots and t.is_forbidden)]
    usable_invigilators = [i for i in invigilators
                           if i.availability != InvigilatorAvailability.UNAVAILABLE]
    return usable_rooms, usable_slots, usable_invigilators


def explain_empty_pool(rooms: Sequence[Room], timeslots: Sequence[Timeslot],
                       invigilators: Sequence[Invigilator],
                       settings: SchedulerSettings) -> Optional[Tuple[ConstraintKind, str]]:
    """Which pool leaves an exam without a single candidate, if any."""
    usable_rooms, usable_slots, usable_invigilators = usable_pools(0, rooms, timeslots, invigilators, settings)
    if not usable_rooms:
        return ConstraintKind.ROOM_CAPACITY, f"No usable rooms: {len(rooms)} supplied, none available"
    if not usable_slots:
        return ConstraintKind.FORBIDDEN_SLOT, f"No usable timeslots: {len(timeslots)} supplied, all forbidden"
    if not usable_invigilators:
        return (ConstraintKind.INVIGILATOR_LOAD,
                f"No usable invigilators: {len(invigilators)} supplied, none available")
    return None


def generate_candidates(exam: Exam, rooms: Sequence[Room], timeslots: Sequence[Timeslot],
                        invigilators: Sequence[Invigilator], settings: SchedulerSettings,
                        registry: StudentRegistry,
                        timeslot_positions: Optional[Dict[str, int]] = None,
                        load_for: Optional[LoadLookup] = None) -> List[Candidate]:
    """Cross product of usable rooms, timeslots and invigilators for one exam.

    Only availability, capacity and (optionally) forbidden slots are filtered
    here; conflicts with the partial timetable are left to the evaluator.
    ``load_for(invigilator, timeslot)`` overrides ``daily_load`` per slot.
    """
    student_count = registry.student_count(exam)
    if timeslot_positions is None:
        timeslot_positions = {t.id: i for i, t in enumerate(timeslots)}
    usable_rooms, usable_slots, usable_invigilators = usable_pools(
        student_count, rooms, timeslots, invigilators, settings)

    candidates = [
        Candidate(exam, room, slot, replace(inv, daily_load=load_for(inv, slot)) if load_for else inv,
                  student_count)
        for room in usable_rooms
        for slot in usable_slots
        for inv in usable_invigilators
    ]
    return sort_candidates_by_score(candidates, settings, timeslot_positions)
