"""Audit an existing timetable from scratch.

Nothing here reuses search state: the timetable may have been edited by hand
or produced elsewhere, so every conflict is re-derived pairwise from the
entities.
"""
from typing import Dict, Iterable, List, Mapping, Optional

from ..models import Exam, Invigilator, Room, ScheduleAssignment, Timeslot, ValidationReport


def count_room_conflicts(assignments: Iterable[ScheduleAssignment]) -> int:
    """Every extra exam booked into an already used (room, timeslot) counts once."""
    seen = set()
    conflicts = 0
    for a in assignments:
        key = (a.room_id, a.timeslot_id)
        if key in seen:
            conflicts += 1
        seen.add(key)
    return conflicts


def count_capacity_violations(assignments: Iterable[ScheduleAssignment], exams: Dict[str, Exam],
                              rooms: Dict[str, Room], student_counts: Mapping[str, int]) -> int:
    violations = 0
    for a in assignments:
        exam, room = exams.get(a.exam_id), rooms.get(a.room_id)
        if exam is None or room is None:
            continue
        count = student_counts.get(exam.id)
        if count is None:
            count = len(exam.enrolled_students)
        if count > room.capacity:
            violations += 1
    return violations


def count_forbidden_slots(assignments: Iterable[ScheduleAssignment], timeslots: Dict[str, Timeslot]) -> int:
    return sum(1 for a in assignments if a.timeslot_id in timeslots and timeslots[a.timeslot_id].is_forbidden)


def count_student_clashes(assignments: Iterable[ScheduleAssignment], exams: Dict[str, Exam]) -> int:
    """Pairs of exams sharing a timeslot and at least one enrolled student."""
    by_slot: Dict[str, List[str]] = {}
    for a in assignments:
        by_slot.setdefault(a.timeslot_id, []).append(a.exam_id)
    clashes = 0
    for exam_ids in by_slot.values():
        for i in range(len(exam_ids)):
            for j in range(i + 1, len(exam_ids)):
                u, v = exams.get(exam_ids[i]), exams.get(exam_ids[j])
                if u is None or v is None:
                    continue
                if set(u.enrolled_students) & set(v.enrolled_students):
                    clashes += 1
    return clashes


def validate_schedule(assignments: Iterable[ScheduleAssignment], exams: Iterable[Exam],
                      rooms: Iterable[Room], timeslots: Iterable[Timeslot],
                      invigilators: Iterable[Invigilator] = (),
                      student_counts: Optional[Mapping[str, int]] = None,
                      forbidden_gates_validity: bool = False) -> ValidationReport:
    """Count student clashes, room conflicts, capacity and forbidden-slot violations.

    Forbidden-slot violations are reported but, unless
    ``forbidden_gates_validity`` is set, do not make the timetable invalid.
    ``invigilators`` is accepted for interface parity and not used by any count.
    """
    assignments = list(assignments)
    exams_by_id = {e.id: e for e in exams}
    rooms_by_id = {r.id: r for r in rooms}
    slots_by_id = {t.id: t for t in timeslots}

    student_clashes = count_student_clashes(assignments, exams_by_id)
    room_conflicts = count_room_conflicts(assignments)
    capacity_violations = count_capacity_violations(assignments, exams_by_id, rooms_by_id, student_counts or {})
    forbidden = count_forbidden_slots(assignments, slots_by_id)

    is_valid = student_clashes == 0 and room_conflicts == 0 and capacity_violations == 0
    if forbidden_gates_validity:
        is_valid = is_valid and forbidden == 0
    return ValidationReport(student_clashes, room_conflicts, capacity_violations, forbidden, is_valid)
