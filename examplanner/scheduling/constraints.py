"""Hard constraints over a partial timetable.

Every check answers one question about a candidate (exam, room, timeslot,
invigilator) against the assignments already accepted, and returns a
``CheckResult``. ``ConstraintEvaluator`` runs them in a fixed order and turns
failures into ``ConstraintViolation`` records; a candidate with at least one
violation "causes a contradiction" and its search branch is pruned.

Precondition: the candidate's room, timeslot and invigilator are known
entities. Unknown ids are a caller error and are not handled here.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..graph_build import StudentRegistry
from ..models import (
    CheckResult, ConstraintKind, ConstraintViolation, Exam, Invigilator,
    InvigilatorAvailability, Room, ScheduleAssignment, Timeslot,
)


@dataclass(frozen=True)
class Candidate:
    exam: Exam
    room: Room
    timeslot: Timeslot
    invigilator: Invigilator
    student_count: int


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    checks: Tuple[CheckResult, ...]
    violations: Tuple[ConstraintViolation, ...]


def check_room_capacity(room: Room, student_count: int) -> CheckResult:
    ok = room.capacity >= student_count
    if ok:
        detail = f"Room {room.name} (capacity: {room.capacity}) can accommodate {student_count} students"
    else:
        detail = f"VIOLATION: Room {room.name} has capacity {room.capacity}, but exam has {student_count} students"
    return CheckResult(ok, ConstraintKind.ROOM_CAPACITY, detail)


def find_room_booking(room: Room, timeslot: Timeslot,
                      assignments: Iterable[ScheduleAssignment]) -> Optional[ScheduleAssignment]:
    for a in assignments:
        if a.room_id == room.id and a.timeslot_id == timeslot.id:
            return a
    return None


def check_double_booking(room: Room, timeslot: Timeslot,
                         assignments: Sequence[ScheduleAssignment]) -> CheckResult:
    return _double_booking_result(room, timeslot, find_room_booking(room, timeslot, assignments))


def _double_booking_result(room: Room, timeslot: Timeslot, clash: Optional[ScheduleAssignment]) -> CheckResult:
    if clash is None:
        detail = f"Room {room.name} is available at {timeslot.label} on {timeslot.date}"
        return CheckResult(True, ConstraintKind.DOUBLE_BOOKING, detail)
    detail = f"VIOLATION: Room {room.name} is already booked for exam {clash.exam_id} at this time"
    return CheckResult(False, ConstraintKind.DOUBLE_BOOKING, detail)


def find_student_clash(exam: Exam, timeslot: Timeslot, assignments: Sequence[ScheduleAssignment],
                       registry: StudentRegistry) -> Tuple[Optional[ScheduleAssignment], List[str]]:
    """First same-slot assignment whose exam shares students with ``exam``."""
    for a in assignments:
        if a.timeslot_id != timeslot.id:
            continue
        shared = registry.shared_students(exam.id, a.exam_id)
        if shared:
            return a, shared
    return None, []


def check_student_clash(exam: Exam, timeslot: Timeslot, assignments: Sequence[ScheduleAssignment],
                        registry: StudentRegistry,
                        exams_by_id: Optional[Dict[str, Exam]] = None) -> CheckResult:
    clash, shared = find_student_clash(exam, timeslot, assignments, registry)
    return _student_clash_result(exam, timeslot, clash, shared, registry, exams_by_id)


def _student_clash_result(exam: Exam, timeslot: Timeslot, clash: Optional[ScheduleAssignment],
                          shared: List[str], registry: StudentRegistry,
                          exams_by_id: Optional[Dict[str, Exam]] = None) -> CheckResult:
    if clash is None:
        detail = f"No student conflicts detected for {exam.code} at {timeslot.label} on {timeslot.date}"
        return CheckResult(True, ConstraintKind.STUDENT_CLASH, detail)
    other = (exams_by_id or {}).get(clash.exam_id)
    other_code = other.code if other else clash.exam_id
    detail = (f"VIOLATION: {len(shared)} student(s) enrolled in both {exam.code} and {other_code} "
              f"(e.g., {registry.display_name(shared[0])})")
    return CheckResult(False, ConstraintKind.STUDENT_CLASH, detail)


def check_forbidden_slot(timeslot: Timeslot) -> CheckResult:
    ok = not timeslot.is_forbidden
    if ok:
        detail = f"Timeslot {timeslot.label} on {timeslot.date} is available"
    else:
        detail = f"VIOLATION: Timeslot {timeslot.label} on {timeslot.date} is marked as forbidden"
    return CheckResult(ok, ConstraintKind.FORBIDDEN_SLOT, detail)


def current_load(invigilator: Invigilator, assignments: Iterable[ScheduleAssignment],
                 date: Optional[str] = None,
                 timeslots_by_id: Optional[Dict[str, Timeslot]] = None) -> int:
    """Assignments held by ``invigilator``; restricted to ``date`` when given."""
    count = 0
    for a in assignments:
        if a.invigilator_id != invigilator.id:
            continue
        if date is not None:
            slot = (timeslots_by_id or {}).get(a.timeslot_id)
            if slot is None or slot.date != date:
                continue
        count += 1
    return count


def check_invigilator_load(invigilator: Invigilator, load: int) -> CheckResult:
    if invigilator.availability == InvigilatorAvailability.UNAVAILABLE:
        detail = f"VIOLATION: {invigilator.name} is marked as unavailable"
        return CheckResult(False, ConstraintKind.INVIGILATOR_LOAD, detail)
    ok = load < invigilator.max_load
    if ok:
        detail = f"{invigilator.name} has {load}/{invigilator.max_load} assignments (can take more)"
    else:
        detail = f"VIOLATION: {invigilator.name} has reached max load of {invigilator.max_load} assignments"
    return CheckResult(ok, ConstraintKind.INVIGILATOR_LOAD, detail)


def check_invigilator_double_booking(invigilator: Invigilator, timeslot: Timeslot,
                                     assignments: Sequence[ScheduleAssignment]) -> CheckResult:
    busy = any(a.invigilator_id == invigilator.id and a.timeslot_id == timeslot.id for a in assignments)
    if busy:
        detail = f"VIOLATION: {invigilator.name} is already assigned to another exam at this time"
    else:
        detail = f"{invigilator.name} is available at {timeslot.label} on {timeslot.date}"
    return CheckResult(not busy, ConstraintKind.INVIGILATOR_LOAD, detail)


class ConstraintEvaluator:
    """Runs every hard constraint against a candidate, in a fixed order.

    Order only decides which violation is reported first, never legality:
    capacity, room double booking, student clash, forbidden slot (when
    ``check_forbidden``), invigilator load, invigilator double booking.
    """

    def __init__(self, registry: StudentRegistry, exams: Iterable[Exam] = (),
                 timeslots: Iterable[Timeslot] = (), check_forbidden: bool = True,
                 per_day_load: bool = False):
        self.registry = registry
        self.exams_by_id = {e.id: e for e in exams}
        self.timeslots_by_id = {t.id: t for t in timeslots}
        self.check_forbidden = check_forbidden
        self.per_day_load = per_day_load

    def _load_of(self, candidate: Candidate, assignments: Sequence[ScheduleAssignment]) -> int:
        date = candidate.timeslot.date if self.per_day_load else None
        return current_load(candidate.invigilator, assignments, date, self.timeslots_by_id)

    def validate_assignment(self, candidate: Candidate,
                            assignments: Sequence[ScheduleAssignment]) -> ValidationResult:
        exam, room, slot, inv = candidate.exam, candidate.room, candidate.timeslot, candidate.invigilator
        checks: List[CheckResult] = []
        violations: List[ConstraintViolation] = []

        def record(check: CheckResult, details: Dict) -> None:
            checks.append(check)
            if not check.ok:
                violations.append(ConstraintViolation(check.constraint, check.detail, exam.id, details))

        record(check_room_capacity(room, candidate.student_count),
               {'room_capacity': room.capacity, 'student_count': candidate.student_count})

        booked = find_room_booking(room, slot, assignments)
        record(_double_booking_result(room, slot, booked),
               {'room_id': room.id, 'timeslot_id': slot.id,
                'conflicting_exam_id': booked.exam_id if booked else None})

        other, shared = find_student_clash(exam, slot, assignments, self.registry)
        clash_details = {'timeslot_id': slot.id}
        if other is not None:
            clash_details.update(conflicting_exam_id=other.exam_id, shared_students=shared)
        record(_student_clash_result(exam, slot, other, shared, self.registry, self.exams_by_id), clash_details)

        if self.check_forbidden:
            record(check_forbidden_slot(slot), {'timeslot_id': slot.id})

        load = self._load_of(candidate, assignments)
        record(check_invigilator_load(inv, load),
               {'invigilator_id': inv.id, 'current_load': load, 'max_load': inv.max_load})

        record(check_invigilator_double_booking(inv, slot, assignments),
               {'invigilator_id': inv.id, 'timeslot_id': slot.id})

        return ValidationResult(not violations, tuple(checks), tuple(violations))

    def causes_contradiction(self, candidate: Candidate,
                             assignments: Sequence[ScheduleAssignment]) -> bool:
        return not self.validate_assignment(candidate, assignments).is_valid
